"""
Operator Policy Library

Reconciles OperatorPolicy objects against the OLM resources they govern.
"""

__version__ = "1.0.0"

# Core libraries
from .core import KubernetesAuth, ConfigManager, ControllerConfig
from .core.exceptions import OperatorPolicyError, ClusterRequestError, ReconcileError

# Cluster adapters
from .cluster import KubernetesClusterStore, ClusterQueryWatcher

# Merge engine
from .merge import ObjectMerger

# Main application
from .main_app import OperatorPolicyReconciler, policy_identifier, main

__all__ = [
    # Core
    'KubernetesAuth',
    'ConfigManager',
    'ControllerConfig',
    'OperatorPolicyError',
    'ClusterRequestError',
    'ReconcileError',
    # Cluster
    'KubernetesClusterStore',
    'ClusterQueryWatcher',
    # Merge
    'ObjectMerger',
    # Main
    'OperatorPolicyReconciler',
    'policy_identifier',
    'main',
]

"""
Operator Policy Controller

Keeps OLM operator installations (OperatorGroup, Subscription, InstallPlans)
in line with OperatorPolicy objects and reports their compliance.
"""

__version__ = "1.0.0"

from .libs import OperatorPolicyReconciler, ConfigManager, ControllerConfig, ReconcileError, main

__all__ = [
    'OperatorPolicyReconciler',
    'ConfigManager',
    'ControllerConfig',
    'ReconcileError',
    'main',
]

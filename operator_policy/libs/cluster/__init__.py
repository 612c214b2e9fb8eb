"""
Cluster Adapters

Kubernetes-backed implementations of the store and dependency watcher.
"""

from .store import KubernetesClusterStore, gvk_of
from .watcher import ClusterQueryWatcher

__all__ = [
    'KubernetesClusterStore',
    'ClusterQueryWatcher',
    'gvk_of',
]

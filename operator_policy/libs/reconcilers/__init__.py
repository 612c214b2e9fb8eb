"""
Reconcilers

One pipeline stage per OLM dependency kind, and the pipeline that runs them.
"""

from .base import ReconcileContext, ResourceReconciler, StageResult
from .desired_state import DesiredStateStage
from .operator_group import OperatorGroupReconciler
from .subscription import SubscriptionReconciler
from .install_plan import InstallPlanReconciler
from .cluster_service_version import ClusterServiceVersionReconciler
from .deployment import DeploymentReconciler
from .catalog_source import CatalogSourceReconciler
from .pipeline import ReconcilePipeline, default_pipeline

__all__ = [
    'ReconcileContext',
    'ResourceReconciler',
    'StageResult',
    'DesiredStateStage',
    'OperatorGroupReconciler',
    'SubscriptionReconciler',
    'InstallPlanReconciler',
    'ClusterServiceVersionReconciler',
    'DeploymentReconciler',
    'CatalogSourceReconciler',
    'ReconcilePipeline',
    'default_pipeline',
]

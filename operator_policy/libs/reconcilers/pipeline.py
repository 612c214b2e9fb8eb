"""
Reconcile Pipeline

Runs the per-kind stages in a fixed order. Errors are collected rather than
short-circuiting: the stages that consume the output of a failed stage report
their dimension as Unknown instead of running.
"""

import logging
from typing import Any, Dict, List, Sequence

from ..core.exceptions import ClusterRequestError
from .base import ReconcileContext, ResourceReconciler
from .catalog_source import CatalogSourceReconciler
from .cluster_service_version import ClusterServiceVersionReconciler
from .deployment import DeploymentReconciler
from .desired_state import DesiredStateStage
from .install_plan import InstallPlanReconciler
from .operator_group import OperatorGroupReconciler
from .subscription import SubscriptionReconciler

logger = logging.getLogger(__name__)


class ReconcilePipeline:
    """Ordered set of reconcile stages"""

    def __init__(self, stages: Sequence[ResourceReconciler]):
        """
        Initialize the pipeline

        Args:
            stages: Stages in execution order; each stage's dependencies must come before it
        """
        self.stages = list(stages)

    def run(self, ctx: ReconcileContext) -> List[Exception]:
        """
        Run every stage against the context

        Args:
            ctx: The run context; the policy status is updated in place

        Returns:
            List of errors collected from all stages
        """
        outputs: Dict[str, Any] = {}
        # stage name -> what could not be handled, for every failed or blocked stage
        failed: Dict[str, str] = {}
        errors: List[Exception] = []

        for stage in self.stages:
            blocked = [dep for dep in stage.depends_on if dep in failed]
            if blocked:
                cause = failed[blocked[0]]
                logger.info(f"Not running the {stage.name} stage because of an error handling the {cause}")
                stage.report_upstream_failure(ctx, cause)
                failed[stage.name] = cause
                continue

            try:
                result = stage.reconcile(ctx, *(outputs.get(dep) for dep in stage.depends_on))
            except ClusterRequestError as e:
                logger.error(f"Error handling {stage.kind or stage.name}: {e}")
                errors.append(e)
                failed[stage.name] = stage.subject
                continue

            outputs[stage.name] = result.output
            if result.error is not None:
                logger.error(f"Error handling {stage.kind or stage.name}: {result.error}")
                errors.append(result.error)

        return errors


def default_pipeline() -> ReconcilePipeline:
    """Create the pipeline with every stage in the order OLM resources depend on each other"""
    return ReconcilePipeline([
        DesiredStateStage(),
        OperatorGroupReconciler(),
        SubscriptionReconciler(),
        InstallPlanReconciler(),
        ClusterServiceVersionReconciler(),
        DeploymentReconciler(),
        CatalogSourceReconciler(),
    ])

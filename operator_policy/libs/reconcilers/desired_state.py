"""
Desired-state pipeline stage.
"""

from ..desired_state import DesiredState, build_desired_state
from ..core.exceptions import ClusterRequestError
from .. import status
from .base import ReconcileContext, ResourceReconciler, StageResult


class DesiredStateStage(ResourceReconciler):
    """Builds the desired objects and reports whether the policy spec is valid"""

    name = "desired_state"
    subject = "operator namespace"

    def reconcile(self, ctx: ReconcileContext) -> StageResult:
        try:
            desired: DesiredState = build_desired_state(
                ctx.policy, ctx.watcher, ctx.watcher_id, ctx.default_namespace)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error getting operator namespace: {e}", status=e.status)

        ctx.desired = desired
        ctx.update_status(status.validation_cond(desired.validation_errors))
        return StageResult(output=desired)

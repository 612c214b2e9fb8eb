"""
Subscription Reconciler

Besides the usual create/update handling, surfaces OLM resolution failures
that concern this subscription.
"""

import logging
from typing import Any, Dict, Optional

from ..core.constants import KubernetesConstants, PolicyConstants
from ..core.exceptions import ClusterRequestError
from ..core.utils import get_nested, message_includes_subscription, parse_timestamp
from ..data_models import Condition
from ..desired_state import DesiredState
from .. import status
from .base import ReconcileContext, ResourceReconciler, StageResult

logger = logging.getLogger(__name__)

RESOLUTION_FAILED = "ResolutionFailed"


def get_resolution_failure(subscription: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Get the ResolutionFailed condition of a subscription if it is currently True"""
    for condition in get_nested(subscription, 'status', 'conditions', default=[]) or []:
        if condition.get('type') == RESOLUTION_FAILED and condition.get('status') == "True":
            return condition
    return None


class SubscriptionReconciler(ResourceReconciler):
    """Reconciles the Subscription and hands the resolved one to later stages"""

    name = "subscription"
    kind = KubernetesConstants.SUBSCRIPTION_GVK.kind
    depends_on = ("desired_state",)

    def reconcile(self, ctx: ReconcileContext, desired_state: DesiredState) -> StageResult:
        desired = desired_state.subscription
        if desired is None:
            ctx.update_status(status.invalid_causing_unknown_cond(self.kind))
            return StageResult()

        desired_obj = desired.to_unstructured()

        try:
            found = ctx.watcher.get(
                ctx.watcher_id, KubernetesConstants.SUBSCRIPTION_GVK, desired.namespace, desired.name)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error getting the Subscription: {e}", status=e.status)

        if found is None:
            created = self.handle_missing(ctx, desired_obj)
            return StageResult(output=created or desired_obj)

        try:
            result = ctx.merger.merge_objects(desired_obj, found, ctx.policy.spec.compliance_type)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error checking if the Subscription needs an update: {e}", status=e.status)

        merged = result.merged

        if not result.update_needed:
            self._report_match(ctx, found, merged)
            return StageResult(output=merged)

        try:
            updated = self.handle_mismatch(ctx, found, result)
        except ClusterRequestError as e:
            # What was observed is still good enough for the later stages
            return StageResult(output=merged, error=e)

        return StageResult(output=updated or merged)

    def _report_match(self, ctx: ReconcileContext, found: Dict[str, Any], merged: Dict[str, Any]) -> None:
        failure = get_resolution_failure(merged)

        # OLM puts the same failure on every subscription in the namespace
        if failure is not None and message_includes_subscription(
                failure.get('message', ''),
                get_nested(merged, 'metadata', 'namespace', default=''),
                get_nested(merged, 'metadata', 'name', default=''),
                get_nested(merged, 'spec', 'name', default='')):
            reason = failure.get('reason', '')
            condition = Condition(
                type=PolicyConstants.ConditionType.SUBSCRIPTION.value,
                status=status.FALSE,
                reason=reason,
                message=failure.get('message', ''),
                last_transition_time=parse_timestamp(failure.get('lastTransitionTime')),
            )
            ctx.update_status(condition, status.non_compliant_obj(found, reason))
            return

        ctx.update_status(status.matches_cond(self.kind), status.matched_obj(found))

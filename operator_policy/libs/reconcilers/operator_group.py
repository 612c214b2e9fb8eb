"""
OperatorGroup Reconciler

An OLM namespace must have exactly one OperatorGroup. When the policy doesn't
specify one, any single existing OperatorGroup is accepted as-is.
"""

import logging

from ..core.constants import KubernetesConstants
from ..core.exceptions import ClusterRequestError
from ..core.utils import get_nested
from ..desired_state import DesiredState
from .. import status
from .base import ReconcileContext, ResourceReconciler, StageResult

logger = logging.getLogger(__name__)


class OperatorGroupReconciler(ResourceReconciler):
    """Reconciles the OperatorGroup in the operator namespace"""

    name = "operator_group"
    kind = KubernetesConstants.OPERATOR_GROUP_GVK.kind
    depends_on = ("desired_state",)

    def reconcile(self, ctx: ReconcileContext, desired_state: DesiredState) -> StageResult:
        desired = desired_state.operator_group
        if desired is None or not desired.namespace:
            # Related objects from earlier runs are left in place
            ctx.update_status(status.invalid_causing_unknown_cond(self.kind))
            return StageResult()

        desired_obj = desired.to_unstructured()
        policy_specifies_group = ctx.policy.spec.operator_group is not None

        try:
            found = ctx.watcher.list(ctx.watcher_id, KubernetesConstants.OPERATOR_GROUP_GVK, desired.namespace)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error listing OperatorGroups: {e}", status=e.status)

        if not found:
            return StageResult(output=self.handle_missing(ctx, desired_obj))

        if len(found) > 1:
            # Never auto-remediated: OLM refuses to install into such a namespace either way
            logger.info(f"Found {len(found)} OperatorGroups in namespace {desired.namespace}")
            ctx.update_status(status.op_group_too_many_cond(), *status.op_group_too_many_objs(found))
            return StageResult()

        existing = found[0]
        existing_name = get_nested(existing, 'metadata', 'name', default='')
        empty_name_match = (
            not desired.name
            and get_nested(existing, 'metadata', 'generateName', default='') == desired.generate_name
        )

        if not (existing_name == desired.name or empty_name_match):
            if not policy_specifies_group:
                ctx.update_status(status.op_group_preexisting_cond(), status.matched_obj(existing))
                return StageResult(output=existing)

            # Creating the wanted one would leave two OperatorGroups in the namespace
            ctx.update_status(
                status.mismatch_cond(self.kind),
                status.missing_wanted_obj(desired_obj),
                status.mismatched_obj(existing),
            )
            return StageResult()

        try:
            result = ctx.merger.merge_objects(desired_obj, existing, ctx.policy.spec.compliance_type)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error checking if the OperatorGroup needs an update: {e}", status=e.status)

        if not result.update_needed:
            ctx.update_status(status.matches_cond(self.kind), status.matched_obj(existing))
            return StageResult(output=existing)

        if not policy_specifies_group:
            ctx.update_status(status.op_group_preexisting_cond(), status.matched_obj(existing))
            return StageResult(output=existing)

        updated = self.handle_mismatch(ctx, existing, result)
        return StageResult(output=updated or existing)

"""
InstallPlan Approver

Reports on the InstallPlans owned by the subscription and, when enforcing,
approves an upgrade only if exactly one pending plan is allowed by the policy.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from ..core.constants import KubernetesConstants
from ..core.exceptions import ClusterRequestError
from ..core.utils import get_nested, is_owned_by, join_names
from ..data_models import InstallPlan
from .. import status
from .base import ReconcileContext, ResourceReconciler, StageResult

logger = logging.getLogger(__name__)

Phase = KubernetesConstants.InstallPlanPhase
SUBSCRIPTION_GVK = KubernetesConstants.SUBSCRIPTION_GVK


def owned_install_plans(install_plans: List[Dict[str, Any]], subscription_name: str) -> List[Dict[str, Any]]:
    """Filter install plans down to the ones owned by the named subscription"""
    return [
        plan for plan in install_plans
        if is_owned_by(plan, SUBSCRIPTION_GVK.kind, SUBSCRIPTION_GVK.api_version, subscription_name)
    ]


def approvable_plans(pending: List[InstallPlan], allowed_versions: List[str]) -> List[InstallPlan]:
    """
    Select the pending plans the policy allows to be approved

    A plan qualifies only if it installs exactly one ClusterServiceVersion and
    that version is allowed. An empty allow-list allows any version.

    Args:
        pending: Plans requiring approval
        allowed_versions: The policy's spec.versions

    Returns:
        The qualifying plans
    """
    approvable = []
    for plan in pending:
        if plan.csv_names is None:
            logger.error(f"Unable to determine the csv names of the related InstallPlan {plan.name}")
            continue
        if len(plan.csv_names) != 1:
            continue
        if not allowed_versions or plan.csv_names[0] in allowed_versions:
            approvable.append(plan)
    return approvable


class InstallPlanReconciler(ResourceReconciler):
    """Reports on and approves InstallPlans for the resolved subscription"""

    name = "install_plan"
    kind = KubernetesConstants.INSTALL_PLAN_GVK.kind
    depends_on = ("subscription",)

    def reconcile(self, ctx: ReconcileContext, subscription: Optional[Dict[str, Any]]) -> StageResult:
        if subscription is None:
            ctx.update_status(status.invalid_causing_unknown_cond(self.kind))
            return StageResult()

        sub_name = get_nested(subscription, 'metadata', 'name', default='')
        sub_namespace = get_nested(subscription, 'metadata', 'namespace', default='')

        try:
            found = ctx.watcher.list(ctx.watcher_id, KubernetesConstants.INSTALL_PLAN_GVK, sub_namespace)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error listing InstallPlans: {e}", status=e.status)

        owned = owned_install_plans(found, sub_name)

        # Plans are history and may be pruned, so none at all is fine
        if not owned:
            ctx.update_status(status.no_install_plans_cond(), status.no_install_plans_obj(sub_namespace))
            return StageResult()

        current_plan = get_nested(subscription, 'status', 'installPlanRef', 'name')
        plans = [InstallPlan.from_unstructured(obj) for obj in owned]

        related = []
        pending = []
        any_installing = False
        current_plan_failed = False

        for plan in plans:
            if not plan.phase:
                logger.error(f"Unable to determine the phase of the related InstallPlan {plan.name}")

            is_current_failure = False
            if plan.phase == Phase.REQUIRES_APPROVAL.value:
                pending.append(plan)
            elif plan.phase == Phase.INSTALLING.value:
                any_installing = True
            elif plan.phase == Phase.FAILED.value and current_plan == plan.name:
                # Old failed plans don't matter; only the one OLM is currently using does
                is_current_failure = True
                current_plan_failed = True

            related.append(status.existing_install_plan_obj(plan.raw, plan.phase, is_current_failure))

        if current_plan_failed:
            ctx.update_status(status.install_plan_failed_cond(), *related)
            return StageResult()

        if any_installing:
            ctx.update_status(status.install_plan_installing_cond(), *related)
            return StageResult()

        if not pending:
            ctx.update_status(status.install_plans_no_approvals_cond(), *related)
            return StageResult()

        versions = [join_names(plan.csv_names if plan.csv_names is not None else ["unknown"]) for plan in pending]

        # Only reported when informing; when enforcing this would flip back and forth with the approval
        if ctx.policy.spec.is_inform():
            ctx.update_status(status.install_plan_upgrade_cond(versions, None), *related)
            return StageResult()

        approvable = approvable_plans(pending, ctx.policy.spec.versions)

        if len(approvable) != 1:
            ctx.update_status(
                status.install_plan_upgrade_cond(versions, [join_names(plan.csv_names) for plan in approvable]),
                *related,
            )
            return StageResult()

        chosen = approvable[0]
        approved_version = chosen.csv_names[0]

        # OLM may not have moved an approved plan out of RequiresApproval yet
        if chosen.approved:
            logger.debug(f"InstallPlan {chosen.namespace}/{chosen.name} is already approved")
            ctx.update_status(status.install_plan_approved_cond(approved_version), *related)
            return StageResult()

        patched = copy.deepcopy(chosen.raw)
        patched.setdefault('spec', {})['approved'] = True

        logger.info(f"Approving InstallPlan {chosen.namespace}/{chosen.name} for {approved_version}")
        try:
            ctx.store.update(patched)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error updating approved InstallPlan: {e}", status=e.status)

        ctx.update_status(status.install_plan_approved_cond(approved_version), *related)
        return StageResult()

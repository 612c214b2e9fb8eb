"""
ClusterServiceVersion Reconciler

Reports on the installed version recorded by the subscription.
"""

from typing import Any, Dict, Optional

from ..core.constants import KubernetesConstants
from ..core.exceptions import ClusterRequestError
from ..core.utils import get_nested
from .. import status
from .base import ReconcileContext, ResourceReconciler, StageResult


class ClusterServiceVersionReconciler(ResourceReconciler):
    """Finds the installed CSV and hands it to the deployment stage"""

    name = "cluster_service_version"
    kind = KubernetesConstants.CLUSTER_SERVICE_VERSION_GVK.kind
    depends_on = ("subscription",)

    def reconcile(self, ctx: ReconcileContext, subscription: Optional[Dict[str, Any]]) -> StageResult:
        if subscription is None:
            if ctx.desired is not None and ctx.desired.subscription is None:
                ctx.update_status(status.invalid_causing_unknown_cond(self.kind))
            else:
                ctx.update_status(status.no_csv_cond(), status.no_existing_csv_obj())
            return StageResult()

        installed_csv = get_nested(subscription, 'status', 'installedCSV')
        if not installed_csv:
            # OLM hasn't populated the subscription status yet
            ctx.update_status(status.no_csv_cond(), status.no_existing_csv_obj())
            return StageResult()

        namespace = get_nested(subscription, 'metadata', 'namespace', default='')

        try:
            csv = ctx.watcher.get(
                ctx.watcher_id, KubernetesConstants.CLUSTER_SERVICE_VERSION_GVK, namespace, installed_csv)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error getting the ClusterServiceVersion: {e}", status=e.status)

        if csv is None:
            ctx.update_status(
                status.missing_wanted_cond(self.kind),
                status.missing_csv_obj(get_nested(subscription, 'metadata', 'name', default=''), namespace),
            )
            return StageResult()

        ctx.update_status(status.build_csv_cond(csv), status.existing_csv_obj(csv))
        return StageResult(output=csv)

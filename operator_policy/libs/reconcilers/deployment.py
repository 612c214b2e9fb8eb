"""
Deployment Reconciler

Checks the availability of every Deployment the installed CSV declares.
"""

import logging
from typing import Any, Dict, Optional

from ..core.constants import KubernetesConstants
from ..core.exceptions import ClusterRequestError
from ..core.utils import get_nested
from .. import status
from .base import ReconcileContext, ResourceReconciler, StageResult

logger = logging.getLogger(__name__)


def is_available(deployment: Dict[str, Any]) -> bool:
    unavailable = get_nested(deployment, 'status', 'unavailableReplicas', default=0) or 0
    return unavailable <= 0


class DeploymentReconciler(ResourceReconciler):
    """Aggregates the availability of the operator Deployments"""

    name = "deployment"
    kind = KubernetesConstants.DEPLOYMENT_GVK.kind
    depends_on = ("cluster_service_version",)

    def reconcile(self, ctx: ReconcileContext, csv: Optional[Dict[str, Any]]) -> StageResult:
        if csv is None:
            if ctx.desired is not None and ctx.desired.subscription is None:
                ctx.update_status(status.invalid_causing_unknown_cond(self.kind))
            else:
                ctx.update_status(status.no_deployments_cond(), status.no_existing_deployment_obj())
            return StageResult()

        namespace = get_nested(csv, 'metadata', 'namespace', default='')
        deployment_specs = get_nested(csv, 'spec', 'install', 'spec', 'deployments', default=[]) or []

        related = []
        unavailable = []
        found_count = 0

        for deployment_spec in deployment_specs:
            name = deployment_spec.get('name', '')

            try:
                deployment = ctx.watcher.get(ctx.watcher_id, KubernetesConstants.DEPLOYMENT_GVK, namespace, name)
            except ClusterRequestError as e:
                raise ClusterRequestError(f"error getting the Deployment: {e}", status=e.status)

            if deployment is None:
                related.append(status.missing_deployment_obj(name, namespace))
                continue

            available = is_available(deployment)
            if not available:
                unavailable.append(name)

            found_count += 1
            related.append(status.existing_deployment_obj(deployment, available))

        if unavailable:
            logger.debug(f"Unavailable operator Deployments in {namespace}: {', '.join(unavailable)}")

        condition = status.build_deployment_cond(found_count > 0, unavailable)
        if related:
            ctx.update_status(condition, *related)
        else:
            ctx.update_status(condition, status.no_existing_deployment_obj())
        return StageResult()

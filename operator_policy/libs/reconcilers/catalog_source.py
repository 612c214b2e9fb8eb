"""
CatalogSource Reconciler

Reports whether the catalog the subscription installs from exists and is
healthy. The condition is CatalogSourcesUnhealthy, so False is the good state.
"""

from typing import Any, Dict, Optional

from ..core.constants import KubernetesConstants
from ..core.exceptions import ClusterRequestError
from ..core.utils import get_nested
from .. import status
from .base import ReconcileContext, ResourceReconciler, StageResult


class CatalogSourceReconciler(ResourceReconciler):
    """Checks the health of the subscription's CatalogSource"""

    name = "catalog_source"
    kind = KubernetesConstants.CATALOG_SOURCE_GVK.kind
    depends_on = ("subscription",)

    def reconcile(self, ctx: ReconcileContext, subscription: Optional[Dict[str, Any]]) -> StageResult:
        if subscription is None:
            ctx.update_status(status.invalid_causing_unknown_cond(self.kind))
            return StageResult()

        catalog_name = get_nested(subscription, 'spec', 'source', default='') or ''
        catalog_namespace = get_nested(subscription, 'spec', 'sourceNamespace', default='') or ''

        try:
            catalog_source = ctx.watcher.get(
                ctx.watcher_id, KubernetesConstants.CATALOG_SOURCE_GVK, catalog_namespace, catalog_name)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error getting CatalogSource: {e}", status=e.status)

        is_missing = catalog_source is None
        is_unhealthy = is_missing

        if not is_missing:
            connection_state = get_nested(catalog_source, 'status', 'connectionState')
            if connection_state is None:
                ctx.update_status(
                    status.catalog_source_unknown_cond(),
                    status.catalog_source_unknown_obj(catalog_name, catalog_namespace),
                )
                return StageResult()

            is_unhealthy = connection_state.get('lastObservedState') != KubernetesConstants.CATALOG_SOURCE_READY

        ctx.update_status(
            status.catalog_source_find_cond(is_unhealthy, is_missing, catalog_name),
            status.catalog_source_obj(catalog_name, catalog_namespace, is_unhealthy, is_missing),
        )
        return StageResult()

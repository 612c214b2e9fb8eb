"""
Cluster Store

Reads and writes cluster objects through the kubernetes dynamic client.
"""

import logging
from typing import Any, Dict, List

from kubernetes.client.rest import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from ..core.constants import GroupVersionKind
from ..core.exceptions import ClusterRequestError
from ..core.utils import get_nested, handle_api_error

logger = logging.getLogger(__name__)


def gvk_of(obj: Dict[str, Any]) -> GroupVersionKind:
    """Get the GroupVersionKind of an unstructured object"""
    api_version = obj.get('apiVersion', '')
    group, _, version = api_version.rpartition('/')
    return GroupVersionKind(group, version, obj.get('kind', ''))


class KubernetesClusterStore:
    """Direct read/write path to the cluster"""

    def __init__(self, dynamic_client: DynamicClient):
        """
        Initialize the store

        Args:
            dynamic_client: Configured dynamic client
        """
        self.client = dynamic_client

    def _resource(self, gvk: GroupVersionKind):
        try:
            return self.client.resources.get(api_version=gvk.api_version, kind=gvk.kind)
        except ResourceNotFoundError as e:
            raise ClusterRequestError(f"the resource type {gvk.kind} ({gvk.api_version}) is not served: {e}")

    def get(self, gvk: GroupVersionKind, namespace: str, name: str) -> Dict[str, Any]:
        """
        Get one object

        Raises:
            ObjectNotFoundError: If the object doesn't exist
            ClusterRequestError: On any other failure
        """
        resource = self._resource(gvk)
        try:
            return resource.get(name=name, namespace=namespace or None).to_dict()
        except ApiException as e:
            raise handle_api_error(e, f"error getting {gvk.kind} {namespace}/{name}")

    def list(self, gvk: GroupVersionKind, namespace: str, label_selector: str = "") -> List[Dict[str, Any]]:
        """List objects of a kind in a namespace (all namespaces when empty)"""
        resource = self._resource(gvk)
        try:
            result = resource.get(namespace=namespace or None, label_selector=label_selector or None).to_dict()
        except ApiException as e:
            raise handle_api_error(e, f"error listing {gvk.kind} in {namespace or 'all namespaces'}")

        items = result.get('items') or []
        # List items come back without their type
        for item in items:
            item.setdefault('apiVersion', gvk.api_version)
            item.setdefault('kind', gvk.kind)
        return items

    def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        gvk = gvk_of(obj)
        namespace = get_nested(obj, 'metadata', 'namespace')
        try:
            return self._resource(gvk).create(body=obj, namespace=namespace).to_dict()
        except ApiException as e:
            raise handle_api_error(e, f"error creating {gvk.kind} in {namespace}")

    def update(self, obj: Dict[str, Any], dry_run: bool = False) -> Dict[str, Any]:
        """
        Replace an object, optionally as a server-side dry run

        Raises:
            UpdateForbiddenError: If the server rejects the change as not allowed
            ClusterRequestError: On any other failure
        """
        gvk = gvk_of(obj)
        namespace = get_nested(obj, 'metadata', 'namespace')
        name = get_nested(obj, 'metadata', 'name')
        kwargs = {'dry_run': 'All'} if dry_run else {}

        if dry_run:
            logger.debug(f"Dry run update of {gvk.kind} {namespace}/{name}")

        try:
            return self._resource(gvk).replace(body=obj, namespace=namespace, **kwargs).to_dict()
        except ApiException as e:
            raise handle_api_error(e, f"error updating {gvk.kind} {namespace}/{name}")

    def update_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        gvk = gvk_of(obj)
        namespace = get_nested(obj, 'metadata', 'namespace')
        name = get_nested(obj, 'metadata', 'name')
        try:
            return self._resource(gvk).status.replace(body=obj, namespace=namespace).to_dict()
        except ApiException as e:
            raise handle_api_error(e, f"error updating the status of {gvk.kind} {namespace}/{name}")

    def delete(self, gvk: GroupVersionKind, namespace: str, name: str) -> None:
        try:
            self._resource(gvk).delete(name=name, namespace=namespace or None)
        except ApiException as e:
            raise handle_api_error(e, f"error deleting {gvk.kind} {namespace}/{name}")

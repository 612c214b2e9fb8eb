"""
Dependency Watcher

Read path for the objects a policy depends on. Every read goes to the cluster;
the watcher records which objects each policy read in its latest batch so the
caller can tell which changes should trigger that policy again.
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from ..core.constants import GroupVersionKind
from ..core.exceptions import ClusterRequestError, ObjectNotFoundError
from .store import KubernetesClusterStore

logger = logging.getLogger(__name__)

# (apiVersion, kind, namespace, name-or-selector)
WatchKey = Tuple[str, str, str, str]


class ClusterQueryWatcher:
    """Dependency watcher backed by direct cluster reads"""

    def __init__(self, store: KubernetesClusterStore):
        """
        Initialize the watcher

        Args:
            store: Store used for the actual reads
        """
        self.store = store
        self._watched: Dict[str, Set[WatchKey]] = {}
        self._batches: Dict[str, Set[WatchKey]] = {}

    def _record(self, watcher_id: str, key: WatchKey) -> None:
        batch = self._batches.get(watcher_id)
        if batch is not None:
            batch.add(key)
        else:
            self._watched.setdefault(watcher_id, set()).add(key)

    def get(self, watcher_id: str, gvk: GroupVersionKind, namespace: str,
            name: str) -> Optional[Dict[str, Any]]:
        """Get an object, returning None if it doesn't exist"""
        self._record(watcher_id, (gvk.api_version, gvk.kind, namespace, name))
        try:
            return self.store.get(gvk, namespace, name)
        except ObjectNotFoundError:
            return None

    def list(self, watcher_id: str, gvk: GroupVersionKind, namespace: str,
             label_selector: str = "") -> List[Dict[str, Any]]:
        self._record(watcher_id, (gvk.api_version, gvk.kind, namespace, f"selector:{label_selector}"))
        return self.store.list(gvk, namespace, label_selector)

    def start_query_batch(self, watcher_id: str) -> None:
        """
        Start collecting the objects read for a policy

        Raises:
            ClusterRequestError: If a batch for the policy is already in progress
        """
        if watcher_id in self._batches:
            raise ClusterRequestError(f"a query batch for {watcher_id} is already in progress")
        self._batches[watcher_id] = set()

    def end_query_batch(self, watcher_id: str) -> None:
        """
        Replace the watched objects of a policy with those read in the batch

        Raises:
            ClusterRequestError: If no batch is in progress for the policy
        """
        batch = self._batches.pop(watcher_id, None)
        if batch is None:
            raise ClusterRequestError(f"there is no query batch in progress for {watcher_id}")
        self._watched[watcher_id] = batch
        logger.debug(f"Watching {len(batch)} objects for {watcher_id}")

    def remove_watcher(self, watcher_id: str) -> None:
        self._batches.pop(watcher_id, None)
        self._watched.pop(watcher_id, None)

    def watched_objects(self, watcher_id: str) -> Set[WatchKey]:
        """Objects read for a policy in its last completed batch"""
        return set(self._watched.get(watcher_id, set()))

"""
Protocols

Contracts of the collaborators the reconciler depends on. Production
implementations live in ``libs.cluster``; tests substitute in-memory fakes.
"""

from typing import Any, Dict, List, Optional, Protocol

from .constants import GroupVersionKind


class DependencyWatcher(Protocol):
    """
    Read-through cache of the objects a policy depends on.

    Reads are keyed by a stable identifier of the policy so the watcher knows
    which objects each policy cares about.
    """

    def get(self, watcher_id: str, gvk: GroupVersionKind, namespace: str,
            name: str) -> Optional[Dict[str, Any]]:
        ...

    def list(self, watcher_id: str, gvk: GroupVersionKind, namespace: str,
             label_selector: str = "") -> List[Dict[str, Any]]:
        ...

    def start_query_batch(self, watcher_id: str) -> None:
        ...

    def end_query_batch(self, watcher_id: str) -> None:
        ...

    def remove_watcher(self, watcher_id: str) -> None:
        ...


class ClusterStore(Protocol):
    """Direct read/write access to cluster objects"""

    def get(self, gvk: GroupVersionKind, namespace: str, name: str) -> Dict[str, Any]:
        ...

    def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update(self, obj: Dict[str, Any], dry_run: bool = False) -> Dict[str, Any]:
        ...

    def update_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete(self, gvk: GroupVersionKind, namespace: str, name: str) -> None:
        ...

"""
Reconciler Base

Shared run context and the create/update state machine every per-kind
reconciler follows.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.exceptions import ClusterRequestError
from ..core.protocols import ClusterStore, DependencyWatcher
from ..core.utils import get_nested, now_utc
from ..data_models import Condition, OperatorPolicy, RelatedObject
from ..merge import MergeResult, ObjectMerger, log_diff
from .. import status

logger = logging.getLogger(__name__)


class ReconcileContext:
    """Everything one reconcile run of one policy needs"""

    def __init__(self, policy: OperatorPolicy, watcher: DependencyWatcher, store: ClusterStore,
                 watcher_id: str, default_namespace: str = "", clock: Callable = now_utc):
        """
        Initialize the run context

        Args:
            policy: The policy being reconciled; its status is updated in place
            watcher: Read path for dependency objects
            store: Write path for dependency objects
            watcher_id: Identifier of the policy for the watcher
            default_namespace: Fallback namespace for the subscription
            clock: Source of condition transition timestamps
        """
        self.policy = policy
        self.watcher = watcher
        self.store = store
        self.watcher_id = watcher_id
        self.default_namespace = default_namespace
        self.clock = clock
        self.merger = ObjectMerger(store)

        self.changed = False
        self.early_events: List[Condition] = []
        self.desired = None

    def update_status(self, condition: Condition, *related_objs: RelatedObject) -> bool:
        """Apply a condition to the policy status and remember whether anything changed"""
        changed = status.update_status(self.policy, condition, *related_objs, clock=self.clock)
        self.changed = self.changed or changed
        return changed

    def queue_early_event(self) -> None:
        """Queue the current compliance, before an enforcement action changes it"""
        self.early_events.append(status.calculate_compliance_condition(self.policy))


@dataclass
class StageResult:
    """
    Outcome of one pipeline stage.

    A stage can hand on an output and still report an error, when what it
    observed is usable even though its write failed.
    """
    output: Any = None
    error: Optional[Exception] = None


class ResourceReconciler:
    """Base class of the per-kind pipeline stages"""

    name = ""
    kind = ""
    depends_on: Tuple[str, ...] = ()

    @property
    def subject(self) -> str:
        """What the stage reads, named in the conditions of the stages it blocks"""
        return self.kind

    def reconcile(self, ctx: ReconcileContext, *inputs: Any) -> StageResult:
        raise NotImplementedError

    def report_upstream_failure(self, ctx: ReconcileContext, cause: str) -> None:
        """Report an Unknown condition because a stage this one depends on failed; related objects are left in place"""
        ctx.update_status(status.upstream_error_cond(self.kind, cause))

    def _describe(self, obj: Dict[str, Any]) -> str:
        namespace = get_nested(obj, 'metadata', 'namespace', default='')
        name = get_nested(obj, 'metadata', 'name', default='') or get_nested(
            obj, 'metadata', 'generateName', default='')
        return f"{self.kind} {namespace}/{name}"

    def handle_missing(self, ctx: ReconcileContext, desired: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Report a missing object, and create it when enforcing

        Returns:
            The created object, or None when only informing

        Raises:
            ClusterRequestError: If the creation fails
        """
        changed = ctx.update_status(status.missing_wanted_cond(self.kind), status.missing_wanted_obj(desired))

        if ctx.policy.spec.is_inform():
            return None

        if changed:
            ctx.queue_early_event()

        logger.info(f"Creating {self._describe(desired)}")
        try:
            created = ctx.store.create(desired)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error creating the {self.kind}: {e}", status=e.status)

        ctx.update_status(status.created_cond(self.kind), status.created_obj(created))
        return created

    def handle_mismatch(self, ctx: ReconcileContext, existing: Dict[str, Any],
                        result: MergeResult) -> Optional[Dict[str, Any]]:
        """
        Report an object that doesn't match, and update it when enforcing

        Returns:
            The updated object, or None when nothing was updated

        Raises:
            ClusterRequestError: If the update fails
        """
        if ctx.policy.spec.is_enforce() and result.update_forbidden:
            ctx.update_status(status.mismatch_cond_unfixable(self.kind), status.mismatched_obj(existing))
            return None

        changed = ctx.update_status(status.mismatch_cond(self.kind), status.mismatched_obj(existing))

        if ctx.policy.spec.is_inform():
            return None

        if changed:
            ctx.queue_early_event()

        logger.info(f"Updating {self._describe(existing)}")
        log_diff(existing, result.merged)
        try:
            updated = ctx.store.update(result.merged)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error updating the {self.kind}: {e}", status=e.status)

        ctx.update_status(status.updated_cond(self.kind), status.updated_obj(updated))
        return updated

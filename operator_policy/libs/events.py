"""
Compliance Events

Kubernetes Events recording compliance changes on the parent policy, which is
how the policy framework's status sync learns about them.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from .core.constants import KubernetesConstants, PolicyConstants
from .core.exceptions import ClusterRequestError
from .core.protocols import ClusterStore
from .core.utils import format_timestamp, now_utc_precise
from .data_models import Condition, OperatorPolicy

logger = logging.getLogger(__name__)

EVENT_ACTION = "ComplianceStateUpdate"


class ComplianceEventEmitter:
    """Creates compliance Events for OperatorPolicies that have a parent"""

    def __init__(self, store: ClusterStore, controller_name: str = KubernetesConstants.CONTROLLER_NAME,
                 instance_name: str = "", clock: Callable = now_utc_precise,
                 unique_suffix: Optional[Callable[[], str]] = None):
        """
        Initialize the emitter

        Args:
            store: Used to create the Events
            controller_name: Reported as the source and reporting controller
            instance_name: Reported as the reporting instance
            clock: Source of the event timestamps
            unique_suffix: Source of the event name suffix
        """
        self.store = store
        self.controller_name = controller_name
        self.instance_name = instance_name
        self.clock = clock
        self.unique_suffix = unique_suffix or (lambda: format(time.time_ns(), 'x'))

    def build_event(self, policy: OperatorPolicy, condition: Condition) -> Optional[Dict[str, Any]]:
        """
        Build the Event for a compliance condition

        Returns:
            The Event, or None if the policy has no owner to report to
        """
        if not policy.owner_references:
            return None

        owner = policy.owner_references[0]
        now = self.clock()

        annotations = {}
        for key in (KubernetesConstants.PARENT_DB_ID_ANNOTATION, KubernetesConstants.POLICY_DB_ID_ANNOTATION):
            if key in policy.annotations:
                annotations[key] = policy.annotations[key]

        compliant = condition.status == PolicyConstants.ConditionStatus.TRUE.value

        metadata = {
            'name': f"{owner.get('name', '')}.{self.unique_suffix()}",
            'namespace': policy.namespace,
        }
        if annotations:
            metadata['annotations'] = annotations

        return {
            'apiVersion': KubernetesConstants.EVENT_GVK.api_version,
            'kind': KubernetesConstants.EVENT_GVK.kind,
            'metadata': metadata,
            'involvedObject': {
                'apiVersion': owner.get('apiVersion', ''),
                'kind': owner.get('kind', ''),
                'name': owner.get('name', ''),
                'namespace': policy.namespace,
                'uid': owner.get('uid', ''),
            },
            'related': {
                'apiVersion': KubernetesConstants.OPERATOR_POLICY_GVK.api_version,
                'kind': KubernetesConstants.OPERATOR_POLICY_GVK.kind,
                'name': policy.name,
                'namespace': policy.namespace,
                'uid': policy.uid,
            },
            'reason': f"policy: {policy.namespace}/{policy.name}",
            'message': condition.message,
            'source': {'component': self.controller_name},
            'firstTimestamp': format_timestamp(now),
            'lastTimestamp': format_timestamp(now),
            'eventTime': now.strftime('%Y-%m-%dT%H:%M:%S.%fZ'),
            'count': 1,
            'type': "Normal" if compliant else "Warning",
            'action': EVENT_ACTION,
            'reportingComponent': self.controller_name,
            'reportingInstance': self.instance_name,
        }

    def emit(self, policy: OperatorPolicy, condition: Condition) -> None:
        """
        Create the Event for a compliance condition, if the policy has a parent

        Raises:
            ClusterRequestError: If the Event can't be created
        """
        event = self.build_event(policy, condition)
        if event is None:
            logger.debug(f"Not emitting a compliance event for {policy.namespace}/{policy.name}: no owner")
            return

        try:
            self.store.create(event)
        except ClusterRequestError as e:
            raise ClusterRequestError(f"error creating the compliance event: {e}", status=e.status)

        logger.info(f"Emitted {event['type']} compliance event for {policy.namespace}/{policy.name}: "
                    f"{condition.message}")

"""
Desired-State Builder

Turns the raw subscription and operatorGroup fragments of a policy into typed
desired objects, collecting every validation problem along the way.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .core.constants import ErrorMessages, KubernetesConstants
from .core.exceptions import PolicyValidationError
from .core.protocols import DependencyWatcher
from .core.utils import is_valid_namespace
from .data_models import (
    DesiredOperatorGroup,
    DesiredSubscription,
    OperatorGroupSpec,
    OperatorPolicy,
    SubscriptionSpec,
    decode_strict,
)

logger = logging.getLogger(__name__)

Validation = ErrorMessages.Validation
ApprovalMode = KubernetesConstants.ApprovalMode


@dataclass
class DesiredState:
    """
    Desired objects for one reconcile run.

    Either object is None when its fragment failed validation.
    """
    subscription: Optional[DesiredSubscription]
    operator_group: Optional[DesiredOperatorGroup]
    validation_errors: List[str] = field(default_factory=list)


def _as_mapping(fragment: Any, invalid_template: Validation) -> Dict[str, Any]:
    """Accept a fragment as a map or as serialized JSON of a map"""
    if isinstance(fragment, (str, bytes)):
        try:
            fragment = json.loads(fragment)
        except ValueError as e:
            raise PolicyValidationError(invalid_template.format(error=e))

    if not isinstance(fragment, dict):
        raise PolicyValidationError(invalid_template.format(error="must be an object"))

    return copy.deepcopy(fragment)


def build_subscription(policy: OperatorPolicy, default_namespace: str = "") -> DesiredSubscription:
    """
    Build the desired Subscription from the policy

    Args:
        policy: The policy being reconciled
        default_namespace: Used when the fragment doesn't name a namespace

    Returns:
        DesiredSubscription: The typed subscription

    Raises:
        PolicyValidationError: If the fragment is invalid
    """
    if policy.spec.versions_error:
        raise PolicyValidationError(Validation.VERSIONS_INVALID.format(error=policy.spec.versions_error))

    fragment = _as_mapping(policy.spec.subscription, Validation.SUBSCRIPTION_INVALID)

    namespace = fragment.pop('namespace', None)
    if not namespace:
        if not default_namespace:
            raise PolicyValidationError(Validation.NAMESPACE_REQUIRED.value)
        namespace = default_namespace

    if not is_valid_namespace(namespace):
        raise PolicyValidationError(Validation.NAMESPACE_INVALID.format(namespace=namespace))

    try:
        spec = decode_strict(SubscriptionSpec, fragment)
    except PolicyValidationError as e:
        raise PolicyValidationError(Validation.SUBSCRIPTION_INVALID.format(error=e))

    if not spec.package:
        raise PolicyValidationError(Validation.SUBSCRIPTION_INVALID.format(error='field "name" is required'))

    if spec.install_plan_approval not in (ApprovalMode.AUTOMATIC.value, ApprovalMode.MANUAL.value):
        raise PolicyValidationError(
            Validation.INSTALL_PLAN_APPROVAL_INVALID.format(value=spec.install_plan_approval or "")
        )

    # Version-gated upgrades only work if OLM waits for approval
    if policy.spec.is_enforce() and policy.spec.versions:
        spec.install_plan_approval = ApprovalMode.MANUAL.value

    return DesiredSubscription(name=spec.package, namespace=namespace, spec=spec)


def build_operator_group(policy: OperatorPolicy, namespace: str) -> DesiredOperatorGroup:
    """
    Build the desired OperatorGroup from the policy

    When the policy doesn't specify one, an AllNamespaces OperatorGroup with a
    generated name is used.

    Args:
        policy: The policy being reconciled
        namespace: Namespace of the desired subscription

    Returns:
        DesiredOperatorGroup: The typed operator group

    Raises:
        PolicyValidationError: If the fragment is invalid
    """
    if policy.spec.operator_group is None:
        return DesiredOperatorGroup(
            namespace=namespace,
            spec=OperatorGroupSpec(target_namespaces=[]),
            generate_name=f"{namespace}-",
        )

    fragment = _as_mapping(policy.spec.operator_group, Validation.OPERATOR_GROUP_INVALID)

    specified_namespace = fragment.pop('namespace', None)
    if specified_namespace and specified_namespace != namespace:
        raise PolicyValidationError(Validation.OPERATOR_GROUP_NAMESPACE_MISMATCH.format(
            specified=specified_namespace, namespace=namespace))

    name = fragment.pop('name', None)
    if not name or not isinstance(name, str):
        raise PolicyValidationError(Validation.OPERATOR_GROUP_NAME_REQUIRED.value)

    try:
        spec = decode_strict(OperatorGroupSpec, fragment)
    except PolicyValidationError as e:
        raise PolicyValidationError(Validation.OPERATOR_GROUP_INVALID.format(error=e))

    return DesiredOperatorGroup(namespace=namespace, spec=spec, name=name)


def _fragment_namespace(policy: OperatorPolicy, default_namespace: str) -> Tuple[Optional[str], bool]:
    """Best-effort namespace of the subscription fragment, even when it is otherwise invalid"""
    fragment = policy.spec.subscription
    if isinstance(fragment, (str, bytes)):
        try:
            fragment = json.loads(fragment)
        except ValueError:
            return None, False
    if not isinstance(fragment, dict):
        return None, False
    namespace = fragment.get('namespace') or default_namespace
    return namespace, is_valid_namespace(namespace)


def build_desired_state(policy: OperatorPolicy, watcher: DependencyWatcher, watcher_id: str,
                        default_namespace: str = "") -> DesiredState:
    """
    Build every desired object for one reconcile run

    Validation problems don't stop the build: they are all collected, and
    whichever objects could still be built are returned.

    Args:
        policy: The policy being reconciled
        watcher: Used to check that the operator namespace exists
        watcher_id: Identifier of the policy for the watcher
        default_namespace: Fallback namespace for the subscription

    Returns:
        DesiredState: The desired objects and validation errors

    Raises:
        ClusterRequestError: If the namespace lookup itself fails
    """
    errors: List[str] = []
    subscription = None
    operator_group = None

    try:
        subscription = build_subscription(policy, default_namespace)
    except PolicyValidationError as e:
        errors.append(str(e))

    namespace, namespace_valid = (
        (subscription.namespace, True) if subscription else _fragment_namespace(policy, default_namespace)
    )

    if namespace and namespace_valid:
        try:
            operator_group = build_operator_group(policy, namespace)
        except PolicyValidationError as e:
            errors.append(str(e))

        found = watcher.get(watcher_id, KubernetesConstants.NAMESPACE_GVK, "", namespace)
        if found is None:
            errors.append(Validation.NAMESPACE_MISSING.format(namespace=namespace))

    if errors:
        logger.info(f"Policy {policy.namespace}/{policy.name} is invalid: {', '.join(errors)}")

    return DesiredState(subscription=subscription, operator_group=operator_group, validation_errors=errors)

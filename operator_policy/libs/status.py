"""
Policy Status

Builders for the conditions and related objects each reconciler reports, and
the bookkeeping that applies them to the policy status and derives the
overall compliance condition.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from .core.constants import KubernetesConstants, PolicyConstants
from .core.utils import join_names, now_utc
from .data_models import Condition, OperatorPolicy, RelatedObject

logger = logging.getLogger(__name__)

ConditionType = PolicyConstants.ConditionType
ConditionStatus = PolicyConstants.ConditionStatus
ComplianceState = PolicyConstants.ComplianceState
Reason = PolicyConstants.RelatedObjectReason

TRUE = ConditionStatus.TRUE.value
FALSE = ConditionStatus.FALSE.value
UNKNOWN = ConditionStatus.UNKNOWN.value

COMPLIANT = ComplianceState.COMPLIANT.value
NON_COMPLIANT = ComplianceState.NON_COMPLIANT.value
UNKNOWN_COMPLIANCY = ComplianceState.UNKNOWN.value


# Generic conditions, shared by every kind

def validation_cond(validation_errors: Sequence[str]) -> Condition:
    if not validation_errors:
        return Condition(ConditionType.VALID.value, TRUE, "PolicyValidated", "the policy spec is valid")

    return Condition(ConditionType.VALID.value, FALSE, "InvalidPolicySpec", ", ".join(validation_errors))


def invalid_causing_unknown_cond(kind: str) -> Condition:
    return Condition(
        ConditionType.for_kind(kind).value, UNKNOWN, "InvalidPolicySpec",
        f"the status of the {kind} could not be determined because the policy is invalid",
    )


def upstream_error_cond(kind: str, cause: str) -> Condition:
    return Condition(
        ConditionType.for_kind(kind).value, UNKNOWN, "UpstreamError",
        f"the status of the {kind} could not be determined because of an error handling the {cause}",
    )


def missing_wanted_cond(kind: str) -> Condition:
    return Condition(
        ConditionType.for_kind(kind).value, FALSE, f"{kind}Missing",
        f"the {kind} required by the policy was not found",
    )


def created_cond(kind: str) -> Condition:
    return Condition(
        ConditionType.for_kind(kind).value, TRUE, f"{kind}Created",
        f"the {kind} required by the policy was created",
    )


def matches_cond(kind: str) -> Condition:
    return Condition(
        ConditionType.for_kind(kind).value, TRUE, f"{kind}Matches",
        f"the {kind} matches what is required by the policy",
    )


def mismatch_cond(kind: str) -> Condition:
    return Condition(
        ConditionType.for_kind(kind).value, FALSE, f"{kind}Mismatch",
        f"the {kind} found on the cluster does not match the policy",
    )


def mismatch_cond_unfixable(kind: str) -> Condition:
    return Condition(
        ConditionType.for_kind(kind).value, FALSE, f"{kind}MismatchUnfixable",
        f"the {kind} found on the cluster does not match the policy and can't be enforced",
    )


def updated_cond(kind: str) -> Condition:
    return Condition(
        ConditionType.for_kind(kind).value, TRUE, f"{kind}Updated",
        f"the {kind} was updated to match the policy",
    )


# OperatorGroup

def op_group_preexisting_cond() -> Condition:
    return Condition(
        ConditionType.OPERATOR_GROUP.value, TRUE, "PreexistingOperatorGroupFound",
        "the policy does not specify an OperatorGroup but one already exists in the namespace - "
        "assuming that OperatorGroup is correct",
    )


def op_group_too_many_cond() -> Condition:
    return Condition(
        ConditionType.OPERATOR_GROUP.value, FALSE, "TooManyOperatorGroups",
        "there is more than one OperatorGroup in the namespace",
    )


# InstallPlan

def no_install_plans_cond() -> Condition:
    return Condition(
        ConditionType.INSTALL_PLAN.value, TRUE, "NoInstallPlansFound",
        "there are no relevant InstallPlans in the namespace",
    )


def install_plan_failed_cond() -> Condition:
    return Condition(
        ConditionType.INSTALL_PLAN.value, FALSE, "InstallPlanFailed",
        "the current InstallPlan has failed",
    )


def install_plan_installing_cond() -> Condition:
    return Condition(
        ConditionType.INSTALL_PLAN.value, FALSE, "InstallPlansInstalling",
        "a relevant InstallPlan is actively installing",
    )


def install_plans_no_approvals_cond() -> Condition:
    return Condition(
        ConditionType.INSTALL_PLAN.value, TRUE, "NoInstallPlansRequiringApproval",
        "no InstallPlans requiring approval were found",
    )


def install_plan_upgrade_cond(versions: Sequence[str], approvable_versions: Optional[Sequence[str]]) -> Condition:
    """
    Condition for InstallPlans waiting on approval.

    Args:
        versions: Target versions of every plan requiring approval, one entry per plan
        approvable_versions: Versions of the plans the policy could approve, or None
            when approval was not considered (inform mode)
    """
    if len(versions) == 1:
        message = f"an InstallPlan to update to {versions[0]} is available for approval"
    else:
        message = f"there are multiple InstallPlans available for approval ({', or '.join(versions)})"

    if approvable_versions is not None:
        if len(approvable_versions) == 0:
            message += " but not allowed by the specified versions in the policy"
        elif len(approvable_versions) > 1:
            message += (
                " but multiple of those match the versions specified in the policy "
                f"({', '.join(approvable_versions)})"
            )

    return Condition(ConditionType.INSTALL_PLAN.value, FALSE, "InstallPlanRequiresApproval", message)


def install_plan_approved_cond(version: str) -> Condition:
    return Condition(
        ConditionType.INSTALL_PLAN.value, TRUE, "InstallPlanApproved",
        f"the InstallPlan for {version} was approved",
    )


# ClusterServiceVersion

def no_csv_cond() -> Condition:
    return Condition(
        ConditionType.CLUSTER_SERVICE_VERSION.value, FALSE, "RelevantCSVNotFound",
        "A relevant installed ClusterServiceVersion could not be found",
    )


def build_csv_cond(csv: Dict) -> Condition:
    status = csv.get('status') or {}
    return Condition(
        ConditionType.CLUSTER_SERVICE_VERSION.value,
        TRUE if status.get('phase') == "Succeeded" else FALSE,
        status.get('reason') or "Unknown",
        "ClusterServiceVersion - " + (status.get('message') or ""),
    )


# Deployment

def no_deployments_cond() -> Condition:
    return Condition(
        ConditionType.DEPLOYMENT.value, FALSE, "NoRelevantDeployments",
        "The ClusterServiceVersion is missing, thus meaning there are no relevant deployments",
    )


def build_deployment_cond(deployments_exist: bool, unavailable_names: Sequence[str]) -> Condition:
    if not deployments_exist:
        return Condition(
            ConditionType.DEPLOYMENT.value, FALSE, "NoExistingDeployments",
            "No existing operator Deployments",
        )

    if unavailable_names:
        return Condition(
            ConditionType.DEPLOYMENT.value, FALSE, "DeploymentsUnavailable",
            f"Deployments {join_names(unavailable_names)} do not have their minimum availability",
        )

    return Condition(
        ConditionType.DEPLOYMENT.value, TRUE, "DeploymentsAvailable",
        "All operator Deployments have their minimum availability",
    )


# CatalogSource; note the condition is about unhealthiness, so True is bad

def catalog_source_find_cond(is_unhealthy: bool, is_missing: bool, name: str) -> Condition:
    if is_missing:
        return Condition(
            ConditionType.CATALOG_SOURCE.value, TRUE, "CatalogSourcesNotFound",
            f"CatalogSource '{name}' was not found",
        )

    if is_unhealthy:
        return Condition(
            ConditionType.CATALOG_SOURCE.value, TRUE, "CatalogSourcesFoundUnhealthy",
            "CatalogSource was found but is unhealthy",
        )

    return Condition(ConditionType.CATALOG_SOURCE.value, FALSE, "CatalogSourcesFound", "CatalogSource was found")


def catalog_source_unknown_cond() -> Condition:
    return Condition(
        ConditionType.CATALOG_SOURCE.value, TRUE, "CatalogSourcesUnknownState",
        "Could not determine last observed state of CatalogSource",
    )


# Related objects

def missing_wanted_obj(obj: Dict) -> RelatedObject:
    return RelatedObject.for_object(obj, NON_COMPLIANT, Reason.MISSING)


def created_obj(obj: Dict) -> RelatedObject:
    return RelatedObject.for_object(obj, COMPLIANT, Reason.CREATED)


def matched_obj(obj: Dict) -> RelatedObject:
    return RelatedObject.for_object(obj, COMPLIANT, Reason.MATCHES)


def mismatched_obj(obj: Dict) -> RelatedObject:
    return RelatedObject.for_object(obj, NON_COMPLIANT, Reason.MISMATCH)


def updated_obj(obj: Dict) -> RelatedObject:
    return RelatedObject.for_object(obj, COMPLIANT, Reason.UPDATED)


def non_compliant_obj(obj: Dict, reason: str) -> RelatedObject:
    return RelatedObject.for_object(obj, NON_COMPLIANT, reason)


def op_group_too_many_objs(op_groups: Sequence[Dict]) -> List[RelatedObject]:
    return [RelatedObject.for_object(og, NON_COMPLIANT, Reason.TOO_MANY_OPERATOR_GROUPS) for og in op_groups]


def no_install_plans_obj(namespace: str) -> RelatedObject:
    return RelatedObject.placeholder(
        KubernetesConstants.INSTALL_PLAN_GVK, namespace, COMPLIANT, Reason.NO_INSTALL_PLANS,
    )


def existing_install_plan_obj(install_plan: Dict, phase: str, is_current_failure: bool = False) -> RelatedObject:
    reason = f"The InstallPlan is {phase}" if phase else "The InstallPlan is Unknown"

    compliant = ""
    if phase in (KubernetesConstants.InstallPlanPhase.REQUIRES_APPROVAL.value,
                 KubernetesConstants.InstallPlanPhase.INSTALLING.value) or is_current_failure:
        compliant = NON_COMPLIANT

    return RelatedObject.for_object(install_plan, compliant, reason)


def no_existing_csv_obj() -> RelatedObject:
    return RelatedObject.placeholder(
        KubernetesConstants.CLUSTER_SERVICE_VERSION_GVK, "", UNKNOWN_COMPLIANCY, Reason.NO_RELEVANT_CSV,
    )


def missing_csv_obj(name: str, namespace: str) -> RelatedObject:
    return RelatedObject.placeholder(
        KubernetesConstants.CLUSTER_SERVICE_VERSION_GVK, namespace, NON_COMPLIANT, Reason.MISSING, name=name,
    )


def existing_csv_obj(csv: Dict) -> RelatedObject:
    status = csv.get('status') or {}
    compliant = COMPLIANT if status.get('phase') == "Succeeded" else NON_COMPLIANT
    return RelatedObject.for_object(csv, compliant, status.get('reason') or "Unknown")


def no_existing_deployment_obj() -> RelatedObject:
    return RelatedObject.placeholder(
        KubernetesConstants.DEPLOYMENT_GVK, "", UNKNOWN_COMPLIANCY, Reason.NO_RELEVANT_DEPLOYMENTS,
    )


def missing_deployment_obj(name: str, namespace: str) -> RelatedObject:
    return RelatedObject.placeholder(
        KubernetesConstants.DEPLOYMENT_GVK, namespace, NON_COMPLIANT, Reason.MISSING, name=name,
    )


def existing_deployment_obj(deployment: Dict, available: bool) -> RelatedObject:
    if available:
        return RelatedObject.for_object(deployment, COMPLIANT, Reason.DEPLOYMENT_AVAILABLE)
    return RelatedObject.for_object(deployment, NON_COMPLIANT, Reason.DEPLOYMENT_UNAVAILABLE)


def catalog_source_obj(name: str, namespace: str, is_unhealthy: bool, is_missing: bool) -> RelatedObject:
    gvk = KubernetesConstants.CATALOG_SOURCE_GVK
    if is_missing:
        return RelatedObject.placeholder(gvk, namespace, NON_COMPLIANT, Reason.MISSING, name=name)
    if is_unhealthy:
        return RelatedObject.placeholder(gvk, namespace, NON_COMPLIANT, Reason.UNHEALTHY, name=name)
    return RelatedObject.placeholder(gvk, namespace, COMPLIANT, Reason.MATCHES, name=name)


def catalog_source_unknown_obj(name: str, namespace: str) -> RelatedObject:
    return RelatedObject.placeholder(
        KubernetesConstants.CATALOG_SOURCE_GVK, namespace, NON_COMPLIANT, Reason.UNKNOWN_STATE, name=name,
    )


# Bookkeeping

def _related_key(obj: RelatedObject):
    return (obj.name, obj.namespace, obj.api_version, obj.compliant, obj.reason)


def _set_condition(policy: OperatorPolicy, condition: Condition, clock: Callable) -> bool:
    """Apply one condition; the transition time only moves when (status, reason) changes"""
    idx, existing = policy.status.get_condition(condition.type)

    if existing is None:
        if condition.last_transition_time is None:
            condition.last_transition_time = clock()
        policy.status.conditions.append(condition)
        return True

    if existing.status != condition.status or existing.reason != condition.reason:
        if condition.last_transition_time is None:
            condition.last_transition_time = clock()
        policy.status.conditions[idx] = condition
        return True

    if existing.message != condition.message:
        existing.message = condition.message
        return True

    return False


def _set_related_objects(policy: OperatorPolicy, related_objs: Sequence[RelatedObject]) -> bool:
    """Replace every related object of the given kind with the new set"""
    kind = related_objs[0].kind
    previous = policy.status.related_objs_of_kind(kind)

    if sorted(previous, key=_related_key) == sorted(related_objs, key=_related_key):
        return False

    updated = []
    inserted = False
    for obj in policy.status.related_objects:
        if obj.kind != kind:
            updated.append(obj)
        elif not inserted:
            # keep the kind where it was so the list order stays stable across runs
            updated.extend(related_objs)
            inserted = True
    if not inserted:
        updated.extend(related_objs)

    policy.status.related_objects = updated
    return True


def update_status(policy: OperatorPolicy, condition: Condition, *related_objs: RelatedObject,
                  clock: Callable = now_utc) -> bool:
    """
    Apply a condition and its related objects to the policy status.

    Args:
        policy: Policy whose status is updated in place
        condition: New condition for one dimension
        *related_objs: Complete set of related objects for one kind; when empty
            the related objects are left as they are
        clock: Source of transition timestamps

    Returns:
        bool: Whether anything in the status changed
    """
    changed = _set_condition(policy, condition, clock)

    if related_objs and _set_related_objects(policy, related_objs):
        changed = True

    if changed:
        compliance_cond = calculate_compliance_condition(policy)
        _set_condition(policy, compliance_cond, clock)
        policy.status.compliant = compliance_cond.reason
        logger.debug(f"Status of {policy.namespace}/{policy.name} changed: {condition.type}={condition.status} "
                     f"({condition.reason})")

    return changed


_UNKNOWN_MESSAGES = {
    ConditionType.VALID: "the validity of the policy is unknown",
    ConditionType.OPERATOR_GROUP: "the status of the OperatorGroup is unknown",
    ConditionType.SUBSCRIPTION: "the status of the Subscription is unknown",
    ConditionType.INSTALL_PLAN: "the status of any InstallPlans is unknown",
    ConditionType.CLUSTER_SERVICE_VERSION: "the status of the ClusterServiceVersion is unknown",
    ConditionType.DEPLOYMENT: "the status of the operator Deployments is unknown",
    ConditionType.CATALOG_SOURCE: "the status of the CatalogSource is unknown",
}


def calculate_compliance_condition(policy: OperatorPolicy) -> Condition:
    """
    Derive the overall ``Compliant`` condition from every dimension's condition.

    The policy is NonCompliant if any dimension is missing or not in its good
    state. The message lists every dimension's message in pipeline order.

    Args:
        policy: Policy to evaluate

    Returns:
        Condition: The aggregate condition
    """
    non_compliant = False
    messages = []

    for condition_type in ConditionType.get_dimension_types():
        _, condition = policy.status.get_condition(condition_type.value)

        if condition is None:
            messages.append(_UNKNOWN_MESSAGES[condition_type])
            non_compliant = True
            continue

        messages.append(condition.message)

        # CatalogSourcesUnhealthy is the one condition where False is the good state
        good_status = FALSE if condition_type == ConditionType.CATALOG_SOURCE else TRUE
        if condition.status != good_status:
            non_compliant = True

    if non_compliant:
        return Condition(ConditionType.COMPLIANT.value, FALSE, NON_COMPLIANT,
                         f"{NON_COMPLIANT}; " + ", ".join(messages))

    return Condition(ConditionType.COMPLIANT.value, TRUE, COMPLIANT, f"{COMPLIANT}; " + ", ".join(messages))

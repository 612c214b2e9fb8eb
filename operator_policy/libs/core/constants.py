"""
Constants Module

Centralized constants for the operator policy controller: resource kinds,
condition types, reason strings and message templates.
"""

from typing import NamedTuple


class GroupVersionKind(NamedTuple):
    """Identifies a Kubernetes resource type"""
    group: str
    version: str
    kind: str

    @property
    def api_version(self) -> str:
        """Return the apiVersion string (``group/version`` or ``version`` for the core group)"""
        if self.group:
            return f"{self.group}/{self.version}"
        return self.version


class KubernetesConstants:
    """Kubernetes and OLM resource constants"""

    from enum import Enum

    CONTROLLER_NAME = "operator-policy-controller"
    POLICY_API_GROUP = "policy.open-cluster-management.io"
    OLM_API_GROUP = "operators.coreos.com"

    NAMESPACE_GVK = GroupVersionKind("", "v1", "Namespace")
    EVENT_GVK = GroupVersionKind("", "v1", "Event")
    DEPLOYMENT_GVK = GroupVersionKind("apps", "v1", "Deployment")
    OPERATOR_POLICY_GVK = GroupVersionKind(POLICY_API_GROUP, "v1beta1", "OperatorPolicy")
    SUBSCRIPTION_GVK = GroupVersionKind(OLM_API_GROUP, "v1alpha1", "Subscription")
    OPERATOR_GROUP_GVK = GroupVersionKind(OLM_API_GROUP, "v1", "OperatorGroup")
    CLUSTER_SERVICE_VERSION_GVK = GroupVersionKind(OLM_API_GROUP, "v1alpha1", "ClusterServiceVersion")
    CATALOG_SOURCE_GVK = GroupVersionKind(OLM_API_GROUP, "v1alpha1", "CatalogSource")
    INSTALL_PLAN_GVK = GroupVersionKind(OLM_API_GROUP, "v1alpha1", "InstallPlan")

    # Reported by OLM when the catalog's registry connection is healthy
    CATALOG_SOURCE_READY = "READY"

    # Annotations copied from the policy onto compliance events
    PARENT_DB_ID_ANNOTATION = "policy.open-cluster-management.io/parent-policy-compliance-db-id"
    POLICY_DB_ID_ANNOTATION = "policy.open-cluster-management.io/policy-compliance-db-id"

    class InstallPlanPhase(str, Enum):
        """InstallPlan lifecycle phases reported by OLM"""
        REQUIRES_APPROVAL = "RequiresApproval"
        INSTALLING = "Installing"
        FAILED = "Failed"

        def __str__(self) -> str:
            return self.value

    class ApprovalMode(str, Enum):
        """Accepted values of ``installPlanApproval`` on a Subscription"""
        AUTOMATIC = "Automatic"
        MANUAL = "Manual"

        def __str__(self) -> str:
            return self.value


class PolicyConstants:
    """OperatorPolicy spec and status vocabulary"""

    from enum import Enum

    class RemediationAction(str, Enum):
        """Whether violations are only reported or also fixed"""
        INFORM = "inform"
        ENFORCE = "enforce"

        def __str__(self) -> str:
            return self.value

        @classmethod
        def parse(cls, value: str) -> "PolicyConstants.RemediationAction":
            """Parse a remediation action case-insensitively"""
            for member in cls:
                if member.value == str(value).lower():
                    return member
            raise ValueError(f"unknown remediationAction: {value}")

    class ComplianceType(str, Enum):
        """How the desired fields are compared against what is on the cluster"""
        MUST_HAVE = "musthave"
        MUST_ONLY_HAVE = "mustonlyhave"

        def __str__(self) -> str:
            return self.value

        @classmethod
        def parse(cls, value: str) -> "PolicyConstants.ComplianceType":
            """Parse a compliance type case-insensitively"""
            for member in cls:
                if member.value == str(value).lower():
                    return member
            raise ValueError(f"unknown complianceType: {value}")

    class ComplianceState(str, Enum):
        """Compliance verdicts for the policy and its related objects"""
        COMPLIANT = "Compliant"
        NON_COMPLIANT = "NonCompliant"
        UNKNOWN = "UnknownCompliancy"

        def __str__(self) -> str:
            return self.value

    class ConditionType(str, Enum):
        """One condition type per reconciled dimension, in pipeline order"""
        VALID = "ValidPolicySpec"
        OPERATOR_GROUP = "OperatorGroupCompliant"
        SUBSCRIPTION = "SubscriptionCompliant"
        INSTALL_PLAN = "InstallPlanCompliant"
        CLUSTER_SERVICE_VERSION = "ClusterServiceVersionCompliant"
        DEPLOYMENT = "DeploymentCompliant"
        CATALOG_SOURCE = "CatalogSourcesUnhealthy"
        COMPLIANT = "Compliant"

        def __str__(self) -> str:
            return self.value

        @classmethod
        def for_kind(cls, kind: str) -> "PolicyConstants.ConditionType":
            """Get the condition type that reports on the given resource kind"""
            return {
                "OperatorGroup": cls.OPERATOR_GROUP,
                "Subscription": cls.SUBSCRIPTION,
                "InstallPlan": cls.INSTALL_PLAN,
                "ClusterServiceVersion": cls.CLUSTER_SERVICE_VERSION,
                "Deployment": cls.DEPLOYMENT,
                "CatalogSource": cls.CATALOG_SOURCE,
            }[kind]

        @classmethod
        def get_dimension_types(cls) -> list:
            """Get the per-dimension condition types in the order their messages are reported"""
            return [
                cls.VALID,
                cls.OPERATOR_GROUP,
                cls.SUBSCRIPTION,
                cls.INSTALL_PLAN,
                cls.CLUSTER_SERVICE_VERSION,
                cls.DEPLOYMENT,
                cls.CATALOG_SOURCE,
            ]

    class ConditionStatus(str, Enum):
        """Kubernetes condition status values"""
        TRUE = "True"
        FALSE = "False"
        UNKNOWN = "Unknown"

        def __str__(self) -> str:
            return self.value

    class RelatedObjectReason(str, Enum):
        """Reasons recorded on related objects"""
        MISSING = "Resource not found but should exist"
        MATCHES = "Resource found as expected"
        MISMATCH = "Resource found but does not match"
        CREATED = "K8s creation success"
        UPDATED = "K8s update success"
        TOO_MANY_OPERATOR_GROUPS = "There is more than one OperatorGroup in this namespace"
        NO_INSTALL_PLANS = "There are no relevant InstallPlans in this namespace"
        UNHEALTHY = "Resource found as expected but is unhealthy"
        UNKNOWN_STATE = "Resource found but current state is unknown"
        NO_RELEVANT_CSV = "No relevant ClusterServiceVersion found"
        NO_RELEVANT_DEPLOYMENTS = "No relevant deployments found"
        DEPLOYMENT_AVAILABLE = "Deployment Available"
        DEPLOYMENT_UNAVAILABLE = "Deployment Unavailable"

        def __str__(self) -> str:
            return self.value


class ErrorMessages:
    """Centralized message templates"""

    from enum import Enum

    class Validation(str, Enum):
        """Policy spec validation messages"""
        SUBSCRIPTION_INVALID = "the policy spec.subscription is invalid: {error}"
        OPERATOR_GROUP_INVALID = "the policy spec.operatorGroup is invalid: {error}"
        NAMESPACE_REQUIRED = "namespace is required in spec.subscription"
        NAMESPACE_INVALID = "the namespace '{namespace}' used for the subscription is not a valid namespace identifier"
        INSTALL_PLAN_APPROVAL_INVALID = (
            "the policy spec.subscription.installPlanApproval ('{value}') is invalid: "
            "must be 'Automatic' or 'Manual'"
        )
        OPERATOR_GROUP_NAME_REQUIRED = "name is required in spec.operatorGroup"
        OPERATOR_GROUP_NAMESPACE_MISMATCH = (
            "the namespace specified in spec.operatorGroup ('{specified}') must match "
            "the namespace used for the subscription ('{namespace}')"
        )
        NAMESPACE_MISSING = "the operator namespace ('{namespace}') does not exist"
        VERSIONS_INVALID = "the policy spec.versions is invalid: {error}"
        UNKNOWN_FIELD = 'unknown field "{field}"'
        WRONG_TYPE = 'field "{field}" must be of type {type_name}'
        NOT_A_STRING_LIST = 'field "{field}" must be a list of strings'
        NOT_AN_OBJECT = "{field} must be an object"

        def __str__(self) -> str:
            return self.value

    class Config(str, Enum):
        """Controller configuration messages"""
        CONFIG_FILE_NOT_FOUND = "Configuration file not found: {config_path}"
        NOT_A_FILE = "Configuration path is not a file: {config_path}"

        def __str__(self) -> str:
            return self.value

"""
Data Models Module.

Typed data structures for the policy, its status projection, and the desired
OLM objects built from it. Cluster objects that are only observed (install
plans, CSVs, deployments) stay unstructured dicts, except for the few fields
the reconcilers need typed access to.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin

from .core.constants import ErrorMessages, GroupVersionKind, KubernetesConstants, PolicyConstants
from .core.exceptions import PolicyValidationError
from .core.utils import format_timestamp, get_nested, parse_timestamp

T = TypeVar('T')

ConditionType = PolicyConstants.ConditionType
ConditionStatus = PolicyConstants.ConditionStatus
ComplianceState = PolicyConstants.ComplianceState
RemediationAction = PolicyConstants.RemediationAction
ComplianceType = PolicyConstants.ComplianceType
Validation = ErrorMessages.Validation


def json_name(field_obj) -> str:
    """JSON key of a dataclass field; defaults to the attribute name"""
    return field_obj.metadata.get('json', field_obj.name)


def decode_strict(data_class: Type[T], data: Dict[str, Any], path: str = "") -> T:
    """
    Create a dataclass instance from a dictionary, rejecting unknown keys.

    Unlike a lenient loader, any key that doesn't correspond to a field is an
    error, so typos in user-supplied specs surface instead of being dropped.
    Nested dataclasses are decoded recursively with the same rules.

    Args:
        data_class: The target dataclass type
        data: Dictionary with JSON-style keys
        path: Dotted path of ``data`` used in error messages

    Returns:
        Instance of ``data_class``

    Raises:
        PolicyValidationError: On unknown keys or values of the wrong type
    """
    if not isinstance(data, dict):
        raise PolicyValidationError(Validation.NOT_AN_OBJECT.format(field=path or "value"))

    by_json_name = {json_name(f): f for f in fields(data_class)}

    for key in data:
        if key not in by_json_name:
            qualified = f"{path}.{key}" if path else key
            raise PolicyValidationError(Validation.UNKNOWN_FIELD.format(field=qualified))

    values = {}
    for key, value in data.items():
        field_obj = by_json_name[key]
        qualified = f"{path}.{key}" if path else key
        values[field_obj.name] = _decode_value(field_obj.type, value, qualified)

    return data_class(**values)


def _decode_value(field_type: Any, value: Any, path: str) -> Any:
    """Decode one value against the declared field type"""
    if value is None:
        return None

    # Optional[X] is Union[X, None]
    if get_origin(field_type) is Union:
        field_type = next(arg for arg in get_args(field_type) if arg is not type(None))

    if is_dataclass(field_type):
        return decode_strict(field_type, value, path)

    expected = get_origin(field_type) or field_type
    if expected is Any:
        return value

    # bool is a subclass of int, so check exact matches for scalars
    if expected in (str, bool) and type(value) is not expected:
        raise PolicyValidationError(Validation.WRONG_TYPE.format(field=path, type_name=expected.__name__))
    if expected in (list, dict) and not isinstance(value, expected):
        raise PolicyValidationError(Validation.WRONG_TYPE.format(field=path, type_name=expected.__name__))

    if expected is list:
        item_types = get_args(field_type)
        if item_types and item_types[0] is str:
            for item in value:
                if not isinstance(item, str):
                    raise PolicyValidationError(Validation.NOT_A_STRING_LIST.format(field=path))
    return value


def encode(instance: Any) -> Dict[str, Any]:
    """Serialize a dataclass to a JSON-style dict, omitting unset (None) fields"""
    result = {}
    for field_obj in fields(instance):
        value = getattr(instance, field_obj.name)
        if value is None:
            continue
        if is_dataclass(value):
            value = encode(value)
        result[json_name(field_obj)] = value
    return result


@dataclass
class Condition:
    """A status condition for one reconciled dimension"""
    type: str
    status: str
    reason: str
    message: str
    last_transition_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': str(self.type),
            'status': str(self.status),
            'reason': self.reason,
            'message': self.message,
            'lastTransitionTime': format_timestamp(self.last_transition_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Condition':
        return cls(
            type=data.get('type', ''),
            status=data.get('status', ''),
            reason=data.get('reason', ''),
            message=data.get('message', ''),
            last_transition_time=parse_timestamp(data.get('lastTransitionTime')),
        )


@dataclass
class RelatedObject:
    """A dependency object the policy reports on, with its verdict"""
    kind: str
    api_version: str
    name: str
    namespace: str
    compliant: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'apiVersion': self.api_version,
            'name': self.name,
            'namespace': self.namespace,
            'compliant': str(self.compliant),
            'reason': str(self.reason),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RelatedObject':
        return cls(
            kind=data.get('kind', ''),
            api_version=data.get('apiVersion', ''),
            name=data.get('name', ''),
            namespace=data.get('namespace', ''),
            compliant=data.get('compliant', ''),
            reason=data.get('reason', ''),
        )

    @classmethod
    def for_object(cls, obj: Dict[str, Any], compliant: str, reason: str) -> 'RelatedObject':
        """Build a related object record pointing at an unstructured object"""
        metadata = obj.get('metadata', {})
        return cls(
            kind=obj.get('kind', ''),
            api_version=obj.get('apiVersion', ''),
            name=metadata.get('name') or '',
            namespace=metadata.get('namespace') or '',
            compliant=str(compliant),
            reason=str(reason),
        )

    @classmethod
    def placeholder(cls, gvk: GroupVersionKind, namespace: str, compliant: str, reason: str,
                    name: str = '-') -> 'RelatedObject':
        """Build a related object record for something that has no concrete object"""
        return cls(
            kind=gvk.kind,
            api_version=gvk.api_version,
            name=name,
            namespace=namespace,
            compliant=str(compliant),
            reason=str(reason),
        )


@dataclass
class PolicySpec:
    """Desired state of an OperatorPolicy"""
    remediation_action: RemediationAction
    compliance_type: ComplianceType
    subscription: Any
    operator_group: Optional[Any] = None
    versions: List[str] = field(default_factory=list)
    # set when spec.versions is not a list of strings; versions is then empty
    versions_error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PolicySpec':
        versions = data.get('versions') or []
        versions_error = None
        if not isinstance(versions, list) or not all(isinstance(v, str) for v in versions):
            versions_error = Validation.NOT_A_STRING_LIST.format(field='versions')
            versions = []

        return cls(
            remediation_action=RemediationAction.parse(data.get('remediationAction', 'inform')),
            compliance_type=ComplianceType.parse(data.get('complianceType', 'musthave')),
            subscription=data.get('subscription'),
            operator_group=data.get('operatorGroup'),
            versions=list(versions),
            versions_error=versions_error,
        )

    def is_enforce(self) -> bool:
        return self.remediation_action == RemediationAction.ENFORCE

    def is_inform(self) -> bool:
        return self.remediation_action == RemediationAction.INFORM


@dataclass
class PolicyStatus:
    """Status projection written back to the policy"""
    compliant: Optional[str] = None
    conditions: List[Condition] = field(default_factory=list)
    related_objects: List[RelatedObject] = field(default_factory=list)

    def get_condition(self, condition_type: str) -> Tuple[int, Optional[Condition]]:
        """
        Find a condition by type

        Returns:
            Tuple of (index, condition), or (-1, None) if not present
        """
        for i, condition in enumerate(self.conditions):
            if condition.type == condition_type:
                return i, condition
        return -1, None

    def related_objs_of_kind(self, kind: str) -> List[RelatedObject]:
        return [obj for obj in self.related_objects if obj.kind == kind]

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'conditions': [c.to_dict() for c in self.conditions],
            'relatedObjects': [r.to_dict() for r in self.related_objects],
        }
        if self.compliant:
            result['compliant'] = str(self.compliant)
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PolicyStatus':
        data = data or {}
        return cls(
            compliant=data.get('compliant'),
            conditions=[Condition.from_dict(c) for c in data.get('conditions') or []],
            related_objects=[RelatedObject.from_dict(r) for r in data.get('relatedObjects') or []],
        )


@dataclass
class OperatorPolicy:
    """
    The governed OperatorPolicy object.

    ``raw`` keeps the object as it was read so that writing the status back
    preserves everything this controller doesn't model.
    """
    name: str
    namespace: str
    spec: PolicySpec
    status: PolicyStatus = field(default_factory=PolicyStatus)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def annotations(self) -> Dict[str, str]:
        return get_nested(self.raw, 'metadata', 'annotations', default={}) or {}

    @property
    def owner_references(self) -> List[Dict[str, Any]]:
        return get_nested(self.raw, 'metadata', 'ownerReferences', default=[]) or []

    @property
    def uid(self) -> str:
        return get_nested(self.raw, 'metadata', 'uid', default='')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OperatorPolicy':
        metadata = data.get('metadata', {})
        return cls(
            name=metadata.get('name', ''),
            namespace=metadata.get('namespace', ''),
            spec=PolicySpec.from_dict(data.get('spec') or {}),
            status=PolicyStatus.from_dict(data.get('status')),
            raw=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.raw)
        result.setdefault('apiVersion', KubernetesConstants.OPERATOR_POLICY_GVK.api_version)
        result.setdefault('kind', KubernetesConstants.OPERATOR_POLICY_GVK.kind)
        result['status'] = self.status.to_dict()
        return result


@dataclass
class SubscriptionConfig:
    """Operator deployment overrides in a Subscription (spec.config)"""
    selector: Optional[Dict[str, Any]] = None
    node_selector: Optional[Dict[str, Any]] = field(default=None, metadata={'json': 'nodeSelector'})
    tolerations: Optional[List[Any]] = None
    resources: Optional[Dict[str, Any]] = None
    env_from: Optional[List[Any]] = field(default=None, metadata={'json': 'envFrom'})
    env: Optional[List[Any]] = None
    volumes: Optional[List[Any]] = None
    volume_mounts: Optional[List[Any]] = field(default=None, metadata={'json': 'volumeMounts'})
    affinity: Optional[Dict[str, Any]] = None
    annotations: Optional[Dict[str, Any]] = None


@dataclass
class SubscriptionSpec:
    """The fields a policy may set on a Subscription"""
    package: Optional[str] = field(default=None, metadata={'json': 'name'})
    catalog_source: Optional[str] = field(default=None, metadata={'json': 'source'})
    catalog_source_namespace: Optional[str] = field(default=None, metadata={'json': 'sourceNamespace'})
    channel: Optional[str] = None
    starting_csv: Optional[str] = field(default=None, metadata={'json': 'startingCSV'})
    install_plan_approval: Optional[str] = field(default=None, metadata={'json': 'installPlanApproval'})
    config: Optional[SubscriptionConfig] = None


@dataclass
class DesiredSubscription:
    """Subscription the policy wants on the cluster"""
    name: str
    namespace: str
    spec: SubscriptionSpec

    gvk = KubernetesConstants.SUBSCRIPTION_GVK

    def to_unstructured(self) -> Dict[str, Any]:
        return {
            'apiVersion': self.gvk.api_version,
            'kind': self.gvk.kind,
            'metadata': {'name': self.name, 'namespace': self.namespace},
            'spec': encode(self.spec),
        }


@dataclass
class OperatorGroupSpec:
    """The fields a policy may set on an OperatorGroup"""
    target_namespaces: Optional[List[str]] = field(default=None, metadata={'json': 'targetNamespaces'})
    selector: Optional[Dict[str, Any]] = None
    service_account_name: Optional[str] = field(default=None, metadata={'json': 'serviceAccountName'})
    static_provided_apis: Optional[bool] = field(default=None, metadata={'json': 'staticProvidedAPIs'})
    upgrade_strategy: Optional[Dict[str, Any]] = field(default=None, metadata={'json': 'upgradeStrategy'})


@dataclass
class DesiredOperatorGroup:
    """
    OperatorGroup the policy wants on the cluster.

    When the policy doesn't specify one, ``name`` is empty and
    ``generate_name`` is set, matching what the console creates.
    """
    namespace: str
    spec: OperatorGroupSpec
    name: str = ""
    generate_name: str = ""

    gvk = KubernetesConstants.OPERATOR_GROUP_GVK

    def to_unstructured(self) -> Dict[str, Any]:
        metadata = {'namespace': self.namespace}
        if self.name:
            metadata['name'] = self.name
        if self.generate_name:
            metadata['generateName'] = self.generate_name
        return {
            'apiVersion': self.gvk.api_version,
            'kind': self.gvk.kind,
            'metadata': metadata,
            'spec': encode(self.spec),
        }


@dataclass
class InstallPlan:
    """The parts of an observed InstallPlan that the approval logic reads"""
    name: str
    namespace: str
    phase: str
    csv_names: Optional[List[str]]
    approved: bool
    raw: Dict[str, Any]

    @classmethod
    def from_unstructured(cls, obj: Dict[str, Any]) -> 'InstallPlan':
        csv_names = get_nested(obj, 'spec', 'clusterServiceVersionNames')
        if not isinstance(csv_names, list) or not all(isinstance(n, str) for n in csv_names):
            csv_names = None
        phase = get_nested(obj, 'status', 'phase')
        return cls(
            name=get_nested(obj, 'metadata', 'name', default=''),
            namespace=get_nested(obj, 'metadata', 'namespace', default=''),
            phase=phase if isinstance(phase, str) else '',
            csv_names=csv_names,
            approved=bool(get_nested(obj, 'spec', 'approved', default=False)),
            raw=obj,
        )

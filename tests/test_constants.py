#!/usr/bin/env python3
"""
Shared Test Constants

Common constants and object builders used across the test suites.
"""

import copy
from typing import Any, Dict, List, Optional


class PolicyTestConstants:
    """Constants shared across all test suites"""

    POLICY_NAME = "install-gatekeeper"
    POLICY_NAMESPACE = "managed"
    PARENT_POLICY_NAME = "parent-policy"

    OPERATOR_NAMESPACE = "gatekeeper-system"
    PACKAGE = "gatekeeper-operator-product"
    CHANNEL = "stable"
    CATALOG = "redhat-operators"
    CATALOG_NAMESPACE = "openshift-marketplace"

    CSV_V1 = "gatekeeper-operator-product.v3.11.1"
    CSV_V2 = "gatekeeper-operator-product.v3.12.0"
    CSV_V3 = "gatekeeper-operator-product.v3.13.0"

    DEPLOYMENT = "gatekeeper-operator-controller"

    PARENT_DB_ID = "3"
    POLICY_DB_ID = "5"


C = PolicyTestConstants


def subscription_fragment(**overrides) -> Dict[str, Any]:
    """The spec.subscription of a typical policy"""
    fragment = {
        'namespace': C.OPERATOR_NAMESPACE,
        'name': C.PACKAGE,
        'channel': C.CHANNEL,
        'source': C.CATALOG,
        'sourceNamespace': C.CATALOG_NAMESPACE,
        'installPlanApproval': 'Automatic',
    }
    fragment.update(overrides)
    return fragment


def make_policy(remediation_action: str = "enforce", compliance_type: str = "musthave",
                subscription: Any = None, operator_group: Any = None, versions: Optional[List[str]] = None,
                with_owner: bool = True, status: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """An OperatorPolicy as read from the cluster"""
    spec = {
        'remediationAction': remediation_action,
        'complianceType': compliance_type,
        'subscription': subscription if subscription is not None else subscription_fragment(),
    }
    if operator_group is not None:
        spec['operatorGroup'] = operator_group
    if versions is not None:
        spec['versions'] = versions

    metadata = {
        'name': C.POLICY_NAME,
        'namespace': C.POLICY_NAMESPACE,
        'uid': 'policy-uid',
        'resourceVersion': '1',
        'annotations': {
            'policy.open-cluster-management.io/parent-policy-compliance-db-id': C.PARENT_DB_ID,
            'policy.open-cluster-management.io/policy-compliance-db-id': C.POLICY_DB_ID,
        },
    }
    if with_owner:
        metadata['ownerReferences'] = [{
            'apiVersion': 'policy.open-cluster-management.io/v1',
            'kind': 'Policy',
            'name': C.PARENT_POLICY_NAME,
            'uid': 'parent-uid',
        }]

    policy = {
        'apiVersion': 'policy.open-cluster-management.io/v1beta1',
        'kind': 'OperatorPolicy',
        'metadata': metadata,
        'spec': spec,
    }
    if status is not None:
        policy['status'] = copy.deepcopy(status)
    return policy


def make_namespace(name: str = C.OPERATOR_NAMESPACE) -> Dict[str, Any]:
    return {'apiVersion': 'v1', 'kind': 'Namespace', 'metadata': {'name': name}}


def make_operator_group(name: str, namespace: str = C.OPERATOR_NAMESPACE, generate_name: str = "",
                        target_namespaces: Optional[List[str]] = None) -> Dict[str, Any]:
    metadata = {'name': name, 'namespace': namespace}
    if generate_name:
        metadata['generateName'] = generate_name
    spec = {}
    if target_namespaces is not None:
        spec['targetNamespaces'] = target_namespaces
    return {
        'apiVersion': 'operators.coreos.com/v1',
        'kind': 'OperatorGroup',
        'metadata': metadata,
        'spec': spec,
        'status': {'namespaces': ['']},
    }


def make_subscription(installed_csv: str = "", install_plan_ref: str = "", conditions: Optional[List] = None,
                      **spec_overrides) -> Dict[str, Any]:
    spec = {
        'name': C.PACKAGE,
        'channel': C.CHANNEL,
        'source': C.CATALOG,
        'sourceNamespace': C.CATALOG_NAMESPACE,
        'installPlanApproval': 'Automatic',
    }
    spec.update(spec_overrides)
    status = {}
    if installed_csv:
        status['installedCSV'] = installed_csv
    if install_plan_ref:
        status['installPlanRef'] = {'name': install_plan_ref, 'namespace': C.OPERATOR_NAMESPACE}
    if conditions is not None:
        status['conditions'] = conditions
    return {
        'apiVersion': 'operators.coreos.com/v1alpha1',
        'kind': 'Subscription',
        'metadata': {'name': C.PACKAGE, 'namespace': C.OPERATOR_NAMESPACE},
        'spec': spec,
        'status': status,
    }


def make_install_plan(name: str, csv_names: Optional[List[str]], phase: str, owner: str = C.PACKAGE,
                      approved: bool = False) -> Dict[str, Any]:
    spec = {'approved': approved, 'approval': 'Manual'}
    if csv_names is not None:
        spec['clusterServiceVersionNames'] = csv_names
    return {
        'apiVersion': 'operators.coreos.com/v1alpha1',
        'kind': 'InstallPlan',
        'metadata': {
            'name': name,
            'namespace': C.OPERATOR_NAMESPACE,
            'ownerReferences': [{
                'apiVersion': 'operators.coreos.com/v1alpha1',
                'kind': 'Subscription',
                'name': owner,
                'uid': f'{owner}-uid',
            }],
        },
        'spec': spec,
        'status': {'phase': phase},
    }


def make_csv(name: str = C.CSV_V1, phase: str = "Succeeded", reason: str = "InstallSucceeded",
             message: str = "install strategy completed with no errors",
             deployments: Optional[List[str]] = None) -> Dict[str, Any]:
    deployment_names = deployments if deployments is not None else [C.DEPLOYMENT]
    return {
        'apiVersion': 'operators.coreos.com/v1alpha1',
        'kind': 'ClusterServiceVersion',
        'metadata': {'name': name, 'namespace': C.OPERATOR_NAMESPACE},
        'spec': {
            'install': {
                'strategy': 'deployment',
                'spec': {'deployments': [{'name': n, 'spec': {}} for n in deployment_names]},
            },
        },
        'status': {'phase': phase, 'reason': reason, 'message': message},
    }


def make_deployment(name: str = C.DEPLOYMENT, unavailable_replicas: int = 0) -> Dict[str, Any]:
    status = {'replicas': 1, 'availableReplicas': 1 - min(unavailable_replicas, 1)}
    if unavailable_replicas:
        status['unavailableReplicas'] = unavailable_replicas
    return {
        'apiVersion': 'apps/v1',
        'kind': 'Deployment',
        'metadata': {'name': name, 'namespace': C.OPERATOR_NAMESPACE},
        'spec': {'replicas': 1},
        'status': status,
    }


def make_catalog_source(name: str = C.CATALOG, namespace: str = C.CATALOG_NAMESPACE,
                        state: Optional[str] = "READY") -> Dict[str, Any]:
    status = {}
    if state is not None:
        status['connectionState'] = {'lastObservedState': state}
    return {
        'apiVersion': 'operators.coreos.com/v1alpha1',
        'kind': 'CatalogSource',
        'metadata': {'name': name, 'namespace': namespace},
        'spec': {'sourceType': 'grpc'},
        'status': status,
    }


def get_condition(policy_status: Dict[str, Any], condition_type: str) -> Optional[Dict[str, Any]]:
    for condition in policy_status.get('conditions', []):
        if condition['type'] == condition_type:
            return condition
    return None

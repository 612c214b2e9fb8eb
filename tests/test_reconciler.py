"""
End-to-end tests of one reconcile run against in-memory collaborators
"""

import itertools
import logging

import pytest
from unittest.mock import Mock

from operator_policy.libs.core.config import ControllerConfig
from operator_policy.libs.core.constants import KubernetesConstants
from operator_policy.libs.core.exceptions import ClusterRequestError, ReconcileError
from operator_policy.libs.events import ComplianceEventEmitter
from operator_policy.libs.main_app import OperatorPolicyReconciler, create_argument_parser, policy_identifier

from fakes import FakeClusterStore, FakeDependencyWatcher
from test_constants import (
    PolicyTestConstants as C,
    get_condition,
    make_catalog_source,
    make_csv,
    make_deployment,
    make_namespace,
    make_operator_group,
    make_policy,
    make_subscription,
)

WATCHER_ID = policy_identifier(C.POLICY_NAMESPACE, C.POLICY_NAME)


def _reconciler(store, **kwargs):
    counter = itertools.count(1)
    config = ControllerConfig(instance_name="controller-pod-1")
    emitter = ComplianceEventEmitter(store, controller_name=config.controller_name,
                                     instance_name=config.instance_name,
                                     unique_suffix=lambda: format(next(counter), 'x'))
    watcher = FakeDependencyWatcher(store)
    return OperatorPolicyReconciler(store, watcher, config=config, event_emitter=emitter, **kwargs), watcher


def _stored_policy(store):
    return store.find("OperatorPolicy", C.POLICY_NAMESPACE, C.POLICY_NAME)


def _events(store):
    return store.of_kind("Event")


def _installed_store():
    """A cluster where the operator is fully installed and healthy"""
    return FakeClusterStore(
        make_policy(remediation_action="inform"), make_namespace(), make_catalog_source(),
        make_subscription(installed_csv=C.CSV_V1), make_csv(), make_deployment(),
        make_operator_group("og"),
    )


class TestReconcile:
    """Test full reconcile runs"""

    def test_enforce_installs_operator(self):
        store = FakeClusterStore(make_policy(), make_namespace(), make_catalog_source())
        reconciler, watcher = _reconciler(store)

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        assert sorted(obj['kind'] for obj in store.writes) == ["OperatorGroup", "Subscription"]
        policy_status = _stored_policy(store)['status']
        assert get_condition(policy_status, "OperatorGroupCompliant")['reason'] == "OperatorGroupCreated"
        assert get_condition(policy_status, "SubscriptionCompliant")['reason'] == "SubscriptionCreated"
        assert get_condition(policy_status, "ClusterServiceVersionCompliant")['reason'] == "RelevantCSVNotFound"
        assert policy_status['compliant'] == "NonCompliant"
        assert len(store.status_updates) == 1
        assert watcher.started == [WATCHER_ID]
        assert watcher.ended == [WATCHER_ID]

    def test_second_run_makes_no_writes(self):
        store = FakeClusterStore(make_policy(), make_namespace(), make_catalog_source())
        reconciler, _ = _reconciler(store)
        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)
        writes_after_first_run = len(store.writes)

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        assert len(store.writes) == writes_after_first_run
        policy_status = _stored_policy(store)['status']
        assert get_condition(policy_status, "OperatorGroupCompliant")['reason'] == "OperatorGroupMatches"

    def test_no_status_update_when_nothing_changes(self):
        store = FakeClusterStore(make_policy(), make_namespace(), make_catalog_source())
        reconciler, _ = _reconciler(store)
        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)
        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)
        status_updates = len(store.status_updates)
        events = len(_events(store))

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        assert len(store.status_updates) == status_updates
        assert len(_events(store)) == events

    def test_compliant_installation(self):
        store = _installed_store()
        reconciler, _ = _reconciler(store)

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        policy_status = _stored_policy(store)['status']
        assert policy_status['compliant'] == "Compliant"
        assert get_condition(policy_status, "Compliant")['message'].startswith("Compliant; the policy spec is valid")
        assert store.writes == []

    def test_invalid_policy_reports_unknown(self):
        policy = make_policy(subscription={'namespace': C.OPERATOR_NAMESPACE, 'name': C.PACKAGE,
                                           'installPlanApproval': 'Always'})
        store = FakeClusterStore(policy, make_namespace(), make_catalog_source())
        reconciler, _ = _reconciler(store)

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        policy_status = _stored_policy(store)['status']
        assert get_condition(policy_status, "ValidPolicySpec")['status'] == "False"
        for condition_type in ("SubscriptionCompliant", "InstallPlanCompliant", "ClusterServiceVersionCompliant",
                               "DeploymentCompliant", "CatalogSourcesUnhealthy"):
            condition = get_condition(policy_status, condition_type)
            assert condition['status'] == "Unknown", condition_type
            assert condition['reason'] == "InvalidPolicySpec", condition_type
        assert [obj['kind'] for obj in store.writes] == ["OperatorGroup"]


class TestPolicyLifecycle:
    """Test handling of deleted policies"""

    def test_policy_not_found_removes_watcher(self):
        store = FakeClusterStore()
        reconciler, watcher = _reconciler(store)

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        assert watcher.removed == [WATCHER_ID]
        assert watcher.started == []

    def test_remove_watcher_failure_is_logged(self, caplog):
        store = FakeClusterStore()
        reconciler, watcher = _reconciler(store)
        watcher.remove_error = ClusterRequestError("cache unavailable")

        with caplog.at_level(logging.ERROR):
            reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        assert "cache unavailable" in caplog.text


class TestErrorHandling:
    """Test error accumulation and cleanup"""

    def test_errors_from_independent_stages_are_aggregated(self):
        store = FakeClusterStore(make_policy(), make_namespace(), make_catalog_source())
        store.failures[('list', 'OperatorGroup')] = ClusterRequestError("og list failed")
        store.failures[('get', 'CatalogSource')] = ClusterRequestError("catalog get failed")
        reconciler, watcher = _reconciler(store)

        with pytest.raises(ReconcileError) as exc_info:
            reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        messages = [str(e) for e in exc_info.value.errors]
        assert messages == ["error listing OperatorGroups: og list failed",
                            "error getting CatalogSource: catalog get failed"]
        # the subscription stage still ran and its status was written
        policy_status = _stored_policy(store)['status']
        assert get_condition(policy_status, "SubscriptionCompliant")['reason'] == "SubscriptionCreated"
        assert watcher.ended == [WATCHER_ID]

    def test_dependents_of_failed_stage_report_unknown(self):
        """Test that a failed Subscription read doesn't leave stale Compliant conditions behind"""
        # Arrange
        store = _installed_store()
        reconciler, _ = _reconciler(store)
        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)
        assert _stored_policy(store)['status']['compliant'] == "Compliant"

        store.delete(KubernetesConstants.CLUSTER_SERVICE_VERSION_GVK, C.OPERATOR_NAMESPACE, C.CSV_V1)
        store.failures[('get', 'Subscription')] = ClusterRequestError("etcd timeout", status=500)

        # Act
        with pytest.raises(ReconcileError) as exc_info:
            reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        # Assert
        assert [str(e) for e in exc_info.value.errors] == ["error getting the Subscription: etcd timeout"]
        policy_status = _stored_policy(store)['status']
        for condition_type in ("InstallPlanCompliant", "ClusterServiceVersionCompliant",
                               "DeploymentCompliant", "CatalogSourcesUnhealthy"):
            condition = get_condition(policy_status, condition_type)
            assert condition['status'] == "Unknown", condition_type
            assert condition['reason'] == "UpstreamError", condition_type
        assert get_condition(policy_status, "DeploymentCompliant")['message'] == (
            "the status of the Deployment could not be determined because of an error handling the Subscription"
        )
        # the failed stage itself keeps its last known condition
        assert get_condition(policy_status, "SubscriptionCompliant")['reason'] == "SubscriptionMatches"
        assert policy_status['compliant'] == "NonCompliant"
        # related objects from the last successful run stay in place
        related_csvs = [obj for obj in policy_status['relatedObjects'] if obj['kind'] == "ClusterServiceVersion"]
        assert [obj['name'] for obj in related_csvs] == [C.CSV_V1]

    def test_namespace_lookup_failure_marks_every_dimension_unknown(self):
        store = FakeClusterStore(make_policy(), make_namespace(), make_catalog_source())
        store.failures[('get', 'Namespace')] = ClusterRequestError("connection refused")
        reconciler, _ = _reconciler(store)

        with pytest.raises(ReconcileError, match="error getting operator namespace: connection refused"):
            reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        policy_status = _stored_policy(store)['status']
        condition = get_condition(policy_status, "OperatorGroupCompliant")
        assert condition['reason'] == "UpstreamError"
        assert condition['message'].endswith("because of an error handling the operator namespace")
        assert get_condition(policy_status, "CatalogSourcesUnhealthy")['status'] == "Unknown"
        assert store.writes == []

    def test_batch_ended_when_run_raises(self):
        store = FakeClusterStore(make_policy(), make_namespace())
        pipeline = Mock()
        pipeline.run.side_effect = RuntimeError("unexpected")
        reconciler, watcher = _reconciler(store, pipeline=pipeline)

        with pytest.raises(RuntimeError):
            reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        assert watcher.ended == [WATCHER_ID]

    def test_batch_end_failure_is_logged(self, caplog):
        store = FakeClusterStore(make_policy(), make_namespace(), make_catalog_source())
        reconciler, watcher = _reconciler(store)
        watcher.end_batch_error = ClusterRequestError("batch end failed")

        with caplog.at_level(logging.ERROR):
            reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        assert "batch end failed" in caplog.text
        assert len(store.status_updates) == 1

    def test_status_update_failure_is_collected(self):
        store = FakeClusterStore(make_policy(), make_namespace(), make_catalog_source())
        store.failures[('update_status', 'OperatorPolicy')] = ClusterRequestError("conflict", status=409)
        reconciler, _ = _reconciler(store)

        with pytest.raises(ReconcileError, match="error updating the status of the policy: conflict"):
            reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)


class TestComplianceEvents:
    """Test compliance events sent to the parent policy"""

    def test_early_and_final_events(self):
        """Test that the violation is recorded before the fix"""
        store = FakeClusterStore(make_policy(), make_namespace(), make_catalog_source())
        reconciler, _ = _reconciler(store)

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        events = _events(store)
        # OperatorGroup and Subscription creations each record the violation first
        assert len(events) == 3
        assert all(e['message'].startswith("NonCompliant; ") for e in events)
        assert "the OperatorGroup required by the policy was not found" in events[0]['message']

    def test_event_fields(self):
        store = FakeClusterStore(make_policy(remediation_action="inform"), make_namespace(), make_catalog_source())
        reconciler, _ = _reconciler(store)

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        event = _events(store)[0]
        assert event['metadata']['name'] == f"{C.PARENT_POLICY_NAME}.1"
        assert event['metadata']['namespace'] == C.POLICY_NAMESPACE
        assert event['metadata']['annotations'] == {
            KubernetesConstants.PARENT_DB_ID_ANNOTATION: C.PARENT_DB_ID,
            KubernetesConstants.POLICY_DB_ID_ANNOTATION: C.POLICY_DB_ID,
        }
        assert event['involvedObject']['name'] == C.PARENT_POLICY_NAME
        assert event['involvedObject']['kind'] == "Policy"
        assert event['reason'] == f"policy: {C.POLICY_NAMESPACE}/{C.POLICY_NAME}"
        assert event['type'] == "Warning"
        assert event['action'] == "ComplianceStateUpdate"
        assert event['reportingComponent'] == "operator-policy-controller"
        assert event['reportingInstance'] == "controller-pod-1"

    def test_no_events_without_owner(self):
        store = FakeClusterStore(make_policy(with_owner=False), make_namespace(), make_catalog_source())
        reconciler, _ = _reconciler(store)

        reconciler.reconcile(C.POLICY_NAMESPACE, C.POLICY_NAME)

        assert _events(store) == []
        assert len(store.status_updates) == 1


class TestArgumentParser:
    """Test the one-shot runner's command line"""

    def test_required_arguments(self):
        args = create_argument_parser().parse_args(["--namespace", "ns", "--name", "policy", "--skip-tls"])

        assert args.namespace == "ns"
        assert args.name == "policy"
        assert args.skip_tls is True
        assert args.config is None

    def test_missing_name(self):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args(["--namespace", "ns"])

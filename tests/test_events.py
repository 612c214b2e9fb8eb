"""
Tests for compliance events
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from operator_policy.libs.core.exceptions import ClusterRequestError
from operator_policy.libs.data_models import Condition, OperatorPolicy
from operator_policy.libs.events import ComplianceEventEmitter

from fakes import FakeClusterStore
from test_constants import PolicyTestConstants as C, make_policy

FIXED_TIME = datetime(2024, 3, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)

COMPLIANT = Condition("Compliant", "True", "Compliant", "Compliant; the policy spec is valid")
NON_COMPLIANT = Condition("Compliant", "False", "NonCompliant", "NonCompliant; the Subscription was not found")


def _emitter(store):
    return ComplianceEventEmitter(store, instance_name="pod-1", clock=lambda: FIXED_TIME,
                                  unique_suffix=lambda: "17b2c")


class TestComplianceEventEmitter:
    """Test compliance event construction and creation"""

    def test_build_event(self):
        event = _emitter(FakeClusterStore()).build_event(OperatorPolicy.from_dict(make_policy()), COMPLIANT)

        assert event['metadata']['name'] == f"{C.PARENT_POLICY_NAME}.17b2c"
        assert event['type'] == "Normal"
        assert event['related']['kind'] == "OperatorPolicy"
        assert event['related']['uid'] == "policy-uid"
        assert event['involvedObject']['uid'] == "parent-uid"
        assert event['eventTime'] == "2024-03-01T12:30:45.123456Z"
        assert event['firstTimestamp'] == "2024-03-01T12:30:45Z"
        assert event['source'] == {'component': "operator-policy-controller"}

    def test_non_compliant_event_is_warning(self):
        event = _emitter(FakeClusterStore()).build_event(OperatorPolicy.from_dict(make_policy()), NON_COMPLIANT)

        assert event['type'] == "Warning"
        assert event['message'] == NON_COMPLIANT.message

    def test_no_event_without_owner(self):
        policy = OperatorPolicy.from_dict(make_policy(with_owner=False))

        assert _emitter(FakeClusterStore()).build_event(policy, COMPLIANT) is None

    def test_emit_creates_event(self):
        store = FakeClusterStore()

        _emitter(store).emit(OperatorPolicy.from_dict(make_policy()), COMPLIANT)

        assert len(store.of_kind("Event")) == 1

    def test_emit_failure(self):
        store = FakeClusterStore()
        store.failures[('create', 'Event')] = ClusterRequestError("forbidden", status=403)

        with pytest.raises(ClusterRequestError, match="error creating the compliance event: forbidden") as exc_info:
            _emitter(store).emit(OperatorPolicy.from_dict(make_policy()), COMPLIANT)

        assert exc_info.value.status == 403

    def test_default_clock_keeps_microseconds(self):
        """Test that eventTime isn't rounded down to whole seconds like status timestamps"""
        emitter = ComplianceEventEmitter(FakeClusterStore(), unique_suffix=lambda: "17b2c")

        with patch('operator_policy.libs.core.utils.datetime') as mock_datetime:
            mock_datetime.now.return_value = FIXED_TIME
            event = emitter.build_event(OperatorPolicy.from_dict(make_policy()), COMPLIANT)

        assert event['eventTime'] == "2024-03-01T12:30:45.123456Z"
        assert event['firstTimestamp'] == "2024-03-01T12:30:45Z"

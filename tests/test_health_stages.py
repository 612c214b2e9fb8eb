"""
Tests for the ClusterServiceVersion, Deployment and CatalogSource reconcilers
"""

from operator_policy.libs.reconcilers import (
    CatalogSourceReconciler,
    ClusterServiceVersionReconciler,
    DeploymentReconciler,
)

from fakes import FakeClusterStore, make_context
from test_constants import (
    PolicyTestConstants as C,
    make_catalog_source,
    make_csv,
    make_deployment,
    make_policy,
    make_subscription,
)


def _condition(ctx, condition_type):
    return ctx.policy.status.get_condition(condition_type)[1]


class TestClusterServiceVersion:
    """Test reporting on the installed CSV"""

    def test_not_installed_yet(self):
        ctx = make_context(FakeClusterStore(), make_policy())

        result = ClusterServiceVersionReconciler().reconcile(ctx, make_subscription())

        condition = _condition(ctx, "ClusterServiceVersionCompliant")
        assert condition.reason == "RelevantCSVNotFound"
        assert ctx.policy.status.related_objects[0].compliant == "UnknownCompliancy"
        assert result.output is None

    def test_missing_csv(self):
        ctx = make_context(FakeClusterStore(), make_policy())

        ClusterServiceVersionReconciler().reconcile(ctx, make_subscription(installed_csv=C.CSV_V1))

        assert _condition(ctx, "ClusterServiceVersionCompliant").reason == "ClusterServiceVersionMissing"

    def test_succeeded_csv(self):
        ctx = make_context(FakeClusterStore(make_csv()), make_policy())

        result = ClusterServiceVersionReconciler().reconcile(ctx, make_subscription(installed_csv=C.CSV_V1))

        condition = _condition(ctx, "ClusterServiceVersionCompliant")
        assert condition.status == "True"
        assert condition.reason == "InstallSucceeded"
        assert condition.message == "ClusterServiceVersion - install strategy completed with no errors"
        assert result.output['metadata']['name'] == C.CSV_V1

    def test_failed_csv(self):
        csv = make_csv(phase="Failed", reason="InstallCheckFailed", message="install timeout")
        ctx = make_context(FakeClusterStore(csv), make_policy())

        ClusterServiceVersionReconciler().reconcile(ctx, make_subscription(installed_csv=C.CSV_V1))

        assert _condition(ctx, "ClusterServiceVersionCompliant").status == "False"
        assert ctx.policy.status.related_objects[0].compliant == "NonCompliant"


class TestDeployment:
    """Test aggregated Deployment availability"""

    def test_no_csv(self):
        ctx = make_context(FakeClusterStore(), make_policy())

        DeploymentReconciler().reconcile(ctx, None)

        assert _condition(ctx, "DeploymentCompliant").reason == "NoRelevantDeployments"

    def test_all_available(self):
        ctx = make_context(FakeClusterStore(make_deployment()), make_policy())

        DeploymentReconciler().reconcile(ctx, make_csv())

        assert _condition(ctx, "DeploymentCompliant").reason == "DeploymentsAvailable"
        assert ctx.policy.status.related_objects[0].reason == "Deployment Available"

    def test_some_unavailable(self):
        store = FakeClusterStore(make_deployment(), make_deployment("webhook", unavailable_replicas=1))
        ctx = make_context(store, make_policy())

        DeploymentReconciler().reconcile(ctx, make_csv(deployments=[C.DEPLOYMENT, "webhook"]))

        condition = _condition(ctx, "DeploymentCompliant")
        assert condition.reason == "DeploymentsUnavailable"
        assert condition.message == "Deployments [webhook] do not have their minimum availability"

    def test_none_exist_yet(self):
        """Test that no deployments is reported apart from unhealthy ones"""
        ctx = make_context(FakeClusterStore(), make_policy())

        DeploymentReconciler().reconcile(ctx, make_csv())

        assert _condition(ctx, "DeploymentCompliant").reason == "NoExistingDeployments"
        assert ctx.policy.status.related_objects[0].reason == "Resource not found but should exist"


class TestCatalogSource:
    """Test CatalogSource health reporting"""

    def test_healthy(self):
        ctx = make_context(FakeClusterStore(make_catalog_source()), make_policy())

        CatalogSourceReconciler().reconcile(ctx, make_subscription())

        condition = _condition(ctx, "CatalogSourcesUnhealthy")
        assert condition.status == "False"
        assert condition.reason == "CatalogSourcesFound"

    def test_missing(self):
        ctx = make_context(FakeClusterStore(), make_policy())

        CatalogSourceReconciler().reconcile(ctx, make_subscription())

        condition = _condition(ctx, "CatalogSourcesUnhealthy")
        assert condition.status == "True"
        assert condition.message == f"CatalogSource '{C.CATALOG}' was not found"

    def test_unhealthy(self):
        ctx = make_context(FakeClusterStore(make_catalog_source(state="TRANSIENT_FAILURE")), make_policy())

        CatalogSourceReconciler().reconcile(ctx, make_subscription())

        assert _condition(ctx, "CatalogSourcesUnhealthy").reason == "CatalogSourcesFoundUnhealthy"

    def test_unknown_state(self):
        ctx = make_context(FakeClusterStore(make_catalog_source(state=None)), make_policy())

        CatalogSourceReconciler().reconcile(ctx, make_subscription())

        assert _condition(ctx, "CatalogSourcesUnhealthy").reason == "CatalogSourcesUnknownState"
        assert ctx.policy.status.related_objects[0].reason == "Resource found but current state is unknown"

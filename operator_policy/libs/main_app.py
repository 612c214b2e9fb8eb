"""
Main Application

The reconcile entry point for one OperatorPolicy, and a one-shot command line
runner wiring it to a real cluster.
"""

import argparse
import logging
import sys
from typing import Callable, List, Optional

from .cluster import ClusterQueryWatcher, KubernetesClusterStore
from .core import KubernetesAuth, ConfigManager, ControllerConfig, setup_logging
from .core.constants import KubernetesConstants, PolicyConstants
from .core.exceptions import (
    AuthenticationError,
    ClusterRequestError,
    ConfigurationError,
    ObjectNotFoundError,
    ReconcileError,
)
from .core.protocols import ClusterStore, DependencyWatcher
from .core.utils import now_utc
from .data_models import Condition, OperatorPolicy
from .events import ComplianceEventEmitter
from .reconcilers import ReconcileContext, ReconcilePipeline, default_pipeline

logger = logging.getLogger(__name__)


def policy_identifier(namespace: str, name: str) -> str:
    """Stable identifier of a policy, used to key its dependency watches"""
    gvk = KubernetesConstants.OPERATOR_POLICY_GVK
    return f"{gvk.api_version}/{gvk.kind}/{namespace}/{name}"


class OperatorPolicyReconciler:
    """Reconciles OperatorPolicies against the OLM resources on the cluster"""

    def __init__(self, store: ClusterStore, watcher: DependencyWatcher,
                 config: Optional[ControllerConfig] = None,
                 pipeline: Optional[ReconcilePipeline] = None,
                 event_emitter: Optional[ComplianceEventEmitter] = None,
                 clock: Callable = now_utc):
        """
        Initialize the reconciler with its collaborators

        Args:
            store: Direct read/write path to the cluster
            watcher: Read path for dependency objects
            config: Controller settings (defaults to ControllerConfig())
            pipeline: Stages to run (defaults to every stage)
            event_emitter: Compliance event emitter (defaults to one writing through the store)
            clock: Source of status timestamps
        """
        self.store = store
        self.watcher = watcher
        self.config = config or ControllerConfig()
        self.pipeline = pipeline or default_pipeline()
        self.clock = clock
        self.event_emitter = event_emitter or ComplianceEventEmitter(
            store,
            controller_name=self.config.controller_name,
            instance_name=self.config.instance_name,
        )

    def reconcile(self, namespace: str, name: str) -> None:
        """
        Run one reconciliation of a policy

        Args:
            namespace: Namespace of the OperatorPolicy
            name: Name of the OperatorPolicy

        Raises:
            ReconcileError: Every error collected during the run
            ClusterRequestError: If the policy itself can't be read
        """
        watcher_id = policy_identifier(namespace, name)
        logger.info(f"Reconciling OperatorPolicy {namespace}/{name}")

        try:
            raw_policy = self.store.get(KubernetesConstants.OPERATOR_POLICY_GVK, namespace, name)
        except ObjectNotFoundError:
            logger.info(f"OperatorPolicy {namespace}/{name} not found, so it may have been deleted")
            try:
                self.watcher.remove_watcher(watcher_id)
            except ClusterRequestError as e:
                logger.error(f"Error removing the dependency watcher for {watcher_id}: {e}")
            return

        policy = OperatorPolicy.from_dict(raw_policy)

        self.watcher.start_query_batch(watcher_id)
        try:
            errors = self._reconcile_policy(policy, watcher_id)
        finally:
            try:
                self.watcher.end_query_batch(watcher_id)
            except ClusterRequestError as e:
                logger.error(f"Could not end query batch for the watcher {watcher_id}: {e}")

        if errors:
            raise ReconcileError(errors)

        logger.info(f"Finished reconciling OperatorPolicy {namespace}/{name}: {policy.status.compliant}")

    def _reconcile_policy(self, policy: OperatorPolicy, watcher_id: str) -> List[Exception]:
        ctx = ReconcileContext(
            policy, self.watcher, self.store, watcher_id,
            default_namespace=self.config.default_namespace,
            clock=self.clock,
        )

        errors = self.pipeline.run(ctx)

        if not ctx.changed:
            logger.debug(f"No status changes for {policy.namespace}/{policy.name}")
            return errors

        events: List[Condition] = list(ctx.early_events)
        _, compliance_cond = policy.status.get_condition(PolicyConstants.ConditionType.COMPLIANT.value)
        if compliance_cond is not None:
            events.append(compliance_cond)

        try:
            updated = self.store.update_status(policy.to_dict())
            policy.raw = updated
        except ClusterRequestError as e:
            errors.append(ClusterRequestError(f"error updating the status of the policy: {e}", status=e.status))

        for condition in events:
            try:
                self.event_emitter.emit(policy, condition)
            except ClusterRequestError as e:
                errors.append(e)

        return errors


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the argument parser of the one-shot runner"""
    parser = argparse.ArgumentParser(
        description="Reconcile one OperatorPolicy against the OLM resources on a cluster",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reconcile a policy using the current kubeconfig context
  %(prog)s --namespace managed-cluster --name install-gatekeeper

  # Use an explicit API server and token, skipping TLS verification
  %(prog)s --namespace managed-cluster --name install-gatekeeper \\
      --url https://api.cluster.example.com:6443 --token sha256~xxx --skip-tls
""",
    )
    parser.add_argument('--namespace', required=True, help='Namespace of the OperatorPolicy')
    parser.add_argument('--name', required=True, help='Name of the OperatorPolicy')
    parser.add_argument('--config', help='Path to a YAML configuration file')
    parser.add_argument('--url', help='Kubernetes API server URL')
    parser.add_argument('--token', help='Bearer token for the API server')
    parser.add_argument('--skip-tls', action='store_true', help='Skip TLS verification')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser


def create_reconciler(controller_config: ControllerConfig, api_url: str = None,
                      token: str = None) -> OperatorPolicyReconciler:
    """
    Wire a reconciler to the cluster

    Raises:
        AuthenticationError: If no cluster client can be configured
    """
    auth = KubernetesAuth(skip_tls=controller_config.skip_tls)
    auth.configure_auth(api_url, token)

    store = KubernetesClusterStore(auth.get_dynamic_client())
    watcher = ClusterQueryWatcher(store)
    return OperatorPolicyReconciler(store, watcher, config=controller_config)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command line entry point

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    args = create_argument_parser().parse_args(argv)

    config_manager = ConfigManager()
    try:
        if args.config:
            config_manager.load_config(args.config)
        controller_config = config_manager.build_controller_config()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    controller_config.debug = controller_config.debug or args.debug
    controller_config.skip_tls = controller_config.skip_tls or args.skip_tls
    setup_logging(controller_config.debug)

    try:
        reconciler = create_reconciler(controller_config, args.url, args.token)
        reconciler.reconcile(args.namespace, args.name)
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        return 1
    except ReconcileError as e:
        for error in e.errors:
            logger.error(f"Reconcile error: {error}")
        return 1
    except ClusterRequestError as e:
        logger.error(f"Failed to read the OperatorPolicy: {e}")
        return 1

    return 0

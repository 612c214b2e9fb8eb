"""
Authentication Module

Builds the Kubernetes API client the controller talks to the cluster with.
"""

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient

from .exceptions import AuthenticationError
from .utils import disable_ssl_warnings

logger = logging.getLogger(__name__)


class KubernetesAuth:
    """Handles cluster authentication and client construction"""

    def __init__(self, skip_tls: bool = False):
        """
        Initialize the authentication handler

        Args:
            skip_tls: Whether to skip TLS verification for requests
        """
        self.skip_tls = skip_tls
        self.api_client: Optional[client.ApiClient] = None

    def configure_auth(self, api_url: str = None, token: str = None) -> client.ApiClient:
        """
        Configure authentication with a URL and token, or discover it from the environment

        Args:
            api_url: Kubernetes API server URL (optional)
            token: Bearer token (optional)

        Returns:
            client.ApiClient: The configured API client

        Raises:
            AuthenticationError: If no usable configuration is found
        """
        if api_url and token:
            logger.info("Using provided API URL and token for authentication")
            configuration = client.Configuration()
            configuration.host = api_url
            configuration.api_key = {"authorization": token}
            configuration.api_key_prefix = {"authorization": "Bearer"}
        else:
            configuration = self._discover_from_context()

        if self.skip_tls:
            configuration.verify_ssl = False
            configuration.ssl_ca_cert = None
            disable_ssl_warnings()

        self.api_client = client.ApiClient(configuration)
        logger.info(f"Configured Kubernetes client for {configuration.host}")
        return self.api_client

    def _discover_from_context(self) -> client.Configuration:
        """
        Discover authentication from in-cluster config or kubeconfig

        Returns:
            client.Configuration: The discovered configuration

        Raises:
            AuthenticationError: If neither source is usable
        """
        configuration = client.Configuration()

        try:
            config.load_incluster_config(client_configuration=configuration)
            logger.info("Successfully loaded in-cluster config")
            return configuration
        except ConfigException as incluster_error:
            logger.debug(f"In-cluster config not available: {incluster_error}")

        try:
            config.load_kube_config(client_configuration=configuration)
            logger.info("Successfully loaded kubeconfig")
            return configuration
        except (ConfigException, OSError) as kubeconfig_error:
            raise AuthenticationError(f"Failed to configure authentication: {kubeconfig_error}")

    def is_authenticated(self) -> bool:
        """
        Check if authentication is properly configured

        Returns:
            bool: True if authenticated
        """
        return self.api_client is not None

    def get_dynamic_client(self) -> DynamicClient:
        """
        Get a dynamic client for the configured cluster

        Returns:
            DynamicClient: Client able to address any resource kind

        Raises:
            AuthenticationError: If authentication has not been configured
        """
        if not self.is_authenticated():
            raise AuthenticationError("Authentication not configured. Configure authentication first.")

        return DynamicClient(self.api_client)

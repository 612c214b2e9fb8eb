"""
Core Libraries

Shared functionality and utilities for the operator policy controller.
"""

from .auth import KubernetesAuth
from .config import ConfigManager, ControllerConfig
from .exceptions import (
    OperatorPolicyError,
    ConfigurationError,
    AuthenticationError,
    ClusterRequestError,
    ObjectNotFoundError,
    UpdateForbiddenError,
    ReconcileError,
)
from .utils import setup_logging, disable_ssl_warnings

__all__ = [
    'KubernetesAuth',
    'ConfigManager',
    'ControllerConfig',
    'OperatorPolicyError',
    'ConfigurationError',
    'AuthenticationError',
    'ClusterRequestError',
    'ObjectNotFoundError',
    'UpdateForbiddenError',
    'ReconcileError',
    'setup_logging',
    'disable_ssl_warnings'
]

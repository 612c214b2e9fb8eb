"""
Exceptions Module

Exception hierarchy for the operator policy controller.
"""

from typing import List, Optional


class OperatorPolicyError(Exception):
    """Base class for all controller errors"""


class ConfigurationError(OperatorPolicyError):
    """Raised when the controller configuration is invalid"""


class AuthenticationError(OperatorPolicyError):
    """Raised when a cluster client cannot be configured"""


class PolicyValidationError(OperatorPolicyError):
    """One semantic problem found in the policy's desired fragments"""


class ClusterRequestError(OperatorPolicyError):
    """
    A read or write against the cluster failed.

    These are treated as transient: they abort the current pipeline stage and
    are returned to the caller, which is responsible for retrying.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ObjectNotFoundError(ClusterRequestError):
    """The requested object does not exist"""


class UpdateForbiddenError(ClusterRequestError):
    """The server rejected a write because the change is not allowed (e.g. an immutable field)"""


class ReconcileError(OperatorPolicyError):
    """Aggregate of every error collected during one reconcile run"""

    def __init__(self, errors: List[Exception]):
        self.errors = list(errors)
        if len(self.errors) == 1:
            message = str(self.errors[0])
        else:
            message = "[" + ", ".join(str(e) for e in self.errors) + "]"
        super().__init__(message)

"""
Core Utilities

Common utility functions used across the operator policy controller.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

import urllib3
from dateutil import parser as date_parser
from kubernetes.client.rest import ApiException

from .exceptions import ClusterRequestError, ObjectNotFoundError, UpdateForbiddenError

# DNS-1123 label, which is what Kubernetes requires of namespace names
_DNS1123_LABEL = re.compile(r'^[a-z0-9]([-a-z0-9]*[a-z0-9])?$')
_DNS1123_LABEL_MAX_LENGTH = 63


def setup_logging(debug: bool = False) -> None:
    """
    Set up logging configuration for the application.

    Args:
        debug: Enable debug logging level
    """
    level = logging.DEBUG if debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(console_handler)

    # Reduce noise from urllib3 when using insecure connections
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    if debug:
        logging.getLogger(__name__).debug("Debug mode enabled")


def disable_ssl_warnings() -> None:
    """Disable SSL warnings when --skip-tls is used"""
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


def is_valid_namespace(namespace: Any) -> bool:
    """
    Check whether the value is a valid Kubernetes namespace name (a DNS-1123 label).

    Args:
        namespace: Candidate namespace name

    Returns:
        bool: True if the name is usable as a namespace
    """
    if not namespace or not isinstance(namespace, str):
        return False
    if len(namespace) > _DNS1123_LABEL_MAX_LENGTH:
        return False
    return bool(_DNS1123_LABEL.match(namespace))


def now_utc() -> datetime:
    """Current time, truncated to whole seconds as Kubernetes stores it"""
    return datetime.now(timezone.utc).replace(microsecond=0)


def now_utc_precise() -> datetime:
    """Current time with microseconds, for fields like Event.eventTime that keep them"""
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp in the RFC 3339 form used in Kubernetes status fields"""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp from a Kubernetes object, tolerating missing values"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return date_parser.isoparse(value)


def get_nested(obj: Dict[str, Any], *path: str, default: Any = None) -> Any:
    """
    Read a nested field from an unstructured object.

    Args:
        obj: Object to read from
        *path: Keys to follow
        default: Returned when any key along the path is missing

    Returns:
        The value found at the path, or the default
    """
    current: Any = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def is_owned_by(obj: Dict[str, Any], owner_kind: str, owner_api_version: str, owner_name: str) -> bool:
    """
    Check whether an object has an owner reference naming the given owner.

    Args:
        obj: Unstructured object whose metadata.ownerReferences are scanned
        owner_kind: Kind of the owner
        owner_api_version: apiVersion of the owner
        owner_name: Name of the owner

    Returns:
        bool: True if any owner reference matches all three fields
    """
    for owner in get_nested(obj, 'metadata', 'ownerReferences', default=[]) or []:
        if (owner.get('kind') == owner_kind
                and owner.get('apiVersion') == owner_api_version
                and owner.get('name') == owner_name):
            return True
    return False


def message_includes_subscription(message: str, namespace: str, subscription_name: str,
                                  package_name: str) -> bool:
    """
    Check whether an OLM resolution failure message refers to a subscription or its package.

    OLM reports the same ResolutionFailed condition on every Subscription in a
    namespace, so the message has to be matched back to the subscription it is
    about. Messages it produces look like:

    - no operators found from catalog %s in namespace %s referenced by subscription %s
    - no operators found in package %s in the catalog referenced by subscription %s
    - no operators found in channel %s of package %s in the catalog referenced by subscription %s
    - multiple name matches for status.installedCSV of subscription %s/%s: %s

    After the name there must be the end of the message, whitespace, a comma or a
    colon, so that "gatekeeper-operator" does not match "gatekeeper-operator-product".

    Args:
        message: The condition message reported by OLM
        namespace: Namespace of the subscription
        subscription_name: Name of the subscription
        package_name: Package the subscription installs

    Returns:
        bool: True if the message mentions this subscription or package
    """
    safe_ns = re.escape(namespace)
    safe_sub = re.escape(subscription_name)
    safe_package = re.escape(package_name)

    pattern = (
        rf'(?:subscription (?:{safe_sub}|{safe_ns}/{safe_sub})'
        rf'|package (?:{safe_package}|{safe_ns}/{safe_package}))(?:$|\s|,|:)'
    )

    return re.search(pattern, message) is not None


def handle_api_error(error: ApiException, context: str) -> ClusterRequestError:
    """
    Centralized translation of Kubernetes API exceptions into controller errors.

    Args:
        error: The caught ApiException (dynamic client errors subclass it)
        context: What was being attempted, used as the message prefix

    Returns:
        ClusterRequestError: The matching controller error, for the caller to raise
    """
    status = getattr(error, 'status', None)
    details = _error_details(error)

    if status == 404:
        return ObjectNotFoundError(f"{context}: {details}", status=status)

    # Immutable field changes come back as Forbidden from some admission paths and
    # as Invalid from the API server itself.
    if status == 403 or (status == 422 and 'immutable' in details.lower()):
        return UpdateForbiddenError(f"{context}: {details}", status=status)

    return ClusterRequestError(f"{context}: {details}", status=status)


def _error_details(error: ApiException) -> str:
    """Pick the most descriptive text out of an ApiException"""
    for attr in ('summary', 'body', 'reason'):
        value = getattr(error, attr, None)
        if callable(value):
            value = value()
        if value:
            return value.decode() if isinstance(value, bytes) else str(value)
    return str(error)


def join_names(names: Sequence[str]) -> str:
    """Format names the way Go prints a string slice, e.g. ``[a b]``"""
    return "[" + " ".join(names) + "]"

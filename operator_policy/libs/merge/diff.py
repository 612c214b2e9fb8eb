"""
Diff rendering for enforced updates.
"""

import copy
import difflib
import logging
from typing import Any, Dict

import yaml

from ..core.utils import get_nested
from .engine import remove_fields_for_comparison

logger = logging.getLogger(__name__)


def generate_diff(existing: Dict[str, Any], updated: Dict[str, Any]) -> str:
    """
    Render a unified diff between two objects as YAML

    Args:
        existing: Object as it was on the cluster
        updated: Object after the update

    Returns:
        str: The diff, empty if the YAML renderings are identical
    """
    before = copy.deepcopy(existing)
    after = copy.deepcopy(updated)
    remove_fields_for_comparison(before)
    remove_fields_for_comparison(after)

    namespace = get_nested(existing, 'metadata', 'namespace', default='')
    name = get_nested(existing, 'metadata', 'name', default='')
    identifier = f"{namespace}/{name}" if namespace else name

    lines = difflib.unified_diff(
        yaml.safe_dump(before, default_flow_style=False, sort_keys=True).splitlines(keepends=True),
        yaml.safe_dump(after, default_flow_style=False, sort_keys=True).splitlines(keepends=True),
        fromfile=f"{identifier} : existing",
        tofile=f"{identifier} : updated",
    )
    return "".join(lines)


def log_diff(existing: Dict[str, Any], updated: Dict[str, Any]) -> None:
    """Log the diff of an enforced update at info level"""
    diff = generate_diff(existing, updated)
    if diff:
        logger.info(f"Logging the diff:\n{diff}")

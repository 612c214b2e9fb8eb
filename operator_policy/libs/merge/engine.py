"""
Merge/Diff Engine

Decides whether a live object satisfies a desired fragment. A theoretical
difference is confirmed with a dry-run update so that server-side defaulting
does not show up as drift.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..core.constants import PolicyConstants
from ..core.exceptions import UpdateForbiddenError
from ..core.protocols import ClusterStore
from .strategies import MustHaveStrategy, get_strategy

logger = logging.getLogger(__name__)

LAST_APPLIED_ANNOTATION = "kubectl.kubernetes.io/last-applied-configuration"

# Top-level keys never compared
_IDENTITY_KEYS = ('apiVersion', 'kind', 'status')

# The only metadata a policy can ask for
_COMPARED_METADATA_KEYS = ('labels', 'annotations')


@dataclass
class MergeResult:
    """Outcome of comparing a desired fragment with a live object"""
    update_needed: bool
    update_forbidden: bool
    merged: Dict[str, Any]


def remove_fields_for_comparison(obj: Dict[str, Any]) -> None:
    """
    Strip server-managed fields in place so they never count as differences.

    Args:
        obj: Unstructured object to clean
    """
    metadata = obj.get('metadata')
    if isinstance(metadata, dict):
        for key in ('managedFields', 'generation', 'resourceVersion', 'creationTimestamp'):
            metadata.pop(key, None)

        annotations = metadata.get('annotations')
        if isinstance(annotations, dict):
            annotations.pop(LAST_APPLIED_ANNOTATION, None)
            if not annotations:
                metadata.pop('annotations')

    obj.pop('status', None)


def merge_keys(desired: Dict[str, Any], existing: Dict[str, Any],
               compliance_type: PolicyConstants.ComplianceType) -> Tuple[Dict[str, Any], bool]:
    """
    Lay the desired fragment over a copy of the existing object.

    Keys on the existing object that the fragment doesn't mention are always
    kept at the top level; below it, the compliance type decides.

    Args:
        desired: Desired partial object
        existing: Full live object
        compliance_type: musthave or mustonlyhave

    Returns:
        Tuple of (merged object, whether the merge changed anything)
    """
    strategy = get_strategy(compliance_type)
    top_level = MustHaveStrategy()
    merged = copy.deepcopy(existing)

    for key, value in desired.items():
        if key in _IDENTITY_KEYS:
            continue

        if key == 'metadata':
            existing_metadata = merged.get('metadata') or {}
            wanted = {k: v for k, v in (value or {}).items() if k in _COMPARED_METADATA_KEYS}
            merged_metadata = copy.deepcopy(existing_metadata)
            for meta_key, meta_value in wanted.items():
                if isinstance(meta_value, dict) and not meta_value and meta_key not in merged_metadata:
                    continue
                merged_metadata[meta_key] = strategy.merge(meta_value, existing_metadata.get(meta_key))
            merged['metadata'] = merged_metadata
            continue

        if isinstance(value, (dict, list)) and not value and key not in merged:
            continue
        if isinstance(value, dict):
            merged[key] = strategy.merge(value, merged.get(key))
        else:
            merged[key] = top_level.merge(value, merged.get(key))

    return merged, _stripped(merged) != _stripped(existing)


def _stripped(obj: Dict[str, Any]) -> Dict[str, Any]:
    clean = copy.deepcopy(obj)
    remove_fields_for_comparison(clean)
    return clean


class ObjectMerger:
    """Runs the merge and confirms differences against the cluster with dry runs"""

    def __init__(self, store: ClusterStore):
        """
        Initialize the merger

        Args:
            store: Cluster store used for dry-run updates
        """
        self.store = store

    def merge_objects(self, desired: Dict[str, Any], existing: Dict[str, Any],
                      compliance_type: PolicyConstants.ComplianceType) -> MergeResult:
        """
        Compare a desired fragment against a live object

        Args:
            desired: Desired partial object
            existing: Full live object
            compliance_type: musthave or mustonlyhave

        Returns:
            MergeResult: Whether an update is needed, whether it would be
                rejected, and the merged object to send if enforcing

        Raises:
            ClusterRequestError: If the dry run fails for a reason other than
                the change being forbidden
        """
        merged, update_needed = merge_keys(desired, existing, compliance_type)

        if not update_needed:
            return MergeResult(False, False, merged)

        name = merged.get('metadata', {}).get('name', '')
        kind = merged.get('kind', '')

        try:
            dry_run_result = self.store.update(merged, dry_run=True)
        except UpdateForbiddenError as e:
            logger.info(f"Update of {kind} {name} is not allowed: {e}")
            return MergeResult(True, True, merged)

        if _stripped(dry_run_result) == _stripped(existing):
            logger.debug(f"Dry run update of {kind} {name} resulted in no change")
            return MergeResult(False, False, merged)

        return MergeResult(True, False, merged)

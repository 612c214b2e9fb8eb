"""
Merge Strategies

How a desired value is laid over an existing value, dispatched on the kind of
the desired value (map, list, scalar).
"""

import copy
from typing import Any, Dict, List

from ..core.constants import PolicyConstants


def _is_empty_container(value: Any) -> bool:
    return isinstance(value, (dict, list)) and len(value) == 0


class MergeStrategy:
    """
    Base strategy: lists and scalars in the desired object replace the existing value.

    Subclasses decide what happens to map keys that exist only on the cluster.
    """

    def merge(self, desired: Any, existing: Any) -> Any:
        """
        Lay a desired value over an existing value

        Args:
            desired: Value from the desired object
            existing: Value currently on the cluster, or None if absent

        Returns:
            The merged value; ``existing`` is never modified
        """
        if isinstance(desired, dict):
            return self.merge_map(desired, existing)
        if isinstance(desired, list):
            return self.merge_list(desired, existing)
        return self.merge_scalar(desired, existing)

    def merge_scalar(self, desired: Any, existing: Any) -> Any:
        return desired

    def merge_list(self, desired: List[Any], existing: Any) -> List[Any]:
        # Lists are compared and replaced as whole values
        return copy.deepcopy(desired)

    def merge_map(self, desired: Dict[str, Any], existing: Any) -> Dict[str, Any]:
        raise NotImplementedError


class MustHaveStrategy(MergeStrategy):
    """Desired keys must be present with the desired values; other keys are kept"""

    def merge_map(self, desired: Dict[str, Any], existing: Any) -> Dict[str, Any]:
        merged = copy.deepcopy(existing) if isinstance(existing, dict) else {}

        for key, value in desired.items():
            # An empty list or map asks for nothing, so an absent key satisfies it
            if _is_empty_container(value) and key not in merged:
                continue
            merged[key] = self.merge(value, merged.get(key))

        return merged


class MustOnlyHaveStrategy(MergeStrategy):
    """Maps must contain exactly the desired keys"""

    def merge_map(self, desired: Dict[str, Any], existing: Any) -> Dict[str, Any]:
        existing = existing if isinstance(existing, dict) else {}
        return {key: self.merge(value, existing.get(key)) for key, value in desired.items()}


def get_strategy(compliance_type: PolicyConstants.ComplianceType) -> MergeStrategy:
    """Get the strategy for a compliance type"""
    if compliance_type == PolicyConstants.ComplianceType.MUST_ONLY_HAVE:
        return MustOnlyHaveStrategy()
    return MustHaveStrategy()

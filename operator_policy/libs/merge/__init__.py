"""
Merge Engine

Compares desired object fragments against live cluster objects and decides
whether (and how) the live objects need to change.
"""

from .strategies import MergeStrategy, MustHaveStrategy, MustOnlyHaveStrategy, get_strategy
from .engine import MergeResult, ObjectMerger, merge_keys, remove_fields_for_comparison
from .diff import generate_diff, log_diff

__all__ = [
    'MergeStrategy',
    'MustHaveStrategy',
    'MustOnlyHaveStrategy',
    'get_strategy',
    'MergeResult',
    'ObjectMerger',
    'merge_keys',
    'remove_fields_for_comparison',
    'generate_diff',
    'log_diff',
]

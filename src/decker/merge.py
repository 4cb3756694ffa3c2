"""Pure deep merge for layered configuration trees.

Interior nodes are mappings; everything else (scalars, lists, mismatched
types) is a leaf and the last layer to set it wins. The result never shares
mutable structure with any input layer.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

# Realistic configs are a handful of levels deep
MAX_MERGE_DEPTH = 64


def deep_merge(base: Any, *overrides: Any) -> Any:
    """Merge ``overrides`` into ``base`` left to right and return a new tree.

    With no overrides this is a deep copy of ``base``.
    """
    result = _copy_tree(base, 0)
    for override in overrides:
        result = _merge(result, override, 0)
    return result


def _merge(base: Any, override: Any, depth: int) -> Any:
    """Merge one override into an already-copied base."""
    if not (isinstance(base, Mapping) and isinstance(override, Mapping)):
        return _copy_tree(override, depth)
    _check_depth(depth)

    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = _merge(merged[key], value, depth + 1)
        else:
            merged[key] = _copy_tree(value, depth + 1)
    return merged


def _copy_tree(value: Any, depth: int) -> Any:
    if isinstance(value, Mapping):
        _check_depth(depth)
        return {k: _copy_tree(v, depth + 1) for k, v in value.items()}
    return copy.deepcopy(value)


def _check_depth(depth: int) -> None:
    if depth > MAX_MERGE_DEPTH:
        raise ValueError(f"Configuration is nested deeper than {MAX_MERGE_DEPTH} levels")

"""Mapping helpers shared by the data loaders and the page parser."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc


def deep_merge(
    base: cabc.Mapping[str, typ.Any], override: cabc.Mapping[str, typ.Any]
) -> dict[str, typ.Any]:
    """Return a new mapping with ``override`` merged over ``base``.

    Nested mappings are merged recursively; any other value in ``override``
    replaces the value in ``base``. Neither input is modified.

    Examples
    --------
    >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}, "b": 4})
    {'a': {'x': 1, 'y': 3}, 'b': 4}
    """
    merged: dict[str, typ.Any] = {}
    for key, value in base.items():
        merged[key] = _copy_mapping(value)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = _copy_mapping(value)
    return merged


def _copy_mapping(value: typ.Any) -> typ.Any:
    if isinstance(value, dict):
        return deep_merge({}, value)
    return value


def lookup_path(table: cabc.Mapping[str, typ.Any], dotted: str) -> typ.Any:
    """Return the value at a dotted key path, or ``None`` when absent."""
    current: typ.Any = table
    for segment in dotted.split("."):
        if not isinstance(current, dict) or segment not in current:
            return None
        current = current[segment]
    return current


__all__ = ["deep_merge", "lookup_path"]

"""Recursive key-wise merge for plain JSON-like documents."""

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping

# Dotted key paths whose lists append instead of replace.
ADDITIVE_KEYS: frozenset[str] = frozenset({"inject"})


def dedupe_preserving_order(items: Iterable[Any]) -> list[Any]:
    """Drop repeated items, keeping the first occurrence."""

    unique: list[Any] = []
    for item in items:
        if item not in unique:
            unique.append(item)
    return unique


def _merge_into(
    target: dict[str, Any],
    override: Mapping[str, Any],
    additive_keys: frozenset[str],
    prefix: str,
) -> None:
    for key, value in override.items():
        path = f"{prefix}.{key}" if prefix else key
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _merge_into(current, value, additive_keys, path)
        elif path in additive_keys and isinstance(value, list):
            existing = current if isinstance(current, list) else []
            target[key] = dedupe_preserving_order([*existing, *copy.deepcopy(value)])
        else:
            target[key] = copy.deepcopy(value)


def merge_documents(
    base: Mapping[str, Any],
    override: Mapping[str, Any],
    *,
    additive_keys: frozenset[str] = ADDITIVE_KEYS,
) -> dict[str, Any]:
    """Return ``override`` layered over ``base`` without mutating either.

    Nested mappings merge key by key; lists and scalars from ``override``
    replace the base value, except at ``additive_keys`` where lists are
    concatenated and de-duplicated. Keys unknown to ``base`` are added.
    """

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, override, additive_keys, prefix="")
    return merged

"""Layering of reload configuration sources.

Layers are plain dicts (project file, environment, ``setup()`` options)
applied lowest priority first. Sections such as ``options`` and ``logging``
merge key by key; lists such as ``watch`` are replaced, never extended.
"""

from __future__ import annotations

from functools import reduce
from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``override`` applied on top of ``base``.

    None in ``override`` means "not set in this layer" and keeps the base value.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        both_sections = isinstance(current, dict) and isinstance(value, dict)
        merged[key] = deep_merge(current, value) if both_sections else value
    return merged


def merge_configs(*layers: dict[str, Any] | None) -> dict[str, Any]:
    """Fold layers left to right; missing or empty layers are skipped."""
    return reduce(deep_merge, (layer for layer in layers if layer), {})

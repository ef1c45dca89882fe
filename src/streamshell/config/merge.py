"""Layering of config dicts: system, user, project, --config file, environment."""

from __future__ import annotations

from functools import reduce
from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` layered on top.

    Mappings merge key by key; anything else, lists included, is replaced.
    A None in ``override`` leaves the base value alone, so a partial file can
    set one key of a section without clearing the rest of it.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Layer configs in order; later ones win."""
    return reduce(deep_merge, (config for config in configs if config), {})

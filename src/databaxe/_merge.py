"""Deep merge helpers for request options and pending write payloads."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any


def deep_merge(target: dict[str, Any], *sources: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge each of *sources* into *target*, in order.

    Nested mappings are merged key by key; any other value (lists included)
    replaces what is already there. Incoming values are deep-copied so the
    result never aliases caller data. ``None`` sources are skipped.
    """
    for source in sources:
        if not source:
            continue
        for key, value in source.items():
            if isinstance(value, Mapping):
                existing = target.get(key)
                if not isinstance(existing, dict):
                    existing = {}
                    target[key] = existing
                deep_merge(existing, value)
            else:
                target[key] = copy.deepcopy(value)
    return target


def merged(*sources: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a fresh dict holding the deep merge of *sources*."""
    return deep_merge({}, *sources)

"""Stable content fingerprints for request descriptors."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def _canonical_json(value: Any) -> str:
    """Compact JSON with sorted keys so key order never changes the hash.

    Values JSON cannot represent (callables, custom objects) fall back to
    their ``repr``.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=repr)


def fingerprint(value: Any) -> str:
    """Compute a SHA-1 fingerprint of *value*.

    Parameters
    ----------
    value : Any
        JSON-like structure (typically ``{"url": ..., "options": ...}``).

    Returns
    -------
    str
        40-character lowercase hex digest.
    """
    return hashlib.sha1(_canonical_json(value).encode("utf-8")).hexdigest()

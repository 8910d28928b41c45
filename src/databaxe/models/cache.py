"""Cache records."""

from __future__ import annotations

from typing import Any

from databaxe.models._base import DataBaxeBaseModel


class CacheEntry(DataBaxeBaseModel):
    """Current cached payload of one request fingerprint."""

    fingerprint: str
    timestamp: float
    payload: Any = None

    def age(self, now: float) -> float:
        """Seconds elapsed since the entry was written."""
        return now - self.timestamp

    def is_stale(self, now: float, expire: float) -> bool:
        """Whether the entry outlived *expire* seconds (``0`` never expires)."""
        if not expire:
            return False
        return self.age(now) >= expire


class Snapshot(DataBaxeBaseModel):
    """A previous cache entry, archived when it was overwritten."""

    id: str
    fingerprint: str
    timestamp: float
    payload: Any = None
    archived_at: float

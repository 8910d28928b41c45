"""Cache store adapter.

Wraps two :class:`~databaxe.stores.base.Store` tables: one holding the
current entry per request fingerprint, one holding archived snapshots.
This is the only component allowed to write cache entries.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel

from databaxe.models.cache import CacheEntry, Snapshot
from databaxe.stores.base import Store
from databaxe.stores.memory import MemoryStore

_logger = logging.getLogger(__name__)

SNAPSHOT_INDEX = "fingerprint"


def _row(record: BaseModel) -> dict[str, Any]:
    # model_dump() would serialise the payload and turn dataclasses or
    # models into dicts; the store keeps the payload object as it is.
    return {name: getattr(record, name) for name in type(record).model_fields}


class CacheStore:
    """Current entries plus a bounded FIFO history per fingerprint.

    Writes to the same fingerprint are serialized with a per-fingerprint
    lock so the read-archive-write sequence in :meth:`put_entry` never
    interleaves with another writer, whatever the backing store awaits on.
    A lock only exists while a writer holds or waits for it.

    Snapshot order is the insertion order of the snapshot store, never the
    clock, so a clock stepping backwards cannot reorder the history.
    """

    def __init__(
        self,
        data_store: Store | None = None,
        snapshot_store: Store | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._data = data_store if data_store is not None else MemoryStore()
        self._snapshots = snapshot_store if snapshot_store is not None else MemoryStore(indexes=(SNAPSHOT_INDEX,))
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    @contextlib.asynccontextmanager
    async def _exclusive(self, fingerprint: str) -> AsyncIterator[None]:
        lock = self._locks.get(fingerprint)
        if lock is None:
            lock = self._locks[fingerprint] = asyncio.Lock()
        self._lock_users[fingerprint] = self._lock_users.get(fingerprint, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[fingerprint] - 1
            if remaining:
                self._lock_users[fingerprint] = remaining
            else:
                del self._lock_users[fingerprint]
                del self._locks[fingerprint]

    async def get_entry(self, fingerprint: str) -> CacheEntry | None:
        """Return the current entry for *fingerprint*, if any."""
        raw = await self._data.get(fingerprint)
        if raw is None:
            return None
        return CacheEntry.model_validate(raw)

    async def put_entry(
        self,
        fingerprint: str,
        payload: Any,
        *,
        max_snapshot_count: int | None = 0,
    ) -> CacheEntry:
        """Write *payload* as the current entry for *fingerprint*.

        The previous entry, if any, is archived first. ``max_snapshot_count``
        bounds the archive: ``0`` keeps nothing, ``None`` keeps everything,
        otherwise the oldest snapshots are evicted until the bound holds.
        """
        async with self._exclusive(fingerprint):
            previous = await self.get_entry(fingerprint)
            if previous is not None and max_snapshot_count != 0:
                await self._archive(previous, max_snapshot_count)

            entry = CacheEntry(fingerprint=fingerprint, timestamp=self._clock(), payload=payload)
            await self._data.put(fingerprint, _row(entry))
            return entry

    async def _archive(self, entry: CacheEntry, max_snapshot_count: int | None) -> None:
        snapshot = Snapshot(
            id=uuid.uuid4().hex,
            fingerprint=entry.fingerprint,
            timestamp=entry.timestamp,
            payload=entry.payload,
            archived_at=self._clock(),
        )
        await self._snapshots.put(snapshot.id, _row(snapshot))
        if max_snapshot_count is None:
            return

        snapshots = await self.snapshots(entry.fingerprint)
        overflow = len(snapshots) - max_snapshot_count
        for oldest in snapshots[: max(overflow, 0)]:
            _logger.debug("Evicting snapshot %s of %s", oldest.id, oldest.fingerprint)
            await self._snapshots.delete(oldest.id)

    async def snapshots(self, fingerprint: str) -> list[Snapshot]:
        """Archived entries for *fingerprint*, oldest first."""
        rows = await self._snapshots.query(SNAPSHOT_INDEX, fingerprint)
        return [Snapshot.model_validate(row) for row in rows]

    async def clear(self, fingerprint: str) -> None:
        """Drop the current entry and every snapshot of *fingerprint*."""
        async with self._exclusive(fingerprint):
            await self._data.delete(fingerprint)
            for snapshot in await self.snapshots(fingerprint):
                await self._snapshots.delete(snapshot.id)

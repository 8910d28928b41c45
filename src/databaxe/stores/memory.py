"""In-memory store implementation."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any


class MemoryStore:
    """Dict-backed :class:`~databaxe.stores.base.Store`.

    Secondary indexes are maintained for the field names given in
    *indexes*; querying any other field raises ``KeyError``.
    Values are deep-copied on the way in and out so callers can never
    mutate stored state in place.
    """

    def __init__(self, indexes: Iterable[str] = ()) -> None:
        self._rows: dict[str, dict[str, Any]] = {}
        self._indexes: dict[str, dict[Any, list[str]]] = {name: {} for name in indexes}

    def __len__(self) -> int:
        return len(self._rows)

    def _unindex(self, key: str, row: dict[str, Any]) -> None:
        for name, index in self._indexes.items():
            keys = index.get(row.get(name))
            if keys is None:
                continue
            keys.remove(key)
            if not keys:
                del index[row.get(name)]

    async def get(self, key: str) -> dict[str, Any] | None:
        row = self._rows.get(key)
        return copy.deepcopy(row) if row is not None else None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        existing = self._rows.pop(key, None)
        if existing is not None:
            self._unindex(key, existing)
        row = copy.deepcopy(value)
        self._rows[key] = row
        for name, index in self._indexes.items():
            index.setdefault(row.get(name), []).append(key)

    async def delete(self, key: str) -> None:
        row = self._rows.pop(key, None)
        if row is not None:
            self._unindex(key, row)

    async def query(self, index_name: str, value: Any) -> list[dict[str, Any]]:
        index = self._indexes.get(index_name)
        if index is None:
            raise KeyError(f"no index named {index_name!r}")
        return [copy.deepcopy(self._rows[key]) for key in index.get(value, [])]

    async def clear(self) -> None:
        self._rows.clear()
        for index in self._indexes.values():
            index.clear()

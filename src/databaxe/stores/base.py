"""Structural key/value store interface."""

from __future__ import annotations

from typing import Any, Protocol


class Store(Protocol):
    """Async key/value table with secondary-index lookups.

    Values are plain dicts. ``query`` returns every value whose
    ``index_name`` field equals *value*, in insertion order.
    """

    async def get(self, key: str) -> dict[str, Any] | None:
        ...

    async def put(self, key: str, value: dict[str, Any]) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def query(self, index_name: str, value: Any) -> list[dict[str, Any]]:
        ...

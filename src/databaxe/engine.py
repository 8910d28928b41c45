"""Process-wide coordination state shared between instances.

Instances created against the same :class:`Engine` share endpoints,
in-flight reads, pending write batches and the cache. Instances on
different engines are fully isolated.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from databaxe.cache import CacheStore
from databaxe.exceptions import DataBaxeError
from databaxe.registry import SourceRegistry
from databaxe.stores.base import Store

if TYPE_CHECKING:
    from databaxe._client.writes import Transaction

_logger = logging.getLogger(__name__)


class Engine:
    """Owner of the shared endpoint, in-flight and transaction maps."""

    def __init__(
        self,
        *,
        data_store: Store | None = None,
        snapshot_store: Store | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = SourceRegistry()
        self.cache = CacheStore(data_store, snapshot_store, clock=clock)
        self.in_flight: dict[str, asyncio.Task[Any]] = {}
        self.transactions: dict[str, Transaction] = {}

    @property
    def clock(self) -> Callable[[], float]:
        return self.cache.clock

    def close(self) -> None:
        """Fail write batches still waiting for their window; outstanding fetches run to completion."""
        for transaction in self.transactions.values():
            transaction.abort(DataBaxeError("engine closed before the batch was sent"))
        self.transactions.clear()


_default_engine: Engine | None = None


def get_default_engine() -> Engine:
    """Return the lazily created process-wide engine."""
    global _default_engine
    if _default_engine is None:
        _default_engine = Engine()
        _logger.debug("Created default engine")
    return _default_engine


def reset_default_engine() -> None:
    """Drop the process-wide engine; the next instance builds a fresh one."""
    global _default_engine
    if _default_engine is not None:
        _default_engine.close()
    _default_engine = None

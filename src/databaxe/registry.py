"""Shared endpoints and their subscriber lists.

A :class:`SharedEndpoint` exists once per distinct ``{url, options}``
registration within an :class:`~databaxe.engine.Engine`. Every instance
registering the same endpoint sees the same subscriber list, which is how
separate instances observe each other's writes.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from databaxe._constants import DEFAULT_PRIORITY

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Subscriber:
    """A callback registered on a shared endpoint by one instance."""

    owner_id: str
    callback: Callable[..., Any]
    priority: int = DEFAULT_PRIORITY


def _larger_bound(current: int | None, incoming: int | None) -> int | None:
    # None means unbounded, which always wins.
    if current is None or incoming is None:
        return None
    return max(current, incoming)


@dataclass
class SharedEndpoint:
    """Process-wide state of one endpoint."""

    fingerprint: str
    url: str
    options: dict[str, Any] = field(default_factory=dict)
    max_snapshot_count: int | None = 0
    subscribers: list[Subscriber] = field(default_factory=list)

    def add(self, subscriber: Subscriber) -> None:
        """Append *subscriber*, keeping descending priority order.

        ``sorted`` is stable, so equal priorities keep insertion order.
        """
        self.subscribers.append(subscriber)
        self.subscribers = sorted(self.subscribers, key=lambda s: -s.priority)

    def remove(self, owner_id: str, callback: Callable[..., Any] | None = None) -> int:
        """Remove *owner_id*'s subscribers matching *callback* (all of them when omitted)."""
        before = len(self.subscribers)
        self.subscribers = [
            s
            for s in self.subscribers
            if not (s.owner_id == owner_id and (callback is None or s.callback == callback))
        ]
        return before - len(self.subscribers)

    def snapshot(self) -> tuple[Subscriber, ...]:
        """Subscribers in dispatch order, safe to iterate while the list changes."""
        return tuple(self.subscribers)

    def owned_by(self, owner_id: str) -> list[Subscriber]:
        return [s for s in self.subscribers if s.owner_id == owner_id]


class SourceRegistry:
    """Map of fingerprint to :class:`SharedEndpoint`.

    Endpoints are created lazily and never removed for the registry's
    lifetime; only subscriptions come and go.
    """

    def __init__(self) -> None:
        self._endpoints: dict[str, SharedEndpoint] = {}

    def __len__(self) -> int:
        return len(self._endpoints)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._endpoints

    def get(self, fingerprint: str) -> SharedEndpoint | None:
        return self._endpoints.get(fingerprint)

    def ensure(
        self,
        fingerprint: str,
        *,
        url: str,
        options: Mapping[str, Any],
        max_snapshot_count: int | None = 0,
    ) -> SharedEndpoint:
        """Return the endpoint for *fingerprint*, creating it on first use."""
        endpoint = self._endpoints.get(fingerprint)
        if endpoint is None:
            endpoint = SharedEndpoint(
                fingerprint=fingerprint,
                url=url,
                options=copy.deepcopy(dict(options)),
                max_snapshot_count=max_snapshot_count,
            )
            self._endpoints[fingerprint] = endpoint
            _logger.debug("Created shared endpoint %s for %s", fingerprint, url)
        else:
            endpoint.max_snapshot_count = _larger_bound(endpoint.max_snapshot_count, max_snapshot_count)
        return endpoint

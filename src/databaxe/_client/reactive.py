"""Dependency tracking for :meth:`databaxe.client.DataBaxe.autorun`.

While a tracked function runs, the ``(instance, function)`` frame lives in
a :class:`contextvars.ContextVar`. Every ``get`` issued from that context
records a :class:`Dependency` and subscribes a callback that re-runs the
function when the matching request is updated. Tasks spawned from a
tracked function inherit the frame; unrelated tasks never see it.
"""

from __future__ import annotations

import contextvars
import copy
import inspect
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from databaxe.models.cache import CacheEntry

if TYPE_CHECKING:
    from databaxe.client import DataBaxe

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Frame:
    owner_id: str
    target: Callable[..., Any]


_current_frame: contextvars.ContextVar[_Frame | None] = contextvars.ContextVar("databaxe_tracking_frame", default=None)


@dataclass(slots=True)
class Dependency:
    """A request read by a tracked function."""

    owner_id: str
    data_source_id: str
    params: dict[str, Any]
    options: dict[str, Any]
    target: Callable[..., Any]
    callback: Callable[..., Any] | None = None

    def matches(
        self,
        data_source_id: str,
        params: Mapping[str, Any],
        options: Mapping[str, Any],
        target: Callable[..., Any],
    ) -> bool:
        return (
            self.data_source_id == data_source_id
            and self.target == target
            and self.params == params
            and self.options == options
        )


@contextmanager
def untracked() -> Iterator[None]:
    """Suspend tracking for the duration of the block."""
    token = _current_frame.set(None)
    try:
        yield
    finally:
        _current_frame.reset(token)


def tracking_target(client: DataBaxe) -> Callable[..., Any] | None:
    """The function currently tracked on behalf of *client*, if any."""
    frame = _current_frame.get()
    if frame is None or frame.owner_id != client.id:
        return None
    return frame.target


def track(
    client: DataBaxe,
    data_source_id: str,
    params: Mapping[str, Any],
    options: Mapping[str, Any],
) -> Dependency | None:
    """Record a dependency of the tracked function, at most once per request."""
    target = tracking_target(client)
    if target is None:
        return None

    for existing in client._deps:
        if existing.matches(data_source_id, params, options, target):
            return None

    dep = Dependency(
        owner_id=client.id,
        data_source_id=data_source_id,
        params=copy.deepcopy(dict(params)),
        options=copy.deepcopy(dict(options)),
        target=target,
    )

    async def _on_change(_entry: CacheEntry, changed_params: Mapping[str, Any], changed_options: Mapping[str, Any]) -> None:
        if dict(changed_params) == dep.params and dict(changed_options) == dep.options:
            _logger.debug("Re-running %r after %s changed", dep.target, dep.data_source_id)
            await run(client, dep.target)

    dep.callback = _on_change
    client._deps.append(dep)
    client.subscribe(data_source_id, _on_change)
    return dep


async def run(client: DataBaxe, target: Callable[..., Any]) -> Any:
    """Invoke *target* with tracking active for *client*."""
    token = _current_frame.set(_Frame(owner_id=client.id, target=target))
    try:
        result = target()
        if inspect.isawaitable(result):
            result = await result
        return result
    finally:
        _current_frame.reset(token)


def as_functions(funcs: Callable[..., Any] | Iterable[Callable[..., Any]]) -> list[Callable[..., Any]]:
    if callable(funcs):
        return [funcs]
    targets = list(funcs)
    for fn in targets:
        if not callable(fn):
            raise TypeError(f"expected a callable, got {type(fn).__name__}")
    return targets


async def autorun(client: DataBaxe, funcs: Callable[..., Any] | Iterable[Callable[..., Any]]) -> None:
    for fn in as_functions(funcs):
        await run(client, fn)


def autofree(client: DataBaxe, funcs: Callable[..., Any] | Iterable[Callable[..., Any]]) -> int:
    """Drop every dependency of *funcs* and unsubscribe their callbacks.

    Returns the number of dependencies released.
    """
    released = 0
    for fn in as_functions(funcs):
        for dep in [d for d in client._deps if d.target == fn]:
            if dep.callback is not None and dep.data_source_id in client._data_sources:
                client.unsubscribe(dep.data_source_id, dep.callback)
            released += 1
        client._deps = [d for d in client._deps if d.target != fn]
    return released

"""Internal read operations for :class:`databaxe.client.DataBaxe`.

These functions keep `client.py` small without changing the public API.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from databaxe._client._common import apply_transforms, build_request, call_transport, publish
from databaxe._client.reactive import track
from databaxe._constants import READ_METHODS
from databaxe._hashing import fingerprint
from databaxe.exceptions import InvalidMethodError, TransportFailureError
from databaxe.models.cache import CacheEntry, Snapshot
from databaxe.models.source import DataSource

if TYPE_CHECKING:
    from databaxe.client import DataBaxe

_logger = logging.getLogger(__name__)


def request_fingerprint(url: str, options: Mapping[str, Any]) -> str:
    return fingerprint({"url": url, "options": options})


def _read_request(
    source: DataSource,
    params: Mapping[str, Any],
    options: Mapping[str, Any],
) -> tuple[str, dict[str, Any]]:
    url, request_options = build_request(source, params, options)
    method = request_options["method"]
    if method not in READ_METHODS:
        raise InvalidMethodError(
            f"get() only issues read requests; data source {source.id!r} resolved to {method.upper()}",
            method=method,
        )
    return url, request_options


async def _fetch_and_publish(
    client: DataBaxe,
    source: DataSource,
    request_id: str,
    url: str,
    request_options: dict[str, Any],
    params: dict[str, Any],
    options: dict[str, Any],
) -> Any:
    in_flight = client.engine.in_flight
    try:
        response = await call_transport(client, url, request_options)
    finally:
        if in_flight.get(request_id) is asyncio.current_task():
            del in_flight[request_id]

    await publish(client, source, request_id, response.data, params, options)
    return response.data


async def fetch(
    client: DataBaxe,
    source: DataSource,
    request_id: str,
    url: str,
    request_options: dict[str, Any],
    params: dict[str, Any],
    options: dict[str, Any],
) -> Any:
    """Return the raw payload of a fresh request, sharing it with concurrent callers.

    At most one transport call per *request_id* is outstanding at any time;
    later callers await the same task. ``asyncio.shield`` keeps one caller's
    cancellation from cancelling the shared fetch.
    """
    in_flight = client.engine.in_flight
    task = in_flight.get(request_id)
    if task is None:
        task = asyncio.create_task(
            _fetch_and_publish(client, source, request_id, url, request_options, params, options)
        )
        in_flight[request_id] = task
    else:
        client._trace("joining in-flight request %s", request_id)
    return await asyncio.shield(task)


async def get(
    client: DataBaxe,
    *,
    data_source_id: str,
    params: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
    force: bool = False,
) -> Any:
    source = client._require_source(data_source_id)
    call_params = dict(params or {})
    call_options = dict(options or {})
    url, request_options = _read_request(source, call_params, call_options)

    track(client, data_source_id, call_params, call_options)

    request_id = request_fingerprint(url, request_options)
    args = (client, source, request_id, url, request_options, call_params, call_options)

    if force:
        payload = await fetch(*args)
        return await apply_transforms(source.transform, payload)

    entry = await client._get_data(request_id)
    if entry is None:
        payload = await fetch(*args)
    elif not entry.is_stale(client.engine.clock(), source.expire):
        payload = entry.payload
    else:
        try:
            payload = await fetch(*args)
        except TransportFailureError:
            _logger.warning(
                "Refreshing %s failed, serving cached value from %.0fs ago",
                url,
                entry.age(client.engine.clock()),
                exc_info=True,
            )
            payload = entry.payload

    return await apply_transforms(source.transform, payload)


async def dispatch(
    client: DataBaxe,
    *,
    data_source_id: str,
    data: Any,
    params: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
) -> CacheEntry:
    """Store *data* as if a fetch had returned it and notify subscribers."""
    source = client._require_source(data_source_id)
    call_params = dict(params or {})
    call_options = dict(options or {})
    url, request_options = build_request(source, call_params, call_options)
    request_id = request_fingerprint(url, request_options)
    return await publish(client, source, request_id, data, call_params, call_options)


async def history(
    client: DataBaxe,
    *,
    data_source_id: str,
    params: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
) -> list[Snapshot]:
    source = client._require_source(data_source_id)
    url, request_options = build_request(source, dict(params or {}), dict(options or {}))
    return await client.engine.cache.snapshots(request_fingerprint(url, request_options))

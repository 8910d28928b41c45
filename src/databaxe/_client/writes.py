"""Internal write operations for :class:`databaxe.client.DataBaxe`.

``save`` calls hitting the same endpoint within one debounce window are
coalesced into a single transport call carrying the deep merge of every
submitted payload.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from databaxe._client._common import build_request, call_transport
from databaxe._constants import BODYLESS_METHODS, DEFAULT_SAVE_METHOD, MIN_DEBOUNCE, MUTATING_METHODS, normalize_method
from databaxe._hashing import fingerprint
from databaxe._merge import deep_merge, merged
from databaxe.exceptions import InvalidMethodError
from databaxe.models.transport import TransportResponse

if TYPE_CHECKING:
    from databaxe.client import DataBaxe
    from databaxe.engine import Engine

_logger = logging.getLogger(__name__)


@dataclass
class Transaction:
    """One pending write batch.

    Lives from the first ``save`` of a window until the debounce timer
    fires; the ``processing`` task outlives it and performs the request.
    """

    fingerprint: str
    payload: dict[str, Any] = field(default_factory=dict)
    waiters: list[asyncio.Future[None]] = field(default_factory=list)
    timer: asyncio.TimerHandle | None = None
    processing: asyncio.Task[TransportResponse] | None = None

    def release(self) -> None:
        for waiter in self.waiters:
            if not waiter.done():
                waiter.set_result(None)

    def abort(self, exc: BaseException) -> None:
        """Fail the batch before its request was issued."""
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        for waiter in self.waiters:
            if not waiter.done():
                waiter.set_exception(exc)

    async def wait_released(self) -> None:
        """Return once every waiter, including late joiners, is resolved."""
        while True:
            pending = [w for w in self.waiters if not w.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        for waiter in self.waiters:
            exc = waiter.exception()
            if exc is not None:
                raise exc


def _release(engine: Engine, transaction: Transaction) -> None:
    """Debounce timer callback: close the window and let the request go out."""
    transaction.timer = None
    if engine.transactions.get(transaction.fingerprint) is transaction:
        del engine.transactions[transaction.fingerprint]
    transaction.release()


async def _commit(
    client: DataBaxe,
    transaction: Transaction,
    url: str,
    options: dict[str, Any],
) -> TransportResponse:
    await transaction.wait_released()
    request_options = dict(options)
    if request_options["method"] not in BODYLESS_METHODS:
        request_options["data"] = transaction.payload
    _logger.debug(
        "Committing batch %s with %d write(s)",
        transaction.fingerprint,
        len(transaction.waiters),
    )
    return await call_transport(client, url, request_options)


def _save_method(source_options: Mapping[str, Any], options: Mapping[str, Any]) -> str:
    # An explicit method on the call wins; otherwise a mutating method declared
    # on the data source; otherwise POST.
    if options.get("method"):
        return normalize_method(options["method"])
    declared = normalize_method(source_options.get("method"), DEFAULT_SAVE_METHOD)
    return declared if declared in MUTATING_METHODS else DEFAULT_SAVE_METHOD


async def save(
    client: DataBaxe,
    *,
    data_source_id: str,
    data: Mapping[str, Any] | None = None,
    params: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
) -> TransportResponse:
    source = client._require_source(data_source_id)
    call_options = dict(options or {})
    call_options["method"] = _save_method(source.options, call_options)
    url, request_options = build_request(source, dict(params or {}), call_options, default_method=DEFAULT_SAVE_METHOD)

    method = request_options["method"]
    if method not in MUTATING_METHODS:
        raise InvalidMethodError(
            f"save() only issues mutating requests; data source {source.id!r} resolved to {method.upper()}",
            method=method,
        )

    body = request_options.pop("data", None)
    payload: dict[str, Any] = {} if method in BODYLESS_METHODS else merged(body, data)

    # The body is excluded so every write to the endpoint joins one batch.
    batch_id = fingerprint({"url": url, "options": request_options})
    engine = client.engine
    transaction = engine.transactions.get(batch_id)
    if transaction is None:
        transaction = Transaction(fingerprint=batch_id)
        engine.transactions[batch_id] = transaction
    deep_merge(transaction.payload, payload)

    loop = asyncio.get_running_loop()
    transaction.waiters.append(loop.create_future())
    if transaction.timer is not None:
        transaction.timer.cancel()
    transaction.timer = loop.call_later(max(source.debounce, MIN_DEBOUNCE), _release, engine, transaction)

    if transaction.processing is None:
        transaction.processing = asyncio.create_task(_commit(client, transaction, url, request_options))
    else:
        client._trace("joining pending batch %s", batch_id)
    return await asyncio.shield(transaction.processing)

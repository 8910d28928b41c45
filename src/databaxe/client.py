"""High-level async data access instance."""

from __future__ import annotations

import inspect
import logging
import secrets
import time
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any

import aiohttp

from databaxe._client import reactive as _reactive
from databaxe._client import reads as _reads
from databaxe._client import writes as _writes
from databaxe._constants import DEFAULT_PRIORITY
from databaxe._hashing import fingerprint
from databaxe._merge import merged
from databaxe._transport import AiohttpTransport, Transport
from databaxe._url import resolve_url
from databaxe.config import DataBaxeConfig
from databaxe.engine import Engine, get_default_engine
from databaxe.exceptions import DataBaxeError, DuplicateRegistrationError, UnknownDataSourceError
from databaxe.models.cache import CacheEntry, Snapshot
from databaxe.models.source import DataSource, DataSourceSpec
from databaxe.models.transport import TransportResponse
from databaxe.registry import SharedEndpoint, Subscriber

_logger = logging.getLogger(__name__)


def _now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class DataBaxe:
    """Cached, deduplicated, reactive access to registered data sources.

    Usage::

        async with DataBaxe(DataBaxeConfig(base_url="https://api.example.com", expire=30)) as db:
            db.register({"id": "user", "url": "/users/{id}"})
            user = await db.get("user", {"id": 1})

    Instances sharing an :class:`Engine` (the process default unless one is
    passed) share endpoints, the cache, in-flight reads and write batches.
    """

    def __init__(
        self,
        config: DataBaxeConfig | None = None,
        *,
        engine: Engine | None = None,
        transport: Transport | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config if config is not None else DataBaxeConfig()
        self._engine = engine if engine is not None else get_default_engine()
        self._external_session = session is not None
        self._http_session = session
        self._owns_transport = transport is None
        self._transport: Transport | None = transport
        if transport is None and session is not None:
            self._transport = AiohttpTransport(session)
        prefix = self._config.id or f"databaxe.{_now_ms()}"
        self.id = f"{prefix}.{secrets.randbelow(10000)}"
        self._data_sources: dict[str, DataSource] = {}
        self._deps: list[_reactive.Dependency] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DataBaxe:
        if self._transport is None:
            self._http_session = aiohttp.ClientSession()
            self._transport = AiohttpTransport(self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.destroy()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if self._owns_transport:
            self._transport = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> DataBaxeConfig:
        return self._config

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def data_sources(self) -> Mapping[str, DataSource]:
        """Read-only view of this instance's registered data sources."""
        return MappingProxyType(self._data_sources)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise DataBaxeError("No transport configured. Pass transport= or use 'async with DataBaxe(...) as db:'")
        return self._transport

    def _require_source(self, data_source_id: str) -> DataSource:
        source = self._data_sources.get(data_source_id)
        if source is None:
            raise UnknownDataSourceError(data_source_id)
        return source

    def _require_endpoint(self, source: DataSource) -> SharedEndpoint:
        endpoint = self._engine.registry.get(source.fingerprint)
        if endpoint is None:
            raise DataBaxeError(f"data source {source.id!r} is registered on a different engine")
        return endpoint

    def _call_hook(self, name: str, *args: Any) -> None:
        """Invoke a configured lifecycle hook; failures are logged, never raised."""
        hook: Callable[..., Any] | None = getattr(self._config, name)
        if hook is None:
            return
        try:
            result = hook(*args)
            if inspect.iscoroutine(result):
                result.close()
                _logger.warning("%s hook returned a coroutine; hooks must be synchronous", name)
        except Exception:
            _logger.debug("%s hook failed", name, exc_info=True)

    def _trace(self, message: str, *args: Any) -> None:
        if self._config.debug:
            _logger.debug("[%s] " + message, self.id, *args)

    async def _get_data(self, request_id: str) -> CacheEntry | None:
        return await self._engine.cache.get_entry(request_id)

    async def _put_data(self, request_id: str, payload: Any, *, max_snapshot_count: int | None = 0) -> CacheEntry:
        return await self._engine.cache.put_entry(request_id, payload, max_snapshot_count=max_snapshot_count)

    # ------------------------------------------------------------------
    # Registration and subscriptions
    # ------------------------------------------------------------------

    def register(
        self,
        specs: DataSourceSpec | Mapping[str, Any] | Iterable[DataSourceSpec | Mapping[str, Any]],
    ) -> list[DataSource]:
        """Register one data source or a list of them.

        Raises :class:`DuplicateRegistrationError` when an id is already
        registered on this instance; nothing from the call is registered
        in that case.
        """
        if isinstance(specs, (DataSourceSpec, Mapping)):
            specs = [specs]
        parsed = [s if isinstance(s, DataSourceSpec) else DataSourceSpec.model_validate(s) for s in specs]

        seen: set[str] = set()
        for spec in parsed:
            if spec.id in self._data_sources or spec.id in seen:
                raise DuplicateRegistrationError(spec.id)
            seen.add(spec.id)

        registered: list[DataSource] = []
        for spec in parsed:
            options = merged(self._config.default_options, spec.options)
            base_url = options.pop("base_url", None)
            url = resolve_url(spec.url, base_url=base_url, fallback_base_url=self._config.base_url)
            endpoint_id = fingerprint({"url": url, "options": options})
            self._engine.registry.ensure(
                endpoint_id,
                url=url,
                options=options,
                max_snapshot_count=self._config.max_snapshot_count,
            )
            source = DataSource(
                id=spec.id,
                url=url,
                options=options,
                fingerprint=endpoint_id,
                transform=spec.transform,
                expire=spec.expire if spec.expire is not None else self._config.expire,
                debounce=spec.debounce if spec.debounce is not None else self._config.debounce,
            )
            self._data_sources[spec.id] = source
            registered.append(source)
            _logger.debug("Registered data source %s -> %s", spec.id, url)
            self._call_hook("on_register", source)
        return registered

    def subscribe(self, data_source_id: str, callback: Callable[..., Any], priority: int = DEFAULT_PRIORITY) -> None:
        """Call ``callback(entry, params, options)`` whenever the data source's endpoint is updated.

        Higher priorities run first. Non-callable callbacks are ignored.
        """
        source = self._require_source(data_source_id)
        if not callable(callback):
            return
        endpoint = self._require_endpoint(source)
        endpoint.add(Subscriber(owner_id=self.id, callback=callback, priority=priority))

    def unsubscribe(self, data_source_id: str, callback: Callable[..., Any] | None = None) -> None:
        """Remove this instance's *callback* (or all its callbacks) from the data source's endpoint."""
        source = self._require_source(data_source_id)
        self._require_endpoint(source).remove(self.id, callback)

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    async def get(
        self,
        data_source_id: str,
        params: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        force: bool = False,
    ) -> Any:
        """Return the (transformed) data of a read request.

        Served from the cache while fresh; otherwise fetched, with concurrent
        identical requests sharing one transport call. When a refresh of a
        stale entry fails, the stale value is returned instead of raising.
        """
        return await _reads.get(self, data_source_id=data_source_id, params=params, options=options, force=force)

    async def dispatch(
        self,
        data_source_id: str,
        data: Any,
        params: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> CacheEntry:
        """Store *data* for the request and notify subscribers, without a transport call."""
        return await _reads.dispatch(self, data_source_id=data_source_id, data=data, params=params, options=options)

    async def save(
        self,
        data_source_id: str,
        data: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> TransportResponse:
        """Send a mutating request, batched with other saves to the same endpoint.

        Saves within the debounce window are merged into one request; every
        caller of the batch receives its response or its error.
        """
        return await _writes.save(self, data_source_id=data_source_id, data=data, params=params, options=options)

    async def history(
        self,
        data_source_id: str,
        params: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> list[Snapshot]:
        """Previous values of a request, oldest first."""
        return await _reads.history(self, data_source_id=data_source_id, params=params, options=options)

    # ------------------------------------------------------------------
    # Reactivity
    # ------------------------------------------------------------------

    async def autorun(self, funcs: Callable[..., Any] | Iterable[Callable[..., Any]]) -> None:
        """Run each function and re-run it whenever data it read through ``get`` changes."""
        await _reactive.autorun(self, funcs)

    def autofree(self, funcs: Callable[..., Any] | Iterable[Callable[..., Any]]) -> None:
        """Stop re-running the given functions."""
        released = _reactive.autofree(self, funcs)
        _logger.debug("[%s] released %d dependencies", self.id, released)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def destroy(self) -> None:
        """Drop every subscription, dependency and data source of this instance.

        Shared endpoints and cached data stay with the engine.
        """
        for data_source_id in list(self._data_sources):
            self.unsubscribe(data_source_id)
        self._deps = []
        self._data_sources = {}
        _logger.debug("[%s] destroyed", self.id)

    def __repr__(self) -> str:
        return f"<DataBaxe id={self.id!r} sources={sorted(self._data_sources)!r}>"

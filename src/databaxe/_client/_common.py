"""Shared helpers for the read and write paths.

This module centralizes the most repeated patterns:
- resolving a data source plus call arguments into a concrete request
- calling the transport with hooks, tracing and error normalisation
- writing a payload to the cache and notifying endpoint subscribers

It is internal to databaxe and may change at any time.
"""

from __future__ import annotations

import copy
import inspect
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from databaxe._client.reactive import untracked
from databaxe._constants import BODYLESS_METHODS, DEFAULT_METHOD, normalize_method
from databaxe._merge import merged
from databaxe._redact import redact_for_log
from databaxe._url import interpolate, resolve_url
from databaxe.exceptions import TransportFailureError
from databaxe.models.cache import CacheEntry
from databaxe.models.source import DataSource, Transform
from databaxe.models.transport import TransportResponse
from databaxe.registry import SharedEndpoint

if TYPE_CHECKING:
    from databaxe.client import DataBaxe

_logger = logging.getLogger(__name__)


def build_request(
    source: DataSource,
    params: Mapping[str, Any],
    options: Mapping[str, Any],
    *,
    default_method: str = DEFAULT_METHOD,
) -> tuple[str, dict[str, Any]]:
    """Resolve the URL and options of one call against *source*.

    Caller options are deep-merged over the data source defaults; the
    method is normalised to lowercase and bodyless verbs lose their body.
    """
    request_options = merged(source.options, options)
    base_url = request_options.pop("base_url", None)
    url = resolve_url(interpolate(source.url, params), base_url=base_url)

    method = normalize_method(request_options.get("method"), default_method)
    request_options["method"] = method
    if method in BODYLESS_METHODS:
        request_options.pop("data", None)
    return url, request_options


async def call_transport(client: DataBaxe, url: str, options: Mapping[str, Any]) -> TransportResponse:
    """Issue one transport call and normalise its outcome.

    Whatever the transport raises is re-raised as
    :class:`TransportFailureError` with the original exception chained.
    """
    transport = client._require_transport()
    client._call_hook("on_request", url, options)
    client._trace("request %s %s", url, redact_for_log(options))

    try:
        raw = await transport(url, copy.deepcopy(dict(options)))
    except TransportFailureError:
        raise
    except Exception as exc:
        raise TransportFailureError(f"Request to {url} failed: {exc}", url=url, cause=exc) from exc

    response = TransportResponse.coerce(raw)
    client._call_hook("on_response", url, options, response)
    client._trace("response %s status=%s data=%s", url, response.status, redact_for_log(response.data))
    return response


async def apply_transforms(transforms: Sequence[Transform], payload: Any) -> Any:
    """Run *payload* through *transforms* in order; no transforms is identity.

    Transforms get a private copy since a fetched payload is shared by every
    caller that joined the request.
    """
    if not transforms:
        return payload
    result = copy.deepcopy(payload)
    for transform in transforms:
        result = transform(result)
        if inspect.isawaitable(result):
            result = await result
    return result


async def notify(
    endpoint: SharedEndpoint,
    entry: CacheEntry,
    params: Mapping[str, Any],
    options: Mapping[str, Any],
) -> None:
    """Run the endpoint's subscribers one after another, highest priority first.

    Subscribers removed while the dispatch is running are skipped. A failing
    subscriber is logged and does not stop the ones after it.
    """
    with untracked():
        for subscriber in endpoint.snapshot():
            if not any(s is subscriber for s in endpoint.subscribers):
                continue
            try:
                result = subscriber.callback(entry, params, options)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _logger.warning(
                    "Subscriber %r of endpoint %s failed",
                    subscriber.callback,
                    endpoint.url,
                    exc_info=True,
                )


async def publish(
    client: DataBaxe,
    source: DataSource,
    fingerprint: str,
    payload: Any,
    params: Mapping[str, Any],
    options: Mapping[str, Any],
) -> CacheEntry:
    """Write *payload* as the current value of *fingerprint* and notify subscribers."""
    endpoint = client._require_endpoint(source)
    entry = await client._put_data(fingerprint, payload, max_snapshot_count=endpoint.max_snapshot_count)
    client._call_hook("on_update", source.id, entry)
    await notify(endpoint, entry, params, options)
    return entry

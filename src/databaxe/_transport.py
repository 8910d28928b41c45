"""HTTP transport interface and its aiohttp implementation."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from databaxe._constants import DEFAULT_METHOD, normalize_method
from databaxe.exceptions import TransportFailureError
from databaxe.models.transport import TransportResponse

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the read and write paths.

    Any async callable ``(url, options)`` returning a
    :class:`TransportResponse` (or something :meth:`TransportResponse.coerce`
    accepts) qualifies, which keeps test doubles trivial.
    """

    async def __call__(self, url: str, options: Mapping[str, Any]) -> Any:
        ...


def _basic_auth(auth: Any) -> aiohttp.BasicAuth | None:
    if auth is None:
        return None
    if isinstance(auth, aiohttp.BasicAuth):
        return auth
    if isinstance(auth, Mapping):
        return aiohttp.BasicAuth(str(auth.get("username", "")), str(auth.get("password", "")))
    if isinstance(auth, (list, tuple)) and len(auth) == 2:
        return aiohttp.BasicAuth(str(auth[0]), str(auth[1]))
    raise TypeError("auth must be a (username, password) pair or a mapping")


def _query_params(params: Any) -> dict[str, str] | None:
    if not params:
        return None
    # aiohttp rejects bools and None in query strings.
    return {str(k): json.dumps(v) if isinstance(v, bool) else str(v) for k, v in params.items() if v is not None}


class AiohttpTransport:
    """Transport issuing requests through an :class:`aiohttp.ClientSession`."""

    def __init__(self, http_session: aiohttp.ClientSession) -> None:
        self._http = http_session

    async def __call__(self, url: str, options: Mapping[str, Any]) -> TransportResponse:
        method = normalize_method(options.get("method"), DEFAULT_METHOD).upper()
        headers = {str(k): str(v) for k, v in (options.get("headers") or {}).items()}
        kwargs: dict[str, Any] = {
            "headers": headers,
            "params": _query_params(options.get("params")),
            "auth": _basic_auth(options.get("auth")),
        }
        if options.get("data") is not None:
            kwargs["json"] = options["data"]
        timeout = options.get("timeout")
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=float(timeout))

        _logger.debug("%s %s", method, url)

        try:
            async with self._http.request(method, url, **kwargs) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    raise TransportFailureError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        url=url,
                        status_code=resp.status,
                    )
                content_type = resp.headers.get("Content-Type", "")
                response_headers = {k: v for k, v in resp.headers.items()}
                status = resp.status
        except TransportFailureError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransportFailureError(
                f"Request to {url} failed: {exc}",
                url=url,
                cause=exc,
            ) from exc

        data: Any = text
        if "json" in content_type and text:
            try:
                data = json.loads(text)
            except json.JSONDecodeError as exc:
                raise TransportFailureError(
                    f"Invalid JSON from {url}: {text[:200]}",
                    url=url,
                    status_code=status,
                    cause=exc,
                ) from exc

        return TransportResponse(data=data, status=status, headers=response_headers, url=url)

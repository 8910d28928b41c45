"""Helpers for safe debug logging.

Request options routinely carry credentials: basic auth pairs, bearer or
API-key headers, cookies, tokens in query params and user info embedded in
URLs. This module hides them before options or payloads are traced at
DEBUG level.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

REDACTED = "<redacted>"

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "passwd",
        "apikey",
    }
)
#: Header and parameter names ending like this are secrets (``X-Api-Key``, ``refresh_token``, ...).
_SENSITIVE_SUFFIXES: tuple[str, ...] = ("token", "secret", "password", "api-key", "api_key")
#: Header names starting like this carry credentials (``X-Auth-User``, ``X-Amz-Security-Token``, ...).
_SENSITIVE_PREFIXES: tuple[str, ...] = ("x-auth", "x-amz-security", "x-csrf")
_LOGIN_KEYS: frozenset[str] = frozenset({"login", "username", "user"})

_URL_USERINFO = re.compile(r"(?<=://)[^/@\s]+@")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return (
        lowered in _SENSITIVE_KEYS
        or lowered.endswith(_SENSITIVE_SUFFIXES)
        or lowered.startswith(_SENSITIVE_PREFIXES)
    )


def _redact_auth(auth: Any) -> Any:
    """Keep the login of basic-auth credentials and hide the password."""
    login = getattr(auth, "login", None)
    if login is not None:
        # aiohttp.BasicAuth
        return {"login": login, "password": REDACTED}
    if isinstance(auth, Mapping):
        return {str(k): v if str(k).lower() in _LOGIN_KEYS else REDACTED for k, v in auth.items()}
    if isinstance(auth, (list, tuple)) and len(auth) == 2:
        return [auth[0], REDACTED]
    return REDACTED


def _redact_string(value: str, max_string: int) -> str:
    value = _URL_USERINFO.sub(REDACTED + "@", value)
    if len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of request options (or a payload) for debug logs.

    ``auth`` keeps its login only. Credential headers and params are replaced
    by ``<redacted>``, matched by exact name, suffix or prefix. User info in
    URLs is removed and long strings are truncated.
    """
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, str):
        return _redact_string(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() == "auth":
                redacted[key] = _redact_auth(v)
            elif _is_sensitive(key):
                redacted[key] = REDACTED
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)

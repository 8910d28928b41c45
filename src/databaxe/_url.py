"""URL template helpers."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_PLACEHOLDER = re.compile(r"\{\s*([A-Za-z_][A-Za-z0-9_.]*)\s*\}")


def _lookup(params: Mapping[str, Any], name: str) -> Any:
    """Resolve ``a.b.c`` style names against nested mappings."""
    current: Any = params
    for part in name.split("."):
        if not isinstance(current, Mapping) or part not in current:
            raise KeyError(name)
        current = current[part]
    return current


def interpolate(template: str, params: Mapping[str, Any] | None = None) -> str:
    """Replace ``{name}`` placeholders in *template* with values from *params*.

    Placeholders without a matching parameter are left untouched.
    """
    if not params:
        return template

    def _replace(match: re.Match[str]) -> str:
        try:
            value = _lookup(params, match.group(1))
        except KeyError:
            return match.group(0)
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_replace, template)


def is_absolute(url: str) -> bool:
    return url.startswith(("http://", "https://"))


def resolve_url(url: str, *, base_url: str | None = None, fallback_base_url: str | None = None) -> str:
    """Prefix *url* with the first available base URL unless it is absolute."""
    if is_absolute(url):
        return url
    base = base_url or fallback_base_url
    if not base:
        return url
    return base.rstrip("/") + "/" + url.lstrip("/")

"""Transport response record."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from databaxe.models._base import DataBaxeBaseModel


class TransportResponse(DataBaxeBaseModel):
    """What a transport returns for one request."""

    data: Any = None
    status: int | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    url: str = ""

    @classmethod
    def coerce(cls, value: Any) -> TransportResponse:
        """Accept a ``TransportResponse``, a mapping with ``data`` or any object with ``.data``."""
        if isinstance(value, TransportResponse):
            return value
        if isinstance(value, Mapping) and "data" in value:
            return cls(
                data=value["data"],
                status=value.get("status"),
                headers=dict(value.get("headers") or {}),
                url=str(value.get("url") or ""),
            )
        if hasattr(value, "data"):
            return cls(data=value.data, status=getattr(value, "status", None))
        raise TypeError(f"transport returned {type(value).__name__}, expected a response with 'data'")

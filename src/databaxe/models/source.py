"""Data source declarations."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import Field, field_validator, model_validator

from databaxe._constants import OPTION_KEYS
from databaxe.models._base import DataBaxeBaseModel

Transform = Callable[[Any], Any]


def _as_transforms(value: Any) -> Any:
    if value is None:
        return ()
    if callable(value):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return value


class DataSourceSpec(DataBaxeBaseModel):
    """What a caller hands to ``register``.

    ``transform`` may be a single callable or a sequence of callables
    applied in order; each may be sync or async.
    """

    id: str
    url: str
    options: dict[str, Any] = Field(default_factory=dict)
    transform: tuple[Transform, ...] = ()
    expire: float | None = Field(default=None, ge=0)
    debounce: float | None = Field(default=None, ge=0)

    @field_validator("id", "url")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must be non-empty")
        return stripped

    @field_validator("transform", mode="before")
    @classmethod
    def _normalize_transform(cls, value: Any) -> Any:
        return _as_transforms(value)

    @field_validator("options")
    @classmethod
    def _known_options(cls, value: dict[str, Any]) -> dict[str, Any]:
        unknown = set(value) - OPTION_KEYS
        if unknown:
            raise ValueError(f"unknown request options: {sorted(unknown)}")
        return value


class DataSource(DataBaxeBaseModel):
    """A registered data source, owned by one instance."""

    id: str
    url: str
    options: dict[str, Any]
    fingerprint: str
    transform: tuple[Transform, ...] = ()
    expire: float = 0.0
    debounce: float = 0.0

    @model_validator(mode="after")
    def _check_durations(self) -> DataSource:
        if self.expire < 0 or self.debounce < 0:
            raise ValueError("expire and debounce must be >= 0")
        return self

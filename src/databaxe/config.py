"""Instance configuration for databaxe."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Mapping
from typing import Any

from databaxe.exceptions import DataBaxeConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_optional_int(value: str) -> int | None:
    normalized = value.strip().lower()
    if normalized in {"", "none", "unbounded"}:
        return None
    return int(normalized)


@dataclasses.dataclass(frozen=True)
class DataBaxeConfig:
    """Instance configuration.

    Parameters
    ----------
    id : str or None
        Prefix of the instance id. Defaults to ``"databaxe.<ms>"``; a random
        suffix is always appended.
    debug : bool
        Trace every request/response (options redacted) at DEBUG level.
    expire : float
        Default cache time-to-live in seconds. ``0`` means cached entries
        are never considered stale.
    debounce : float
        Default ``save`` batching window in seconds. Never shorter than
        10 ms.
    base_url : str
        Prefix for relative data source URLs without their own
        ``base_url`` option.
    default_options : Mapping
        Request options merged under every registered data source's options.
    max_snapshot_count : int or None
        How many previous cache values to keep per request. ``0`` disables
        snapshots, ``None`` keeps all of them.
    on_register : callable or None
        ``on_register(data_source)`` after each registration.
    on_request : callable or None
        ``on_request(url, options)`` right before a transport call.
    on_response : callable or None
        ``on_response(url, options, response)`` after a successful transport call.
    on_update : callable or None
        ``on_update(data_source_id, entry)`` after a cache write, before
        subscribers are notified.
    """

    id: str | None = None
    debug: bool = False
    expire: float = 0.0
    debounce: float = 0.01
    base_url: str = ""
    default_options: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    max_snapshot_count: int | None = 0
    on_register: Callable[..., Any] | None = None
    on_request: Callable[..., Any] | None = None
    on_response: Callable[..., Any] | None = None
    on_update: Callable[..., Any] | None = None

    def __post_init__(self) -> None:
        if self.expire < 0:
            raise DataBaxeConfigError(f"expire must be >= 0, got {self.expire}")
        if self.debounce < 0:
            raise DataBaxeConfigError(f"debounce must be >= 0, got {self.debounce}")
        if self.max_snapshot_count is not None and self.max_snapshot_count < 0:
            raise DataBaxeConfigError(f"max_snapshot_count must be >= 0 or None, got {self.max_snapshot_count}")
        if not isinstance(self.default_options, Mapping):
            raise DataBaxeConfigError("default_options must be a mapping")
        for hook in ("on_register", "on_request", "on_response", "on_update"):
            value = getattr(self, hook)
            if value is not None and not callable(value):
                raise DataBaxeConfigError(f"{hook} must be callable")

    @classmethod
    def from_env(cls, **overrides: Any) -> DataBaxeConfig:
        """Create configuration from environment variables.

        Reads ``DATABAXE_ID``, ``DATABAXE_DEBUG``, ``DATABAXE_EXPIRE``,
        ``DATABAXE_DEBOUNCE``, ``DATABAXE_BASE_URL`` and
        ``DATABAXE_MAX_SNAPSHOT_COUNT``. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        DataBaxeConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "DATABAXE_ID": "id",
            "DATABAXE_BASE_URL": "base_url",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        if "debug" not in overrides:
            config_kwargs["debug"] = _env_bool(env.get("DATABAXE_DEBUG"), False)

        try:
            expire_env = env.get("DATABAXE_EXPIRE")
            if expire_env is not None and "expire" not in overrides:
                config_kwargs["expire"] = float(expire_env)

            debounce_env = env.get("DATABAXE_DEBOUNCE")
            if debounce_env is not None and "debounce" not in overrides:
                config_kwargs["debounce"] = float(debounce_env)

            snapshots_env = env.get("DATABAXE_MAX_SNAPSHOT_COUNT")
            if snapshots_env is not None and "max_snapshot_count" not in overrides:
                config_kwargs["max_snapshot_count"] = _env_optional_int(snapshots_env)
        except ValueError as exc:
            raise DataBaxeConfigError(f"Invalid numeric DATABAXE_* variable: {exc}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

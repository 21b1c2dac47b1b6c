"""Core configuration for dreadmarch."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from dreadmarch.exceptions import DreadmarchConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise DreadmarchConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class CoreConfig:
    """Dataset core configuration.

    Parameters
    ----------
    debug : bool
        Emit info/warning diagnostics at INFO/WARNING level instead of DEBUG.
    cache_threshold : int
        Number of systems at which cache keys switch from the full
        serialized dataset to a bounded fingerprint.
    cache_sample_size : int
        How many system ids (in iteration order) the fingerprint samples.
    worker_enabled : bool
        Allow async normalization to use a background process.  When
        ``False`` every async call runs synchronously.
    worker_timeout : float
        Seconds to wait for a background reply before falling back to
        synchronous normalization.
    notify_window : float
        Quiescence window in seconds used to batch state notifications.
    """

    debug: bool = False
    cache_threshold: int = 100
    cache_sample_size: int = 10
    worker_enabled: bool = True
    worker_timeout: float = 5.0
    notify_window: float = 0.010

    @classmethod
    def from_env(cls, **overrides: Any) -> CoreConfig:
        """Create configuration from ``DREADMARCH_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        if "debug" not in overrides:
            config_kwargs["debug"] = _env_bool(env.get("DREADMARCH_DEBUG"), False)
        if "worker_enabled" not in overrides:
            config_kwargs["worker_enabled"] = _env_bool(env.get("DREADMARCH_WORKER_ENABLED"), True)

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "DREADMARCH_CACHE_THRESHOLD": ("cache_threshold", int),
            "DREADMARCH_CACHE_SAMPLE_SIZE": ("cache_sample_size", int),
            "DREADMARCH_WORKER_TIMEOUT": ("worker_timeout", float),
            "DREADMARCH_NOTIFY_WINDOW": ("notify_window", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

from __future__ import annotations

import dataclasses

import pytest

from dreadmarch.config import CoreConfig
from dreadmarch.exceptions import DreadmarchConfigError

_ENV_KEYS = (
    "DREADMARCH_DEBUG",
    "DREADMARCH_CACHE_THRESHOLD",
    "DREADMARCH_CACHE_SAMPLE_SIZE",
    "DREADMARCH_WORKER_ENABLED",
    "DREADMARCH_WORKER_TIMEOUT",
    "DREADMARCH_NOTIFY_WINDOW",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = CoreConfig.from_env()

    assert config == CoreConfig()
    assert config.cache_threshold == 100
    assert config.cache_sample_size == 10
    assert config.worker_timeout == 5.0
    assert config.notify_window == 0.010
    assert config.worker_enabled is True
    assert config.debug is False


def test_env_values_are_parsed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DREADMARCH_DEBUG", "yes")
    monkeypatch.setenv("DREADMARCH_WORKER_ENABLED", "off")
    monkeypatch.setenv("DREADMARCH_CACHE_THRESHOLD", "250")
    monkeypatch.setenv("DREADMARCH_WORKER_TIMEOUT", "2.5")
    monkeypatch.setenv("DREADMARCH_NOTIFY_WINDOW", "0.05")

    config = CoreConfig.from_env()

    assert config.debug is True
    assert config.worker_enabled is False
    assert config.cache_threshold == 250
    assert config.worker_timeout == 2.5
    assert config.notify_window == 0.05


def test_unknown_bool_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DREADMARCH_WORKER_ENABLED", "maybe")

    assert CoreConfig.from_env().worker_enabled is True


def test_overrides_win_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DREADMARCH_CACHE_SAMPLE_SIZE", "3")
    monkeypatch.setenv("DREADMARCH_DEBUG", "1")

    config = CoreConfig.from_env(cache_sample_size=20, debug=False)

    assert config.cache_sample_size == 20
    assert config.debug is False


def test_invalid_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DREADMARCH_CACHE_THRESHOLD", "lots")

    with pytest.raises(DreadmarchConfigError, match="DREADMARCH_CACHE_THRESHOLD"):
        CoreConfig.from_env()


def test_config_is_frozen() -> None:
    with pytest.raises(dataclasses.FrozenInstanceError):
        CoreConfig().debug = True  # type: ignore[misc]

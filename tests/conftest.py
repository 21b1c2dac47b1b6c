"""Shared pytest fixtures for the dreadmarch test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import pytest

from dreadmarch.diagnostics import Diagnostics
from dreadmarch.state.timers import ManualTimer

T = TypeVar("T")


class RecordingDiagnostics(Diagnostics):
    """Diagnostics sink that remembers every message it was given."""

    def __init__(self) -> None:
        super().__init__()
        self.records: list[tuple[str, str]] = []

    def info(self, message: str, data: Any = None) -> None:
        self.records.append(("info", message))
        super().info(message, data)

    def warn(self, message: str, data: Any = None) -> None:
        self.records.append(("warn", message))
        super().warn(message, data)

    def error(self, message: str, data: Any = None) -> None:
        self.records.append(("error", message))
        super().error(message, data)

    def critical_with_fallback(
        self,
        message: str,
        error: BaseException | None,
        fallback: Callable[[], T],
    ) -> T | None:
        self.records.append(("critical", message))
        return super().critical_with_fallback(message, error, fallback)

    def messages(self, level: str) -> list[str]:
        return [message for recorded_level, message in self.records if recorded_level == level]


@pytest.fixture
def diagnostics() -> RecordingDiagnostics:
    return RecordingDiagnostics()


@pytest.fixture
def timer() -> ManualTimer:
    return ManualTimer()

"""Diagnostics sink used by the dataset core and the state container.

Components never log user-facing warnings directly; they receive a sink
at construction time.  :class:`Diagnostics` is the bundled implementation
backed by :mod:`logging`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")

_PREFIX = "[DREADMARCH]"


class DiagnosticsSink(Protocol):
    def info(self, message: str, data: Any = None) -> None: ...

    def warn(self, message: str, data: Any = None) -> None: ...

    def error(self, message: str, data: Any = None) -> None: ...

    def critical_with_fallback(
        self,
        message: str,
        error: BaseException | None,
        fallback: Callable[[], T],
    ) -> T | None: ...

    def validate(self, condition: bool, message: str) -> bool: ...


class Diagnostics:
    """Logging-backed diagnostics sink.

    ``info`` and ``warn`` are only promoted to INFO/WARNING when *debug* is
    enabled; otherwise they go out at DEBUG so a quiet host stays quiet.
    ``error`` and ``critical_with_fallback`` always log at ERROR/CRITICAL.
    """

    def __init__(self, logger: logging.Logger | None = None, *, debug: bool = False) -> None:
        self._logger = logger if logger is not None else logging.getLogger("dreadmarch")
        self._debug = debug

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _emit(self, level: int, label: str, message: str, data: Any) -> None:
        if data is None:
            self._logger.log(level, "%s %s %s", _PREFIX, label, message)
        else:
            self._logger.log(level, "%s %s %s %r", _PREFIX, label, message, data)

    def info(self, message: str, data: Any = None) -> None:
        self._emit(logging.INFO if self._debug else logging.DEBUG, "INFO", message, data)

    def warn(self, message: str, data: Any = None) -> None:
        self._emit(logging.WARNING if self._debug else logging.DEBUG, "WARN", message, data)

    def error(self, message: str, data: Any = None) -> None:
        self._emit(logging.ERROR, "ERROR", message, data)

    def critical_with_fallback(
        self,
        message: str,
        error: BaseException | None,
        fallback: Callable[[], T],
    ) -> T | None:
        """Log a critical failure and return ``fallback()``.

        A failure inside *fallback* is logged and swallowed; ``None`` is
        returned in that case.
        """
        self._logger.critical("%s CRITICAL %s", _PREFIX, message, exc_info=error)
        try:
            return fallback()
        except Exception:
            self._logger.critical("%s CRITICAL Fallback failed", _PREFIX, exc_info=True)
            return None

    def validate(self, condition: bool, message: str) -> bool:
        if not condition:
            self.warn(f"Validation failed: {message}")
        return condition

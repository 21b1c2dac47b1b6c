"""Batched change notification.

Actions report the path they changed; the scheduler collects those paths
and hands them over in one batch once the quiescence window has elapsed.
The window is measured from the first change of a batch and is not
extended by later changes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from dreadmarch.diagnostics import Diagnostics, DiagnosticsSink
from dreadmarch.state.scopes import ChangePath
from dreadmarch.state.timers import Timer, TimerHandle

_logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 0.010


class NotificationScheduler:
    def __init__(
        self,
        deliver: Callable[[tuple[ChangePath, ...]], None],
        *,
        timer: Timer,
        window: float = DEFAULT_WINDOW,
        diagnostics: DiagnosticsSink | None = None,
    ) -> None:
        self._deliver = deliver
        self._timer = timer
        self._window = window
        self._diagnostics: DiagnosticsSink = diagnostics if diagnostics is not None else Diagnostics()
        self._batch: dict[ChangePath, None] = {}
        self._handle: TimerHandle | None = None

    @property
    def pending(self) -> tuple[ChangePath, ...]:
        return tuple(self._batch)

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def schedule(self, path: ChangePath) -> None:
        self._batch[path] = None
        if self._handle is not None:
            return
        try:
            self._handle = self._timer.call_later(self._window, self._on_window_elapsed)
        except RuntimeError as exc:
            # No running event loop to batch on.
            self._diagnostics.error(f"Notification timer unavailable, delivering immediately: {exc}")
            self._drain()

    def _on_window_elapsed(self) -> None:
        self._handle = None
        self._drain()

    def flush(self) -> None:
        """Deliver the pending batch now."""
        self._cancel_handle()
        self._drain()

    def cancel(self) -> None:
        """Drop the pending batch without delivering it."""
        self._cancel_handle()
        self._batch.clear()

    def _cancel_handle(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()

    def _drain(self) -> None:
        if not self._batch:
            return
        batch = tuple(self._batch)
        self._batch.clear()
        _logger.debug("Delivering change batch %s", batch)
        self._deliver(batch)

"""Internal background-context runtime for dataset normalization.

The coordinator talks to a background context only through
:class:`WorkerRequest` / :class:`WorkerReply` messages.  Nothing mutable is
shared with the context: requests and replies are pickled across the
process boundary.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import multiprocessing
from collections.abc import Callable
from concurrent.futures import Future, ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol, TypeVar

from dreadmarch.diagnostics import Diagnostics
from dreadmarch.exceptions import WorkerFaultError, WorkerUnavailableError
from dreadmarch.ingestion.normalize import normalize
from dreadmarch.models.dataset import NormalizedDataset

_logger = logging.getLogger(__name__)

#: ``(level, message)`` pair collected in the background process.
DiagnosticRecord = tuple[str, str]

T = TypeVar("T")


class MessageType(StrEnum):
    NORMALIZE = "NORMALIZE"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


@dataclass(frozen=True)
class WorkerRequest:
    """Normalization request posted to a background context."""

    id: int
    payload: Any
    type: MessageType = MessageType.NORMALIZE


@dataclass(frozen=True)
class WorkerReply:
    """Reply correlated to a request by ``id``."""

    id: int
    type: MessageType
    payload: NormalizedDataset | None = None
    error: str | None = None
    diagnostics: tuple[DiagnosticRecord, ...] = ()

    @classmethod
    def success(
        cls,
        request_id: int,
        payload: NormalizedDataset,
        diagnostics: tuple[DiagnosticRecord, ...] = (),
    ) -> WorkerReply:
        return cls(id=request_id, type=MessageType.SUCCESS, payload=payload, diagnostics=diagnostics)

    @classmethod
    def failure(cls, request_id: int, error: str, diagnostics: tuple[DiagnosticRecord, ...] = ()) -> WorkerReply:
        return cls(id=request_id, type=MessageType.ERROR, error=error, diagnostics=diagnostics)


class BackgroundContext(Protocol):
    def post(self, request: WorkerRequest) -> None: ...

    def close(self) -> None: ...


ReplyCallback = Callable[[WorkerReply], None]
FaultCallback = Callable[[BaseException], None]
ContextFactory = Callable[[ReplyCallback, FaultCallback], BackgroundContext]


class CollectingDiagnostics(Diagnostics):
    """Diagnostics that keep every message so it can travel with the reply.

    The background process has no access to the caller's sink; the
    coordinator replays :attr:`records` through it once the reply arrives.
    """

    def __init__(self) -> None:
        super().__init__()
        self.records: list[DiagnosticRecord] = []

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
        self.records.append(("critical", message if error is None else f"{message}: {error}"))
        return super().critical_with_fallback(message, error, fallback)


def handle_request(request: WorkerRequest) -> WorkerReply:
    """Entry point executed inside the background process."""
    if request.type != MessageType.NORMALIZE:
        return WorkerReply.failure(request.id, f"unsupported message type {request.type!r}")
    diagnostics = CollectingDiagnostics()
    try:
        result = normalize(request.payload, diagnostics=diagnostics)
    except Exception as exc:
        return WorkerReply.failure(request.id, str(exc), tuple(diagnostics.records))
    return WorkerReply.success(request.id, result, tuple(diagnostics.records))


class ProcessContext:
    """Background context backed by a single-process pool.

    Replies are delivered on *loop* via ``call_soon_threadsafe``; a broken
    pool is reported through *on_fault*.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_reply: ReplyCallback,
        on_fault: FaultCallback,
        start_method: str = "spawn",
    ) -> None:
        self._loop = loop
        self._on_reply = on_reply
        self._on_fault = on_fault
        try:
            mp_context = multiprocessing.get_context(start_method)
            self._executor: ProcessPoolExecutor | None = ProcessPoolExecutor(max_workers=1, mp_context=mp_context)
        except (ImportError, NotImplementedError, OSError, ValueError) as exc:
            raise WorkerUnavailableError(f"cannot start background process: {exc}") from exc

    @classmethod
    def factory(cls, loop: asyncio.AbstractEventLoop | None = None, *, start_method: str = "spawn") -> ContextFactory:
        """Return a :data:`ContextFactory` bound to *loop* (default: running loop)."""

        def _create(on_reply: ReplyCallback, on_fault: FaultCallback) -> ProcessContext:
            target = loop if loop is not None else asyncio.get_running_loop()
            return cls(loop=target, on_reply=on_reply, on_fault=on_fault, start_method=start_method)

        return _create

    def post(self, request: WorkerRequest) -> None:
        executor = self._executor
        if executor is None:
            raise WorkerFaultError("background context is closed")
        try:
            future = executor.submit(handle_request, request)
        except (BrokenProcessPool, RuntimeError) as exc:
            raise WorkerFaultError(f"background context rejected request: {exc}") from exc
        future.add_done_callback(lambda done: self._on_done(request.id, done))

    def _on_done(self, request_id: int, future: Future[WorkerReply]) -> None:
        # Runs on the pool's management thread.
        if future.cancelled():
            return
        exc = future.exception()
        if isinstance(exc, BrokenProcessPool):
            self._dispatch(self._on_fault, exc)
        elif exc is not None:
            self._dispatch(self._on_reply, WorkerReply.failure(request_id, str(exc)))
        else:
            self._dispatch(self._on_reply, future.result())

    def _dispatch(self, callback: Callable[[Any], None], arg: Any) -> None:
        with contextlib.suppress(RuntimeError):
            # Loop already closed; nobody is waiting any more.
            self._loop.call_soon_threadsafe(callback, arg)

    def close(self) -> None:
        executor = self._executor
        self._executor = None
        if executor is None:
            return
        try:
            executor.shutdown(wait=False, cancel_futures=True)
        except Exception:
            _logger.debug("Background context shutdown failed", exc_info=True)

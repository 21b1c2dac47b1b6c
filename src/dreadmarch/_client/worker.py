"""Internal worker offload coordination for DatasetClient.

Owns:
- lazily constructing the background context
- correlating replies to pending requests by id
- timeout fallback to synchronous normalization
- rejecting pending requests on context-level faults
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from dreadmarch._cache import NormalizationCache
from dreadmarch._worker import BackgroundContext, ContextFactory, MessageType, WorkerReply, WorkerRequest
from dreadmarch.diagnostics import DiagnosticsSink
from dreadmarch.exceptions import WorkerFaultError, WorkerRequestError
from dreadmarch.ingestion.normalize import normalize
from dreadmarch.models.dataset import NormalizedDataset
from dreadmarch.state.timers import LoopTimer, Timer, TimerHandle

_logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


@dataclass(slots=True)
class _PendingRequest:
    future: asyncio.Future[NormalizedDataset]
    cache_key: str | None
    raw: Any
    timer: TimerHandle | None = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class WorkerCoordinator:
    def __init__(
        self,
        cache: NormalizationCache,
        *,
        diagnostics: DiagnosticsSink,
        context_factory: ContextFactory | None,
        timeout: float = DEFAULT_TIMEOUT,
        timer: Timer | None = None,
    ) -> None:
        self._cache = cache
        self._diagnostics = diagnostics
        self._context_factory = context_factory
        self._timeout = timeout
        self._timer: Timer = timer if timer is not None else LoopTimer()

        self._context: BackgroundContext | None = None
        self._generation = 0
        self._unavailable = False
        self._request_id = 0
        self._pending: dict[int, _PendingRequest] = {}

    @property
    def available(self) -> bool:
        """``False`` once context construction has failed for good."""
        return not self._unavailable and self._context_factory is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _normalize_sync(self, raw: Any) -> NormalizedDataset:
        return normalize(raw, diagnostics=self._diagnostics)

    def _settle_sync(self, key: str | None, raw: Any) -> NormalizedDataset:
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        return self._cache.setdefault(key, self._normalize_sync(raw))

    def _ensure_context(self) -> BackgroundContext | None:
        if self._context is not None:
            return self._context
        if self._unavailable:
            return None
        factory = self._context_factory
        if factory is None:
            self._unavailable = True
            return None

        self._generation += 1
        generation = self._generation

        def on_fault(exc: BaseException) -> None:
            # Faults from a discarded context must not touch the current one.
            if generation == self._generation:
                self._on_fault(exc)

        try:
            self._context = factory(self._on_reply, on_fault)
        except Exception as exc:
            self._unavailable = True
            self._diagnostics.warn(f"Failed to initialize worker: {exc}")
            return None
        return self._context

    async def normalize_async(self, raw: Any) -> NormalizedDataset:
        """Normalize *raw* in the background context.

        Degrades to synchronous normalization when no context can be built
        or when the reply does not arrive within the timeout.  Raises
        :class:`WorkerRequestError` or :class:`WorkerFaultError` when the
        context reports a failure for this request.
        """

        key, cached = self._cache.lookup(raw)
        if cached is not None:
            return cached

        context = self._ensure_context()
        if context is None:
            self._diagnostics.info("Worker not available, using synchronous normalization")
            return self._settle_sync(key, raw)

        self._request_id += 1
        request_id = self._request_id
        future: asyncio.Future[NormalizedDataset] = asyncio.get_running_loop().create_future()
        pending = _PendingRequest(future=future, cache_key=key, raw=raw)
        self._pending[request_id] = pending

        try:
            context.post(WorkerRequest(id=request_id, payload=raw))
        except Exception as exc:
            self._on_fault(exc)
            return await future

        pending.timer = self._timer.call_later(self._timeout, lambda: self._on_timeout(request_id))
        return await future

    def _on_reply(self, reply: WorkerReply) -> None:
        pending = self._pending.pop(reply.id, None)
        if pending is None:
            _logger.debug("Discarding reply for request %s; no longer pending", reply.id)
            return
        pending.cancel_timer()
        if pending.future.done():
            return
        self._replay(reply)

        if reply.type == MessageType.SUCCESS and reply.payload is not None:
            pending.future.set_result(self._cache.setdefault(pending.cache_key, reply.payload))
            return

        message = reply.error or "background normalization failed"
        self._diagnostics.error(f"Worker request {reply.id} failed: {message}")
        pending.future.set_exception(WorkerRequestError(message, request_id=reply.id))

    def _replay(self, reply: WorkerReply) -> None:
        """Re-emit diagnostics collected in the background process."""
        for level, message in reply.diagnostics:
            if level == "info":
                self._diagnostics.info(message)
            elif level == "warn":
                self._diagnostics.warn(message)
            else:
                self._diagnostics.error(message)

    def _on_timeout(self, request_id: int) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        pending.timer = None
        self._diagnostics.warn("Worker timeout, falling back to sync normalization")
        if pending.future.done():
            return
        pending.future.set_result(self._settle_sync(pending.cache_key, pending.raw))

    def _on_fault(self, exc: BaseException) -> None:
        self._diagnostics.error(f"Worker error: {exc}")
        self._discard_context()
        self._reject_all(f"background context failed: {exc}")

    def _discard_context(self) -> None:
        context = self._context
        self._context = None
        # Invalidate fault callbacks bound to the discarded context.
        self._generation += 1
        if context is None:
            return
        try:
            context.close()
        except Exception:
            _logger.debug("Background context close failed", exc_info=True)

    def _reject_all(self, message: str) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for request in pending:
            request.cancel_timer()
            if not request.future.done():
                request.future.set_exception(WorkerFaultError(message))

    def close(self) -> None:
        """Shut down the background context and reject pending requests."""
        self._discard_context()
        self._reject_all("worker closed")

"""High-level entry point for dataset loading and session state."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Mapping
from typing import Any, Literal, overload

from dreadmarch._cache import CacheStats, NormalizationCache
from dreadmarch._client.worker import WorkerCoordinator
from dreadmarch._worker import ContextFactory, ProcessContext
from dreadmarch.config import CoreConfig
from dreadmarch.diagnostics import Diagnostics, DiagnosticsSink
from dreadmarch.ingestion.normalize import normalize
from dreadmarch.models.dataset import NormalizedDataset
from dreadmarch.models.state import Mode
from dreadmarch.state.store import StateContainer, create_container
from dreadmarch.state.timers import Timer

_logger = logging.getLogger(__name__)

_DEFAULT_FACTORY: Any = object()


class DatasetClient:
    """Normalize datasets (optionally in a background process) and feed state.

    Usage::

        async with DatasetClient(CoreConfig.from_env()) as client:
            dataset = await client.load(raw, async_=True)
            container = client.create_container(app_config, dataset)
    """

    def __init__(
        self,
        config: CoreConfig | None = None,
        *,
        diagnostics: DiagnosticsSink | None = None,
        cache: NormalizationCache | None = None,
        context_factory: ContextFactory | None = _DEFAULT_FACTORY,
        timer: Timer | None = None,
    ) -> None:
        self._config = config if config is not None else CoreConfig()
        self._diagnostics: DiagnosticsSink = (
            diagnostics if diagnostics is not None else Diagnostics(debug=self._config.debug)
        )
        self._cache = (
            cache
            if cache is not None
            else NormalizationCache(
                threshold=self._config.cache_threshold,
                sample_size=self._config.cache_sample_size,
                diagnostics=self._diagnostics,
            )
        )
        if context_factory is _DEFAULT_FACTORY:
            context_factory = ProcessContext.factory() if self._config.worker_enabled else None
        self._timer = timer
        self._worker = WorkerCoordinator(
            self._cache,
            diagnostics=self._diagnostics,
            context_factory=context_factory,
            timeout=self._config.worker_timeout,
            timer=timer,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DatasetClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._worker.close()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> CoreConfig:
        return self._config

    @property
    def diagnostics(self) -> DiagnosticsSink:
        return self._diagnostics

    @property
    def cache(self) -> NormalizationCache:
        return self._cache

    @property
    def worker(self) -> WorkerCoordinator:
        return self._worker

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize(self, raw: Any) -> NormalizedDataset:
        """Normalize synchronously, serving equivalent input from the cache."""
        return self._cache.memoize(raw, self._normalize_uncached)

    async def normalize_async(self, raw: Any) -> NormalizedDataset:
        """Normalize in the background process when one is available."""
        return await self._worker.normalize_async(raw)

    @overload
    def load(self, raw: Any, *, async_: Literal[False] = False) -> NormalizedDataset: ...

    @overload
    def load(self, raw: Any, *, async_: Literal[True]) -> Awaitable[NormalizedDataset]: ...

    def load(self, raw: Any, *, async_: bool = False) -> NormalizedDataset | Awaitable[NormalizedDataset]:
        """Dataset load boundary.

        Returns the normalized dataset directly, or an awaitable of it when
        *async_* is true.  Callers branch on the flag they passed.
        """
        if async_:
            return self.normalize_async(raw)
        return self.normalize(raw)

    def _normalize_uncached(self, raw: Any) -> NormalizedDataset:
        return normalize(raw, diagnostics=self._diagnostics)

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self, *, include_keys: bool = False) -> CacheStats:
        return self._cache.stats(include_keys=include_keys)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def create_container(
        self,
        app_config: Any,
        dataset: NormalizedDataset | None = None,
        campaign: Any = None,
        *,
        access: Mapping[str, Any] | None = None,
        mode: Mode = Mode.NAVCOM,
        timer: Timer | None = None,
    ) -> StateContainer:
        """Create a state container sharing this client's diagnostics sink."""
        return create_container(
            app_config,
            dataset,
            campaign,
            access=access,
            mode=mode,
            diagnostics=self._diagnostics,
            timer=timer if timer is not None else self._timer,
            window=self._config.notify_window,
        )

    async def load_into(self, container: StateContainer, raw: Any) -> NormalizedDataset:
        """Normalize *raw* off the event loop and install it in *container*."""
        dataset = await self.normalize_async(raw)
        container.actions.set_dataset(dataset)
        _logger.debug("Installed dataset with %d systems", len(dataset.systems))
        return dataset

"""Content-addressed cache for normalized datasets."""

from __future__ import annotations

import itertools
import json
from collections.abc import Callable, Mapping
from typing import Any

from dreadmarch.diagnostics import Diagnostics, DiagnosticsSink
from dreadmarch.exceptions import CacheKeyError
from dreadmarch.ingestion.normalize import pixel_source_name
from dreadmarch.models._base import DreadmarchModel
from dreadmarch.models.dataset import NormalizedDataset


DEFAULT_THRESHOLD = 100
DEFAULT_SAMPLE_SIZE = 10


class CacheStats(DreadmarchModel):
    size: int
    keys: tuple[str, ...] | None = None


def _canonical(value: Any, active: set[int]) -> Any:
    """Rewrite *value* so its JSON form keeps every distinction normalize sees.

    Arrays are tagged ``"l"`` (list) or ``"t"`` (tuple).  Mapping keys must
    be strings: JSON would otherwise fold ``1`` and ``"1"`` together.
    """

    if isinstance(value, Mapping):
        tag = None
    elif isinstance(value, list):
        tag = "l"
    elif isinstance(value, tuple):
        tag = "t"
    else:
        return value

    marker = id(value)
    if marker in active:
        raise CacheKeyError("dataset contains a reference cycle")
    active.add(marker)
    try:
        if tag is not None:
            return [tag, *(_canonical(item, active) for item in value)]
        canonical: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise CacheKeyError(f"mapping key {key!r} is not a string")
            canonical[key] = _canonical(item, active)
        return canonical
    finally:
        active.discard(marker)


def _dumps(value: Any) -> str:
    try:
        return json.dumps(_canonical(value, set()), sort_keys=True, separators=(",", ":"), allow_nan=True)
    except (TypeError, ValueError, RecursionError) as exc:
        raise CacheKeyError(f"dataset is not serializable: {exc}") from exc


def fingerprint(raw: Mapping[str, Any], *, sample_size: int) -> dict[str, Any]:
    """Bounded structural summary of a large dataset.

    Only the system count, the first *sample_size* ids and the pixel source
    in use are considered.  Two large datasets that agree on those collide.
    """

    systems = raw.get("systems")
    ids = list(itertools.islice(systems, sample_size)) if isinstance(systems, Mapping) else []
    return {
        "count": len(systems) if isinstance(systems, Mapping) else 0,
        "sample": ids,
        "pixel_source": pixel_source_name(raw) or "none",
    }


class NormalizationCache:
    """Memoize normalization results by dataset content.

    Entries live until :meth:`clear` is called.  Lookups for equivalent
    input return the very same :class:`NormalizedDataset` instance.
    """

    def __init__(
        self,
        *,
        threshold: int = DEFAULT_THRESHOLD,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        diagnostics: DiagnosticsSink | None = None,
    ) -> None:
        self._threshold = threshold
        self._sample_size = sample_size
        self._diagnostics: DiagnosticsSink = diagnostics if diagnostics is not None else Diagnostics()
        self._entries: dict[str, NormalizedDataset] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def derive_key(self, raw: Any) -> str:
        """Cache key for *raw*; raises :class:`CacheKeyError` on failure."""
        systems = raw.get("systems") if isinstance(raw, Mapping) else None
        if isinstance(systems, Mapping) and len(systems) >= self._threshold:
            return "fp:" + _dumps(fingerprint(raw, sample_size=self._sample_size))
        return "raw:" + _dumps(raw)

    def key_for(self, raw: Any) -> str | None:
        """Cache key for *raw*, or ``None`` when it cannot be derived."""
        try:
            return self.derive_key(raw)
        except CacheKeyError as exc:
            self._diagnostics.info(f"Skipping normalization cache: {exc}")
            return None

    def get(self, key: str | None) -> NormalizedDataset | None:
        if key is None:
            return None
        return self._entries.get(key)

    def set(self, key: str | None, value: NormalizedDataset) -> None:
        if key is None:
            return
        self._entries[key] = value

    def setdefault(self, key: str | None, value: NormalizedDataset) -> NormalizedDataset:
        """Store *value* unless *key* is cached already; return the cached entry."""
        if key is None:
            return value
        return self._entries.setdefault(key, value)

    def lookup(self, raw: Any) -> tuple[str | None, NormalizedDataset | None]:
        """Return ``(key, cached)`` for *raw*, logging cache hits."""
        key = self.key_for(raw)
        cached = self.get(key)
        if cached is not None:
            self._diagnostics.info("Cache hit for dataset normalization")
        return key, cached

    def memoize(self, raw: Any, compute: Callable[[Any], NormalizedDataset]) -> NormalizedDataset:
        """Return the cached result for *raw*, computing and storing it on a miss."""
        key, cached = self.lookup(raw)
        if cached is not None:
            return cached

        result = compute(raw)
        return self.setdefault(key, result)

    def clear(self) -> None:
        self._entries.clear()
        self._diagnostics.info("Normalization cache cleared")

    def stats(self, *, include_keys: bool = False) -> CacheStats:
        keys = tuple(self._entries) if include_keys else None
        return CacheStats(size=len(self._entries), keys=keys)

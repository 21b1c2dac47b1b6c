from __future__ import annotations

import pytest

from dreadmarch._cache import NormalizationCache, fingerprint
from dreadmarch.exceptions import CacheKeyError
from dreadmarch.ingestion.normalize import normalize


def _large(count: int, *, pixels: str | None = "system_pixels", name_prefix: str = "System") -> dict:
    systems = {f"sys-{i}": {"name": f"{name_prefix} {i}"} for i in range(count)}
    raw: dict = {"systems": systems}
    if pixels is not None:
        raw[pixels] = {system_id: [i, i] for i, system_id in enumerate(systems)}
    return raw


class TestKeys:
    def test_small_dataset_key_is_full_content(self) -> None:
        cache = NormalizationCache()

        key = cache.key_for({"systems": {"sol": {"name": "Sol"}}})

        assert key is not None
        assert key.startswith("raw:")
        assert '"Sol"' in key

    def test_key_ignores_insertion_order(self) -> None:
        cache = NormalizationCache()

        first = cache.key_for({"systems": {"a": {}, "b": {}}, "extra": 1})
        second = cache.key_for({"extra": 1, "systems": {"b": {}, "a": {}}})

        assert first == second

    def test_different_pass_through_fields_give_different_keys(self) -> None:
        cache = NormalizationCache()

        first = cache.key_for({"systems": {"sol": {}}, "customProp": "value1"})
        second = cache.key_for({"systems": {"sol": {}}, "customProp": "value2"})

        assert first != second

    def test_large_dataset_uses_fingerprint(self) -> None:
        cache = NormalizationCache(threshold=100, sample_size=10)

        key = cache.key_for(_large(100))

        assert key is not None
        assert key.startswith("fp:")

    def test_fingerprint_collision_is_accepted_for_large_datasets(self) -> None:
        cache = NormalizationCache(threshold=100, sample_size=10)

        # Same count, same first ids, same pixel source: only names differ.
        assert cache.key_for(_large(150)) == cache.key_for(_large(150, name_prefix="Renamed"))

    def test_fingerprint_distinguishes_pixel_source_and_count(self) -> None:
        cache = NormalizationCache(threshold=100, sample_size=10)

        base = cache.key_for(_large(150))

        assert base != cache.key_for(_large(150, pixels="endpoint_pixels"))
        assert base != cache.key_for(_large(150, pixels=None))
        assert base != cache.key_for(_large(151))

    def test_fingerprint_keeps_id_types_apart(self) -> None:
        cache = NormalizationCache(threshold=2, sample_size=2)

        assert cache.key_for({"systems": {1: {}, 2: {}}}) != cache.key_for({"systems": {"1": {}, "2": {}}})

    def test_fingerprint_shape(self) -> None:
        summary = fingerprint(_large(20), sample_size=3)

        assert summary == {
            "count": 20,
            "sample": ["sys-0", "sys-1", "sys-2"],
            "pixel_source": "system_pixels",
        }

    def test_cyclic_input_has_no_key(self, diagnostics) -> None:
        cache = NormalizationCache(diagnostics=diagnostics)
        raw: dict = {"systems": {"sol": {"name": "Sol"}}}
        raw["self"] = raw

        with pytest.raises(CacheKeyError):
            cache.derive_key(raw)
        assert cache.key_for(raw) is None
        assert any("Skipping normalization cache" in message for message in diagnostics.messages("info"))

    def test_non_string_keys_have_no_key(self, diagnostics) -> None:
        cache = NormalizationCache(diagnostics=diagnostics)

        assert cache.key_for({"systems": {1: {"name": "Sol"}}}) is None
        assert cache.key_for({"systems": {}, "lookup": {2: "x"}}) is None
        assert cache.key_for({"systems": {"1": {"name": "Sol"}}}) is not None

    def test_integer_ids_do_not_shadow_string_ids(self) -> None:
        cache = NormalizationCache()

        failed = cache.memoize({"systems": {1: {"name": "Sol"}}}, normalize)
        valid = cache.memoize({"systems": {"1": {"name": "Sol"}}}, normalize)

        assert failed.systems == {}
        assert valid is not failed
        assert valid.systems["1"].name == "Sol"
        assert valid.normalization_errors is None

    def test_tuples_and_lists_get_different_keys(self) -> None:
        cache = NormalizationCache()

        as_tuple = cache.memoize({"systems": {"sol": {"coords": (1, 2)}}}, normalize)
        as_list = cache.memoize({"systems": {"sol": {"coords": [1, 2]}}}, normalize)

        assert as_tuple.systems["sol"].coords == (1, 2)
        assert as_list.systems["sol"].coords == [1, 2]
        assert len(cache) == 2

    def test_shared_subtrees_are_not_cycles(self) -> None:
        cache = NormalizationCache()
        shared = [1, 2]

        assert cache.key_for({"systems": {"a": {"coords": shared}, "b": {"coords": shared}}}) is not None

    def test_unserializable_input_has_no_key(self) -> None:
        cache = NormalizationCache()

        assert cache.key_for({"systems": {}, "tags": {"a", "b"}}) is None


class TestMemoize:
    def test_second_call_returns_identical_instance(self, diagnostics) -> None:
        cache = NormalizationCache(diagnostics=diagnostics)
        raw = {"systems": {"sol": {"name": "Sol System"}}}

        first = cache.memoize(raw, normalize)
        second = cache.memoize({"systems": {"sol": {"name": "Sol System"}}}, normalize)

        assert second is first
        assert first.systems["sol"].name == "Sol System"
        assert cache.stats().size == 1
        assert "Cache hit for dataset normalization" in diagnostics.messages("info")

    def test_distinct_datasets_get_distinct_entries(self) -> None:
        cache = NormalizationCache()

        cache.memoize({"systems": {"sol": {"name": "Sol"}}}, normalize)
        cache.memoize({"systems": {"alpha": {"name": "Alpha"}}}, normalize)

        assert len(cache) == 2

    def test_uncacheable_input_is_still_computed(self) -> None:
        cache = NormalizationCache()
        raw: dict = {"systems": {"sol": {"name": "Sol"}}}
        raw["self"] = raw

        result = cache.memoize(raw, normalize)

        assert result.systems["sol"].name == "Sol"
        assert len(cache) == 0

    def test_invalid_input_result_is_cached(self) -> None:
        cache = NormalizationCache()

        first = cache.memoize(None, normalize)

        assert first.to_dict() == {"systems": {}}
        assert cache.memoize(None, normalize) is first

    def test_compute_not_called_on_hit(self) -> None:
        cache = NormalizationCache()
        calls: list[object] = []

        def compute(raw: object):
            calls.append(raw)
            return normalize(raw)

        cache.memoize({"systems": {}}, compute)
        cache.memoize({"systems": {}}, compute)

        assert len(calls) == 1


class TestStorage:
    def test_setdefault_keeps_first_instance(self) -> None:
        cache = NormalizationCache()
        first = normalize({"systems": {"a": {}}})
        second = normalize({"systems": {"a": {}}})

        assert cache.setdefault("k", first) is first
        assert cache.setdefault("k", second) is first
        assert cache.get("k") is first

    def test_none_key_is_never_stored(self) -> None:
        cache = NormalizationCache()
        value = normalize({"systems": {}})

        cache.set(None, value)

        assert cache.setdefault(None, value) is value
        assert cache.get(None) is None
        assert len(cache) == 0

    def test_clear_and_stats(self, diagnostics) -> None:
        cache = NormalizationCache(diagnostics=diagnostics)
        cache.memoize({"systems": {"sol": {}}}, normalize)

        stats = cache.stats(include_keys=True)
        assert stats.size == 1
        assert stats.keys is not None and stats.keys[0].startswith("raw:")
        assert cache.stats().keys is None

        cache.clear()

        assert cache.stats().size == 0
        assert "Normalization cache cleared" in diagnostics.messages("info")

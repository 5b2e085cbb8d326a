"""Tests for the word-entity cache and document stores."""

from __future__ import annotations

import asyncio
import json

import pytest

from subtitle_enricher.core.cache import WordEntityCache, normalize_key
from subtitle_enricher.core.errors import TransientHelperError
from subtitle_enricher.core.store import InMemoryDocumentStore, JsonFileDocumentStore


class CountingCompute:
    """Async compute function that counts invocations."""

    def __init__(self, value="rot1", delay: float = 0.01, error: Exception | None = None):
        self.value = value
        self.delay = delay
        self.error = error
        self.count = 0

    async def __call__(self):
        self.count += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value


class TestNormalizeKey:
    def test_trims_and_lowercases(self):
        assert normalize_key("  Car ") == "car"

    def test_composes_unicode(self):
        decomposed = "e\u0301"
        assert normalize_key(decomposed) == "\u00e9"

    def test_none_is_blank(self):
        assert normalize_key(None) == ""


class TestGetOrCompute:
    def test_concurrent_callers_share_one_computation(self):
        cache = WordEntityCache()
        compute = CountingCompute()

        async def scenario():
            return await asyncio.gather(
                *(cache.get_or_compute("words_thai", "รถ", "g2p", compute) for _ in range(5))
            )

        results = asyncio.run(scenario())
        assert results == ["rot1"] * 5
        assert compute.count == 1

    def test_recorded_value_is_reused(self):
        cache = WordEntityCache()
        compute = CountingCompute()

        async def scenario():
            await cache.get_or_compute("words_thai", "รถ", "g2p", compute)
            return await cache.get_or_compute("words_thai", "รถ", "g2p", compute)

        assert asyncio.run(scenario()) == "rot1"
        assert compute.count == 1

    def test_keys_are_normalized(self):
        cache = WordEntityCache()
        compute = CountingCompute(value=[{"definition": "vehicle"}])

        async def scenario():
            await cache.get_or_compute("words_eng", "Car", "raw_senses", compute)
            await cache.get_or_compute("words_eng", " car ", "raw_senses", compute)

        asyncio.run(scenario())
        assert compute.count == 1

    def test_failure_reaches_every_waiter_and_records_nothing(self):
        cache = WordEntityCache()
        failing = CountingCompute(error=TransientHelperError("transliterate", "boom"))

        async def scenario():
            return await asyncio.gather(
                *(cache.get_or_compute("words_thai", "รถ", "g2p", failing) for _ in range(3)),
                return_exceptions=True,
            )

        results = asyncio.run(scenario())
        assert all(isinstance(r, TransientHelperError) for r in results)
        assert failing.count == 1
        assert asyncio.run(cache.get("words_thai", "รถ")) is None

    def test_retry_after_failure_computes_again(self):
        cache = WordEntityCache()
        failing = CountingCompute(error=TransientHelperError("transliterate", "boom"))
        healthy = CountingCompute()

        async def scenario():
            with pytest.raises(TransientHelperError):
                await cache.get_or_compute("words_thai", "รถ", "g2p", failing)
            return await cache.get_or_compute("words_thai", "รถ", "g2p", healthy)

        assert asyncio.run(scenario()) == "rot1"
        assert healthy.count == 1

    def test_empty_result_is_returned_but_not_recorded(self):
        cache = WordEntityCache()
        empty = CountingCompute(value=[])

        async def scenario():
            first = await cache.get_or_compute("words_thai", "ฮ", "raw_senses", empty)
            second = await cache.get_or_compute("words_thai", "ฮ", "raw_senses", empty)
            return first, second

        assert asyncio.run(scenario()) == ([], [])
        assert empty.count == 2

    def test_accept_filters_what_is_recorded(self):
        cache = WordEntityCache()
        compute = CountingCompute(value=[{"normalized": False}])

        def accept(value):
            return all(e.get("normalized") is True for e in value)

        async def scenario():
            await cache.get_or_compute("words_thai", "รถ", "senses", compute, accept)
            return await cache.peek("words_thai", "รถ", "senses", accept)

        assert asyncio.run(scenario()) is None

    def test_blank_word_bypasses_cache(self):
        cache = WordEntityCache()
        compute = CountingCompute()

        async def scenario():
            await cache.get_or_compute("words_thai", "  ", "g2p", compute)
            await cache.get_or_compute("words_thai", "  ", "g2p", compute)

        asyncio.run(scenario())
        assert compute.count == 2


class TestFacets:
    def test_facets_merge_into_one_entity(self):
        store = InMemoryDocumentStore()
        cache = WordEntityCache(store)

        async def scenario():
            await asyncio.gather(
                cache.put_facet("words_thai", "รถ", "g2p", "rot1"),
                cache.put_facet("words_thai", "รถ", "english_phonetic", "rot"),
            )

        asyncio.run(scenario())
        assert store.snapshot()["words_thai"]["รถ"] == {"word": "รถ", "g2p": "rot1", "english_phonetic": "rot"}

    def test_write_locks_are_released_after_writes(self):
        cache = WordEntityCache()

        async def scenario():
            await asyncio.gather(
                *(cache.put_facet("words_thai", word, "g2p", "x1") for word in ["รถ", "ไป", "รถ", "บ้าน"])
            )

        asyncio.run(scenario())
        assert cache._write_locks == {}
        assert asyncio.run(cache.peek("words_thai", "ไป", "g2p")) == "x1"

    def test_put_rejects_incomplete_values(self):
        cache = WordEntityCache()
        assert asyncio.run(cache.put_facet("words_thai", "รถ", "g2p", "")) is False
        assert asyncio.run(cache.put_facet("words_thai", "รถ", "g2p", None)) is False

    def test_peek_misses_unknown_word(self):
        cache = WordEntityCache()
        assert asyncio.run(cache.peek("words_thai", "รถ", "g2p")) is None


class TestInMemoryStore:
    def test_get_returns_a_copy(self):
        store = InMemoryDocumentStore()

        async def scenario():
            await store.put("words_thai", "รถ", {"word": "รถ"})
            doc = await store.get("words_thai", "รถ")
            doc["g2p"] = "mutated"
            return await store.get("words_thai", "รถ")

        assert asyncio.run(scenario()) == {"word": "รถ"}


class TestJsonFileStore:
    def test_persists_across_instances(self, tmp_path):
        async def write():
            cache = WordEntityCache(JsonFileDocumentStore(tmp_path))
            await cache.put_facet("words_thai", "รถ", "g2p", "rot1")

        async def read():
            store = JsonFileDocumentStore(tmp_path)
            return await store.get("words_thai", "รถ")

        asyncio.run(write())
        assert asyncio.run(read()) == {"word": "รถ", "g2p": "rot1"}

    def test_writes_one_file_per_collection(self, tmp_path):
        async def scenario():
            store = JsonFileDocumentStore(tmp_path)
            await store.put("words_thai", "รถ", {"word": "รถ"})
            await store.put("words_eng", "car", {"word": "car"})

        asyncio.run(scenario())
        assert sorted(p.name for p in tmp_path.iterdir()) == ["words_eng.json", "words_thai.json"]
        data = json.loads((tmp_path / "words_thai.json").read_text(encoding="utf-8"))
        assert data == {"รถ": {"word": "รถ"}}

    def test_unknown_key_is_none(self, tmp_path):
        store = JsonFileDocumentStore(tmp_path / "missing")
        assert asyncio.run(store.get("words_thai", "รถ")) is None

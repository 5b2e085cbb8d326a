"""Word-entity cache shared across records.

WHY: The same word shows up in thousands of subtitles, and its
transliteration or dictionary senses cost a slow (sometimes paid) call.
Computing each word once and reusing it across records is the biggest
saving in a batch. When several records in one batch ask for the same
word at the same moment, they must share one in-flight computation
rather than racing to produce divergent answers.

HOW: Entities live in a DocumentStore, one document per normalized word,
with one field per facet ("g2p", "english_phonetic", "raw_senses",
"senses"). get_or_compute() is read-through/write-through with a
singleflight table of asyncio tasks keyed by (collection, word, facet).
Waiters await the shared task through asyncio.shield so one cancelled
waiter does not cancel the computation for the others.

RULES:
- Only completed, non-empty results are recorded
- A failed computation records nothing and is retried by the next caller
- Facet writes for one word are serialized so they never drop each other
- A word's write lock lives only while a write for it is pending
- The cache never invalidates anything; it is owned by no single record
"""

from __future__ import annotations

import asyncio
import logging
import unicodedata
from collections import Counter
from collections.abc import Awaitable, Callable
from typing import Any

from subtitle_enricher.core.store import DocumentStore, InMemoryDocumentStore

logger = logging.getLogger(__name__)


def normalize_key(word: str) -> str:
    """Cache key for a token: NFC-normalized, trimmed, lower-cased."""
    return unicodedata.normalize("NFC", word or "").strip().lower()


def _is_complete(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)):
        return bool(value)
    return True


class WordEntityCache:
    """Read-through/write-through cache of per-word computations.

    RULES:
    - Use get_or_compute() for anything that calls a helper
    - peek() never computes and never waits on in-flight work
    """

    def __init__(self, store: DocumentStore | None = None) -> None:
        self._store = store if store is not None else InMemoryDocumentStore()
        self._inflight: dict[tuple[str, str, str], asyncio.Task] = {}
        self._write_locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._lock_users: Counter = Counter()

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def get(self, collection: str, word: str) -> dict[str, Any] | None:
        key = normalize_key(word)
        if not key:
            return None
        return await self._store.get(collection, key)

    async def peek(
        self,
        collection: str,
        word: str,
        facet: str,
        accept: Callable[[Any], bool] = _is_complete,
    ) -> Any:
        """Return a recorded facet value, or None when nothing acceptable is stored."""
        entity = await self.get(collection, word)
        if entity is None:
            return None
        value = entity.get(facet)
        return value if accept(value) else None

    async def get_or_compute(
        self,
        collection: str,
        word: str,
        facet: str,
        compute: Callable[[], Awaitable[Any]],
        accept: Callable[[Any], bool] = _is_complete,
    ) -> Any:
        """Return the cached facet, computing and recording it when absent.

        Concurrent callers for the same (collection, word, facet) share
        one computation. Exceptions from ``compute`` reach every waiter.
        ``accept`` decides both what counts as a cache hit and what gets
        recorded.
        """
        key = normalize_key(word)
        if not key:
            return await compute()

        flight = (collection, key, facet)
        task = self._inflight.get(flight)
        if task is None:
            cached = await self.peek(collection, key, facet, accept)
            if cached is not None:
                logger.debug("Cache hit %s/%s.%s", collection, key, facet)
                return cached
            # Another caller may have started the flight while we were reading.
            task = self._inflight.get(flight)
            if task is None:
                task = asyncio.ensure_future(self._compute_and_record(collection, key, facet, compute, accept))
                self._inflight[flight] = task
                task.add_done_callback(lambda t: self._land(flight, t))
        return await asyncio.shield(task)

    async def put_facet(
        self,
        collection: str,
        word: str,
        facet: str,
        value: Any,
        accept: Callable[[Any], bool] = _is_complete,
    ) -> bool:
        """Record a facet value, merging it into the word's entity.

        Returns False (and records nothing) when ``accept`` rejects it.
        """
        key = normalize_key(word)
        if not key or not accept(value):
            return False
        slot = (collection, key)
        lock = self._write_locks.setdefault(slot, asyncio.Lock())
        self._lock_users[slot] += 1
        try:
            async with lock:
                entity = await self._store.get(collection, key) or {"word": key}
                entity[facet] = value
                await self._store.put(collection, key, entity)
        finally:
            self._lock_users[slot] -= 1
            if not self._lock_users[slot]:
                del self._lock_users[slot]
                del self._write_locks[slot]
        return True

    def _land(self, flight: tuple[str, str, str], task: asyncio.Task) -> None:
        self._inflight.pop(flight, None)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Computation %s failed: %s", flight, task.exception())

    async def _compute_and_record(
        self,
        collection: str,
        key: str,
        facet: str,
        compute: Callable[[], Awaitable[Any]],
        accept: Callable[[Any], bool],
    ) -> Any:
        value = await compute()
        await self.put_facet(collection, key, facet, value, accept)
        return value

"""Enrichment orchestrator: fill only what the WorkMap flags.

WHY: Each pass over a record may be the first, a retry after a crash, or
a re-run over an already finished record. The orchestrator must do the
same right thing in all three cases: call a helper only for a leaf that
is flagged AND still fails its predicate on the live value, merge
results additively, and never let one token's failure spoil another's.

HOW: process() checks shape and id, deep-copies the record, then runs
the stages in order:

  1. cues       fetch text/timings per language track (concurrent)
  2. structure  segment text into refs, inflate token arrays
  3. tokens     per-token transliteration and staged senses (fan-out,
                bounded by a semaphore, reassembled by index)
  4. alignment  Thai/English word correspondences
  5. links      subtitle_refs, built locally

Every per-token helper goes through the word-entity cache first.

RULES:
- The WorkMap is read, never written
- A WorkMap with no flagged leaf, such as blank(), leaves the record
  untouched, token inflation included
- A flag that is stale-true is ignored when the live value already passes
- TransientHelperError from a per-leaf helper becomes a diagnostic; a
  failure while segmenting aborts the pass; anything else propagates
- Tokens added by segmentation are not in this WorkMap and wait for the
  next generate()
- Sense stages: Pending -> lookup (and normalize when normalize_seeded);
  Populated with unnormalized entries -> normalize those entries only;
  all normalized -> nothing
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from subtitle_enricher.config import NORMALIZATION_VERSION
from subtitle_enricher.core.context import EnrichmentContext
from subtitle_enricher.core.diagnostics import DiagnosticStatus, FieldDiagnostic
from subtitle_enricher.core.errors import ImmutableFieldError, TransientHelperError
from subtitle_enricher.core.predicates import is_normalized
from subtitle_enricher.core.record import (
    ENGLISH,
    THAI,
    TRACKS,
    Track,
    build_subtitle_refs,
    format_word_ref,
    inflate_tokens,
    ref_words,
    seed_senses,
)
from subtitle_enricher.core.workmap import (
    Pending,
    Populated,
    check_congruent,
    flagged_entries,
    is_flagged,
    senses_need_work,
)

logger = logging.getLogger(__name__)


@dataclass
class EnrichedRecord:
    """Result of one pass.

    RULES:
    - record is a new object; the input record is never mutated
    - calls counts helper invocations actually made, by helper name
    """

    record: dict[str, Any]
    diagnostics: list[FieldDiagnostic] = field(default_factory=list)
    calls: Counter = field(default_factory=Counter)

    @property
    def helper_calls(self) -> int:
        return sum(self.calls.values())


@dataclass
class _Outcome:
    diagnostics: list[FieldDiagnostic] = field(default_factory=list)
    calls: Counter = field(default_factory=Counter)

    def note(self, path: str, helper: str, status: DiagnosticStatus, reason: str = "") -> None:
        self.diagnostics.append(FieldDiagnostic(path, helper, status, reason))

    def absorb(self, other: _Outcome) -> None:
        self.diagnostics.extend(other.diagnostics)
        self.calls.update(other.calls)


async def process(
    record: Mapping[str, Any],
    workmap: Mapping[str, Any],
    context: EnrichmentContext,
) -> EnrichedRecord:
    """Run one enrichment pass and return the enriched copy of ``record``.

    Raises:
        ShapeMismatchError: ``workmap`` does not mirror ``record``.
        ImmutableFieldError: the record has no usable id.
        TransientHelperError: segmentation failed (the pass is aborted).
    """
    check_congruent(record, workmap)
    if context.registry.needs_work("id", record.get("id")):
        raise ImmutableFieldError("id", record.get("id"))

    run = _Pass(copy.deepcopy(dict(record)), workmap, context)
    await run.fetch_cues()
    await run.build_structure()
    await run.enrich_tokens()
    await run.align()
    run.link_subtitles()

    logger.info(
        "Processed record %s: %d helper calls, %d diagnostics",
        run.record["id"],
        sum(run.outcome.calls.values()),
        len(run.outcome.diagnostics),
    )
    return EnrichedRecord(run.record, run.outcome.diagnostics, run.outcome.calls)


class _Pass:
    """State of one process() call. Never outlives it."""

    def __init__(self, record: dict[str, Any], workmap: Mapping[str, Any], context: EnrichmentContext) -> None:
        self.record = record
        self.workmap = workmap
        self.context = context
        self.services = context.services
        self.cache = context.cache
        self.registry = context.registry
        self.outcome = _Outcome()
        self._semaphore = asyncio.Semaphore(max(1, context.concurrency))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _wants(self, node: Mapping[str, Any] | None, key: str, pattern: str, value: Any) -> bool:
        """Flagged in the WorkMap and still failing on the live value."""
        if not isinstance(node, Mapping) or node.get(key) is not True:
            return False
        return self.registry.needs_work(pattern, value)

    async def _invoke(self, outcome: _Outcome, helper: str, call: Callable[[], Awaitable[Any]]) -> Any:
        async with self._semaphore:
            outcome.calls[helper] += 1
            return await call()

    # ------------------------------------------------------------------
    # Stage 1: cues
    # ------------------------------------------------------------------

    async def fetch_cues(self) -> None:
        outcomes = await asyncio.gather(*(self._fetch_cue(track) for track in TRACKS))
        for outcome in outcomes:
            self.outcome.absorb(outcome)

    async def _fetch_cue(self, track: Track) -> _Outcome:
        outcome = _Outcome()
        wanted = [key for key in track.cue_keys if self._wants(self.workmap, key, key, self.record.get(key))]
        if not wanted:
            return outcome

        try:
            cue = await self._invoke(
                outcome,
                "fetch_cue",
                lambda: self.services.fetch_cue(self.record["id"], track.language, self.context),
            )
        except TransientHelperError as exc:
            logger.warning("Cue fetch failed for %s (%s): %s", self.record["id"], track.language, exc)
            for key in wanted:
                outcome.note(key, "fetch_cue", DiagnosticStatus.FAILED, str(exc))
            return outcome

        values = dict(zip(track.cue_keys, (cue.text, cue.start, cue.end))) if cue else {}
        for key in wanted:
            value = values.get(key)
            if self.registry.needs_work(key, value):
                outcome.note(key, "fetch_cue", DiagnosticStatus.EMPTY, "cue has no value")
            else:
                self.record[key] = value
        return outcome

    # ------------------------------------------------------------------
    # Stage 2: structure
    # ------------------------------------------------------------------

    async def build_structure(self) -> None:
        if not is_flagged(self.workmap):
            return
        for track in TRACKS:
            refs_key = track.refs_key
            if self._wants(self.workmap, refs_key, refs_key, self.record.get(refs_key)):
                await self._segment(track)
            self._inflate(track)

    async def _segment(self, track: Track) -> None:
        text = self.record.get(track.text_key)
        if self.registry.needs_work(track.text_key, text):
            self.outcome.note(
                track.refs_key, "segment", DiagnosticStatus.NOT_COMPUTED, f"{track.text_key} is empty"
            )
            return
        # Failures here propagate: the token arrays depend on it.
        words = await self._invoke(self.outcome, "segment", lambda: self.services.segment(text, track.language))
        words = [w.strip() for w in words or [] if w and w.strip()]
        if not words:
            self.outcome.note(track.refs_key, "segment", DiagnosticStatus.EMPTY, "no tokens")
            return
        self.record[track.refs_key] = [format_word_ref(w) for w in words]

    def _inflate(self, track: Track) -> None:
        tokens = self.record.setdefault("tokens", {})
        refs = self.record.get(track.refs_key) or []
        if not refs or tokens.get(track.display_key) or tokens.get(track.senses_key):
            return
        words = ref_words(refs, lowercase=track is ENGLISH)
        display, senses = inflate_tokens(track, words)
        tokens[track.display_key] = display
        tokens[track.senses_key] = senses
        logger.debug("Inflated %d %s tokens for %s", len(display), track.language, self.record["id"])

    # ------------------------------------------------------------------
    # Stage 3: tokens
    # ------------------------------------------------------------------

    async def enrich_tokens(self) -> None:
        tokens = self.record.get("tokens") or {}
        wm_tokens = self.workmap.get("tokens") or {}
        jobs = []
        for track in TRACKS:
            display = tokens.get(track.display_key) or []
            senses = tokens.get(track.senses_key) or []
            wm_display = wm_tokens.get(track.display_key) or []
            wm_senses = wm_tokens.get(track.senses_key) or []
            # Only tokens the WorkMap covers; newer ones wait for the next pass.
            for i in range(min(len(display), len(senses), len(wm_display))):
                wm_sense = wm_senses[i] if i < len(wm_senses) else None
                jobs.append(self._enrich_token(track, i, display[i], senses[i], wm_display[i], wm_sense))

        results = await asyncio.gather(*jobs)
        for track, i, display_token, sense_token, outcome in results:
            tokens[track.display_key][i] = display_token
            tokens[track.senses_key][i] = sense_token
            self.outcome.absorb(outcome)

    async def _enrich_token(
        self,
        track: Track,
        i: int,
        display_token: dict[str, Any],
        sense_token: dict[str, Any],
        wm_display: Mapping[str, Any],
        wm_sense: Mapping[str, Any] | None,
    ) -> tuple[Track, int, dict, dict, _Outcome]:
        outcome = _Outcome()
        display_token = dict(display_token)
        sense_token = dict(sense_token)

        if track is THAI:
            await self._thai_display(i, display_token, wm_display, outcome)
        else:
            self._english_display(i, display_token, wm_display, outcome)

        word = display_token.get(track.word_key) or ""
        if isinstance(wm_sense, Mapping):
            await self._senses(track, i, word, sense_token, wm_sense.get("senses"), outcome)
        return track, i, display_token, sense_token, outcome

    async def _thai_display(self, i: int, token: dict[str, Any], node: Mapping[str, Any], outcome: _Outcome) -> None:
        base = f"tokens.display_thai[{i}]"
        word = token.get("thai_script") or ""

        if self._wants(node, "g2p", "tokens.display_thai[].g2p", token.get("g2p")):
            if not word.strip():
                outcome.note(f"{base}.g2p", "transliterate", DiagnosticStatus.NOT_COMPUTED, "thai_script is empty")
            else:
                value = await self._cached(
                    outcome, f"{base}.g2p", THAI.collection, word, "g2p", "transliterate",
                    lambda: self.services.transliterate(word),
                )
                if value is not None:
                    token["g2p"] = value

        if self._wants(node, "english_phonetic", "tokens.display_thai[].english_phonetic", token.get("english_phonetic")):
            g2p = token.get("g2p")
            if self.registry.needs_work("tokens.display_thai[].g2p", g2p):
                outcome.note(
                    f"{base}.english_phonetic", "phonetic_to_legible", DiagnosticStatus.NOT_COMPUTED, "g2p is empty"
                )
            else:
                # The cached rendering belongs to the cached g2p; an edited g2p gets its own.
                cached_g2p = await self.cache.peek(THAI.collection, word, "g2p")
                value = await self._cached(
                    outcome, f"{base}.english_phonetic", THAI.collection, word, "english_phonetic",
                    "phonetic_to_legible", lambda: self.services.phonetic_to_legible(g2p),
                    use_cache=cached_g2p == g2p,
                )
                if value is not None:
                    token["english_phonetic"] = value

    def _english_display(self, i: int, token: dict[str, Any], node: Mapping[str, Any], outcome: _Outcome) -> None:
        pattern = "tokens.display_english[].english_word"
        if not self._wants(node, "english_word", pattern, token.get("english_word")):
            return
        words = ref_words(self.record.get(ENGLISH.refs_key), lowercase=True)
        if i < len(words):
            token["english_word"] = words[i]
        else:
            outcome.note(
                f"tokens.display_english[{i}].english_word", "segment", DiagnosticStatus.NOT_COMPUTED, "no ref"
            )

    async def _cached(
        self,
        outcome: _Outcome,
        path: str,
        collection: str,
        word: str,
        facet: str,
        helper: str,
        call: Callable[[], Awaitable[Any]],
        use_cache: bool = True,
    ) -> Any:
        """Cache-first helper dispatch. Returns None when the leaf stays unsatisfied.

        With use_cache=False the helper is called directly and nothing is recorded.
        """
        try:
            if use_cache:
                value = await self.cache.get_or_compute(
                    collection, word, facet, lambda: self._invoke(outcome, helper, call)
                )
            else:
                value = await self._invoke(outcome, helper, call)
        except TransientHelperError as exc:
            logger.warning("%s failed for %s: %s", helper, path, exc)
            outcome.note(path, helper, DiagnosticStatus.FAILED, str(exc))
            return None
        if not value:
            outcome.note(path, helper, DiagnosticStatus.EMPTY, "helper returned nothing")
            return None
        return value

    # ------------------------------------------------------------------
    # Senses (staged)
    # ------------------------------------------------------------------

    async def _senses(
        self,
        track: Track,
        i: int,
        word: str,
        sense_token: dict[str, Any],
        state: Any,
        outcome: _Outcome,
    ) -> None:
        if not senses_need_work(state):
            return
        path = f"tokens.{track.senses_key}[{i}].senses"
        live = list(sense_token.get("senses") or [])

        if not word.strip():
            outcome.note(path, "lookup_senses", DiagnosticStatus.NOT_COMPUTED, "token has no text")
            return

        if not live:
            if isinstance(state, Pending):
                sense_token["senses"] = await self._seed(track, path, word, outcome)
            return

        if isinstance(state, Populated):
            flagged = set(flagged_entries(state))
        else:
            flagged = set(range(len(live)))
        pending = [j for j in sorted(flagged) if j < len(live) and not is_normalized(live[j])]
        if not pending:
            return

        normalized = await self._normalize(
            track, path, word, [live[j] for j in pending], outcome, cache_result=False
        )
        if normalized is not None:
            for j, entry in zip(pending, normalized):
                live[j] = entry
            sense_token["senses"] = live

    async def _seed(self, track: Track, path: str, word: str, outcome: _Outcome) -> list[dict[str, Any]]:
        """Stage A: cached normalized senses, else lookup (then Stage B if enabled)."""
        cached = await self.cache.peek(track.collection, word, "senses", _fully_normalized)
        if cached is not None:
            return copy.deepcopy(cached)

        raw = await self._cached(
            outcome, path, track.collection, word, "raw_senses", "lookup_senses",
            lambda: self.services.lookup_senses(word, track.language),
        )
        if not raw:
            return []
        seeded = seed_senses(word, raw)
        if not self.context.normalize_seeded:
            return seeded

        # Concurrent callers share one result object; each record gets its own copy.
        normalized = await self._normalize(track, path, word, seeded, outcome, cache_result=True)
        return copy.deepcopy(normalized) if normalized is not None else seeded

    async def _normalize(
        self,
        track: Track,
        path: str,
        word: str,
        entries: list[dict[str, Any]],
        outcome: _Outcome,
        cache_result: bool,
    ) -> list[dict[str, Any]] | None:
        """Stage B: one normalization call for the given raw entries of a token."""
        prompt = self.context.prompt_context(self.record, word, track.language)

        async def call() -> list[dict[str, Any]]:
            result = await self._invoke(
                outcome,
                "normalize_senses",
                lambda: self.services.normalize_senses(word, copy.deepcopy(entries), prompt, track.language),
            )
            return merge_normalized(entries, result or [])

        try:
            if cache_result:
                merged = await self.cache.get_or_compute(
                    track.collection, word, "senses", call, _fully_normalized
                )
            else:
                merged = await call()
        except TransientHelperError as exc:
            logger.warning("normalize_senses failed for %s: %s", path, exc)
            outcome.note(path, "normalize_senses", DiagnosticStatus.FAILED, str(exc))
            return None

        if not all(is_normalized(entry) for entry in merged):
            outcome.note(path, "normalize_senses", DiagnosticStatus.EMPTY, "fewer senses returned than sent")
        return merged

    # ------------------------------------------------------------------
    # Stage 4: alignment
    # ------------------------------------------------------------------

    async def align(self) -> None:
        if not self._wants(self.workmap, "matched_words", "matched_words", self.record.get("matched_words")):
            return
        thai_words = ref_words(self.record.get(THAI.refs_key))
        english_words = ref_words(self.record.get(ENGLISH.refs_key), lowercase=True)
        if not thai_words or not english_words:
            self.outcome.note("matched_words", "align", DiagnosticStatus.NOT_COMPUTED, "word refs are empty")
            return
        prompt = self.context.prompt_context(self.record, "", "thai")
        try:
            matches = await self._invoke(
                self.outcome, "align", lambda: self.services.align(thai_words, english_words, prompt)
            )
        except TransientHelperError as exc:
            logger.warning("align failed for %s: %s", self.record["id"], exc)
            self.outcome.note("matched_words", "align", DiagnosticStatus.FAILED, str(exc))
            return
        self.record["matched_words"] = list(matches or [])

    # ------------------------------------------------------------------
    # Stage 5: links
    # ------------------------------------------------------------------

    def link_subtitles(self) -> None:
        if not self._wants(self.workmap, "subtitle_refs", "subtitle_refs", self.record.get("subtitle_refs")):
            return
        tokens = (self.record.get("tokens") or {}).get(THAI.display_key) or []
        if not self.context.media_id or not tokens:
            reason = "media_id is not set" if not self.context.media_id else "no thai tokens"
            self.outcome.note("subtitle_refs", "link", DiagnosticStatus.NOT_COMPUTED, reason)
            return
        self.record["subtitle_refs"] = build_subtitle_refs(self.context.media_id, self.record["id"], len(tokens))


def _fully_normalized(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(is_normalized(e) for e in value)


def merge_normalized(raw: list[dict[str, Any]], normalized: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Lay normalized senses over their raw entries, position by position.

    RULES:
    - id, index, and selected always come from the raw entry
    - original_data keeps the raw definition/pos/sense_number
    - raw entries without a normalized counterpart are returned unchanged
    """
    stamp = datetime.now(timezone.utc).isoformat()
    merged = []
    for position, entry in enumerate(raw):
        if position >= len(normalized) or not isinstance(normalized[position], Mapping):
            merged.append(copy.deepcopy(entry))
            continue
        item = {**copy.deepcopy(entry), **normalized[position]}
        item["id"] = entry.get("id")
        item["index"] = entry.get("index")
        item["selected"] = entry.get("selected", False)
        item["original_data"] = copy.deepcopy(entry.get("original_data")) or {
            "definition": entry.get("definition", ""),
            "pos": entry.get("pos", ""),
            "sense_number": entry.get("sense_number", ""),
        }
        item["normalized"] = True
        item["normalized_at"] = stamp
        item["normalization_version"] = NORMALIZATION_VERSION
        merged.append(item)
    return merged

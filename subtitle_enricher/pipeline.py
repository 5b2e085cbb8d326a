"""Record-level and batch-level entry points.

WHY: Callers rarely want to drive gate, generate, and process by hand.
enrich() does the whole cycle for one record; enrich_batch() runs many
records against one shared word cache so repeated words are computed
once per batch.

HOW: enrich() validates, then alternates generate() and process(). A
pass that grows the token arrays creates leaves its own WorkMap could
not see, so another pass runs while the structure keeps growing, up to
max_passes. enrich_batch() fans records out under a semaphore and
writes each result into its input slot.

RULES:
- enrich() raises the pipeline's fatal errors; enrich_batch() records
  them per item and carries on
- Batch results are index-aligned with the input
- commit() is the only place a record's WorkMap goes from dirty to clean
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Optional

from subtitle_enricher.core.context import EnrichmentContext
from subtitle_enricher.core.errors import EnrichmentError
from subtitle_enricher.core.gate import validate_record
from subtitle_enricher.core.orchestrator import EnrichedRecord, process
from subtitle_enricher.core.record import TRACKS
from subtitle_enricher.core.workmap import blank, generate, is_flagged

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 3


@dataclass
class BatchItem:
    """Outcome for one record of a batch: either a result or an error."""

    record_id: Optional[str]
    result: Optional[EnrichedRecord] = None
    error: Optional[EnrichmentError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _token_counts(record: dict[str, Any]) -> tuple[int, ...]:
    tokens = record.get("tokens") or {}
    return tuple(len(tokens.get(track.display_key) or []) for track in TRACKS)


async def enrich(
    record: dict[str, Any],
    context: EnrichmentContext,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> EnrichedRecord:
    """Validate ``record`` and enrich it until no new structure appears."""
    validate_record(record)

    current = record
    result = EnrichedRecord(record=record)
    calls: Counter = Counter()
    for attempt in range(1, max_passes + 1):
        workmap = generate(current, context)
        if not is_flagged(workmap):
            logger.debug("Record %s needs no work", current.get("id"))
            break
        before = _token_counts(current)
        result = await process(current, workmap, context)
        calls.update(result.calls)
        current = result.record
        if _token_counts(current) == before:
            break
        logger.debug("Record %s grew tokens on pass %d; running another pass", current.get("id"), attempt)

    if current is record:
        current = copy.deepcopy(record)
    return EnrichedRecord(record=current, diagnostics=result.diagnostics, calls=calls)


async def enrich_batch(
    records: list[dict[str, Any]],
    context: EnrichmentContext,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> list[BatchItem]:
    """Enrich records concurrently with one shared word cache."""
    semaphore = asyncio.Semaphore(max(1, context.concurrency))
    results: list[Optional[BatchItem]] = [None] * len(records)

    async def run(i: int, record: dict[str, Any]) -> None:
        record_id = record.get("id") if isinstance(record, dict) else None
        async with semaphore:
            try:
                enriched = await enrich(record, context, max_passes=max_passes)
            except EnrichmentError as exc:
                logger.warning("Record %s failed: %s", record_id, exc)
                results[i] = BatchItem(record_id=record_id, error=exc)
            else:
                results[i] = BatchItem(record_id=record_id, result=enriched)

    await asyncio.gather(*(run(i, record) for i, record in enumerate(records)))
    failed = sum(1 for item in results if item is not None and not item.ok)
    logger.info("Batch finished: %d records, %d failed", len(records), failed)
    return [item for item in results if item is not None]


def commit(record: dict[str, Any]) -> dict:
    """WorkMap for a record that has just been durably persisted: all satisfied."""
    return blank(record)

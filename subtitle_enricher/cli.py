"""Command-line interface for the subtitle enricher.

WHY: Operators need to enrich a file of records (one subtitle or a whole
episode) from the terminal, resume it after a failure by running the
same command again, and see which fields are still missing and why.

HOW: argparse reads the input JSON (one record or a list), builds an
EnrichmentContext with the default services and a word cache (in memory,
or a directory of JSON files with --cache-dir so reruns reuse earlier
lookups), runs enrich_batch() via asyncio.run(), and writes one result
object per record.

RULES:
- Output goes to -o/--output, or stdout when omitted
- Status and diagnostics go to stderr via logging
- Exit status 1 when any record failed fatally or configuration is missing
- --workmap adds each enriched record's regenerated WorkMap to its result
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from subtitle_enricher import __version__
from subtitle_enricher.config import DEFAULT_CONCURRENCY
from subtitle_enricher.core.cache import WordEntityCache
from subtitle_enricher.core.context import EnrichmentContext
from subtitle_enricher.core.store import InMemoryDocumentStore, JsonFileDocumentStore
from subtitle_enricher.core.workmap import generate, workmap_to_json
from subtitle_enricher.pipeline import BatchItem, enrich_batch
from subtitle_enricher.services.default import DefaultServices

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="subtitle-enricher",
        description="Enrich subtitle records with segmentation, pronunciation, and dictionary senses.",
    )
    parser.add_argument("input", type=Path, help="JSON file holding one record or a list of records")
    parser.add_argument("-o", "--output", type=Path, help="where to write results (default: stdout)")
    parser.add_argument("--media-id", help="media id used to build subtitle_refs")
    parser.add_argument("--show", dest="show_name", help="show name passed to AI helpers")
    parser.add_argument("--season", help="season passed to AI helpers")
    parser.add_argument("--episode", help="episode passed to AI helpers")
    parser.add_argument("--concurrency", type=int, default=DEFAULT_CONCURRENCY, help="helper calls in flight")
    parser.add_argument("--cache-dir", type=Path, help="directory for the persistent word cache")
    parser.add_argument(
        "--no-normalize",
        action="store_true",
        help="seed senses from the dictionary without normalizing them in the same pass",
    )
    parser.add_argument("--track-thai", help="URL of the Thai WebVTT track")
    parser.add_argument("--track-eng", help="URL of the English WebVTT track")
    parser.add_argument("--workmap", action="store_true", help="include each record's remaining WorkMap")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="warnings and errors only")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_records(path: Path) -> List[Any]:
    """Read one record or a list of records from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


def render_item(item: BatchItem, context: EnrichmentContext, include_workmap: bool) -> dict:
    if not item.ok:
        return {"id": item.record_id, "error": str(item.error), "error_type": type(item.error).__name__}
    result = item.result
    rendered = {
        "id": item.record_id,
        "record": result.record,
        "diagnostics": [d.to_dict() for d in result.diagnostics],
        "calls": dict(result.calls),
    }
    if include_workmap:
        rendered["workmap"] = workmap_to_json(generate(result.record, context))
    return rendered


async def run(args: argparse.Namespace) -> int:
    records = load_records(args.input)
    store = JsonFileDocumentStore(args.cache_dir) if args.cache_dir else InMemoryDocumentStore()
    track_urls = {"thai": args.track_thai, "eng": args.track_eng}

    async with DefaultServices.from_config(track_urls) as services:
        context = EnrichmentContext(
            services=services,
            cache=WordEntityCache(store),
            media_id=args.media_id,
            show_name=args.show_name,
            season=args.season,
            episode=args.episode,
            concurrency=args.concurrency,
            normalize_seeded=not args.no_normalize,
        )
        items = await enrich_batch(records, context)

    output = [render_item(item, context, args.workmap) for item in items]
    text = json.dumps(output, ensure_ascii=False, indent=2)
    if args.output:
        args.output.write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote %d results to %s", len(output), args.output)
    else:
        sys.stdout.write(text + "\n")

    for item in items:
        if not item.ok:
            logger.error("%s: %s", item.record_id, item.error)
            continue
        for diagnostic in item.result.diagnostics:
            logger.info("%s %s: %s (%s)", item.record_id, diagnostic.path, diagnostic.status.value, diagnostic.reason)
    return 1 if any(not item.ok for item in items) else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    try:
        return asyncio.run(run(args))
    except (OSError, ValueError) as exc:
        # Missing input file, bad JSON, or missing API key.
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

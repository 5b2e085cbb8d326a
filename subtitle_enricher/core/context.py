"""Per-pass enrichment context.

WHY: The orchestrator is stateless between calls. Everything a pass needs
beyond the record and its WorkMap (the helpers, the shared word cache,
show metadata for AI prompts, concurrency limits) travels in one explicit
object instead of module-level globals.

HOW: EnrichmentContext is a plain dataclass. prompt_context() builds the
show/record metadata passed to AI helpers.

RULES:
- concurrency bounds helper calls in flight within one pass
- normalize_seeded=True normalizes freshly looked-up senses in the same
  pass; False stops after the lookup and leaves normalization to the next
- media_id is required to build subtitle_refs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from subtitle_enricher.config import DEFAULT_CONCURRENCY
from subtitle_enricher.core.predicates import DEFAULT_REGISTRY, PredicateRegistry

if TYPE_CHECKING:
    from subtitle_enricher.core.cache import WordEntityCache
    from subtitle_enricher.services.base import EnrichmentServices


@dataclass
class EnrichmentContext:
    services: EnrichmentServices
    cache: WordEntityCache
    media_id: str | None = None
    show_name: str | None = None
    season: str | None = None
    episode: str | None = None
    concurrency: int = DEFAULT_CONCURRENCY
    normalize_seeded: bool = True
    registry: PredicateRegistry = field(default_factory=DEFAULT_REGISTRY.copy)

    def prompt_context(self, record: dict[str, Any], word: str, language: str) -> dict[str, Any]:
        """Metadata handed to normalization and alignment helpers."""
        return {
            "word": word,
            "language": language,
            "thai_text": record.get("thai") or "",
            "english_text": record.get("english") or "",
            "show_name": self.show_name or "",
            "season": self.season,
            "episode": self.episode,
            "media_id": self.media_id,
        }

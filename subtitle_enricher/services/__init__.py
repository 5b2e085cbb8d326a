"""Enrichment helpers: the async contract and its concrete implementations."""

from subtitle_enricher.services.base import Cue, EnrichmentServices

__all__ = ["Cue", "EnrichmentServices"]

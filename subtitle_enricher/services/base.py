"""Abstract contract for enrichment helpers.

WHY: The orchestrator must not know whether a transliteration comes from
AI4Thai, a local rule set, or a test fake. Every helper it dispatches is
one async method on EnrichmentServices, so swapping a provider or faking
all of them in tests means one subclass.

HOW: EnrichmentServices is an ABC. Each method is a single request and
response. Implementations raise TransientHelperError (or a subclass) on
any failure the caller may retry later.

RULES:
- Every method must be safe to call repeatedly with the same input
- AI-backed methods need presence-equivalent output, not byte-identical
- Methods never mutate their arguments
- language is "thai" or "eng"
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Cue:
    """One parsed subtitle cue: text plus its start/end in seconds."""

    text: str
    start: float | None
    end: float | None


class EnrichmentServices(abc.ABC):
    """The helper calls the orchestrator may dispatch."""

    @abc.abstractmethod
    async def fetch_cue(self, record_id: str, language: str, context: Any) -> Cue | None:
        """Fetch and parse the cue for ``record_id`` from the language's track."""

    @abc.abstractmethod
    async def segment(self, text: str, language: str) -> list[str]:
        """Split subtitle text into ordered word tokens."""

    @abc.abstractmethod
    async def transliterate(self, token: str) -> str:
        """Thai token -> phonetic (g2p) string."""

    @abc.abstractmethod
    async def phonetic_to_legible(self, phonetic: str) -> str:
        """Phonetic string -> readable Latin rendering."""

    @abc.abstractmethod
    async def lookup_senses(self, word: str, language: str) -> list[dict[str, Any]]:
        """Raw dictionary senses for ``word``, in dictionary order."""

    @abc.abstractmethod
    async def normalize_senses(
        self,
        word: str,
        senses: list[dict[str, Any]],
        context: dict[str, Any],
        language: str,
    ) -> list[dict[str, Any]]:
        """Normalized senses, one per input entry and in the same order."""

    @abc.abstractmethod
    async def align(
        self,
        thai_tokens: list[str],
        english_tokens: list[str],
        context: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Word correspondences as {thai_word, english_word, confidence} dicts."""

"""Default helper set wiring the concrete clients together.

WHY: The CLI and batch runner need one EnrichmentServices object that
routes every helper call to the right provider: AI4Thai for Thai
segmentation and g2p, ORST and the free dictionary for raw senses,
OpenAI for normalization and alignment, local rules for English
segmentation and legible phonetics, WebVTT tracks for cues.

HOW: DefaultServices holds one client per provider and opens/closes them
together through an AsyncExitStack.

RULES:
- Use as: async with DefaultServices.from_config(...) as services: ...
- Clients are injectable so tests can pass MockTransport-backed ones
"""

from __future__ import annotations

import contextlib
from typing import Any

from subtitle_enricher.services.ai4thai import AI4ThaiClient
from subtitle_enricher.services.base import Cue, EnrichmentServices
from subtitle_enricher.services.english import tokenize_english
from subtitle_enricher.services.english_dictionary import EnglishDictionaryClient
from subtitle_enricher.services.openai_client import OpenAIClient
from subtitle_enricher.services.orst import OrstClient
from subtitle_enricher.services.phonetics import to_legible
from subtitle_enricher.services.vtt import VttTrackSource


class DefaultServices(EnrichmentServices):
    def __init__(
        self,
        ai4thai: AI4ThaiClient,
        orst: OrstClient,
        openai: OpenAIClient,
        english_dictionary: EnglishDictionaryClient,
        tracks: VttTrackSource,
    ) -> None:
        self.ai4thai = ai4thai
        self.orst = orst
        self.openai = openai
        self.english_dictionary = english_dictionary
        self.tracks = tracks
        self._stack: contextlib.AsyncExitStack | None = None

    @classmethod
    def from_config(cls, track_urls: dict[str, str] | None = None) -> DefaultServices:
        """Build every client from config.py / .env settings."""
        return cls(
            ai4thai=AI4ThaiClient(),
            orst=OrstClient(),
            openai=OpenAIClient(),
            english_dictionary=EnglishDictionaryClient(),
            tracks=VttTrackSource(track_urls),
        )

    async def __aenter__(self) -> DefaultServices:
        stack = contextlib.AsyncExitStack()
        for client in (self.ai4thai, self.orst, self.openai, self.english_dictionary, self.tracks):
            await stack.enter_async_context(client)
        self._stack = stack
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._stack:
            await self._stack.aclose()
            self._stack = None

    # ------------------------------------------------------------------
    # EnrichmentServices
    # ------------------------------------------------------------------

    async def fetch_cue(self, record_id: str, language: str, context: Any) -> Cue | None:
        return await self.tracks.fetch_cue(record_id, language, context)

    async def segment(self, text: str, language: str) -> list[str]:
        if language == "thai":
            return await self.ai4thai.tokenize(text)
        return tokenize_english(text)

    async def transliterate(self, token: str) -> str:
        return await self.ai4thai.g2p(token)

    async def phonetic_to_legible(self, phonetic: str) -> str:
        return to_legible(phonetic)

    async def lookup_senses(self, word: str, language: str) -> list[dict[str, Any]]:
        if language == "thai":
            return await self.orst.lookup(word)
        return await self.english_dictionary.lookup(word)

    async def normalize_senses(
        self,
        word: str,
        senses: list[dict[str, Any]],
        context: dict[str, Any],
        language: str,
    ) -> list[dict[str, Any]]:
        return await self.openai.normalize_senses(word, senses, context, language)

    async def align(
        self,
        thai_tokens: list[str],
        english_tokens: list[str],
        context: dict[str, Any],
    ) -> list[dict[str, Any]]:
        return await self.openai.align(thai_tokens, english_tokens, context)

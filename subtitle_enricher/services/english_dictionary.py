"""English dictionary lookup via the free dictionary API.

WHY: English sense tokens go through the same lookup/normalize stages as
Thai ones, so they need a raw sense source.

HOW: GET {ENGLISH_DICTIONARY_URL}/{word}. The response is a list of
entries, each with meanings[].partOfSpeech and
meanings[].definitions[].definition; every definition becomes one raw
sense.

RULES:
- 404 means "no entry" and returns []
- Senses are numbered from 1 in response order
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from subtitle_enricher.config import ENGLISH_DICTIONARY_URL
from subtitle_enricher.services.http import HTTPService


class EnglishDictionaryClient(HTTPService):
    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(base_url or ENGLISH_DICTIONARY_URL, transport=transport)

    async def lookup(self, word: str) -> list[dict[str, Any]]:
        word = (word or "").strip().lower()
        if not word:
            return []
        resp = await self._request("lookup_senses", "GET", f"/{quote(word)}", allow=(404,))
        if resp.status_code == 404:
            return []
        return parse_dictionary_entries(self._json("lookup_senses", resp), word)


def parse_dictionary_entries(data: Any, word: str) -> list[dict[str, Any]]:
    """Flatten free-dictionary entries into raw sense dicts."""
    senses: list[dict[str, Any]] = []
    for entry in data if isinstance(data, list) else []:
        for meaning in entry.get("meanings") or []:
            pos = meaning.get("partOfSpeech") or ""
            for definition in meaning.get("definitions") or []:
                text = (definition.get("definition") or "").strip()
                if not text:
                    continue
                senses.append({
                    "english_word": word,
                    "pos": pos,
                    "definition": text,
                    "source": "dictionaryapi.dev",
                    "index": len(senses),
                    "sense_number": str(len(senses) + 1),
                })
    return senses

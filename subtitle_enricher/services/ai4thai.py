"""AI4Thai client for Thai word segmentation and grapheme-to-phoneme.

WHY: Thai is written without spaces between words, so segmentation needs
a trained model; pronunciation needs a g2p model. AI4Thai provides both
behind simple REST endpoints.

HOW: POST /longan/tokenize (form-encoded) and POST /g2p (JSON), both
authenticated with an ``Apikey`` header.

RULES:
- tokenize sends sep="|", wordseg=true, sentseg=false; the result is a
  "|"-joined string or a list of them (one per sentence)
- g2p reads "phoneme", falling back to "result" (string or list)
- Blank tokens are dropped; an empty phoneme is returned as ""
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from subtitle_enricher.config import AI4THAI_BASE_URL, load_ai4thai_api_key
from subtitle_enricher.services.http import HTTPService

logger = logging.getLogger(__name__)


class AI4ThaiClient(HTTPService):
    """Async client for the AI4Thai tokenize and g2p endpoints.

    RULES:
    - Use as: async with AI4ThaiClient() as client: ...
    - api_key defaults to load_ai4thai_api_key() from .env
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url or AI4THAI_BASE_URL,
            headers={"Apikey": api_key or load_ai4thai_api_key()},
            transport=transport,
        )

    async def tokenize(self, text: str) -> list[str]:
        """Segment Thai text into words."""
        if not text or not text.strip():
            return []
        resp = await self._request(
            "segment",
            "POST",
            "/longan/tokenize",
            data={"text": text.strip(), "sep": "|", "wordseg": "true", "sentseg": "false"},
        )
        data = self._json("segment", resp)
        return _split_tokens(data.get("result") if isinstance(data, dict) else None)

    async def g2p(self, word: str) -> str:
        """Phoneme string for a Thai word."""
        if not word or not word.strip():
            return ""
        resp = await self._request(
            "transliterate",
            "POST",
            "/g2p",
            json={"text": word.strip(), "output_type": "phoneme"},
        )
        data = self._json("transliterate", resp)
        if not isinstance(data, dict):
            return ""
        phoneme = data.get("phoneme")
        if not isinstance(phoneme, str):
            phoneme = data.get("result")
        if isinstance(phoneme, list):
            phoneme = "|".join(str(p) for p in phoneme)
        logger.debug("g2p %s -> %r", word, phoneme)
        return phoneme.strip() if isinstance(phoneme, str) else ""


def _split_tokens(result: Any) -> list[str]:
    if isinstance(result, str):
        pieces = result.split("|")
    elif isinstance(result, list):
        pieces = [token for sentence in result if isinstance(sentence, str) for token in sentence.split("|")]
    else:
        return []
    return [piece.strip() for piece in pieces if piece and piece.strip()]

"""OpenAI chat-completions client for sense normalization and word alignment.

WHY: Raw dictionary senses (ORST for Thai, the free dictionary for
English) are inconsistent: mixed POS labels, long run-on definitions, no
translation. An LLM pass turns each raw sense into a compact
meaning/description pair in both languages. The same model aligns Thai
and English words of a subtitle.

HOW: POST /chat/completions with response_format json_object, so the
reply is one JSON document. Replies are parsed with pydantic models that
accept the camelCase keys the prompt asks for and emit snake_case dicts.

RULES:
- Model defaults to OPENAI_MODEL (gpt-4o), temperature 0.2
- normalize_senses returns one entry per input sense, same order
- align returns {thai_word, english_word, confidence} dicts; words not
  present in the inputs are dropped
- Any HTTP, transport, or parse failure raises TransientHelperError
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from subtitle_enricher.config import (
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    OPENAI_TEMPERATURE,
    load_openai_api_key,
)
from subtitle_enricher.core.errors import TransientHelperError
from subtitle_enricher.services.http import HTTPService

logger = logging.getLogger(__name__)

_MAX_TOKENS = 2000

_NORMALIZE_SYSTEM_PROMPT = (
    "You are an expert Thai-English dictionary editor. Normalize each raw "
    "dictionary sense into separate fields:\n"
    "1. MEANING: one compact gloss word or tight noun phrase, the label, not an explanation.\n"
    "2. DESCRIPTION: a short clarification of one or two lines, just enough to disambiguate.\n"
    "Keep meaning and description separate. Return ONLY valid JSON matching the "
    "required structure, without markdown."
)

_ALIGN_SYSTEM_PROMPT = (
    "You are a bilingual Thai-English language expert identifying word "
    "correspondences between parallel subtitle translations. Not every word has "
    "a match. Return ONLY valid JSON matching the required structure, without markdown."
)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class NormalizedSense(BaseModel):
    """One normalized sense as returned by the model."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    pos: Optional[str] = Field(default=None, description="Standardized part of speech in the source language.")
    pos_english: str = Field(default="", alias="posEnglish", description="English part of speech.")
    meaning_thai: str = Field(default="", alias="meaningThai", description="Compact Thai gloss.")
    meaning_english: str = Field(default="", alias="meaningEnglish", description="Compact English gloss.")
    description_thai: str = Field(default="", alias="descriptionThai", description="Short Thai clarification.")
    description_english: str = Field(
        default="", alias="descriptionEnglish", description="Short English clarification."
    )
    sense_number: Optional[str] = Field(default=None, alias="senseNumber", description="Arabic numeral.")
    confidence: Optional[float] = Field(default=None, description="Model confidence, 0-100.")


class NormalizationResponse(BaseModel):
    senses: List[NormalizedSense] = Field(default_factory=list)


class WordMatch(BaseModel):
    """One Thai/English word correspondence."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    thai_word: str = Field(alias="thaiWord")
    english_word: str = Field(alias="englishWord")
    confidence: float = Field(default=0.0, description="Match confidence, 0-100.")


class AlignmentResponse(BaseModel):
    matches: List[WordMatch] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class OpenAIClient(HTTPService):
    """Async client for the two AI-backed helpers.

    RULES:
    - Use as: async with OpenAIClient() as client: ...
    - api_key defaults to load_openai_api_key() from .env
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        key = api_key or load_openai_api_key()
        super().__init__(
            base_url or OPENAI_BASE_URL,
            headers={"Authorization": f"Bearer {key}"},
            transport=transport,
        )
        self._model = model or OPENAI_MODEL
        self._temperature = OPENAI_TEMPERATURE if temperature is None else temperature

    async def _complete(self, helper: str, system_prompt: str, user_payload: dict[str, Any]) -> str:
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": json.dumps(user_payload, ensure_ascii=False)},
            ],
            "temperature": self._temperature,
            "max_tokens": _MAX_TOKENS,
            "response_format": {"type": "json_object"},
        }
        resp = await self._request(helper, "POST", "/chat/completions", json=body)
        data = self._json(helper, resp)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise TransientHelperError(helper, "response has no message content") from exc
        if not content or not content.strip():
            raise TransientHelperError(helper, "empty completion")
        return content

    async def normalize_senses(
        self,
        word: str,
        senses: list[dict[str, Any]],
        context: dict[str, Any],
        language: str,
    ) -> list[dict[str, Any]]:
        """Normalize raw senses of ``word``; returns one dict per input sense."""
        if not senses:
            return []
        payload = {
            "task": "Normalize and enhance dictionary senses with Thai and English fields",
            "context": {
                "word": word,
                "language": language,
                "fullText": context.get("thai_text") if language == "thai" else context.get("english_text"),
                "showName": context.get("show_name") or None,
                "season": context.get("season"),
                "episode": context.get("episode"),
                "rawSenses": [
                    {
                        "index": index,
                        "pos": sense.get("pos", ""),
                        "definition": sense.get("definition", ""),
                        "senseNumber": sense.get("sense_number", ""),
                        "source": sense.get("source", ""),
                    }
                    for index, sense in enumerate(senses)
                ],
            },
            "requiredStructure": {
                "senses": [
                    {
                        "pos": "string",
                        "posEnglish": "string (noun, verb, adjective, ...)",
                        "meaningThai": "string (one compact gloss)",
                        "meaningEnglish": "string (one compact gloss)",
                        "descriptionThai": "string (1-2 lines)",
                        "descriptionEnglish": "string (1-2 lines)",
                        "senseNumber": "string (Arabic numerals)",
                        "confidence": "number (0-100)",
                    }
                ]
            },
            "instructions": [
                "Return exactly one normalized sense per raw sense, in the same order",
                "Meaning and description fields are required",
                "Convert Thai numerals to Arabic in senseNumber",
            ],
        }
        content = await self._complete("normalize_senses", _NORMALIZE_SYSTEM_PROMPT, payload)
        try:
            parsed = NormalizationResponse.model_validate_json(content)
        except PydanticValidationError as exc:
            raise TransientHelperError("normalize_senses", f"unexpected response shape: {exc}") from exc

        logger.debug("Normalized %d/%d senses for %s", len(parsed.senses), len(senses), word)
        return [sense.model_dump(exclude_none=True) for sense in parsed.senses[: len(senses)]]

    async def align(
        self,
        thai_tokens: list[str],
        english_tokens: list[str],
        context: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Match Thai words to English words of the same subtitle."""
        if not thai_tokens or not english_tokens:
            return []
        payload = {
            "task": "Match words between Thai and English subtitles",
            "context": {
                "showName": context.get("show_name") or "",
                "season": context.get("season"),
                "episode": context.get("episode"),
                "thaiText": context.get("thai_text", ""),
                "englishText": context.get("english_text", ""),
                "thaiWords": thai_tokens,
                "englishWords": english_tokens,
            },
            "instructions": [
                "Match words based on meaning, not just literal translation",
                "Provide confidence scores (0-100) for each match",
                "Return matches in Thai word order; omit Thai words with no match",
                "If several English words match one Thai word, return the best one",
            ],
            "requiredStructure": {
                "matches": [{"thaiWord": "string", "englishWord": "string", "confidence": "number"}]
            },
        }
        content = await self._complete("align", _ALIGN_SYSTEM_PROMPT, payload)
        try:
            parsed = AlignmentResponse.model_validate_json(content)
        except PydanticValidationError as exc:
            raise TransientHelperError("align", f"unexpected response shape: {exc}") from exc

        thai_set = set(thai_tokens)
        english_set = {w.lower() for w in english_tokens}
        return [
            {"thai_word": m.thai_word, "english_word": m.english_word.lower(), "confidence": m.confidence}
            for m in parsed.matches
            if m.thai_word in thai_set and m.english_word.lower() in english_set
        ]

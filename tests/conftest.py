"""Shared fixtures for the subtitle_enricher test suite.

WHY: Almost every test needs a valid record, a set of helpers that never
touch the network, and a way to count exactly which helpers a pass
called. Centralizing them keeps the scenarios readable.

HOW: FakeServices implements EnrichmentServices from in-memory tables and
counts every call in ``calls`` (by helper) and ``log`` (helper, argument).
make_record() builds the "รถ" record used by most scenarios.

RULES:
- FakeServices never performs I/O; failures are opted into via ``fail``
- ``delays`` lets a test make some tokens finish later than others
- Raw sense data mirrors the ORST parser's output keys
"""

from __future__ import annotations

import asyncio
import copy
from collections import Counter
from typing import Any, Dict, List, Optional

import pytest

from subtitle_enricher.core.cache import WordEntityCache
from subtitle_enricher.core.context import EnrichmentContext
from subtitle_enricher.core.errors import TransientHelperError
from subtitle_enricher.core.record import new_record
from subtitle_enricher.core.store import InMemoryDocumentStore
from subtitle_enricher.services.base import Cue, EnrichmentServices


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

RECORD_ID = "media1-7"

RAW_SENSES: Dict[str, List[Dict[str, Any]]] = {
    "รถ": [
        {"thai_word": "รถ", "pos": "น", "definition": "ยานที่มีล้อสำหรับเคลื่อนไปบนบก", "source": "ORST", "sense_number": "1"},
        {"thai_word": "รถ", "pos": "น", "definition": "เรียกเครื่องยนต์บางชนิด", "source": "ORST", "sense_number": "2"},
    ],
    "ไป": [
        {"thai_word": "ไป", "pos": "ก", "definition": "เคลื่อนจากที่หนึ่งไปอีกที่หนึ่ง", "source": "ORST", "sense_number": ""},
    ],
    "the": [
        {"english_word": "the", "pos": "article", "definition": "Definite article.", "source": "dictionaryapi.dev", "sense_number": "1"},
    ],
    "car": [
        {"english_word": "car", "pos": "noun", "definition": "A wheeled motor vehicle.", "source": "dictionaryapi.dev", "sense_number": "1"},
    ],
}

G2P: Dict[str, str] = {"รถ": "rot1", "ไป": "paj0", "บ้าน": "baan2"}


class FakeServices(EnrichmentServices):
    """In-memory helpers that count every call."""

    def __init__(
        self,
        cues: Optional[Dict[tuple, Cue]] = None,
        senses: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        g2p: Optional[Dict[str, str]] = None,
        fail: Optional[set] = None,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.cues = cues or {}
        self.senses = RAW_SENSES if senses is None else senses
        self.g2p = G2P if g2p is None else g2p
        self.fail = set(fail or ())
        self.delays = delays or {}
        self.calls: Counter = Counter()
        self.log: List[tuple] = []
        self.normalize_inputs: List[List[Dict[str, Any]]] = []

    async def __aenter__(self) -> FakeServices:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def _hit(self, helper: str, key: Any) -> None:
        self.calls[helper] += 1
        self.log.append((helper, key))
        delay = self.delays.get(str(key), 0.0)
        if delay:
            await asyncio.sleep(delay)
        if (helper, key) in self.fail or (helper, None) in self.fail:
            raise TransientHelperError(helper, f"simulated failure for {key!r}")

    async def fetch_cue(self, record_id: str, language: str, context: Any) -> Optional[Cue]:
        await self._hit("fetch_cue", (record_id, language))
        return self.cues.get((record_id, language))

    async def segment(self, text: str, language: str) -> List[str]:
        await self._hit("segment", text)
        words = text.split()
        return [w.lower().strip(".,!?") for w in words] if language == "eng" else words

    async def transliterate(self, token: str) -> str:
        await self._hit("transliterate", token)
        return self.g2p.get(token, "")

    async def phonetic_to_legible(self, phonetic: str) -> str:
        await self._hit("phonetic_to_legible", phonetic)
        return phonetic.rstrip("0123456789")

    async def lookup_senses(self, word: str, language: str) -> List[Dict[str, Any]]:
        await self._hit("lookup_senses", word)
        return copy.deepcopy(self.senses.get(word, []))

    async def normalize_senses(
        self,
        word: str,
        senses: List[Dict[str, Any]],
        context: Dict[str, Any],
        language: str,
    ) -> List[Dict[str, Any]]:
        await self._hit("normalize_senses", word)
        self.normalize_inputs.append(copy.deepcopy(senses))
        return [
            {
                "pos_english": "noun",
                "meaning_thai": f"{word} ({i + 1})",
                "meaning_english": f"{word} meaning {i + 1}",
                "description_thai": sense.get("definition", ""),
                "description_english": f"Sense {i + 1} of {word}",
                "confidence": 90,
            }
            for i, sense in enumerate(senses)
        ]

    async def align(
        self,
        thai_tokens: List[str],
        english_tokens: List[str],
        context: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        await self._hit("align", tuple(thai_tokens))
        return [
            {"thai_word": t, "english_word": e, "confidence": 80}
            for t, e in zip(thai_tokens, english_tokens)
        ]


def make_record(record_id: str = RECORD_ID, **overrides: Any) -> Dict[str, Any]:
    """Record with Thai text "รถ", one Thai token, empty English, empty senses."""
    record = new_record(record_id)
    record.update(
        thai="รถ",
        start_sec_thai=1.0,
        end_sec_thai=2.5,
        start_sec_eng=1.0,
        end_sec_eng=2.5,
        word_refs_thai=["รถ:0"],
    )
    record["tokens"]["display_thai"] = [
        {"index": 0, "thai_script": "รถ", "g2p": "rot1", "english_phonetic": "rot"},
    ]
    record["tokens"]["senses_thai"] = [{"index": 0, "senses": []}]
    record.update(overrides)
    return record


def make_thai_record(words: List[str], record_id: str = RECORD_ID, **overrides: Any) -> Dict[str, Any]:
    """Record whose Thai tokens still need g2p, phonetics, and senses."""
    record = new_record(record_id)
    record.update(
        thai="".join(words),
        english="",
        start_sec_thai=0.0,
        end_sec_thai=1.0,
        start_sec_eng=0.0,
        end_sec_eng=1.0,
        word_refs_thai=[f"{w}:0" for w in words],
        matched_words=[],
        subtitle_refs=[],
    )
    record["tokens"]["display_thai"] = [
        {"index": i, "thai_script": w, "g2p": "", "english_phonetic": ""} for i, w in enumerate(words)
    ]
    record["tokens"]["senses_thai"] = [{"index": i, "senses": []} for i in range(len(words))]
    record.update(overrides)
    return record


def make_context(services: EnrichmentServices, cache: Optional[WordEntityCache] = None, **kwargs: Any) -> EnrichmentContext:
    return EnrichmentContext(
        services=services,
        cache=cache if cache is not None else WordEntityCache(InMemoryDocumentStore()),
        **kwargs,
    )


def strip_stamps(value: Any) -> Any:
    """Drop normalized_at so records from different runs compare equal."""
    if isinstance(value, dict):
        return {k: strip_stamps(v) for k, v in value.items() if k != "normalized_at"}
    if isinstance(value, list):
        return [strip_stamps(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def english_cue() -> Dict[tuple, Cue]:
    return {(RECORD_ID, "eng"): Cue(text="The car", start=1.0, end=2.5)}


@pytest.fixture
def fake_services(english_cue) -> FakeServices:
    return FakeServices(cues=english_cue)


@pytest.fixture
def context(fake_services) -> EnrichmentContext:
    return make_context(fake_services)


@pytest.fixture
def record() -> Dict[str, Any]:
    return make_record()

"""Record template, language tracks, and word-reference helpers.

WHY: A record ("fat bundle") is a plain JSON-compatible dict so it can be
stored, diffed, and mirrored into a WorkMap without conversion. The two
languages share the same layout under different key names; a Track
bundles those key names so the orchestrator handles Thai and English with
one code path.

HOW: new_record() builds the all-empty template. Word references use the
"word:senseIndex" format; parse_word_ref() reads them and inflate_tokens()
turns a list of words into the paired display/sense token arrays.

RULES:
- subtitle_refs and matched_words start as None ("not yet computed");
  an empty list means "computed, nothing found"
- display_* and senses_* arrays for a language are index-aligned
- The word in a ref is the part before ":" of its first comma-separated element
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Track:
    """Key names for one language track of a record."""

    language: str
    text_key: str
    start_key: str
    end_key: str
    refs_key: str
    display_key: str
    senses_key: str
    word_key: str
    collection: str

    @property
    def cue_keys(self) -> tuple[str, str, str]:
        return (self.text_key, self.start_key, self.end_key)


THAI = Track(
    language="thai",
    text_key="thai",
    start_key="start_sec_thai",
    end_key="end_sec_thai",
    refs_key="word_refs_thai",
    display_key="display_thai",
    senses_key="senses_thai",
    word_key="thai_script",
    collection="words_thai",
)

ENGLISH = Track(
    language="eng",
    text_key="english",
    start_key="start_sec_eng",
    end_key="end_sec_eng",
    refs_key="word_refs_eng",
    display_key="display_english",
    senses_key="senses_english",
    word_key="english_word",
    collection="words_eng",
)

TRACKS: tuple[Track, ...] = (THAI, ENGLISH)

TIMING_KEYS = ("start_sec_thai", "end_sec_thai", "start_sec_eng", "end_sec_eng")


def new_record(record_id: str) -> dict[str, Any]:
    """Return the all-empty record template for a newly observed subtitle."""
    return {
        "id": record_id,
        "thai": "",
        "english": "",
        "start_sec_thai": None,
        "end_sec_thai": None,
        "start_sec_eng": None,
        "end_sec_eng": None,
        "word_refs_thai": [],
        "word_refs_eng": [],
        "subtitle_refs": None,
        "matched_words": None,
        "tokens": {
            "display_thai": [],
            "senses_thai": [],
            "display_english": [],
            "senses_english": [],
        },
    }


# ---------------------------------------------------------------------------
# Word references
# ---------------------------------------------------------------------------


def parse_word_ref(ref: Any) -> tuple[str, int | None]:
    """Split a "word:senseIndex" reference into (word, sense_index).

    >>> parse_word_ref("รถ:2")
    ('รถ', 2)
    >>> parse_word_ref("car,cars")
    ('car', None)
    """
    text = str(ref or "").strip().split(",")[0].strip()
    word, sep, index = text.rpartition(":")
    if not sep:
        return text, None
    if index.strip().isdigit():
        return word.strip(), int(index)
    return text, None


def format_word_ref(word: str, sense_index: int = 0) -> str:
    return f"{word}:{sense_index}"


def ref_words(refs: list[Any] | None, lowercase: bool = False) -> list[str]:
    """Words named by a list of references, blanks dropped."""
    words = []
    for ref in refs or []:
        word, _ = parse_word_ref(ref)
        if word:
            words.append(word.lower() if lowercase else word)
    return words


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def inflate_tokens(track: Track, words: list[str]) -> tuple[list[dict], list[dict]]:
    """Build the paired display and sense token arrays for ``words``."""
    display: list[dict] = []
    senses: list[dict] = []
    for index, word in enumerate(words):
        token: dict[str, Any] = {"index": index, track.word_key: word}
        if track is THAI:
            token["g2p"] = ""
            token["english_phonetic"] = ""
        display.append(token)
        senses.append({"index": index, "senses": []})
    return display, senses


def subtitle_index(record_id: str) -> str:
    """Position of the subtitle within its media: the last "-" part of the id."""
    return str(record_id).rsplit("-", 1)[-1]


def build_subtitle_refs(media_id: str, record_id: str, token_count: int) -> list[str]:
    position = subtitle_index(record_id)
    return [f"{media_id}-{position}-{i}" for i in range(token_count)]


def sense_id(word: str, index: int) -> str:
    return f"{word}:{index}"


def seed_senses(word: str, raw: list[dict]) -> list[dict]:
    """Turn raw lookup results into addressable, unnormalized sense entries.

    RULES:
    - id is "word:index"; index follows lookup order
    - the first entry starts selected
    - lookup fields are kept as-is; normalized starts False
    """
    seeded = []
    for index, entry in enumerate(raw):
        item = dict(entry)
        item.pop("normalized", None)
        item["id"] = sense_id(word, index)
        item["index"] = index
        item["selected"] = index == 0
        item["normalized"] = False
        seeded.append(item)
    return seeded

"""Completeness predicates keyed by normalized record path.

WHY: Every leaf of a record has its own idea of "done". A timing is done
as soon as anything is there, a text needs visible characters, a sense
entry is done only once it carries ``normalized: True``. Scattering those
checks through the orchestrator makes their depth drift; a registry keeps
each one in exactly one place, and the generator and orchestrator both
consult it.

HOW: A predicate classifies a leaf value as MISSING, DIRTY, or CLEAN.
"Needs work" is anything but CLEAN. Predicates are registered against a
normalized path pattern where array positions collapse to ``[]``:

    tokens.display_thai[3].g2p   ->   tokens.display_thai[].g2p

Unregistered paths fall back to presence-only.

RULES:
- Depths are deliberately uneven and must stay that way; timings are
  presence-only, so "" counts as satisfied
- Predicates are pure and never raise on odd input
- LEAF_LISTS are judged as a whole, every other list is mirrored
  element by element
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Union

PathPart = Union[str, int]
Path = Sequence[PathPart]


class Completeness(str, enum.Enum):
    """Tri-state result of a completeness predicate."""

    MISSING = "missing"
    DIRTY = "dirty"
    CLEAN = "clean"

    @property
    def needs_work(self) -> bool:
        return self is not Completeness.CLEAN


Predicate = Callable[[Any], Completeness]


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def pattern_of(path: Path) -> str:
    """Collapse a concrete path into its registry pattern."""
    out = ""
    for part in path:
        if isinstance(part, int):
            out += "[]"
        else:
            out = f"{out}.{part}" if out else part
    return out


def format_path(path: Path) -> str:
    """Render a concrete path for diagnostics, e.g. ``tokens.display_thai[3].g2p``."""
    out = ""
    for part in path:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out = f"{out}.{part}" if out else part
    return out


# ---------------------------------------------------------------------------
# Predicate depths
# ---------------------------------------------------------------------------


def presence(value: Any) -> Completeness:
    """Any non-null value satisfies, including "" and 0."""
    return Completeness.MISSING if value is None else Completeness.CLEAN


def presence_content(value: Any) -> Completeness:
    """A string with at least one non-whitespace character."""
    if value is None:
        return Completeness.MISSING
    if isinstance(value, str) and value.strip():
        return Completeness.CLEAN
    return Completeness.DIRTY


def presence_type_list(value: Any) -> Completeness:
    """A list of any length; ``[]`` means "computed, nothing found"."""
    if value is None:
        return Completeness.MISSING
    return Completeness.CLEAN if isinstance(value, list) else Completeness.DIRTY


def non_empty_list(value: Any) -> Completeness:
    if value is None:
        return Completeness.MISSING
    if isinstance(value, list) and value:
        return Completeness.CLEAN
    return Completeness.DIRTY


def exactly_true(value: Any) -> Completeness:
    if value is None:
        return Completeness.MISSING
    return Completeness.CLEAN if value is True else Completeness.DIRTY


def is_normalized(entry: Any) -> bool:
    """True when a sense entry carries the ``normalized: True`` marker."""
    return isinstance(entry, Mapping) and entry.get("normalized") is True


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

SENSE_PATTERNS = frozenset({
    "tokens.senses_thai[].senses",
    "tokens.senses_english[].senses",
})
"""Paths holding the staged Pending | Populated sense leaf."""

LEAF_LISTS = frozenset({
    "word_refs_thai",
    "word_refs_eng",
    "subtitle_refs",
    "matched_words",
})
"""Lists judged as one leaf rather than mirrored element-wise."""


class PredicateRegistry:
    """Maps normalized path patterns to predicates.

    RULES:
    - resolve() never fails; unknown paths get the fallback predicate
    - copy() gives an independent registry for callers that need overrides
    """

    def __init__(
        self,
        predicates: Mapping[str, Predicate] | None = None,
        fallback: Predicate = presence,
    ) -> None:
        self._predicates: dict[str, Predicate] = dict(predicates or {})
        self._fallback = fallback

    def register(self, pattern: str, predicate: Predicate) -> None:
        self._predicates[pattern] = predicate

    def resolve(self, pattern: str) -> Predicate:
        return self._predicates.get(pattern, self._fallback)

    def classify(self, path: Path | str, value: Any) -> Completeness:
        pattern = path if isinstance(path, str) else pattern_of(path)
        return self.resolve(pattern)(value)

    def needs_work(self, path: Path | str, value: Any) -> bool:
        return self.classify(path, value).needs_work

    def copy(self) -> PredicateRegistry:
        return PredicateRegistry(self._predicates, self._fallback)

    def __contains__(self, pattern: str) -> bool:
        return pattern in self._predicates


def _sense_patterns(prefix: str, fields: Mapping[str, Predicate]) -> dict[str, Predicate]:
    return {f"{prefix}.{name}": predicate for name, predicate in fields.items()}


_SENSE_FIELDS: dict[str, Predicate] = {
    "id": presence_content,
    "index": presence,
    "selected": presence,
    "pos": presence,
    "definition": presence_content,
    "source": presence_content,
    "sense_number": presence,
    "pos_english": presence_content,
    "meaning_thai": presence_content,
    "meaning_english": presence_content,
    "description_thai": presence_content,
    "description_english": presence_content,
    "confidence": presence,
    "normalized": exactly_true,
    "normalized_at": presence_content,
    "normalization_version": presence_content,
}

DEFAULT_PREDICATES: dict[str, Predicate] = {
    "id": presence_content,
    "thai": presence_content,
    "english": presence_content,
    "start_sec_thai": presence,
    "end_sec_thai": presence,
    "start_sec_eng": presence,
    "end_sec_eng": presence,
    "word_refs_thai": non_empty_list,
    "word_refs_eng": non_empty_list,
    "subtitle_refs": presence_type_list,
    "matched_words": presence_type_list,
    "tokens.display_thai[].index": presence,
    "tokens.display_thai[].thai_script": presence_content,
    "tokens.display_thai[].g2p": presence_content,
    "tokens.display_thai[].english_phonetic": presence_content,
    "tokens.senses_thai[].index": presence,
    "tokens.display_english[].index": presence,
    "tokens.display_english[].english_word": presence_content,
    "tokens.senses_english[].index": presence,
    **_sense_patterns("tokens.senses_thai[].senses[]", {**_SENSE_FIELDS, "thai_word": presence_content}),
    **_sense_patterns("tokens.senses_english[].senses[]", {**_SENSE_FIELDS, "english_word": presence_content}),
}

DEFAULT_REGISTRY = PredicateRegistry(DEFAULT_PREDICATES)

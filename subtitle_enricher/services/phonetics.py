"""Rule-based rendering of g2p phonemes as readable Latin.

WHY: The g2p service returns IPA-like phoneme strings with tone digits
("rot1", "kʰaː0-wɛː4") that learners cannot read at a glance. A fixed
rule table turns them into a stable, dictionary-style romanization
without another remote call.

HOW: Split the phoneme string into syllables, drop tone marks, then
rewrite each phoneme with a longest-match-first table in a single regex
pass so a rewritten piece is never rewritten again.

RULES:
- Syllable separators: "-", "|", ".", whitespace
- Tone digits 0-4 are dropped
- Long vowels double ("aː" -> "aa"), aspirates keep their "h"
- Anything the table does not cover and that is not a-z is dropped
- Syllables are joined with "-"
"""

from __future__ import annotations

import re

PHONEME_MAP: dict[str, str] = {
    "tɕʰ": "ch",
    "tɕ": "j",
    "kʰ": "kh",
    "pʰ": "ph",
    "tʰ": "th",
    "ŋ": "ng",
    "ɲ": "y",
    "ʔ": "",
    "j": "y",
    "aː": "aa",
    "a:": "aa",
    "iː": "ii",
    "i:": "ii",
    "uː": "uu",
    "u:": "uu",
    "eː": "ee",
    "e:": "ee",
    "oː": "oo",
    "o:": "oo",
    "ɛː": "aae",
    "ɛ:": "aae",
    "ɛ": "ae",
    "ɔː": "aw",
    "ɔ:": "aw",
    "ɔ": "o",
    "ɯː": "uue",
    "ɯ:": "uue",
    "ɯ": "ue",
    "ɤː": "oe",
    "ɤ:": "oe",
    "ɤ": "oe",
    "ə": "oe",
    "ʉ": "ue",
}

_SEPARATORS = re.compile(r"[-|.\s]+")
_TONES = re.compile(r"[0-4]")
_PHONEME = re.compile("|".join(re.escape(p) for p in sorted(PHONEME_MAP, key=len, reverse=True)))
_LEFTOVER = re.compile(r"[^a-z]")


def to_legible(phonemes: str) -> str:
    """Render a g2p phoneme string as hyphen-joined Latin syllables.

    >>> to_legible("rot1")
    'rot'
    >>> to_legible("kʰaː0-wɛː4")
    'khaa-waae'
    """
    syllables = []
    for syllable in _SEPARATORS.split((phonemes or "").strip().lower()):
        syllable = _TONES.sub("", syllable)
        syllable = _PHONEME.sub(lambda m: PHONEME_MAP[m.group(0)], syllable)
        syllable = _LEFTOVER.sub("", syllable)
        if syllable:
            syllables.append(syllable)
    return "-".join(syllables)

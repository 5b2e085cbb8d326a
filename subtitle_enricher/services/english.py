"""Local English tokenizer.

WHY: English word segmentation needs no remote service; a deterministic
local split keeps English refs stable across runs.

RULES:
- Split on whitespace
- Strip leading/trailing non-word characters, apostrophes kept
- Lower-case; empty results dropped
"""

from __future__ import annotations

import re

_EDGE = re.compile(r"^[^\w']+|[^\w']+$")


def tokenize_english(text: str) -> list[str]:
    """Split English subtitle text into lower-cased word tokens.

    >>> tokenize_english("Don't stop -- the CAR!")
    ["don't", 'stop', 'the', 'car']
    """
    words = []
    for raw in (text or "").split():
        word = _EDGE.sub("", raw).lower()
        if word:
            words.append(word)
    return words

"""Thai dictionary lookup against the Royal Society (ORST) online dictionary.

WHY: ORST is the authoritative Thai monolingual dictionary. It has no
JSON API; lookups return an HTML fragment of Bootstrap panels, one panel
per headword, with numbered senses inside the panel body.

HOW: POST /func_lookup.php (form-encoded), then parse_orst_html() walks
the ``.panel.panel-info`` panels with BeautifulSoup. A body with "(1)"
or "(๑)" markers is split into one sense per marker; otherwise the whole
body is one sense. A short leading Thai abbreviation (น., ก., ว., ...)
is peeled off as the part of speech.

RULES:
- "Not found" pages yield []
- Text after the derived-word marker "ลูกคำของ" is ignored
- Bodies shorter than five characters are skipped
- Duplicate (word, pos, definition, sense_number) entries are dropped
- Every sense carries source "ORST" and the searched word, never the
  panel title (which may list comma-separated variants)
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
from bs4 import BeautifulSoup

from subtitle_enricher.config import ORST_BASE_URL
from subtitle_enricher.services.http import HTTPService

logger = logging.getLogger(__name__)

_NOT_FOUND = ("ไม่พบคำ", "ไม่พบ", "word not found", "no results")
_DERIVED_MARKER = "ลูกคำของ"
_NUMBERED = re.compile(r"\(([๑๒๓๔๕๖๗๘๙๐\d]+)\)")
_TRAILING_NUMBER = re.compile(r"([๑๒๓๔๕๖๗๘๙๐\d]+)$")
_POS_CANDIDATE = re.compile(r"^([^\s]+)\s+(.+)$", re.DOTALL)
_THAI_DIGITS = str.maketrans("๐๑๒๓๔๕๖๗๘๙", "0123456789")


class OrstClient(HTTPService):
    """Async client for the ORST dictionary lookup endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(base_url or ORST_BASE_URL, transport=transport)

    async def lookup(self, word: str) -> list[dict[str, Any]]:
        """Raw senses for ``word``, in dictionary order."""
        word = (word or "").strip()
        if not word:
            return []
        resp = await self._request(
            "lookup_senses",
            "POST",
            "/func_lookup.php",
            data={"word": word, "funcName": "lookupWord", "status": "lookup"},
        )
        senses = parse_orst_html(resp.text, word)
        logger.debug("ORST %s -> %d senses", word, len(senses))
        return senses


def parse_orst_html(html: str, word: str) -> list[dict[str, Any]]:
    """Parse an ORST lookup response into raw sense dicts."""
    if not html or not word:
        return []

    soup = BeautifulSoup(html, "html.parser")
    page_text = soup.get_text(" ", strip=True)
    if any(marker in page_text for marker in _NOT_FOUND):
        return []

    entries: list[dict[str, Any]] = []
    for panel in soup.select(".panel.panel-info"):
        body = panel.select_one(".panel-body")
        if body is None:
            continue
        title = panel.select_one(".panel-heading .panel-title b")
        heading = title.get_text(strip=True) if title else ""
        heading_number = _TRAILING_NUMBER.search(heading)

        text = body.get_text(" ", strip=True)
        text = text.split(_DERIVED_MARKER, 1)[0].strip()
        if len(text) < 5:
            continue

        markers = list(_NUMBERED.finditer(text))
        if markers:
            for n, match in enumerate(markers):
                end = markers[n + 1].start() if n + 1 < len(markers) else len(text)
                chunk = text[match.end():end].strip()
                if chunk:
                    entries.append(_entry(word, chunk, match.group(1), len(entries)))
        else:
            if text.startswith(word + " "):
                text = text[len(word):].strip()
            number = heading_number.group(1) if heading_number else ""
            entries.append(_entry(word, text, number, len(entries)))

    return _dedupe(entries)


def _entry(word: str, text: str, sense_number: str, index: int) -> dict[str, Any]:
    pos, definition = _split_pos(text)
    return {
        "thai_word": word,
        "pos": pos,
        "definition": definition,
        "source": "ORST",
        "index": index,
        "sense_number": sense_number.translate(_THAI_DIGITS),
    }


def _split_pos(text: str) -> tuple[str, str]:
    match = _POS_CANDIDATE.match(text)
    if match:
        candidate = match.group(1)
        if len(candidate) <= 3 and candidate[0] in "กนวผ":
            return candidate.rstrip("."), match.group(2).strip()
    return "", text.strip()


def _dedupe(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    seen = set()
    unique = []
    for entry in entries:
        key = (entry["thai_word"], entry["pos"], entry["definition"], entry["sense_number"])
        if key in seen:
            continue
        seen.add(key)
        unique.append({**entry, "index": len(unique)})
    return unique

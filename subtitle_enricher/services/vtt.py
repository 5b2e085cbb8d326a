"""WebVTT track fetching and cue selection.

WHY: A record's text and timings come from the subtitle tracks of its
media, one track per language. The record id ends with the subtitle's
position in the track ("<media>-<n>"), so fetching a cue means fetching
the track once and picking cue n.

HOW: VttTrackSource holds one URL per language. The first fetch_cue()
for a language downloads and parses the whole track with httpx; later
calls reuse the parsed cues. parse_vtt() accepts numbered blocks
("239\\n00:23:42.958 --> 00:23:44.541 position:50%\\n<c.thai>...</c.thai>")
as well as blocks without an identifier.

RULES:
- Cue identifiers are used as indices when numeric, else 1-based order
- Timing settings after the end timestamp are ignored
- Markup tags, direction marks, and HTML entities are stripped
- Multi-line cue text is joined with "\\n"
- A language without a URL yields None
"""

from __future__ import annotations

import asyncio
import html
import logging
import re
from typing import Any

import httpx

from subtitle_enricher.core.record import subtitle_index
from subtitle_enricher.services.base import Cue
from subtitle_enricher.services.http import HTTPService

logger = logging.getLogger(__name__)

_TIMING = re.compile(
    r"^\s*(?P<start>(?:\d+:)?\d{1,2}:\d{2}[.,]\d{3})\s*-->\s*(?P<end>(?:\d+:)?\d{1,2}:\d{2}[.,]\d{3})"
)
_TAG = re.compile(r"<[^>]+>")
_DIRECTION_MARKS = re.compile(r"[\u200e\u200f\u202a-\u202e]")


def parse_timestamp(value: str) -> float:
    """'00:23:42.958' or '23:42,958' -> seconds."""
    parts = value.strip().replace(",", ".").split(":")
    seconds = float(parts[-1])
    for multiplier, part in zip((60, 3600), reversed(parts[:-1])):
        seconds += int(part) * multiplier
    return round(seconds, 3)


def clean_cue_text(line: str) -> str:
    text = html.unescape(_TAG.sub("", line))
    return _DIRECTION_MARKS.sub("", text).strip()


def parse_vtt(content: str) -> dict[int, Cue]:
    """Parse WebVTT content into cues keyed by subtitle index."""
    cues: dict[int, Cue] = {}
    blocks = re.split(r"\n\s*\n", (content or "").replace("\r\n", "\n").strip())
    order = 0
    for block in blocks:
        lines = [line for line in block.split("\n") if line.strip()]
        timing_at = next((i for i, line in enumerate(lines) if _TIMING.match(line)), None)
        if timing_at is None:
            continue
        order += 1
        identifier = lines[0].strip() if timing_at > 0 else ""
        index = int(identifier) if identifier.isdigit() else order

        match = _TIMING.match(lines[timing_at])
        text_lines = [clean_cue_text(line) for line in lines[timing_at + 1:]]
        text = "\n".join(line for line in text_lines if line)
        if not text:
            continue
        cues[index] = Cue(
            text=text,
            start=parse_timestamp(match.group("start")),
            end=parse_timestamp(match.group("end")),
        )
    return cues


class VttTrackSource(HTTPService):
    """Fetches cues for records from per-language WebVTT track URLs.

    RULES:
    - Use as: async with VttTrackSource({"thai": url, "eng": url}) as src: ...
    - Each track is downloaded at most once per instance
    """

    def __init__(
        self,
        track_urls: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__("", transport=transport)
        self._track_urls = {lang: url for lang, url in (track_urls or {}).items() if url}
        self._tracks: dict[str, dict[int, Cue]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def fetch_cue(self, record_id: str, language: str, context: Any = None) -> Cue | None:
        url = self._track_urls.get(language)
        if not url:
            return None
        position = subtitle_index(record_id)
        if not position.isdigit():
            logger.warning("Record id %s has no numeric subtitle index", record_id)
            return None
        cues = await self._track(language, url)
        return cues.get(int(position))

    async def _track(self, language: str, url: str) -> dict[int, Cue]:
        lock = self._locks.setdefault(language, asyncio.Lock())
        async with lock:
            if language not in self._tracks:
                resp = await self._request("fetch_cue", "GET", url)
                self._tracks[language] = parse_vtt(resp.text)
                logger.info("Loaded %d %s cues from %s", len(self._tracks[language]), language, url)
        return self._tracks[language]

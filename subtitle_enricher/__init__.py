"""Subtitle Enricher: resumable, cache-sharing enrichment of subtitle records.

WHY: A bilingual subtitle record (timing, Thai and English text, word
segmentation, pronunciation, dictionary senses) is built up by calling
several slow, rate-limited and sometimes failing services. Work has to
survive crashes and retries without recomputing what is already done
and without ever clobbering a value that is already good.

HOW: Three-stage pipeline: gate (validate the record), generate (derive
a WorkMap that mirrors the record and flags what still needs work),
process (fill only the flagged leaves, sharing per-word results across
records through a word-entity cache). Each stage is independently
testable.

RULES:
- The WorkMap is always freshly derived; nothing ever mutates one
- process() returns a new record and never writes the input
- blank() is the only transition from "pending" to "satisfied"
"""

__version__ = "0.1.0"

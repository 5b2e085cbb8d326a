"""Validation gate run before a record enters the pipeline.

WHY: A record with no id, no timing, or no text at all cannot be enriched
meaningfully, and discovering that halfway through a pass would waste
service calls. The gate checks everything up front and fails all at once.

HOW: Three layers, cheapest first: the pipeline invariants (id, timings,
some text), the JSON schema shipped in subtitle_enricher/schemas, then
the token-alignment invariant. Every violation found in a layer is
collected before raising.

RULES:
- Raises ValidationError before any external call is made
- Timings are presence-only: "" and 0 pass, None or absent fails
- Token and sense arrays of a language are both empty or both as long
  as that language's reference list
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema

from subtitle_enricher.core.errors import ValidationError
from subtitle_enricher.core.record import TIMING_KEYS, TRACKS

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "record.schema.json"


@lru_cache(maxsize=1)
def load_schema() -> dict[str, Any]:
    """Load the record JSON schema from disk (once per process)."""
    with open(_SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


def validate_record(record: Any) -> None:
    """Raise ValidationError unless ``record`` may enter the pipeline."""
    if not isinstance(record, Mapping):
        raise ValidationError([f"record must be an object, got {type(record).__name__}"])

    violations = _invariant_violations(record)
    if violations:
        raise ValidationError(violations)

    validator = jsonschema.Draft202012Validator(load_schema())
    schema_errors = sorted(validator.iter_errors(record), key=lambda e: list(e.absolute_path))
    if schema_errors:
        raise ValidationError([_describe(error) for error in schema_errors])

    violations = _token_violations(record)
    if violations:
        raise ValidationError(violations)

    logger.debug("Record %s passed validation", record["id"])


def _invariant_violations(record: Mapping[str, Any]) -> list[str]:
    violations = []
    record_id = record.get("id")
    if not isinstance(record_id, str) or not record_id.strip():
        violations.append("id must be a non-empty string")
    for key in TIMING_KEYS:
        if record.get(key) is None:
            violations.append(f"{key} is missing")
    if not any(_has_text(record.get(track.text_key)) for track in TRACKS):
        violations.append("at least one of thai/english must be non-empty")
    return violations


def _token_violations(record: Mapping[str, Any]) -> list[str]:
    violations = []
    tokens = record["tokens"]
    for track in TRACKS:
        refs = record[track.refs_key]
        display = tokens[track.display_key]
        senses = tokens[track.senses_key]
        if len(display) != len(senses):
            violations.append(
                f"tokens.{track.display_key} and tokens.{track.senses_key} differ in length "
                f"({len(display)} != {len(senses)})"
            )
        elif display and len(display) != len(refs):
            violations.append(
                f"tokens.{track.display_key} has {len(display)} tokens but "
                f"{track.refs_key} has {len(refs)} refs"
            )
    return violations


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _describe(error: jsonschema.ValidationError) -> str:
    where = ".".join(str(part) for part in error.absolute_path) or "<root>"
    return f"{where}: {error.message}"

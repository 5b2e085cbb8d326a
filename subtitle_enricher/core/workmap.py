"""WorkMap generation, blanking, congruence, and JSON conversion.

WHY: The orchestrator must know, leaf by leaf, what is still missing in a
record whose arrays grow as enrichment proceeds. A WorkMap is a tree of
the exact same shape as the record whose leaves say "needs work" or
"satisfied". Because it is derived fresh every time and never written,
a crash can never leave a WorkMap claiming work was done when it was not.

HOW: generate() walks the record, resolves a predicate for each leaf from
the registry, and stores the boolean. The sense collection is the one
composite leaf and gets a tagged union:

    Pending()             -> nothing there yet, fetch from scratch
    Populated([sub-maps]) -> entries exist, inspect each one

blank() walks the same shape but forces every leaf to False. It is only
called once a snapshot is durably persisted.

RULES:
- Output keys and array lengths equal the record's at every depth
- Sense staging is first-match-wins: empty -> Pending; any unnormalized
  entry -> Populated with that entry flagged; else Populated all False
- An unnormalized entry with no individually failing field is flagged
  on every field
- The only legal sense-leaf shapes are Pending and Populated
- A WorkMap container list that is empty tolerates a longer record list:
  tokens created by segmentation are picked up by the next generate()
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from subtitle_enricher.core.errors import ShapeMismatchError
from subtitle_enricher.core.predicates import (
    DEFAULT_REGISTRY,
    LEAF_LISTS,
    SENSE_PATTERNS,
    PathPart,
    PredicateRegistry,
    format_path,
    is_normalized,
    pattern_of,
)

if TYPE_CHECKING:
    from subtitle_enricher.core.context import EnrichmentContext


@dataclass(frozen=True)
class Pending:
    """Sense leaf with no entries yet: run the dictionary lookup."""


@dataclass(frozen=True)
class Populated:
    """Sense leaf with entries: one sub-map per entry, in entry order."""

    entries: list = field(default_factory=list)


PENDING = Pending()


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


def generate(record: Mapping[str, Any], context: EnrichmentContext | None = None) -> dict:
    """Derive the WorkMap for ``record``.

    Pure and side-effect free. ``context`` only supplies an alternative
    predicate registry; without one the default registry is used.
    """
    registry = context.registry if context is not None else DEFAULT_REGISTRY
    return _mirror(record, (), lambda path, value: registry.needs_work(path, value), registry)


def blank(record: Mapping[str, Any]) -> dict:
    """Same shape as generate(), every leaf satisfied, no predicates consulted."""
    return _mirror(record, (), lambda path, value: False, None)


def _mirror(value: Any, path: tuple, leaf, registry: PredicateRegistry | None) -> Any:
    pattern = pattern_of(path)
    if pattern in SENSE_PATTERNS:
        return _sense_state(value, path, leaf, registry)
    if isinstance(value, Mapping):
        return {key: _mirror(item, path + (key,), leaf, registry) for key, item in value.items()}
    if isinstance(value, list) and pattern not in LEAF_LISTS:
        return [_mirror(item, path + (i,), leaf, registry) for i, item in enumerate(value)]
    return leaf(path, value)


def _sense_state(value: Any, path: tuple, leaf, registry: PredicateRegistry | None) -> Pending | Populated:
    entries = value if isinstance(value, list) else []
    if registry is None:
        return Populated([_mirror(e, path + (i,), leaf, None) for i, e in enumerate(entries)])
    if not entries:
        return PENDING

    def all_false(p: tuple, v: Any) -> bool:
        return False

    if all(is_normalized(entry) for entry in entries):
        return Populated([_mirror(e, path + (i,), all_false, None) for i, e in enumerate(entries)])

    sub_maps = []
    for i, entry in enumerate(entries):
        if is_normalized(entry):
            sub_maps.append(_mirror(entry, path + (i,), all_false, None))
            continue
        sub_map = _mirror(entry, path + (i,), leaf, registry)
        if not is_flagged(sub_map):
            sub_map = _mirror(entry, path + (i,), lambda p, v: True, None)
        sub_maps.append(sub_map)
    return Populated(sub_maps)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def is_flagged(node: Any) -> bool:
    """True when any leaf at or below ``node`` needs work."""
    if isinstance(node, Pending):
        return True
    if isinstance(node, Populated):
        return any(is_flagged(entry) for entry in node.entries)
    if isinstance(node, Mapping):
        return any(is_flagged(item) for item in node.values())
    if isinstance(node, list):
        return any(is_flagged(item) for item in node)
    return node is True


def senses_need_work(node: Any) -> bool:
    """Whether a sense leaf still has a pending stage."""
    if isinstance(node, Pending):
        return True
    if isinstance(node, Populated):
        return any(is_flagged(entry) for entry in node.entries)
    return False


def flagged_entries(node: Any) -> list[int]:
    """Indices of Populated entries that still need work."""
    if isinstance(node, Populated):
        return [i for i, entry in enumerate(node.entries) if is_flagged(entry)]
    return []


# ---------------------------------------------------------------------------
# Congruence
# ---------------------------------------------------------------------------


def check_congruent(record: Mapping[str, Any], workmap: Any) -> None:
    """Raise ShapeMismatchError unless ``workmap`` mirrors ``record``."""
    _check(record, workmap, ())


def _check(value: Any, node: Any, path: tuple) -> None:
    pattern = pattern_of(path)
    where = format_path(path)
    if pattern in SENSE_PATTERNS:
        if isinstance(node, Pending):
            if not isinstance(value, list):
                raise ShapeMismatchError(where, "sense leaf is not a list")
            return
        if not isinstance(node, Populated):
            raise ShapeMismatchError(where, f"expected Pending or Populated, got {type(node).__name__}")
        if not isinstance(value, list) or len(value) != len(node.entries):
            raise ShapeMismatchError(where, "sense entry count differs")
        for i, (item, sub) in enumerate(zip(value, node.entries)):
            _check(item, sub, path + (i,))
        return
    if isinstance(value, Mapping):
        if not isinstance(node, Mapping):
            raise ShapeMismatchError(where, "expected a mapping")
        if set(value) != set(node):
            missing = sorted(set(value) - set(node))
            extra = sorted(set(node) - set(value))
            raise ShapeMismatchError(where, f"keys differ (missing={missing}, extra={extra})")
        for key, item in value.items():
            _check(item, node[key], path + (key,))
        return
    if isinstance(value, list) and pattern not in LEAF_LISTS:
        if not isinstance(node, list):
            raise ShapeMismatchError(where, "expected a list")
        if not node:
            return
        if len(node) != len(value):
            raise ShapeMismatchError(where, f"length {len(node)} != {len(value)}")
        for i, (item, sub) in enumerate(zip(value, node)):
            _check(item, sub, path + (i,))
        return
    if not isinstance(node, bool):
        raise ShapeMismatchError(where, f"expected a boolean leaf, got {type(node).__name__}")


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def workmap_to_json(node: Any) -> Any:
    """Wire form: Pending -> true, Populated -> list of sub-maps."""
    if isinstance(node, Pending):
        return True
    if isinstance(node, Populated):
        return [workmap_to_json(entry) for entry in node.entries]
    if isinstance(node, Mapping):
        return {key: workmap_to_json(item) for key, item in node.items()}
    if isinstance(node, list):
        return [workmap_to_json(item) for item in node]
    return node


def workmap_from_json(data: Any, path: tuple[PathPart, ...] = ()) -> Any:
    """Inverse of workmap_to_json(); rejects illegal sense-leaf shapes."""
    pattern = pattern_of(path)
    if pattern in SENSE_PATTERNS:
        if data is True:
            return PENDING
        if isinstance(data, list):
            return Populated([workmap_from_json(e, path + (i,)) for i, e in enumerate(data)])
        raise ShapeMismatchError(format_path(path), f"illegal sense leaf {data!r}")
    if isinstance(data, Mapping):
        return {key: workmap_from_json(item, path + (key,)) for key, item in data.items()}
    if isinstance(data, list):
        return [workmap_from_json(item, path + (i,)) for i, item in enumerate(data)]
    if not isinstance(data, bool):
        raise ShapeMismatchError(format_path(path), f"illegal leaf {data!r}")
    return data

"""Tests for the completeness predicate registry.

WHY: Predicate depth decides what gets recomputed. Silently tightening a
presence-only check would trigger service calls for values that were
accepted before; loosening a content check would leave blanks forever.

HOW: Each depth is exercised directly, then through the default
registry by path pattern.

RULES:
- Timings stay presence-only: "" and 0 are satisfied
- Unregistered paths fall back to presence-only
"""

from __future__ import annotations

import pytest

from conftest import FakeServices, make_context
from subtitle_enricher.core.predicates import (
    DEFAULT_REGISTRY,
    Completeness,
    PredicateRegistry,
    exactly_true,
    format_path,
    non_empty_list,
    pattern_of,
    presence,
    presence_content,
    presence_type_list,
)


class TestPaths:
    def test_pattern_collapses_indices(self):
        assert pattern_of(("tokens", "display_thai", 3, "g2p")) == "tokens.display_thai[].g2p"

    def test_pattern_of_nested_sense_field(self):
        path = ("tokens", "senses_thai", 0, "senses", 2, "meaning_thai")
        assert pattern_of(path) == "tokens.senses_thai[].senses[].meaning_thai"

    def test_format_path_keeps_indices(self):
        assert format_path(("tokens", "display_thai", 3, "g2p")) == "tokens.display_thai[3].g2p"

    def test_top_level_key(self):
        assert pattern_of(("english",)) == "english"


class TestDepths:
    """Each predicate depth classifies MISSING / DIRTY / CLEAN."""

    @pytest.mark.parametrize("value", ["", 0, 0.0, "  ", False])
    def test_presence_accepts_any_non_null(self, value):
        assert presence(value) is Completeness.CLEAN

    def test_presence_rejects_none(self):
        assert presence(None) is Completeness.MISSING

    def test_presence_content(self):
        assert presence_content(None) is Completeness.MISSING
        assert presence_content("   ") is Completeness.DIRTY
        assert presence_content(42) is Completeness.DIRTY
        assert presence_content(" รถ ") is Completeness.CLEAN

    def test_presence_type_list_accepts_empty(self):
        assert presence_type_list([]) is Completeness.CLEAN
        assert presence_type_list(None) is Completeness.MISSING
        assert presence_type_list("x") is Completeness.DIRTY

    def test_non_empty_list(self):
        assert non_empty_list([]) is Completeness.DIRTY
        assert non_empty_list(["รถ:0"]) is Completeness.CLEAN
        assert non_empty_list(None) is Completeness.MISSING

    def test_exactly_true_rejects_truthy_non_bool(self):
        assert exactly_true(True) is Completeness.CLEAN
        assert exactly_true(1) is Completeness.DIRTY
        assert exactly_true("true") is Completeness.DIRTY
        assert exactly_true(False) is Completeness.DIRTY

    def test_needs_work_collapses_missing_and_dirty(self):
        assert Completeness.MISSING.needs_work
        assert Completeness.DIRTY.needs_work
        assert not Completeness.CLEAN.needs_work


class TestDefaultRegistry:
    @pytest.mark.parametrize("key", ["start_sec_thai", "end_sec_thai", "start_sec_eng", "end_sec_eng"])
    def test_timings_are_presence_only(self, key):
        assert not DEFAULT_REGISTRY.needs_work(key, "")
        assert not DEFAULT_REGISTRY.needs_work(key, 0)
        assert DEFAULT_REGISTRY.needs_work(key, None)

    def test_text_needs_content(self):
        assert DEFAULT_REGISTRY.needs_work("english", "")
        assert not DEFAULT_REGISTRY.needs_work("english", "The car")

    def test_word_refs_need_non_empty_list(self):
        assert DEFAULT_REGISTRY.needs_work("word_refs_thai", [])
        assert not DEFAULT_REGISTRY.needs_work("word_refs_thai", ["รถ:0"])

    def test_derived_lists_accept_empty(self):
        assert not DEFAULT_REGISTRY.needs_work("matched_words", [])
        assert DEFAULT_REGISTRY.needs_work("matched_words", None)
        assert not DEFAULT_REGISTRY.needs_work("subtitle_refs", [])

    def test_token_fields_resolve_by_concrete_path(self):
        path = ("tokens", "display_thai", 5, "g2p")
        assert DEFAULT_REGISTRY.needs_work(path, "")
        assert not DEFAULT_REGISTRY.needs_work(path, "rot1")

    def test_normalized_marker_is_exact(self):
        path = "tokens.senses_thai[].senses[].normalized"
        assert DEFAULT_REGISTRY.needs_work(path, False)
        assert not DEFAULT_REGISTRY.needs_work(path, True)

    def test_confidence_is_presence_only(self):
        assert not DEFAULT_REGISTRY.needs_work("tokens.senses_thai[].senses[].confidence", 0)

    def test_unknown_path_falls_back_to_presence(self):
        assert not DEFAULT_REGISTRY.needs_work("tokens.senses_thai[].senses[].notes", "")
        assert DEFAULT_REGISTRY.needs_work("tokens.senses_thai[].senses[].notes", None)

    def test_copy_allows_overrides_without_touching_default(self):
        registry = DEFAULT_REGISTRY.copy()
        registry.register("start_sec_thai", presence_content)
        assert registry.needs_work("start_sec_thai", "")
        assert not DEFAULT_REGISTRY.needs_work("start_sec_thai", "")

    def test_empty_registry_uses_fallback(self):
        registry = PredicateRegistry()
        assert "english" not in registry
        assert not registry.needs_work("english", "")

    def test_each_context_gets_its_own_registry(self):
        first = make_context(FakeServices())
        second = make_context(FakeServices())
        first.registry.register("start_sec_thai", presence_content)

        assert first.registry.needs_work("start_sec_thai", "")
        assert not second.registry.needs_work("start_sec_thai", "")
        assert not DEFAULT_REGISTRY.needs_work("start_sec_thai", "")

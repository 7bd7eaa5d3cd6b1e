"""Tests for element descriptors and the reference store."""

from __future__ import annotations

import pytest

from framewalk.core.model import (
    UNNAMED,
    DiscoveredElement,
    Locator,
    ProtocolNode,
    RefEntry,
    Tier,
    ViewportPoint,
    clean_name,
)
from framewalk.core.refs import TOP_LEVEL_KEY, ReferenceStore
from framewalk.errors import ReferenceNotFound


def elements(*names: str) -> list[DiscoveredElement]:
    return [DiscoveredElement("button", name, Locator("button", name)) for name in names]


class TestDescriptors:
    """Resolution variants and name cleanup."""

    def test_each_variant_is_accepted(self):
        for resolution in (
            Locator("button", "Go"),
            ProtocolNode(backend_node_id=7, frame_id="F", loader_id="L"),
            ViewportPoint(x=1.0, y=2.0, frame_id="F"),
        ):
            assert DiscoveredElement("button", "Go", resolution).resolution is resolution

    def test_unknown_resolution_is_rejected(self):
        with pytest.raises(TypeError):
            DiscoveredElement("button", "Go", {"x": 1, "y": 2})
        with pytest.raises(TypeError):
            RefEntry("e1", "", "button", "Go", None, Tier.IN_PAGE)

    def test_clean_name_collapses_whitespace_and_truncates(self):
        assert clean_name("  Save \n\t draft  ") == "Save draft"
        assert clean_name("x" * 300) == "x" * 200
        assert clean_name("abcdef", max_length=3) == "abc"

    def test_clean_name_sentinel(self):
        assert clean_name(None) == UNNAMED
        assert clean_name("   \n ") == UNNAMED

    def test_tier_letters(self):
        assert [t.ref_letter for t in Tier] == ["e", "a", "l"]


class TestReferenceStore:
    """Entry sets per frame key and ref id lifetime."""

    def test_store_assigns_prefixed_sequential_ids(self):
        store = ReferenceStore()
        refs = store.store("iframe#a", "f1e", Tier.IN_PAGE, elements("One", "Two"))

        assert [r.ref_id for r in refs] == ["f1e1", "f1e2"]
        assert all(r.frame_key == "iframe#a" for r in refs)
        assert store.require("iframe#a", "f1e2").name == "Two"

    def test_resnapshot_replaces_set_and_retires_old_ids(self):
        store = ReferenceStore()
        store.store("iframe#a", "f1e", Tier.IN_PAGE, elements("One", "Two"))
        refs = store.store("iframe#a", "f1e", Tier.IN_PAGE, elements("Three"))

        assert [r.ref_id for r in refs] == ["f1e3"]
        assert not store.has_ref("iframe#a", "f1e1")
        with pytest.raises(ReferenceNotFound):
            store.require("iframe#a", "f1e1")

    def test_ids_do_not_repeat_across_tiers(self):
        store = ReferenceStore()
        store.store("iframe#a", "f1e", Tier.IN_PAGE, elements("One"))
        refs = store.store("iframe#a", "f1a", Tier.ACCESSIBILITY, elements("One"))

        assert refs[0].ref_id == "f1a2"
        assert refs[0].tier is Tier.ACCESSIBILITY

    def test_ref_is_scoped_to_its_frame_key(self):
        store = ReferenceStore()
        store.store("iframe#a", "f1e", Tier.IN_PAGE, elements("One"))

        assert store.lookup("iframe#b", "f1e1") is None
        assert store.lookup(TOP_LEVEL_KEY, "f1e1") is None

    def test_not_found_message_names_frame(self):
        with pytest.raises(ReferenceNotFound) as exc_info:
            ReferenceStore().require("iframe#a", "f1e9")

        assert str(exc_info.value) == "Ref not found: f1e9 in frame iframe#a (take a snapshot first)"
        assert exc_info.value.ref_id == "f1e9"

    def test_invalidate_frames_keeps_top_level(self):
        store = ReferenceStore()
        store.store(TOP_LEVEL_KEY, "s1e", Tier.IN_PAGE, elements("Top"))
        store.store("iframe#a", "f1e", Tier.IN_PAGE, elements("A"))
        store.store("iframe#a >> iframe#b", "f2e", Tier.IN_PAGE, elements("B"))

        store.invalidate_frames()

        assert store.frame_keys() == [TOP_LEVEL_KEY]
        assert store.has_ref(TOP_LEVEL_KEY, "s1e1")

    def test_navigation_clears_everything_but_counters(self):
        store = ReferenceStore()
        store.store(TOP_LEVEL_KEY, "s1e", Tier.IN_PAGE, elements("Old"))

        store.on_navigation("https://example.test/next")
        assert store.frame_keys() == []

        refs = store.store(TOP_LEVEL_KEY, "s1e", Tier.IN_PAGE, elements("New"))
        assert refs[0].ref_id == "s1e2"
        assert store.lookup(TOP_LEVEL_KEY, "s1e1") is None

    def test_entries_returns_copy(self):
        store = ReferenceStore()
        store.store("k", "f1e", Tier.IN_PAGE, elements("One"))
        copy = store.entries("k")
        copy.clear()
        assert store.has_ref("k", "f1e1")

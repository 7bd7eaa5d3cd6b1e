"""Tests for the tiered snapshot engine."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import frame_node, frame_tree

from framewalk.core.collectors import CollectionContext, EscalationPolicy, InPageCollector
from framewalk.core.frames import FramePath, FrameTarget
from framewalk.core.model import DiscoveredElement, Locator, Tier, ViewportPoint
from framewalk.core.refs import ReferenceStore
from framewalk.core.snapshot import NO_ELEMENTS_MARKER, SnapshotEngine, render_snapshot
from framewalk.errors import CollectionFailed, FrameNotFound


class FakeCollector:
    """Returns canned elements or raises, and records that it ran."""

    def __init__(self, tier, result):
        self.tier = tier
        self.result = result
        self.calls = 0

    async def collect(self, ctx: CollectionContext):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return list(self.result)


def named(*names, tier=Tier.IN_PAGE):
    if tier is Tier.LAYOUT:
        return [DiscoveredElement("button", n, ViewportPoint(10.0 * i, 5.0, "F")) for i, n in enumerate(names)]
    return [DiscoveredElement("button", n, Locator("button", n)) for n in names]


def engine_with(page, collectors, store=None, policy=None):
    engine = SnapshotEngine(page, store or ReferenceStore(), collectors=collectors, policy=policy)
    engine.resolver.resolve = AsyncMock(side_effect=lambda path: FrameTarget(path=FramePath.parse(str(path)), page=page))
    return engine


class TestTierEscalation:
    """Collectors run in rank order until one is good enough."""

    @pytest.mark.asyncio
    async def test_first_tier_wins_and_later_tiers_do_not_run(self, page):
        in_page = FakeCollector(Tier.IN_PAGE, named("Play"))
        ax = FakeCollector(Tier.ACCESSIBILITY, named("Play"))
        result = await engine_with(page, [in_page, ax]).snapshot("iframe#player")

        assert result.tier is Tier.IN_PAGE
        assert [r.ref_id for r in result.refs] == ["f1e1"]
        assert ax.calls == 0

    @pytest.mark.asyncio
    async def test_failure_then_empty_then_layout(self, page):
        collectors = [
            FakeCollector(Tier.IN_PAGE, CollectionFailed("in_page", "cross-origin")),
            FakeCollector(Tier.ACCESSIBILITY, []),
            FakeCollector(Tier.LAYOUT, named("Start", tier=Tier.LAYOUT)),
        ]
        result = await engine_with(page, collectors).snapshot("iframe#game >> iframe#canvas")

        assert result.tier is Tier.LAYOUT
        assert result.ref_prefix == "f1l"
        assert [(a.tier, a.outcome) for a in result.attempts] == [
            (Tier.IN_PAGE, "failed"),
            (Tier.ACCESSIBILITY, "empty"),
            (Tier.LAYOUT, "ok"),
        ]
        assert result.text.splitlines() == [
            "- frame iframe#game >> iframe#canvas (layout snapshot):",
            '  - button "Start" [ref=f1l1]',
        ]

    @pytest.mark.asyncio
    async def test_empty_in_page_escalates(self, page):
        collectors = [FakeCollector(Tier.IN_PAGE, []), FakeCollector(Tier.ACCESSIBILITY, named("Next"))]
        result = await engine_with(page, collectors).snapshot("iframe#a")

        assert result.tier is Tier.ACCESSIBILITY
        assert result.refs[0].ref_id == "f1a1"
        assert "(accessibility tree)" in result.text

    @pytest.mark.asyncio
    async def test_all_tiers_exhausted_yields_marker_and_drops_old_refs(self, page):
        store = ReferenceStore()
        store.store("iframe#a", "f1e", Tier.IN_PAGE, named("Stale"))
        collectors = [
            FakeCollector(Tier.IN_PAGE, CollectionFailed("in_page", "timeout")),
            FakeCollector(Tier.ACCESSIBILITY, []),
            FakeCollector(Tier.LAYOUT, CollectionFailed("layout", "no document")),
        ]
        result = await engine_with(page, collectors, store=store).snapshot("iframe#a")

        assert result.is_empty
        assert result.tier is None
        assert NO_ELEMENTS_MARKER in result.text
        assert store.lookup("iframe#a", "f1e1") is None

    @pytest.mark.asyncio
    async def test_insufficient_results_keep_the_largest(self, page):
        collectors = [
            FakeCollector(Tier.IN_PAGE, named("A")),
            FakeCollector(Tier.ACCESSIBILITY, named("A", "B")),
            FakeCollector(Tier.LAYOUT, CollectionFailed("layout", "boom")),
        ]
        engine = engine_with(page, collectors, policy=EscalationPolicy(min_entries=3))
        result = await engine.snapshot("iframe#a")

        assert result.tier is Tier.ACCESSIBILITY
        assert [r.name for r in result.refs] == ["A", "B"]
        assert [a.outcome for a in result.attempts] == ["insufficient", "insufficient", "failed"]

    @pytest.mark.asyncio
    async def test_frame_not_found_propagates(self, page):
        engine = engine_with(page, [FakeCollector(Tier.IN_PAGE, named("x"))])
        engine.resolver.resolve = AsyncMock(side_effect=FrameNotFound("iframe#gone", "iframe#gone"))

        with pytest.raises(FrameNotFound):
            await engine.snapshot("iframe#gone")


class TestRefIds:
    """Scopes, prefixes and id lifetime across snapshots."""

    @pytest.mark.asyncio
    async def test_top_level_scope(self, page):
        result = await engine_with(page, [FakeCollector(Tier.IN_PAGE, named("Home", "About"))]).snapshot(None)

        assert [r.ref_id for r in result.refs] == ["s1e1", "s1e2"]
        assert result.text.splitlines()[0] == "- document:"

    @pytest.mark.asyncio
    async def test_resnapshot_issues_fresh_ids(self, page):
        collector = FakeCollector(Tier.IN_PAGE, named("One", "Two"))
        store = ReferenceStore()
        engine = engine_with(page, [collector], store=store)

        first = await engine.snapshot("iframe#a")
        second = await engine.snapshot("iframe#a")

        assert [r.ref_id for r in first.refs] == ["f1e1", "f1e2"]
        assert [r.ref_id for r in second.refs] == ["f1e3", "f1e4"]
        assert store.lookup("iframe#a", "f1e1") is None

    def test_render_escapes_quotes(self):
        store = ReferenceStore()
        refs = store.store("", "s1e", Tier.IN_PAGE, named('Say "hi"'))
        assert render_snapshot(FramePath(), Tier.IN_PAGE, refs).splitlines()[1] == '  - button "Say \\"hi\\"" [ref=s1e1]'


class TestSnapshotPage:
    """Whole-page snapshots with frames."""

    @pytest.mark.asyncio
    async def test_frames_follow_top_level_and_unavailable_frames_are_marked(self, page, cdp):
        cdp.responses["Page.getFrameTree"] = frame_tree(children=[frame_node("c1"), frame_node("c2")])
        collector = FakeCollector(Tier.IN_PAGE, named("Go"))
        engine = engine_with(page, [collector])
        gone = FramePath(("iframe#b",))

        async def resolve(path):
            if path == gone:
                raise FrameNotFound(gone.key, gone.key, "detached")
            return FrameTarget(path=path, page=page)

        engine.resolver.resolve = AsyncMock(side_effect=resolve)
        frames = [(MagicMock(), FramePath(("iframe#a",))), (MagicMock(), gone)]

        with patch("framewalk.core.snapshot.enumerate_frame_paths", AsyncMock(return_value=frames)):
            snapshot = await engine.snapshot_page(include_frames=True)

        assert [r.frame_key for r in snapshot.results] == ["", "iframe#a"]
        assert snapshot.unavailable == ["iframe#b"]
        assert "[ref=s1e1]" in snapshot.text
        assert "- frame iframe#a:\n  - button \"Go\" [ref=f1e1]" in snapshot.text
        assert "- frame iframe#b (unavailable)" in snapshot.text

    @pytest.mark.asyncio
    async def test_without_frames_only_top_level(self, page):
        engine = engine_with(page, [FakeCollector(Tier.IN_PAGE, named("Go"))])
        with patch("framewalk.core.snapshot.enumerate_frame_paths", AsyncMock()) as enumerate_mock:
            snapshot = await engine.snapshot_page()

        enumerate_mock.assert_not_called()
        assert len(snapshot.results) == 1


class TestSubmitButtonScenario:
    """A same-origin frame with a Submit button, end to end through the real in-page tier."""

    @pytest.mark.asyncio
    async def test_snapshot_then_click_uses_role_locator(self, page):
        from framewalk.core.actions import ReferenceResolver

        page.evaluate = AsyncMock(return_value=[{"tag": "button", "text": "Submit"}])
        store = ReferenceStore()
        engine = SnapshotEngine(page, store, collectors=[InPageCollector()])

        result = await engine.snapshot("")
        assert result.text.splitlines() == ["- document:", '  - button "Submit" [ref=s1e1]']

        button = page.get_by_role.return_value.nth.return_value
        button.click = AsyncMock()
        await ReferenceResolver(page, store).click("", "s1e1")

        page.get_by_role.assert_called_with("button", name="Submit", exact=True)
        button.click.assert_awaited_once()

"""Tests for frame paths and frame chain resolution."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from framewalk.core.frames import (
    FrameChainResolver,
    FramePath,
    FrameTarget,
    as_frame_path,
    enumerate_frame_paths,
    frame_viewport_bbox,
)
from framewalk.errors import FrameNotFound


def chained_scope(scope: MagicMock, missing: set[str] | None = None) -> MagicMock:
    """Make ``scope.locator(sel).first`` an attachable owner whose content_frame nests again."""
    missing = missing or set()

    def locator(selector):
        loc = MagicMock(name=f"locator({selector})")
        owner = loc.first
        if selector in missing:
            owner.wait_for = AsyncMock(side_effect=PlaywrightError("Timeout 10000ms exceeded"))
        else:
            owner.wait_for = AsyncMock()
        owner.content_frame = chained_scope(MagicMock(name=f"frame({selector})"), missing)
        return loc

    scope.locator = MagicMock(side_effect=locator)
    return scope


class TestFramePath:
    """Parsing, canonical keys and equality."""

    def test_parse_trims_and_drops_empty_segments(self):
        path = FramePath.parse("  iframe#a >>  >>iframe#b  ")
        assert path.segments == ("iframe#a", "iframe#b")
        assert path.key == "iframe#a >> iframe#b"

    def test_equivalent_spellings_are_equal(self):
        assert FramePath.parse("iframe#a>>iframe#b") == FramePath.parse("iframe#a >> iframe#b")
        assert hash(FramePath.parse("iframe#a>>iframe#b")) == hash(FramePath(("iframe#a", "iframe#b")))

    def test_empty_path_is_top_level(self):
        for text in (None, "", "   ", ">>"):
            path = FramePath.parse(text)
            assert path.is_top_level
            assert path.key == ""
            assert path.innermost is None

    def test_child_appends_segment(self):
        path = FramePath.parse("iframe#a").child(" iframe#b ")
        assert path.segments == ("iframe#a", "iframe#b")
        assert path.innermost == "iframe#b"
        assert str(path) == "iframe#a >> iframe#b"

    def test_as_frame_path_accepts_both_forms(self):
        path = FramePath(("iframe#x",))
        assert as_frame_path(path) is path
        assert as_frame_path("iframe#x") == path
        assert as_frame_path(None) == FramePath()


class TestFrameChainResolver:
    """Per-segment owner resolution."""

    @pytest.mark.asyncio
    async def test_top_level_needs_no_lookup(self):
        page = chained_scope(MagicMock())
        target = await FrameChainResolver(page).resolve("")

        assert target.frame_locator is None
        assert target.scope is page
        page.locator.assert_not_called()

    @pytest.mark.asyncio
    async def test_nested_path_descends_one_owner_at_a_time(self):
        page = chained_scope(MagicMock())
        target = await FrameChainResolver(page, timeout_ms=1234).resolve("iframe#player >> iframe#content")

        page.locator.assert_called_once_with("iframe#player")
        assert target.key == "iframe#player >> iframe#content"
        target.owner.wait_for.assert_awaited_once_with(state="attached", timeout=1234)
        assert target.scope is target.frame_locator

    @pytest.mark.asyncio
    async def test_missing_segment_raises_frame_not_found(self):
        page = chained_scope(MagicMock(), missing={"iframe#content"})

        with pytest.raises(FrameNotFound) as exc_info:
            await FrameChainResolver(page).resolve("iframe#player >> iframe#content")

        assert exc_info.value.frame_path == "iframe#player >> iframe#content"
        assert exc_info.value.segment == "iframe#content"
        assert "iframe#content" in str(exc_info.value)


class TestFrameTarget:
    """Evaluation and geometry of a resolved frame."""

    @pytest.mark.asyncio
    async def test_top_level_evaluates_on_page(self, page):
        page.evaluate.return_value = [1]
        target = FrameTarget(path=FramePath(), page=page)

        assert await target.evaluate("() => [1]", None) == [1]
        page.evaluate.assert_awaited_once_with("() => [1]", None)

    @pytest.mark.asyncio
    async def test_frame_evaluates_in_its_root_element(self, page):
        frame_locator = MagicMock()
        frame_locator.locator.return_value.evaluate = AsyncMock(return_value="ok")
        target = FrameTarget(path=FramePath(("iframe#a",)), page=page, frame_locator=frame_locator)

        assert await target.evaluate("s", {"k": 1}, timeout_ms=700) == "ok"
        frame_locator.locator.assert_called_once_with(":root")
        frame_locator.locator.return_value.evaluate.assert_awaited_once_with("s", {"k": 1}, timeout=700)

    @pytest.mark.asyncio
    async def test_bounding_box_of_top_level_is_viewport(self, page):
        box = await FrameTarget(path=FramePath(), page=page).bounding_box()
        assert box == {"x": 0.0, "y": 0.0, "width": 1280, "height": 800}

    @pytest.mark.asyncio
    async def test_invisible_owner_raises(self, page):
        owner = MagicMock()
        owner.bounding_box = AsyncMock(return_value=None)
        target = FrameTarget(path=FramePath(("iframe#a",)), page=page, frame_locator=MagicMock(), owner=owner)

        with pytest.raises(FrameNotFound):
            await target.bounding_box()

    @pytest.mark.asyncio
    async def test_frame_viewport_bbox_of_nested_owner(self):
        inner = MagicMock()
        inner.wait_for = AsyncMock()
        inner.bounding_box = AsyncMock(return_value={"x": 50.0, "y": 300.0, "width": 200.0, "height": 100.0})
        outer = MagicMock()
        outer.wait_for = AsyncMock()
        outer.content_frame.locator.return_value.first = inner
        page = MagicMock()
        page.locator.return_value.first = outer

        box = await frame_viewport_bbox(page, "iframe#a >> iframe#b", timeout_ms=500)

        assert box["y"] == 300.0
        outer.content_frame.locator.assert_called_once_with("iframe#b")
        inner.wait_for.assert_awaited_once_with(state="attached", timeout=500)


class TestEnumerateFramePaths:
    """Frame paths derived from owner elements."""

    @staticmethod
    def _frame(attrs, children=()):
        frame = MagicMock()
        frame.child_frames = list(children)
        handle = MagicMock()
        handle.evaluate = AsyncMock(return_value=attrs)
        frame.frame_element = AsyncMock(return_value=handle)
        return frame

    @pytest.mark.asyncio
    async def test_nested_frames_in_pre_order(self):
        inner = self._frame({"id": "content", "name": ""})
        player = self._frame({"id": "player", "name": ""}, [inner])
        ads = self._frame({"id": "", "name": "ads"})
        anonymous = self._frame({"id": "", "name": ""})
        page = MagicMock()
        page.main_frame = self._frame({}, [player, ads, anonymous])

        paths = [path.key for _, path in await enumerate_frame_paths(page)]

        assert paths == [
            "iframe#player",
            "iframe#player >> iframe#content",
            'iframe[name="ads"]',
            "iframe:nth-of-type(3)",
        ]

    @pytest.mark.asyncio
    async def test_detached_owner_falls_back_to_position(self):
        child = MagicMock()
        child.child_frames = []
        child.frame_element = AsyncMock(side_effect=PlaywrightError("Frame was detached"))
        page = MagicMock()
        page.main_frame = self._frame({}, [child])

        [(_, path)] = await enumerate_frame_paths(page)
        assert path.key == "iframe:nth-of-type(1)"

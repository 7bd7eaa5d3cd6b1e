"""Frame paths and their resolution to live Playwright handles.

A frame path is a chain of owner selectors joined with ``>>``, e.g.
``iframe#player >> iframe#content``. The empty path is the top-level document.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError

from ..adapters.cdp import owner_selector
from ..errors import FrameNotFound

if TYPE_CHECKING:
    from playwright.async_api import Frame, FrameLocator, Locator, Page

logger = logging.getLogger(__name__)

DELIMITER = ">>"


@dataclass(frozen=True)
class FramePath:
    """Ordered owner selectors from the top-level document down to one frame."""

    segments: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str | None) -> FramePath:
        if not text:
            return cls()
        return cls(tuple(part.strip() for part in text.split(DELIMITER) if part.strip()))

    @property
    def key(self) -> str:
        """Reference store namespace; "" for the top-level document."""
        return f" {DELIMITER} ".join(self.segments)

    @property
    def is_top_level(self) -> bool:
        return not self.segments

    @property
    def innermost(self) -> str | None:
        return self.segments[-1] if self.segments else None

    def child(self, selector: str) -> FramePath:
        return FramePath(self.segments + (selector.strip(),))

    def __str__(self) -> str:
        return self.key


def as_frame_path(value: FramePath | str | None) -> FramePath:
    return value if isinstance(value, FramePath) else FramePath.parse(value)


@dataclass
class FrameTarget:
    """Resolved handles for one frame path.

    ``frame_locator`` reaches the frame's script context; ``owner`` is the
    innermost iframe element in its parent document. Both are None for the
    top-level document.
    """

    path: FramePath
    page: Page
    frame_locator: FrameLocator | None = None
    owner: Locator | None = None

    @property
    def key(self) -> str:
        return self.path.key

    @property
    def scope(self) -> Page | FrameLocator:
        """Root for role/text/css locators inside this frame."""
        return self.frame_locator if self.frame_locator is not None else self.page

    async def evaluate(self, script: str, arg: Any = None, timeout_ms: int = 5000) -> Any:
        """Run ``script`` in the frame's own script context."""
        if self.frame_locator is None:
            return await asyncio.wait_for(self.page.evaluate(script, arg), timeout_ms / 1000)
        return await self.frame_locator.locator(":root").evaluate(script, arg, timeout=timeout_ms)

    async def content_frame(self) -> Frame | None:
        if self.owner is None:
            return self.page.main_frame
        try:
            handle = await self.owner.element_handle()
        except PlaywrightError:
            return None
        try:
            return await handle.content_frame()
        finally:
            await handle.dispose()

    async def bounding_box(self) -> dict[str, float]:
        """Viewport box of the owner element (the whole viewport for the top level)."""
        if self.owner is None:
            size = self.page.viewport_size
            if size is None:
                size = await self.page.evaluate("() => ({width: innerWidth, height: innerHeight})")
            return {"x": 0.0, "y": 0.0, "width": size["width"], "height": size["height"]}
        box = await self.owner.bounding_box()
        if not box:
            raise FrameNotFound(self.key, self.path.innermost, "frame not visible")
        return box


class FrameChainResolver:
    """Descends a frame path one owner element at a time."""

    def __init__(self, page: Page, timeout_ms: int = 10000) -> None:
        self.page = page
        self.timeout_ms = timeout_ms

    async def resolve(self, path: FramePath | str | None) -> FrameTarget:
        """Resolve ``path`` to handles on its innermost frame.

        Raises:
            FrameNotFound: If any owner element is not attached within the timeout
        """
        path = as_frame_path(path)
        if path.is_top_level:
            return FrameTarget(path=path, page=self.page)

        parent: Page | FrameLocator = self.page
        owner: Locator | None = None
        frame_locator: FrameLocator | None = None
        for segment in path.segments:
            owner = parent.locator(segment).first
            try:
                await owner.wait_for(state="attached", timeout=self.timeout_ms)
            except PlaywrightError as e:
                logger.info(f"Frame segment {segment!r} of {path.key!r} not found: {e}")
                raise FrameNotFound(path.key, segment, "timed out waiting for frame owner") from e
            frame_locator = owner.content_frame
            parent = frame_locator

        return FrameTarget(path=path, page=self.page, frame_locator=frame_locator, owner=owner)


async def frame_viewport_bbox(page: Page, path: FramePath | str | None, timeout_ms: int = 10000) -> dict[str, float]:
    """Viewport box of the innermost owner iframe of ``path``."""
    target = await FrameChainResolver(page, timeout_ms).resolve(path)
    return await target.bounding_box()


async def _child_selector(frame: Frame, index: int) -> str:
    try:
        handle = await frame.frame_element()
        attrs = await handle.evaluate(
            "el => ({id: el.id || '', name: el.getAttribute('name') || ''})"
        )
    except PlaywrightError:
        attrs = {}
    return owner_selector(attrs or {}, index)


async def enumerate_frame_paths(page: Page) -> list[tuple[Frame, FramePath]]:
    """Every descendant frame of the page with its owner-selector path, pre-order."""
    out: list[tuple[Frame, FramePath]] = []

    async def walk(frame: Frame, path: FramePath) -> None:
        for index, child in enumerate(frame.child_frames):
            child_path = path.child(await _child_selector(child, index))
            out.append((child, child_path))
            await walk(child, child_path)

    await walk(page.main_frame, FramePath())
    return out

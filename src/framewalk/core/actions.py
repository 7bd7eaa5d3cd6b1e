"""Acting on stored references: click, type, hover, select.

The resolution variant of the stored entry alone picks the mechanism:

- ProtocolNode: box model center, then raw mouse events over CDP
- ViewportPoint: raw mouse events at the stored point
- Locator: role+name locator in the frame, with Playwright's actionability waits
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from ..adapters.cdp import (
    ProtocolError,
    ProtocolSession,
    box_model_center,
    dispatch_click,
    ensure_same_document,
)
from ..config import Settings
from ..errors import DispatchFailed
from ..telemetry import span
from .frames import FrameChainResolver, FramePath, FrameTarget, as_frame_path
from .model import UNNAMED, Locator, Point, ProtocolNode, RefEntry, ViewportPoint
from .refs import ReferenceStore

if TYPE_CHECKING:
    from playwright.async_api import FrameLocator, Page
    from playwright.async_api import Locator as PlaywrightLocator

logger = logging.getLogger(__name__)


def role_locator(scope: Page | FrameLocator, resolution: Locator) -> PlaywrightLocator:
    """The element in ``scope`` with the entry's role and name, at its recorded position."""
    if resolution.name == UNNAMED:
        query = scope.get_by_role(resolution.role)  # type: ignore[arg-type]
    else:
        query = scope.get_by_role(resolution.role, name=resolution.name, exact=resolution.exact)  # type: ignore[arg-type]
    return query.nth(resolution.nth)


class ReferenceResolver:
    """Turns (frame path, ref id) back into input on the page."""

    def __init__(self, page: Page, store: ReferenceStore, settings: Settings | None = None) -> None:
        self.page = page
        self.store = store
        self.settings = settings or Settings()
        self.frames = FrameChainResolver(page, self.settings.frame_timeout_ms)

    def lookup(self, frame_path: FramePath | str | None, ref_id: str) -> RefEntry:
        """Stored entry for the ref, or ReferenceNotFound."""
        return self.store.require(as_frame_path(frame_path).key, ref_id)

    async def click(
        self,
        frame_path: FramePath | str | None,
        ref_id: str,
        button: str = "left",
        click_count: int = 1,
    ) -> RefEntry:
        """Resolve a ref and click it.

        Raises:
            ReferenceNotFound: Unknown or invalidated ref id
            FrameNotFound: Locator refs only, when the frame path no longer resolves
            DispatchFailed: The underlying protocol or locator call failed
        """
        path = as_frame_path(frame_path)
        entry = self.store.require(path.key, ref_id)
        resolution = entry.resolution

        with span("framewalk.click", frame=path.key, ref=ref_id, tier=entry.tier.value):
            if isinstance(resolution, (ProtocolNode, ViewportPoint)):
                point = await self._protocol_click(entry, button, click_count)
                logger.info(f"Clicked {ref_id} at ({point.x:.0f}, {point.y:.0f}) via protocol")
            else:
                locator = await self._locator(path, resolution)
                await self._locator_call(entry, locator.click(
                    timeout=self.settings.action_timeout_ms,
                    button=button,  # type: ignore[arg-type]
                    click_count=click_count,
                ))
                logger.info(f"Clicked {ref_id} via {resolution.role} locator")
        return entry

    async def type_text(
        self,
        frame_path: FramePath | str | None,
        text: str,
        ref_id: str | None = None,
        submit: bool = False,
    ) -> None:
        """Type into a ref, or into whatever has focus when no ref is given."""
        path = as_frame_path(frame_path)
        if ref_id is None:
            await self._type_focused(path, text, submit)
            return

        entry = self.store.require(path.key, ref_id)
        resolution = entry.resolution
        if isinstance(resolution, Locator):
            locator = await self._locator(path, resolution)
            await self._locator_call(entry, locator.fill(text, timeout=self.settings.action_timeout_ms))
            if submit:
                await self._locator_call(entry, locator.press("Enter"))
            return

        # Protocol refs: focus by clicking, then type at the keyboard.
        await self._protocol_click(entry, "left", 1)
        await self._locator_call(entry, self.page.keyboard.type(text))
        if submit:
            await self._locator_call(entry, self.page.keyboard.press("Enter"))

    async def hover(self, frame_path: FramePath | str | None, ref_id: str) -> None:
        path = as_frame_path(frame_path)
        entry = self.store.require(path.key, ref_id)
        resolution = entry.resolution
        if isinstance(resolution, Locator):
            locator = await self._locator(path, resolution)
            await self._locator_call(entry, locator.hover(timeout=self.settings.action_timeout_ms))
            return
        point = await self._protocol_point(entry)
        await self._locator_call(entry, self.page.mouse.move(point.x, point.y))

    async def select_option(
        self, frame_path: FramePath | str | None, ref_id: str, values: list[str]
    ) -> list[str]:
        path = as_frame_path(frame_path)
        entry = self.store.require(path.key, ref_id)
        resolution = entry.resolution
        if not isinstance(resolution, Locator):
            raise DispatchFailed(ref_id, "select_option needs a ref from an in-page snapshot")
        locator = await self._locator(path, resolution)
        return await self._locator_call(
            entry, locator.select_option(values, timeout=self.settings.action_timeout_ms)
        )

    # === Helpers ===

    async def _locator(self, path: FramePath, resolution: Locator) -> PlaywrightLocator:
        target: FrameTarget = await self.frames.resolve(path)
        return role_locator(target.scope, resolution)

    async def _locator_call(self, entry: RefEntry, awaitable):
        try:
            return await awaitable
        except PlaywrightError as e:
            logger.warning(f"Action on {entry.ref_id} failed: {e}")
            raise DispatchFailed(entry.ref_id, str(e)) from e

    async def _type_focused(self, path: FramePath, text: str, submit: bool) -> None:
        try:
            if path.is_top_level:
                await self.page.keyboard.type(text)
            else:
                target = await self.frames.resolve(path)
                await target.scope.locator(":focus").fill(text, timeout=self.settings.action_timeout_ms)
            if submit:
                await self.page.keyboard.press("Enter")
        except PlaywrightError as e:
            raise DispatchFailed(None, f"No focused element in frame; pass a ref ({e})") from e

    async def _protocol_point(self, entry: RefEntry) -> Point:
        try:
            async with ProtocolSession.open(self.page, self.settings.protocol_timeout_ms) as session:
                return await self._point_for(session, entry)
        except ProtocolError as e:
            logger.warning(f"Protocol resolve of {entry.ref_id} failed: {e}")
            raise DispatchFailed(entry.ref_id, str(e)) from e

    async def _protocol_click(self, entry: RefEntry, button: str, click_count: int) -> Point:
        try:
            async with ProtocolSession.open(self.page, self.settings.protocol_timeout_ms) as session:
                point = await self._point_for(session, entry)
                await dispatch_click(session, point, button=button, click_count=click_count)
                return point
        except ProtocolError as e:
            logger.warning(f"Protocol click on {entry.ref_id} failed: {e}")
            raise DispatchFailed(entry.ref_id, str(e)) from e

    async def _point_for(self, session: ProtocolSession, entry: RefEntry) -> Point:
        resolution = entry.resolution
        if isinstance(resolution, ProtocolNode):
            await ensure_same_document(session, resolution.frame_id, resolution.loader_id)
            return await box_model_center(session, resolution.backend_node_id)
        if isinstance(resolution, ViewportPoint):
            await ensure_same_document(session, resolution.frame_id, resolution.loader_id)
            return resolution.point
        raise ProtocolError(f"{entry.ref_id} has no protocol resolution")


async def resolve_and_click(
    page: Page,
    store: ReferenceStore,
    frame_path: FramePath | str | None,
    ref_id: str,
    settings: Settings | None = None,
) -> RefEntry:
    """One-shot ``ReferenceResolver(...).click`` for callers without a session."""
    return await ReferenceResolver(page, store, settings).click(frame_path, ref_id)

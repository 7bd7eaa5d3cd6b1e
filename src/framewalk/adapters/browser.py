"""Single-page Playwright session for the MCP server.

One browser, one context, one active page. The session owns the reference
store and keeps it honest: a main-frame navigation drops every entry set, a
child-frame navigation drops the frame entry sets, and a newly opened page
becomes the active page with an empty store.

Usage:
    session = BrowserSession(settings)
    page = await session.ensure_page()
    result = await session.engine().snapshot("iframe#player")
    await session.close()
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import TYPE_CHECKING

from playwright.async_api import async_playwright

from ..config import Settings
from ..core.actions import ReferenceResolver
from ..core.inspect import FrameInspector
from ..core.refs import ReferenceStore
from ..core.snapshot import SnapshotEngine

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Frame, Page, Playwright

logger = logging.getLogger(__name__)


class BrowserSession:
    """Lazily started browser state shared by all tool calls."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.store = ReferenceStore()
        self.lock = asyncio.Lock()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if self._page is None or self._page.is_closed():
            raise RuntimeError("No page. Call browser_navigate first.")
        return self._page

    @property
    def has_page(self) -> bool:
        return self._page is not None and not self._page.is_closed()

    async def ensure_page(self) -> Page:
        """Start the browser on first use, or reopen a page if the last one closed."""
        if self._browser is None or not self._browser.is_connected():
            await self._launch()
        if self._context is None:
            self._context = await self._browser.new_context(**self._context_options())  # type: ignore[union-attr]
            self._context.on("page", self._on_new_page)
        if not self.has_page:
            self._attach(await self._context.new_page())
        return self.page

    async def _launch(self) -> None:
        await self.close()
        self._playwright = await async_playwright().start()
        args = ["--no-sandbox"]
        if self.settings.viewport_maximized:
            args.append("--start-maximized")
        launch_options: dict = {"headless": self.settings.headless, "args": args}
        if not self.settings.use_chromium:
            launch_options["channel"] = "chrome"
        self._browser = await self._playwright.chromium.launch(**launch_options)
        logger.info(
            f"Browser launched (headless={self.settings.headless}, "
            f"channel={launch_options.get('channel', 'chromium')})"
        )

    def _context_options(self) -> dict:
        if self.settings.viewport_maximized:
            return {"ignore_https_errors": True, "no_viewport": True}
        return {
            "ignore_https_errors": True,
            "viewport": {"width": self.settings.viewport_width, "height": self.settings.viewport_height},
        }

    def _attach(self, page: Page) -> None:
        self._page = page
        page.on("framenavigated", self._on_frame_navigated)

    def _on_new_page(self, page: Page) -> None:
        logger.info(f"New page opened: {page.url}")
        self._attach(page)
        self.store.clear()

    def _on_frame_navigated(self, frame: Frame) -> None:
        if self._page is None or frame.page is not self._page:
            return
        if frame.parent_frame is None:
            self.store.on_navigation(frame.url)
        else:
            self.store.invalidate_frames()

    def engine(self) -> SnapshotEngine:
        return SnapshotEngine(self.page, self.store, self.settings)

    def resolver(self) -> ReferenceResolver:
        return ReferenceResolver(self.page, self.store, self.settings)

    def inspector(self) -> FrameInspector:
        return FrameInspector(self.page, self.settings)

    async def navigate(self, url: str) -> str:
        page = await self.ensure_page()
        await page.goto(url, wait_until="domcontentloaded", timeout=self.settings.navigation_timeout_ms)
        # framenavigated already cleared the store; goto may be a same-document hop.
        self.store.on_navigation(page.url)
        return page.url

    async def go_back(self) -> str:
        await self.page.go_back(timeout=self.settings.action_timeout_ms)
        self.store.on_navigation(self.page.url)
        return self.page.url

    async def go_forward(self) -> str:
        await self.page.go_forward(timeout=self.settings.action_timeout_ms)
        self.store.on_navigation(self.page.url)
        return self.page.url

    async def close(self) -> None:
        """Release page, context, browser and driver; the store is emptied."""
        self.store.clear()
        if self._context is not None:
            with suppress(Exception):
                await self._context.close()
        if self._browser is not None:
            with suppress(Exception):
                await self._browser.close()
        if self._playwright is not None:
            with suppress(Exception):
                await self._playwright.stop()
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

"""Snapshot-free frame operations.

Diagnostics for frames the tiers cannot see into (canvas UIs, closed
shadow roots, nested players) and direct coordinate/locator input that
needs no stored ref.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from ..adapters.cdp import (
    ProtocolSession,
    flatten_frames,
    frame_id_to_selector,
    get_frame_tree,
    selector_chain,
)
from ..api.dto import (
    BoundingBox,
    FrameInventory,
    FrameProbe,
    FrameTreeEntry,
    HitTestResult,
    InteractiveElement,
    InteractiveFilters,
)
from ..config import Settings
from .frames import DELIMITER, FrameChainResolver, FramePath, FrameTarget
from .model import Point
from .naming import RawElement, derive_name, derive_role

if TYPE_CHECKING:
    from playwright.async_api import FrameLocator, Locator, Page

logger = logging.getLogger(__name__)

PROBE_SCRIPT = """
() => {
  const text = document.body ? document.body.innerText || '' : '';
  return {
    url: window.location.href,
    title: document.title,
    readyState: document.readyState,
    buttons: document.querySelectorAll('button').length,
    clickables: document.querySelectorAll('a, button, input, [role="button"], [onclick], [tabindex]').length,
    textSample: text.slice(0, 200),
  };
}
"""

INVENTORY_SCRIPT = """
() => {
  const rect = (el) => {
    const r = el.getBoundingClientRect();
    return {x: r.x, y: r.y, w: r.width, h: r.height};
  };
  const iframes = Array.from(document.querySelectorAll('iframe')).map((el, index) => ({
    index, id: el.id || null, name: el.name || null, src: el.src || null, rect: rect(el),
  }));
  const canvas = Array.from(document.querySelectorAll('canvas')).map((el, index) => ({index, rect: rect(el)}));
  let shadowHosts = 0;
  document.querySelectorAll('*').forEach((el) => { if (el.shadowRoot) shadowHosts++; });
  const body = document.body;
  const bodyRect = body
    ? {w: body.clientWidth, h: body.clientHeight, scrollHeight: document.documentElement.scrollHeight}
    : null;
  return {iframes, canvas, shadowHosts, bodyRect};
}
"""

HIT_TEST_SCRIPT = """
({rx, ry}) => {
  const el = document.elementFromPoint(rx * window.innerWidth, ry * window.innerHeight);
  if (!el) return {};
  const r = el.getBoundingClientRect();
  const style = window.getComputedStyle(el);
  const out = {
    tag: el.tagName,
    id: el.id || null,
    className: typeof el.className === 'string' ? (el.className || null) : el.getAttribute('class'),
    rect: {x: r.x, y: r.y, width: r.width, height: r.height},
    pointerEvents: style.pointerEvents,
    cursor: style.cursor,
  };
  if (el.tagName === 'IFRAME') {
    out.src = el.src || null;
    out.name = el.name || null;
  }
  return out;
}
"""

# Same raw fields as the in-page collector, plus the disabled state.
RAW_ELEMENTS_SCRIPT = """
(els, textLimit) => els.map((el) => ({
  tag: el.tagName.toLowerCase(),
  type: el.getAttribute('type') || '',
  role: el.getAttribute('role') || '',
  ariaLabel: el.getAttribute('aria-label') || '',
  title: el.getAttribute('title') || '',
  placeholder: el.getAttribute('placeholder') || '',
  value: typeof el.value === 'string' ? el.value : '',
  text: (el.textContent || '').trim().slice(0, textLimit),
  disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
}))
"""


def name_pattern(name: str) -> re.Pattern[str]:
    """Case-insensitive accessible name match; invalid patterns match literally."""
    try:
        return re.compile(name, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(name), re.IGNORECASE)


def build_locator(
    scope: Page | FrameLocator,
    role: str | None = None,
    name: str | None = None,
    text: str | None = None,
    css: str | None = None,
) -> tuple[Locator, str]:
    """Locator from one of role(+name), text or css, with a short description.

    Raises:
        ValueError: If none of role, text or css is given
    """
    if role:
        if name:
            return scope.get_by_role(role, name=name_pattern(name)).first, f"role={role} name={name!r}"  # type: ignore[arg-type]
        return scope.get_by_role(role).first, f"role={role}"  # type: ignore[arg-type]
    if text is not None:
        return scope.get_by_text(text, exact=False).first, f'text="{text}"'
    if css:
        return scope.locator(css).first, f"css={css}"
    raise ValueError("Provide one of: role (+ optional name), text, or css")


class FrameInspector:
    """Direct operations on a frame path, no snapshot required.

    Usage:
        inspector = FrameInspector(page, settings)
        probe = await inspector.frame_probe("iframe#player")
        await inspector.click_at_rel("iframe#player", 0.5, 0.9)
    """

    def __init__(self, page: Page, settings: Settings | None = None) -> None:
        self.page = page
        self.settings = settings or Settings()
        self.frames = FrameChainResolver(page, self.settings.frame_timeout_ms)

    async def target(self, frame_path: FramePath | str | None, timeout_ms: int | None = None) -> FrameTarget:
        if timeout_ms is None:
            return await self.frames.resolve(frame_path)
        return await FrameChainResolver(self.page, timeout_ms).resolve(frame_path)

    async def list_interactive(
        self,
        frame_path: FramePath | str | None,
        filters: InteractiveFilters | None = None,
        timeout_ms: int | None = None,
    ) -> list[InteractiveElement]:
        """Visible clickables in a frame, named the way snapshots name them."""
        filters = filters or InteractiveFilters()
        target = await self.target(frame_path, timeout_ms)
        candidates = target.scope.locator(filters.selector)
        raw_items = await candidates.evaluate_all(RAW_ELEMENTS_SCRIPT, self.settings.name_max_length * 2)

        out: list[InteractiveElement] = []
        for position, item in enumerate(raw_items):
            raw = RawElement.from_dict(item)
            role = derive_role(raw)
            enabled = not item.get("disabled")
            if filters.roles and role not in filters.roles:
                continue
            if filters.enabled_only and not enabled:
                continue
            box = None
            if filters.include_bounding_box:
                found = await candidates.nth(position).bounding_box()
                box = BoundingBox(**found) if found else None
            out.append(
                InteractiveElement(
                    index=len(out) + 1,
                    role=role,
                    name=derive_name(raw, self.settings.name_max_length, fallback="(no text)"),
                    enabled=enabled,
                    bounding_box=box,
                )
            )
            if len(out) >= filters.limit:
                break
        return out

    async def frame_probe(self, frame_path: FramePath | str | None, timeout_ms: int | None = None) -> FrameProbe:
        """Readiness, counts and a text sample from inside the frame."""
        target = await self.target(frame_path, timeout_ms)
        result = await target.evaluate(PROBE_SCRIPT, timeout_ms=self.settings.evaluate_timeout_ms)
        return FrameProbe.model_validate(result)

    async def frame_bbox(self, frame_path: FramePath | str | None) -> BoundingBox:
        """Viewport box of the frame's owner element."""
        target = await self.target(frame_path)
        return BoundingBox(**await target.bounding_box())

    async def frame_inventory(
        self, frame_path: FramePath | str | None, timeout_ms: int | None = None
    ) -> FrameInventory:
        target = await self.target(frame_path, timeout_ms)
        result = await target.evaluate(INVENTORY_SCRIPT, timeout_ms=self.settings.evaluate_timeout_ms)
        return FrameInventory.model_validate(result)

    async def hit_test_rel(
        self,
        frame_path: FramePath | str | None,
        rx: float,
        ry: float,
        timeout_ms: int | None = None,
    ) -> HitTestResult:
        """Element under the relative frame position, as the frame sees it."""
        target = await self.target(frame_path, timeout_ms)
        result = await target.evaluate(
            HIT_TEST_SCRIPT, {"rx": rx, "ry": ry}, timeout_ms=self.settings.evaluate_timeout_ms
        )
        return HitTestResult.model_validate(result or {})

    async def click_at(
        self,
        frame_path: FramePath | str | None,
        x: float,
        y: float,
        button: str = "left",
        click_count: int = 1,
    ) -> Point:
        """Click at an offset from the frame's top-left corner; returns the viewport point."""
        box = await self.frame_bbox(frame_path)
        point = Point(box.x + x, box.y + y)
        await self.page.mouse.click(point.x, point.y, button=button, click_count=max(1, click_count))  # type: ignore[arg-type]
        logger.info(f"Clicked at ({point.x:.0f}, {point.y:.0f}) in frame {str(frame_path or '')!r}")
        return point

    async def click_at_rel(
        self,
        frame_path: FramePath | str | None,
        rx: float,
        ry: float,
        button: str = "left",
    ) -> Point:
        """Click at (rx, ry) in [0..1] of the frame's box; out-of-range values are clamped."""
        box = await self.frame_bbox(frame_path)
        point = Point(*box.at_relative(rx, ry))
        await self.page.mouse.click(point.x, point.y, button=button)  # type: ignore[arg-type]
        return point

    async def click_locator(
        self,
        frame_path: FramePath | str | None,
        role: str | None = None,
        name: str | None = None,
        text: str | None = None,
        css: str | None = None,
        force: bool = False,
        timeout_ms: int | None = None,
    ) -> str:
        target = await self.target(frame_path)
        locator, described = build_locator(target.scope, role, name, text, css)
        await locator.click(timeout=timeout_ms or self.settings.action_timeout_ms, force=force)
        return described

    async def type_locator(
        self,
        frame_path: FramePath | str | None,
        value: str,
        role: str | None = None,
        name: str | None = None,
        text: str | None = None,
        css: str | None = None,
        submit: bool = False,
        timeout_ms: int | None = None,
    ) -> str:
        if not value and not submit:
            raise ValueError("Provide input text (or submit to press Enter)")
        timeout = timeout_ms or self.settings.action_timeout_ms
        target = await self.target(frame_path)
        locator, described = build_locator(target.scope, role, name, text, css)
        if value:
            await locator.fill(value, timeout=timeout)
        if submit:
            await locator.press("Enter", timeout=timeout)
        return described

    async def press_key(self, frame_path: FramePath | str | None, key: str) -> None:
        target = await self.target(frame_path)
        if target.frame_locator is None:
            await self.page.keyboard.press(key)
        else:
            await target.frame_locator.locator("body").press(key, timeout=self.settings.action_timeout_ms)

    async def screenshot(self, frame_path: FramePath | str | None = None) -> bytes:
        target = await self.target(frame_path)
        if target.frame_locator is None:
            return await self.page.screenshot(timeout=self.settings.action_timeout_ms)
        return await target.frame_locator.locator("body").screenshot(timeout=self.settings.action_timeout_ms)

    async def frame_tree(self) -> list[FrameTreeEntry]:
        """Every protocol frame with the owner-selector path that addresses it.

        Raises:
            ProtocolError: If the frame tree cannot be read
        """
        async with ProtocolSession.open(self.page, self.settings.protocol_timeout_ms) as session:
            frames = flatten_frames(await get_frame_tree(session))
            selectors = await frame_id_to_selector(session, frames)

        entries = []
        for frame in frames:
            chain = selector_chain(frames, selectors, frame.id)
            entries.append(
                FrameTreeEntry(
                    frame_id=frame.id,
                    url=frame.url,
                    depth=len(chain),
                    path=f" {DELIMITER} ".join(chain),
                    loader_id=frame.loader_id,
                )
            )
        return entries

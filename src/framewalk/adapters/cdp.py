"""Chrome DevTools Protocol helpers.

Frame tree inspection, box model lookup and raw mouse input over a CDP
session bound to the page. Everything here works across origin boundaries
because it never runs script inside the target frame.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..core.model import Point

if TYPE_CHECKING:
    from playwright.async_api import CDPSession, Page

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """A CDP call failed, timed out, or returned something unusable."""


@dataclass(frozen=True)
class FrameInfo:
    """One node of the flattened frame tree."""

    id: str
    url: str
    loader_id: str | None = None
    parent_id: str | None = None
    sibling_index: int = 0  # position among the parent's child frames

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


class ProtocolSession:
    """A CDP session with per-call timeouts and uniform error wrapping.

    Usage:
        async with ProtocolSession.open(page, timeout_ms=10000) as session:
            tree = await session.send("Page.getFrameTree")
    """

    def __init__(self, cdp: CDPSession, timeout_ms: int = 10000) -> None:
        self._cdp = cdp
        self._timeout = timeout_ms / 1000
        self._enabled: set[str] = set()

    @classmethod
    @asynccontextmanager
    async def open(cls, page: Page, timeout_ms: int = 10000) -> AsyncIterator[ProtocolSession]:
        """Attach a CDP session to ``page`` and always detach it on exit."""
        try:
            cdp = await page.context.new_cdp_session(page)
        except Exception as e:
            raise ProtocolError(f"CDP session unavailable: {e}") from e
        session = cls(cdp, timeout_ms)
        try:
            yield session
        finally:
            with suppress(Exception):
                await cdp.detach()

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            result = await asyncio.wait_for(self._cdp.send(method, params or {}), self._timeout)
        except asyncio.TimeoutError as e:
            raise ProtocolError(f"{method} timed out after {self._timeout:.1f}s") from e
        except Exception as e:
            raise ProtocolError(f"{method} failed: {e}") from e
        return result if isinstance(result, dict) else {}

    async def enable(self, domain: str) -> None:
        """Enable a CDP domain once per session."""
        if domain in self._enabled:
            return
        await self.send(f"{domain}.enable")
        self._enabled.add(domain)


# === Frame tree ===


async def get_frame_tree(session: ProtocolSession) -> dict[str, Any]:
    """Returns the root ``{frame, childFrames}`` node of Page.getFrameTree."""
    await session.enable("Page")
    result = await session.send("Page.getFrameTree")
    tree = result.get("frameTree")
    if not isinstance(tree, dict) or not isinstance(tree.get("frame"), dict):
        raise ProtocolError("Page.getFrameTree returned no frameTree")
    return tree


def flatten_frames(tree: dict[str, Any]) -> list[FrameInfo]:
    """Pre-order traversal of a frame tree node, parents before children."""
    out: list[FrameInfo] = []

    def visit(node: dict[str, Any], parent_id: str | None, sibling_index: int) -> None:
        frame = node.get("frame") or {}
        frame_id = frame.get("id")
        if not frame_id:
            return
        out.append(
            FrameInfo(
                id=frame_id,
                url=frame.get("url", ""),
                loader_id=frame.get("loaderId"),
                parent_id=parent_id,
                sibling_index=sibling_index,
            )
        )
        for i, child in enumerate(node.get("childFrames") or []):
            visit(child, frame_id, i)

    visit(tree, None, 0)
    return out


def _attribute_map(flat: Sequence[str]) -> dict[str, str]:
    return {flat[i]: flat[i + 1] for i in range(0, len(flat) - 1, 2)}


async def frame_owner_backend_id(session: ProtocolSession, frame_id: str) -> int:
    """Backend node id of the <iframe>/<frame> element that owns ``frame_id``."""
    await session.enable("DOM")
    owner = await session.send("DOM.getFrameOwner", {"frameId": frame_id})
    backend_node_id = owner.get("backendNodeId")
    if backend_node_id is None:
        raise ProtocolError(f"No owner element for frame {frame_id}")
    return backend_node_id


def owner_selector(attributes: dict[str, str], sibling_index: int) -> str:
    """Synthesize the selector a caller would use for a frame owner element."""
    frame_id = attributes.get("id")
    if frame_id:
        return f"iframe#{frame_id}"
    name = attributes.get("name")
    if name:
        escaped = name.replace("\\", "\\\\").replace('"', '\\"')
        return f'iframe[name="{escaped}"]'
    return f"iframe:nth-of-type({sibling_index + 1})"


async def frame_id_to_selector(
    session: ProtocolSession, frames: Sequence[FrameInfo]
) -> dict[str, str]:
    """Map each non-root frame id to ``iframe#id``, ``iframe[name=...]`` or a positional selector."""
    mapping: dict[str, str] = {}
    for frame in frames:
        if frame.is_root:
            continue
        try:
            backend_node_id = await frame_owner_backend_id(session, frame.id)
            described = await session.send("DOM.describeNode", {"backendNodeId": backend_node_id})
            attrs = _attribute_map((described.get("node") or {}).get("attributes") or [])
        except ProtocolError as e:
            logger.debug(f"Owner lookup failed for frame {frame.id}: {e}")
            attrs = {}
        mapping[frame.id] = owner_selector(attrs, frame.sibling_index)
    return mapping


def selector_chain(frames: Sequence[FrameInfo], selectors: dict[str, str], frame_id: str) -> list[str]:
    """Owner selectors from the top-level document down to ``frame_id``."""
    by_id = {f.id: f for f in frames}
    chain: list[str] = []
    current = by_id.get(frame_id)
    while current is not None and not current.is_root:
        chain.append(selectors.get(current.id, ""))
        current = by_id.get(current.parent_id or "")
    chain.reverse()
    return chain


async def match_frame(
    session: ProtocolSession,
    segments: Sequence[str],
    hint: str | None = None,
) -> FrameInfo:
    """Find the protocol frame addressed by a chain of owner selectors.

    Preference order: a frame whose whole selector chain equals ``segments``;
    a unique frame whose own selector equals the innermost segment; the
    ``hint`` frame id; the only child frame when the page has exactly one.
    """
    frames = flatten_frames(await get_frame_tree(session))
    if not segments:
        return frames[0]

    selectors = await frame_id_to_selector(session, frames)
    wanted = list(segments)
    for frame in frames[1:]:
        if selector_chain(frames, selectors, frame.id) == wanted:
            return frame

    innermost = [f for f in frames[1:] if selectors.get(f.id) == wanted[-1]]
    if len(innermost) == 1:
        return innermost[0]

    if hint:
        for frame in frames:
            if frame.id == hint:
                return frame

    if len(frames) == 2 and not innermost:
        logger.debug(f"No selector match for {' >> '.join(segments)}; using the only child frame")
        return frames[1]

    raise ProtocolError(f"No protocol frame matches {' >> '.join(segments)}")


async def ensure_same_document(session: ProtocolSession, frame_id: str, loader_id: str | None) -> None:
    """Raise if the frame is gone or has loaded a new document since snapshot time."""
    frames = flatten_frames(await get_frame_tree(session))
    current = next((f for f in frames if f.id == frame_id), None)
    if current is None:
        raise ProtocolError(f"Frame {frame_id} no longer exists")
    if loader_id and current.loader_id and current.loader_id != loader_id:
        raise ProtocolError(f"Frame {frame_id} navigated since the snapshot")


# === Box model ===


def _content_quad(model: dict[str, Any]) -> list[float]:
    content = (model.get("model") or {}).get("content")
    if not content or len(content) < 8:
        raise ProtocolError("No box model for element")
    return [float(v) for v in content[:8]]


async def box_model_center(session: ProtocolSession, backend_node_id: int) -> Point:
    """Centroid of a node's content quad, in viewport coordinates."""
    await session.enable("DOM")
    model = await session.send("DOM.getBoxModel", {"backendNodeId": backend_node_id})
    quad = _content_quad(model)
    xs = quad[0::2]
    ys = quad[1::2]
    return Point(sum(xs) / 4, sum(ys) / 4)


async def node_content_rect(session: ProtocolSession, backend_node_id: int) -> Rect:
    await session.enable("DOM")
    model = await session.send("DOM.getBoxModel", {"backendNodeId": backend_node_id})
    quad = _content_quad(model)
    return Rect(x=quad[0], y=quad[1], width=quad[2] - quad[0], height=quad[5] - quad[1])


async def frame_viewport_rect(session: ProtocolSession, frame_id: str) -> Rect:
    """Content box of the element owning ``frame_id``, in viewport coordinates."""
    backend_node_id = await frame_owner_backend_id(session, frame_id)
    return await node_content_rect(session, backend_node_id)


# === Input ===


async def dispatch_click(
    session: ProtocolSession,
    point: Point,
    button: str = "left",
    click_count: int = 1,
) -> None:
    """Press then release at an absolute viewport point.

    Skips every DOM actionability check (visibility, pointer-events, overlays).
    """
    for event_type in ("mousePressed", "mouseReleased"):
        await session.send(
            "Input.dispatchMouseEvent",
            {
                "type": event_type,
                "x": point.x,
                "y": point.y,
                "button": button,
                "clickCount": click_count,
            },
        )

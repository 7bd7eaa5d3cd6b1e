"""Tier B: DOM/layout snapshot, used when the accessibility tree is empty.

Canvas-heavy and virtualized UIs often publish no accessibility nodes but
still lay out clickable boxes. No node identity is assumed to survive this
one-shot snapshot, so entries carry a viewport point.

DOMSnapshot.captureSnapshot stores every string once in a shared table;
node names, attribute names/values and text values are indices into it.
"""

from __future__ import annotations

import logging
from typing import Any

from ...adapters.cdp import ProtocolError, frame_viewport_rect
from ...errors import CollectionFailed
from ..model import DEFAULT_NAME_MAX_LENGTH, DiscoveredElement, Point, Tier, ViewportPoint
from ..naming import RawElement, derive_name
from .base import CollectionContext

logger = logging.getLogger(__name__)

CLICKABLE_TAGS = frozenset({"BUTTON", "A", "INPUT", "SELECT", "TEXTAREA"})
TEXT_NODE = 3

_TAG_ROLES = {"A": "link", "BUTTON": "button", "INPUT": "textbox", "TEXTAREA": "textbox", "SELECT": "combobox"}


def _string(strings: list[str], index: int | None) -> str | None:
    if index is None or index < 0 or index >= len(strings):
        return None
    return strings[index]


def _rare_flags(data: dict[str, Any] | None) -> set[int]:
    """RareBooleanData lists only the indices where the flag is set."""
    return set((data or {}).get("index") or [])


def _node_attributes(nodes: dict[str, Any], strings: list[str], node_index: int) -> dict[str, str]:
    table = nodes.get("attributes") or []
    if node_index >= len(table):
        return {}
    flat = table[node_index] or []
    attrs: dict[str, str] = {}
    for k in range(0, len(flat) - 1, 2):
        key = _string(strings, flat[k])
        if key:
            attrs[key.lower()] = _string(strings, flat[k + 1]) or ""
    return attrs


def _children_map(nodes: dict[str, Any]) -> dict[int, list[int]]:
    children: dict[int, list[int]] = {}
    for index, parent in enumerate(nodes.get("parentIndex") or []):
        if parent is not None and parent >= 0:
            children.setdefault(parent, []).append(index)
    return children


def _descendant_text(
    nodes: dict[str, Any],
    strings: list[str],
    children: dict[int, list[int]],
    node_index: int,
    limit: int,
) -> str:
    node_types = nodes.get("nodeType") or []
    node_values = nodes.get("nodeValue") or []
    parts: list[str] = []
    size = 0
    stack = list(reversed(children.get(node_index, [])))
    while stack and size < limit:
        current = stack.pop()
        if current < len(node_types) and node_types[current] == TEXT_NODE:
            text = _string(strings, node_values[current] if current < len(node_values) else None)
            if text and text.strip():
                parts.append(text.strip())
                size += len(text)
        else:
            stack.extend(reversed(children.get(current, [])))
    return " ".join(parts)


def find_document(snapshot: dict[str, Any], frame_id: str) -> dict[str, Any] | None:
    """The captured document belonging to ``frame_id``."""
    strings = snapshot.get("strings") or []
    for document in snapshot.get("documents") or []:
        if _string(strings, document.get("frameId")) == frame_id:
            return document
    return None


def coarse_role(tag: str, attrs: dict[str, str]) -> str:
    explicit = attrs.get("role", "").strip().split()
    if explicit:
        return explicit[0].lower()
    return _TAG_ROLES.get(tag, "button")


def parse_layout_snapshot(
    snapshot: dict[str, Any],
    frame_id: str,
    origin: Point,
    loader_id: str | None = None,
    name_max_length: int = DEFAULT_NAME_MAX_LENGTH,
) -> list[DiscoveredElement]:
    """Clickable laid-out nodes of one frame's document as viewport points.

    Args:
        snapshot: DOMSnapshot.captureSnapshot result
        frame_id: Protocol frame id of the target document
        origin: Viewport position of the frame's content box
        loader_id: Document loader id at capture time
        name_max_length: Label truncation length

    Returns:
        Elements in layout order

    Raises:
        CollectionFailed: If the snapshot holds no document for ``frame_id``
    """
    strings = snapshot.get("strings") or []
    document = find_document(snapshot, frame_id)
    if document is None:
        raise CollectionFailed(Tier.LAYOUT.value, f"no captured document for frame {frame_id}")

    nodes = document.get("nodes") or {}
    layout = document.get("layout") or {}
    node_names = nodes.get("nodeName") or []
    clickable_flags = _rare_flags(nodes.get("isClickable"))
    scroll_x = document.get("scrollOffsetX") or 0
    scroll_y = document.get("scrollOffsetY") or 0
    children = _children_map(nodes)

    elements: list[DiscoveredElement] = []
    seen: set[int] = set()
    for node_index, bounds in zip(layout.get("nodeIndex") or [], layout.get("bounds") or []):
        if node_index in seen or not bounds or len(bounds) < 4:
            continue
        x, y, width, height = bounds[:4]
        if width <= 0 or height <= 0:
            continue

        tag = (_string(strings, node_names[node_index] if node_index < len(node_names) else None) or "").upper()
        attrs = _node_attributes(nodes, strings, node_index)
        if not (node_index in clickable_flags or tag in CLICKABLE_TAGS or "role" in attrs):
            continue
        seen.add(node_index)

        raw = RawElement(
            tag=tag.lower(),
            type=attrs.get("type", "").lower(),
            role=attrs.get("role", ""),
            aria_label=attrs.get("aria-label", ""),
            title=attrs.get("title", ""),
            placeholder=attrs.get("placeholder", ""),
            value=attrs.get("value", ""),
            text=_descendant_text(nodes, strings, children, node_index, name_max_length),
        )
        point = ViewportPoint(
            x=origin.x + x + width / 2 - scroll_x,
            y=origin.y + y + height / 2 - scroll_y,
            frame_id=frame_id,
            loader_id=loader_id,
        )
        elements.append(
            DiscoveredElement(
                role=coarse_role(tag, attrs),
                name=derive_name(raw, name_max_length, fallback=tag.lower() or "element"),
                resolution=point,
            )
        )
    return elements


class LayoutCollector:
    """Tier B collector backed by DOMSnapshot.captureSnapshot."""

    tier = Tier.LAYOUT

    def __init__(self, name_max_length: int = DEFAULT_NAME_MAX_LENGTH) -> None:
        self.name_max_length = name_max_length

    async def collect(self, ctx: CollectionContext) -> list[DiscoveredElement]:
        try:
            session = await ctx.protocol()
            frame = await ctx.protocol_frame()
            await session.enable("DOMSnapshot")
            snapshot = await session.send(
                "DOMSnapshot.captureSnapshot",
                {"computedStyles": [], "includeDOMRects": True},
            )
            if frame.is_root:
                origin = Point(0.0, 0.0)
            else:
                rect = await frame_viewport_rect(session, frame.id)
                origin = Point(rect.x, rect.y)
        except ProtocolError as e:
            raise CollectionFailed(self.tier.value, str(e)) from e

        return parse_layout_snapshot(
            snapshot,
            frame.id,
            origin,
            loader_id=frame.loader_id,
            name_max_length=self.name_max_length,
        )

"""Tier A: the browser's accessibility tree, read over CDP.

Works for cross-origin frames because nothing runs inside the frame. Entries
carry the backend DOM node id so a click can go through the box model.
"""

from __future__ import annotations

import logging
from typing import Any

from ...adapters.cdp import ProtocolError
from ...errors import CollectionFailed
from ..model import DEFAULT_NAME_MAX_LENGTH, UNNAMED, DiscoveredElement, ProtocolNode, Tier, clean_name
from .base import CollectionContext

logger = logging.getLogger(__name__)

# Structural roles are included on purpose: many custom widget toolkits never
# expose the narrow interactive ones.
INTERACTIVE_ROLES = frozenset(
    {
        "button",
        "link",
        "textbox",
        "checkbox",
        "radio",
        "combobox",
        "tab",
        "menuitem",
        "option",
        "switch",
        "searchbox",
        "spinbutton",
        "heading",
        "region",
        "graphic",
        "img",
        "image",
        "group",
    }
)


def ax_role(node: dict[str, Any]) -> str:
    return (node.get("role") or {}).get("value") or "generic"


def ax_name(node: dict[str, Any], max_length: int = DEFAULT_NAME_MAX_LENGTH) -> str:
    return clean_name((node.get("name") or {}).get("value"), max_length)


def _usable(node: dict[str, Any]) -> bool:
    return not node.get("ignored") and node.get("backendDOMNodeId") is not None


def walk_ax_tree(nodes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Nodes reachable from the roots, parents before children."""
    by_id = {n["nodeId"]: n for n in nodes if n.get("nodeId")}
    ordered: list[dict[str, Any]] = []
    visited: set[str] = set()
    stack = [n["nodeId"] for n in reversed(nodes) if n.get("nodeId") and not n.get("parentId")]
    while stack:
        node_id = stack.pop()
        if node_id in visited or node_id not in by_id:
            continue
        visited.add(node_id)
        node = by_id[node_id]
        ordered.append(node)
        stack.extend(reversed(node.get("childIds") or []))
    return ordered


def select_interactive_nodes(nodes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Strict role filter; named ``generic`` nodes are the second chance."""
    ordered = walk_ax_tree(nodes)
    strict = [n for n in ordered if _usable(n) and ax_role(n) in INTERACTIVE_ROLES]
    if strict:
        return strict
    return [n for n in ordered if _usable(n) and ax_role(n) == "generic" and ax_name(n) != UNNAMED]


class AccessibilityCollector:
    """Tier A collector backed by Accessibility.getFullAXTree."""

    tier = Tier.ACCESSIBILITY

    def __init__(self, name_max_length: int = DEFAULT_NAME_MAX_LENGTH) -> None:
        self.name_max_length = name_max_length

    async def collect(self, ctx: CollectionContext) -> list[DiscoveredElement]:
        try:
            session = await ctx.protocol()
            frame = await ctx.protocol_frame()
            await session.enable("Accessibility")
            result = await session.send("Accessibility.getFullAXTree", {"frameId": frame.id})
        except ProtocolError as e:
            raise CollectionFailed(self.tier.value, str(e)) from e

        nodes = result.get("nodes") or []
        selected = select_interactive_nodes(nodes)
        logger.debug(f"AX tree for frame {frame.id}: {len(nodes)} nodes, {len(selected)} selected")
        return [
            DiscoveredElement(
                role=ax_role(node),
                name=ax_name(node, self.name_max_length),
                resolution=ProtocolNode(
                    backend_node_id=node["backendDOMNodeId"],
                    frame_id=frame.id,
                    loader_id=frame.loader_id,
                ),
            )
            for node in selected
        ]

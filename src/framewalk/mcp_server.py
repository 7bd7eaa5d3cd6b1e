"""FastMCP server exposing nested-frame snapshots and ref-based actions.

Tools are thin callers of the core: snapshot a frame path to get refs,
then click/type/hover/select by (ref, frame path). Coordinate, locator and
diagnostic tools cover frames whose content no tier can enumerate.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools.tool import ToolResult
from mcp.types import ImageContent
from playwright.async_api import Error as PlaywrightError
from starlette.requests import Request
from starlette.responses import JSONResponse

from .adapters.browser import BrowserSession
from .adapters.cdp import ProtocolError
from .api.dto import InteractiveFilters
from .config import settings
from .errors import FramewalkError
from .logging_setup import configure_logging
from .telemetry import init_telemetry, shutdown_telemetry

logger = logging.getLogger(__name__)

session = BrowserSession(settings)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:  # noqa: ARG001
    try:
        yield
    finally:
        await session.close()


mcp = FastMCP(name="framewalk", lifespan=lifespan)


@contextmanager
def tool_errors() -> Iterator[None]:
    """Report core and browser failures as tool errors instead of crashing the call."""
    try:
        yield
    except (FramewalkError, ProtocolError, PlaywrightError, asyncio.TimeoutError, ValueError, RuntimeError) as e:
        logger.warning(f"Tool call failed: {type(e).__name__}: {e}")
        raise ToolError(f"Error: {e}") from e


def _require(value: str | None, what: str) -> str:
    if not value or not value.strip():
        raise ToolError(f"Missing {what}")
    return value


@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> JSONResponse:  # noqa: ARG001
    """Health check endpoint for container probes."""
    return JSONResponse({"status": "healthy", "service": "framewalk-mcp", "page_open": session.has_page})


# === Snapshots ===


@mcp.tool
async def browser_snapshot(include_frames: bool = False) -> str:
    """Snapshot interactive elements of the current page with refs to act on.

    Set include_frames to also snapshot every iframe; each frame block is
    headed by the frame selector to pass alongside its refs.
    """
    with tool_errors():
        async with session.lock:
            await session.ensure_page()
            result = await session.engine().snapshot_page(include_frames=include_frames)
            return result.text


@mcp.tool
async def browser_snapshot_frame(frame_selector: str) -> str:
    """Snapshot a single iframe. Chain nested frames with ' >> ', e.g. iframe#player >> iframe#content.

    Falls back to the accessibility tree and then to a layout snapshot for
    frames whose script context cannot be reached.
    """
    _require(frame_selector, "frame_selector")
    with tool_errors():
        async with session.lock:
            await session.ensure_page()
            result = await session.engine().snapshot(frame_selector)
            return result.text


# === Navigation ===


@mcp.tool
async def browser_navigate(url: str) -> str:
    """Navigate to a URL."""
    _require(url, "url")
    with tool_errors():
        async with session.lock:
            return f"Navigated to {await session.navigate(url)}"


@mcp.tool
async def browser_go_back() -> str:
    """Go back in history."""
    with tool_errors():
        async with session.lock:
            return f"Went back to {await session.go_back()}"


@mcp.tool
async def browser_go_forward() -> str:
    """Go forward in history."""
    with tool_errors():
        async with session.lock:
            return f"Went forward to {await session.go_forward()}"


@mcp.tool
async def browser_wait(time: float = 1.0) -> str:
    """Wait for a number of seconds."""
    await asyncio.sleep(max(0.0, time))
    return f"Waited {time}s"


# === Ref-based actions ===


@mcp.tool
async def browser_click(ref: str, frame_selector: str | None = None) -> str:
    """Click an element by ref from a snapshot. Pass the frame_selector the ref was issued for."""
    _require(ref, "ref")
    with tool_errors():
        async with session.lock:
            await session.resolver().click(frame_selector, ref)
            return f"Clicked {ref}"


@mcp.tool
async def browser_type(
    text: str,
    ref: str | None = None,
    frame_selector: str | None = None,
    submit: bool = False,
) -> str:
    """Type text into the element identified by ref, or into the focused element."""
    with tool_errors():
        async with session.lock:
            await session.resolver().type_text(frame_selector, text, ref_id=ref, submit=submit)
            return "Typed"


@mcp.tool
async def browser_hover(ref: str, frame_selector: str | None = None) -> str:
    """Hover over an element by ref."""
    _require(ref, "ref")
    with tool_errors():
        async with session.lock:
            await session.resolver().hover(frame_selector, ref)
            return f"Hovered {ref}"


@mcp.tool
async def browser_select_option(ref: str, values: list[str], frame_selector: str | None = None) -> str:
    """Select option(s) in a dropdown by ref."""
    _require(ref, "ref")
    with tool_errors():
        async with session.lock:
            selected = await session.resolver().select_option(frame_selector, ref, values)
            return f"Selected {', '.join(selected) or 'nothing'}"


@mcp.tool
async def browser_press_key(key: str = "Enter", frame_selector: str | None = None) -> str:
    """Press a key (Enter, Tab, ArrowRight...), optionally inside a frame."""
    with tool_errors():
        async with session.lock:
            await session.inspector().press_key(frame_selector, key)
            return f"Pressed {key}"


@mcp.tool
async def browser_screenshot(frame_selector: str | None = None) -> ToolResult:
    """Screenshot the page, or only the given frame."""
    with tool_errors():
        async with session.lock:
            await session.ensure_page()
            data = await session.inspector().screenshot(frame_selector)
    return ToolResult(
        content=[
            ImageContent(type="image", data=base64.b64encode(data).decode("ascii"), mimeType="image/png")
        ]
    )


# === Coordinate and locator input ===


@mcp.tool
async def browser_click_at(
    frame_selector: str,
    x: float,
    y: float,
    button: str = "left",
    click_count: int = 1,
) -> str:
    """Click at (x, y) relative to a frame's top-left corner, for canvas or unreachable frames."""
    _require(frame_selector, "frame_selector")
    with tool_errors():
        async with session.lock:
            point = await session.inspector().click_at(
                frame_selector, x, y, button="right" if button == "right" else "left", click_count=click_count
            )
            return f"Clicked at ({point.x:.0f}, {point.y:.0f})"


@mcp.tool
async def browser_click_at_rel(frame_selector: str, rx: float, ry: float, button: str = "left") -> str:
    """Click at relative (rx, ry) in [0..1] inside the frame, e.g. (0.5, 0.9) for center-bottom."""
    _require(frame_selector, "frame_selector")
    with tool_errors():
        async with session.lock:
            point = await session.inspector().click_at_rel(
                frame_selector, rx, ry, button="right" if button == "right" else "left"
            )
            return f"Clicked at relative ({rx}, {ry}) -> ({point.x:.0f}, {point.y:.0f})"


@mcp.tool
async def browser_click_locator(
    frame_selector: str | None = None,
    role: str | None = None,
    name: str | None = None,
    text: str | None = None,
    css: str | None = None,
    force: bool = False,
    timeout_ms: int | None = None,
) -> str:
    """Click by locator without a snapshot: one of role(+name), text, or css."""
    with tool_errors():
        async with session.lock:
            described = await session.inspector().click_locator(
                frame_selector, role=role, name=name, text=text, css=css, force=force, timeout_ms=timeout_ms
            )
            return f"Clicked ({described})"


@mcp.tool
async def browser_type_locator(
    input: str,  # noqa: A002
    frame_selector: str | None = None,
    role: str | None = None,
    name: str | None = None,
    text: str | None = None,
    css: str | None = None,
    submit: bool = False,
    timeout_ms: int | None = None,
) -> str:
    """Fill an element found by locator: one of role(+name), text, or css."""
    with tool_errors():
        async with session.lock:
            await session.inspector().type_locator(
                frame_selector, input, role=role, name=name, text=text, css=css, submit=submit, timeout_ms=timeout_ms
            )
            return f"Typed {len(input)} chars" if input else "Pressed Enter"


# === Frame diagnostics ===


@mcp.tool
async def browser_list_clickables(
    frame_selector: str,
    include_bounding_box: bool = False,
    timeout_ms: int | None = None,
) -> str:
    """List visible buttons and links in a frame without taking a snapshot."""
    _require(frame_selector, "frame_selector")
    with tool_errors():
        async with session.lock:
            elements = await session.inspector().list_interactive(
                frame_selector,
                InteractiveFilters(include_bounding_box=include_bounding_box),
                timeout_ms=timeout_ms,
            )
    lines = [f"Found {len(elements)} clickable(s) in frame:"]
    lines.extend(element.describe() for element in elements)
    return "\n".join(lines)


@mcp.tool
async def browser_frame_probe(frame_selector: str, timeout_ms: int | None = None) -> str:
    """URL, title, readyState, element counts and a text sample from inside a frame.

    Zero counts or a failed probe usually mean a canvas UI or an unreachable frame.
    """
    _require(frame_selector, "frame_selector")
    with tool_errors():
        async with session.lock:
            probe = await session.inspector().frame_probe(frame_selector, timeout_ms=timeout_ms)
    return probe.model_dump_json(indent=2, by_alias=True)


@mcp.tool
async def browser_frame_bbox(frame_selector: str) -> str:
    """Viewport box (x, y, width, height) of a frame, for coordinate clicks."""
    _require(frame_selector, "frame_selector")
    with tool_errors():
        async with session.lock:
            box = await session.inspector().frame_bbox(frame_selector)
    return box.model_dump_json()


@mcp.tool
async def browser_frame_inventory(frame_selector: str, timeout_ms: int | None = None) -> str:
    """Child iframes, canvases, shadow hosts and body size inside a frame."""
    _require(frame_selector, "frame_selector")
    with tool_errors():
        async with session.lock:
            inventory = await session.inspector().frame_inventory(frame_selector, timeout_ms=timeout_ms)
    return inventory.model_dump_json(indent=2, by_alias=True)


@mcp.tool
async def browser_hit_test_rel(frame_selector: str, rx: float, ry: float, timeout_ms: int | None = None) -> str:
    """Element at relative (rx, ry) inside the frame, to confirm where a click would land."""
    _require(frame_selector, "frame_selector")
    with tool_errors():
        async with session.lock:
            hit = await session.inspector().hit_test_rel(frame_selector, rx, ry, timeout_ms=timeout_ms)
    return hit.model_dump_json(indent=2, by_alias=True, exclude_none=True)


@mcp.tool
async def browser_frame_tree() -> str:
    """Every frame on the page with the frame_selector that addresses it."""
    with tool_errors():
        async with session.lock:
            await session.ensure_page()
            entries = await session.inspector().frame_tree()
    return json.dumps([entry.model_dump() for entry in entries], indent=2)


def main() -> None:
    """Run the MCP server on the configured transport."""
    configure_logging(settings.log_level)
    init_telemetry(instrument_http=settings.mcp_transport != "stdio")
    try:
        if settings.mcp_transport == "stdio":
            logger.info("Starting framewalk MCP server on stdio")
            mcp.run(transport="stdio")
        else:
            logger.info(f"Starting framewalk MCP server on {settings.mcp_host}:{settings.mcp_port}/mcp")
            mcp.run(
                transport=settings.mcp_transport,  # type: ignore[arg-type]
                host=settings.mcp_host,
                port=settings.mcp_port,
                path="/mcp",
            )
    finally:
        shutdown_telemetry()


if __name__ == "__main__":
    main()

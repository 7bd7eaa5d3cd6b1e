#!/usr/bin/env python3
"""Smoke run against a real browser: nested frames, snapshot, click by ref.

Needs `playwright install chromium`. Set FRAMEWALK_USE_CHROMIUM=true to skip
the Chrome channel.
"""

import asyncio
import html
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from framewalk.adapters.browser import BrowserSession
from framewalk.config import Settings
from framewalk.logging_setup import configure_logging

INNER = """
<button onclick="document.body.dataset.clicked = 'yes'">Submit</button>
<a href="#help">Help</a>
"""

OUTER = f"""
<h1>Player</h1>
<iframe id="content" srcdoc="{html.escape(INNER)}" width="300" height="120"></iframe>
"""

PAGE = f"""
<!DOCTYPE html>
<html><body>
<p>Top level</p>
<iframe id="player" srcdoc="{html.escape(OUTER)}" width="400" height="240"></iframe>
</body></html>
"""


async def main() -> int:
    configure_logging("DEBUG")
    session = BrowserSession(Settings(viewport_maximized=False))
    try:
        page = await session.ensure_page()
        await page.set_content(PAGE)
        await page.wait_for_timeout(500)

        snapshot = await session.engine().snapshot_page(include_frames=True)
        print(snapshot.text)

        path = "iframe#player >> iframe#content"
        result = await session.engine().snapshot(path)
        submit = next((r for r in result.refs if r.name == "Submit"), None)
        if submit is None:
            print("[Smoke] FAIL: no Submit ref in nested frame")
            return 1

        await session.resolver().click(path, submit.ref_id)
        inner = page.frame_locator("iframe#player").frame_locator("iframe#content")
        clicked = await inner.locator("body").get_attribute("data-clicked")
        print(f"[Smoke] clicked {submit.ref_id} via {submit.tier.value}: data-clicked={clicked}")

        for entry in await session.inspector().frame_tree():
            print(f"[Smoke] frame depth={entry.depth} path={entry.path!r} url={entry.url}")
        return 0 if clicked == "yes" else 1
    finally:
        await session.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

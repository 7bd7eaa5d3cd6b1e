import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Ensure src/ is importable when running pytest without installation
_SRC = Path(__file__).resolve().parents[1] / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))


def pytest_sessionstart(session):
    os.environ.setdefault("HEADLESS", "true")
    os.environ.setdefault("OTEL_ENABLED", "false")


class FakeCDPSession:
    """Stands in for a Playwright CDPSession.

    ``responses`` maps a CDP method to a dict, a callable taking the params,
    or an exception instance to raise. Every call is recorded in ``calls``.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.detached = False

    async def send(self, method, params=None):
        self.calls.append((method, params or {}))
        response = self.responses.get(method, {})
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params or {})
        return response

    async def detach(self):
        self.detached = True

    def methods(self):
        return [method for method, _ in self.calls]


def frame_tree(root_id="main", root_loader="L0", children=()):
    """Build a Page.getFrameTree response; ``children`` are nested frame_node() dicts."""
    return {
        "frameTree": {
            "frame": {"id": root_id, "url": "https://example.test/", "loaderId": root_loader},
            "childFrames": list(children),
        }
    }


def frame_node(frame_id, loader_id="L1", url="https://child.test/", children=()):
    return {
        "frame": {"id": frame_id, "url": url, "loaderId": loader_id},
        "childFrames": list(children),
    }


@pytest.fixture
def cdp():
    return FakeCDPSession()


@pytest.fixture
def page(cdp):
    """Page double whose context hands out the ``cdp`` fixture as its CDP session."""
    page = MagicMock()
    page.context.new_cdp_session = AsyncMock(return_value=cdp)
    page.evaluate = AsyncMock()
    page.mouse.click = AsyncMock()
    page.mouse.move = AsyncMock()
    page.keyboard.type = AsyncMock()
    page.keyboard.press = AsyncMock()
    page.viewport_size = {"width": 1280, "height": 800}
    return page

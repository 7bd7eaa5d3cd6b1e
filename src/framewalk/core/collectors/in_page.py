"""In-page collector: discovery routine evaluated inside the frame itself.

Cheapest and most faithful tier, but only works where script can run in the
frame's context. Anything that stops the evaluation is a failure, not an
empty frame.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from playwright.async_api import Error as PlaywrightError

from ...errors import CollectionFailed
from ..model import DEFAULT_NAME_MAX_LENGTH, DiscoveredElement, Locator, Tier
from ..naming import RawElement, derive_name, derive_role, name_was_truncated
from .base import CollectionContext

logger = logging.getLogger(__name__)

INTERACTIVE_SELECTOR = ", ".join(
    [
        "button",
        "a[href]",
        "input:not([type='hidden'])",
        "select",
        "textarea",
        "[role='button']",
        "[role='link']",
        "[role='textbox']",
        "[role='checkbox']",
        "[role='radio']",
        "[role='combobox']",
        "[role='tab']",
        "[role='menuitem']",
        "[role='option']",
        "[role='switch']",
        "[role='searchbox']",
        "[role='spinbutton']",
        "[role='slider']",
        "[contenteditable='']",
        "[contenteditable='true']",
        "[tabindex]:not([tabindex^='-'])",
    ]
)

FALLBACK_SELECTOR = ", ".join(
    [
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "[role='heading']",
        "[role='region']",
        "[role='main']",
        "[role='banner']",
        "[role='navigation']",
        "a",
        "button",
        "input",
        "select",
        "textarea",
    ]
)

# Returns raw attributes only; role and name are derived in Python (naming.py).
DISCOVERY_SCRIPT = """
({primary, fallback, textLimit}) => {
  const out = [];
  const seen = new Set();
  const attr = (el, name) => el.getAttribute(name) || '';
  const add = (el) => {
    if (seen.has(el)) return;
    seen.add(el);
    out.push({
      tag: el.tagName.toLowerCase(),
      type: attr(el, 'type'),
      role: attr(el, 'role'),
      ariaLabel: attr(el, 'aria-label'),
      title: attr(el, 'title'),
      placeholder: attr(el, 'placeholder'),
      value: typeof el.value === 'string' ? el.value : '',
      text: (el.textContent || '').trim().slice(0, textLimit),
    });
  };
  document.querySelectorAll(primary).forEach(add);
  if (out.length === 0) document.querySelectorAll(fallback).forEach(add);
  return out;
}
"""


class InPageCollector:
    """Baseline tier; entries re-find their element by role and name."""

    tier = Tier.IN_PAGE

    def __init__(self, timeout_ms: int = 5000, name_max_length: int = DEFAULT_NAME_MAX_LENGTH) -> None:
        self.timeout_ms = timeout_ms
        self.name_max_length = name_max_length

    async def collect(self, ctx: CollectionContext) -> list[DiscoveredElement]:
        arg = {
            "primary": INTERACTIVE_SELECTOR,
            "fallback": FALLBACK_SELECTOR,
            "textLimit": self.name_max_length * 2,
        }
        try:
            raw = await ctx.target.evaluate(DISCOVERY_SCRIPT, arg, timeout_ms=self.timeout_ms)
        except asyncio.TimeoutError as e:
            raise CollectionFailed(self.tier.value, f"evaluate timed out after {self.timeout_ms}ms") from e
        except PlaywrightError as e:
            raise CollectionFailed(self.tier.value, f"frame not scriptable (cross-origin or navigating): {e}") from e

        if not isinstance(raw, list):
            raise CollectionFailed(self.tier.value, "discovery routine returned no list")

        elements: list[DiscoveredElement] = []
        for item in raw:
            if isinstance(item, dict):
                elements.append(self._to_element(RawElement.from_dict(item), elements))
        return elements

    def _to_element(self, raw: RawElement, earlier: list[DiscoveredElement]) -> DiscoveredElement:
        role = derive_role(raw)
        name = derive_name(raw, self.name_max_length)
        query = Locator(role=role, name=name, exact=not name_was_truncated(raw, self.name_max_length))
        # Same role and name elsewhere in the frame: click the one at this position
        nth = sum(1 for e in earlier if query.matches(e.role, e.name))
        return DiscoveredElement(role=role, name=name, resolution=replace(query, nth=nth))

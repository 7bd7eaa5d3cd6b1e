"""Element collectors, one per tier, in rank order."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .accessibility import AccessibilityCollector
from .base import CollectionContext, Collector, EscalationPolicy
from .in_page import InPageCollector
from .layout import LayoutCollector

if TYPE_CHECKING:
    from ...config import Settings


def default_collectors(settings: Settings) -> list[Collector]:
    """In-page, then accessibility tree, then layout snapshot."""
    return [
        InPageCollector(
            timeout_ms=settings.evaluate_timeout_ms,
            name_max_length=settings.name_max_length,
        ),
        AccessibilityCollector(name_max_length=settings.name_max_length),
        LayoutCollector(name_max_length=settings.name_max_length),
    ]


__all__ = [
    "AccessibilityCollector",
    "CollectionContext",
    "Collector",
    "EscalationPolicy",
    "InPageCollector",
    "LayoutCollector",
    "default_collectors",
]

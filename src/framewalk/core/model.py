"""Element descriptors and their resolution strategies.

Every discovered element carries exactly one resolution variant. The variant
type alone decides how a later click is dispatched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

UNNAMED = "(unnamed)"
DEFAULT_NAME_MAX_LENGTH = 200


class Tier(str, Enum):
    """Collection tiers in rank order, each with its ref id letter."""

    IN_PAGE = "in_page"
    ACCESSIBILITY = "accessibility"
    LAYOUT = "layout"

    @property
    def ref_letter(self) -> str:
        return {"in_page": "e", "accessibility": "a", "layout": "l"}[self.value]


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Locator:
    """Re-find by role and accessible name inside the frame's script context.

    ``nth`` is the position among earlier elements the same query matches.
    ``exact`` is off only for truncated names, which match as a substring.
    """

    role: str
    name: str
    nth: int = 0
    exact: bool = True

    def matches(self, role: str, name: str) -> bool:
        """Whether an element with this role and name is also hit by the query."""
        if role != self.role:
            return False
        if self.name == UNNAMED:
            return True
        if self.exact:
            return name == self.name
        return self.name.lower() in name.lower()


@dataclass(frozen=True)
class ProtocolNode:
    """Native node handle, valid while the frame keeps the same document."""

    backend_node_id: int
    frame_id: str
    loader_id: str | None = None


@dataclass(frozen=True)
class ViewportPoint:
    """Absolute viewport coordinate captured at snapshot time."""

    x: float
    y: float
    frame_id: str
    loader_id: str | None = None

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)


Resolution = Union[Locator, ProtocolNode, ViewportPoint]
RESOLUTION_TYPES = (Locator, ProtocolNode, ViewportPoint)


def _check_resolution(resolution: object) -> None:
    if not isinstance(resolution, RESOLUTION_TYPES):
        raise TypeError(
            f"resolution must be Locator, ProtocolNode or ViewportPoint, got {type(resolution).__name__}"
        )


@dataclass(frozen=True)
class DiscoveredElement:
    """One element as reported by a collector, before it gets a ref id."""

    role: str
    name: str
    resolution: Resolution

    def __post_init__(self) -> None:
        _check_resolution(self.resolution)


@dataclass(frozen=True)
class RefEntry:
    """A stored reference: what the caller sees plus how to act on it."""

    ref_id: str
    frame_key: str
    role: str
    name: str
    resolution: Resolution
    tier: Tier

    def __post_init__(self) -> None:
        _check_resolution(self.resolution)


def clean_name(raw: str | None, max_length: int | None = DEFAULT_NAME_MAX_LENGTH) -> str:
    """Normalize whitespace and truncate a label, falling back to the unnamed sentinel."""
    if not raw:
        return UNNAMED
    name = " ".join(raw.split())[:max_length].strip()
    return name or UNNAMED

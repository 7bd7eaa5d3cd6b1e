"""Error taxonomy for frame resolution, element collection and dispatch.

Only ``FrameNotFound``, ``ReferenceNotFound`` and ``DispatchFailed`` ever reach
a caller. ``CollectionFailed`` and ``EmptyResult`` are raised and consumed
inside the snapshot engine to drive tier escalation.
"""

from __future__ import annotations


class FramewalkError(Exception):
    """Base class for all errors raised by framewalk."""


class FrameNotFound(FramewalkError):
    """A segment of a frame path could not be located within its timeout."""

    def __init__(self, frame_path: str, segment: str | None = None, reason: str = "") -> None:
        self.frame_path = frame_path
        self.segment = segment
        self.reason = reason
        detail = f"Frame not found: {frame_path}"
        if segment and segment != frame_path:
            detail += f" (segment {segment!r})"
        if reason:
            detail += f": {reason}"
        super().__init__(detail)


class CollectionFailed(FramewalkError):
    """A collector could not enumerate elements (unreachable context, timeout)."""

    def __init__(self, tier: str, reason: str) -> None:
        self.tier = tier
        self.reason = reason
        super().__init__(f"{tier} collection failed: {reason}")


class EmptyResult(FramewalkError):
    """A collector ran but found nothing usable."""

    def __init__(self, tier: str) -> None:
        self.tier = tier
        super().__init__(f"{tier} found no interactive elements")


class ReferenceNotFound(FramewalkError):
    """A ref id is unknown for its frame key, or was invalidated by a newer snapshot."""

    def __init__(self, ref_id: str, frame_key: str) -> None:
        self.ref_id = ref_id
        self.frame_key = frame_key
        where = f" in frame {frame_key}" if frame_key else ""
        super().__init__(f"Ref not found: {ref_id}{where} (take a snapshot first)")


class DispatchFailed(FramewalkError):
    """The protocol or locator call behind a click/resolve step failed."""

    def __init__(self, ref_id: str | None, reason: str) -> None:
        self.ref_id = ref_id
        self.reason = reason
        target = f" {ref_id}" if ref_id else ""
        super().__init__(f"Dispatch failed{target}: {reason}")

"""Reference store for snapshot results.

Maps (frame key, ref id) to the element descriptor a snapshot produced. Each
frame key holds at most one entry set; storing a new set replaces the old one.
Ref ordinals keep counting across snapshots of the same frame key, so an id
from an earlier snapshot never comes back to name a different element.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..errors import ReferenceNotFound
from .model import DiscoveredElement, RefEntry, Tier

logger = logging.getLogger(__name__)

TOP_LEVEL_KEY = ""


class ReferenceStore:
    """Owns every entry set for one browser session.

    Entry sets are dropped on navigation and teardown; ordinals are not, so
    stale ids fail lookup instead of resolving to a newcomer.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, RefEntry]] = {}
        self._counters: dict[str, int] = {}

    def store(
        self,
        frame_key: str,
        prefix: str,
        tier: Tier,
        elements: Iterable[DiscoveredElement],
    ) -> list[RefEntry]:
        """Replaces the entry set for ``frame_key``.

        Args:
            frame_key: Canonical frame path ("" for the top-level document)
            prefix: Ref id prefix for this snapshot (e.g. "f1a")
            tier: Tier that discovered the elements
            elements: Elements in discovery order

        Returns:
            The new entries, in discovery order
        """
        counter = self._counters.get(frame_key, 0)
        entries: dict[str, RefEntry] = {}
        for element in elements:
            counter += 1
            ref_id = f"{prefix}{counter}"
            entries[ref_id] = RefEntry(
                ref_id=ref_id,
                frame_key=frame_key,
                role=element.role,
                name=element.name,
                resolution=element.resolution,
                tier=tier,
            )
        self._counters[frame_key] = counter
        self._entries[frame_key] = entries
        logger.debug(f"Stored {len(entries)} refs for frame {frame_key!r} ({tier.value})")
        return list(entries.values())

    def lookup(self, frame_key: str, ref_id: str) -> RefEntry | None:
        """Gets an entry, or None if the id is unknown or stale."""
        return self._entries.get(frame_key, {}).get(ref_id)

    def require(self, frame_key: str, ref_id: str) -> RefEntry:
        """Gets an entry or raises ReferenceNotFound."""
        entry = self.lookup(frame_key, ref_id)
        if entry is None:
            raise ReferenceNotFound(ref_id, frame_key)
        return entry

    def has_ref(self, frame_key: str, ref_id: str) -> bool:
        return self.lookup(frame_key, ref_id) is not None

    def entries(self, frame_key: str) -> dict[str, RefEntry]:
        """Returns a copy of the current entry set for a frame key."""
        return dict(self._entries.get(frame_key, {}))

    def frame_keys(self) -> list[str]:
        return list(self._entries)

    def invalidate(self, frame_key: str) -> None:
        """Drops the entry set for one frame key."""
        if self._entries.pop(frame_key, None) is not None:
            logger.debug(f"Invalidated refs for frame {frame_key!r}")

    def invalidate_frames(self) -> None:
        """Drops every entry set except the top-level document's."""
        for key in [k for k in self._entries if k != TOP_LEVEL_KEY]:
            self.invalidate(key)

    def clear(self) -> None:
        """Drops all entry sets (navigation, teardown)."""
        self._entries.clear()

    def on_navigation(self, new_url: str) -> None:
        """Called when the top-level document is replaced."""
        if self._entries:
            logger.info(f"Navigation to {new_url}: dropping refs for {len(self._entries)} frame(s)")
        self.clear()

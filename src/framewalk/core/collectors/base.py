"""Collector capability interface and the per-snapshot collection context."""

from __future__ import annotations

from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ...adapters.cdp import FrameInfo, ProtocolSession, match_frame

if TYPE_CHECKING:
    from ..frames import FrameTarget
    from ..model import DiscoveredElement, Tier


@runtime_checkable
class Collector(Protocol):
    """One tier of element discovery.

    ``collect`` returns the elements it found (possibly none) or raises
    CollectionFailed when it could not look at all.
    """

    tier: Tier

    async def collect(self, ctx: CollectionContext) -> list[DiscoveredElement]: ...


@dataclass
class CollectionContext:
    """Everything the tiers of one snapshot share.

    The protocol session is opened on first use and detached when the
    context exits, whichever tier asked for it.
    """

    target: FrameTarget
    protocol_timeout_ms: int = 10000
    frame_id_hint: str | None = None
    _stack: AsyncExitStack = field(default_factory=AsyncExitStack, repr=False)
    _session: ProtocolSession | None = field(default=None, repr=False)
    _frame: FrameInfo | None = field(default=None, repr=False)

    async def __aenter__(self) -> CollectionContext:
        await self._stack.__aenter__()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._session = None
        await self._stack.__aexit__(*exc_info)

    async def protocol(self) -> ProtocolSession:
        if self._session is None:
            self._session = await self._stack.enter_async_context(
                ProtocolSession.open(self.target.page, self.protocol_timeout_ms)
            )
        return self._session

    async def protocol_frame(self) -> FrameInfo:
        """The protocol frame matching the target's frame path."""
        if self._frame is None:
            session = await self.protocol()
            self._frame = await match_frame(session, self.target.path.segments, self.frame_id_hint)
        return self._frame


@dataclass(frozen=True)
class EscalationPolicy:
    """When a tier's output is good enough to stop escalating."""

    min_entries: int = 1

    def is_sufficient(self, elements: list[DiscoveredElement]) -> bool:
        return len(elements) >= max(1, self.min_entries)

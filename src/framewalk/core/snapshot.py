"""Tiered snapshot engine.

Turns a frame path into a YAML-like list of interactive elements with ref
ids, trying each collector in rank order until one produces enough elements:

    - frame iframe#player >> iframe#content (accessibility tree):
      - button "Next" [ref=f1a1]
      - link "Help" [ref=f1a2]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..adapters.cdp import ProtocolError, ProtocolSession, flatten_frames, get_frame_tree
from ..config import Settings
from ..errors import CollectionFailed, EmptyResult, FrameNotFound
from ..telemetry import span
from .collectors import CollectionContext, Collector, EscalationPolicy, default_collectors
from .frames import FrameChainResolver, FramePath, as_frame_path, enumerate_frame_paths
from .model import DiscoveredElement, RefEntry, Tier
from .refs import ReferenceStore

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

NO_ELEMENTS_MARKER = "(no interactive elements found)"
TOP_LEVEL_SCOPE = "s1"
FRAME_SCOPE = "f1"

_TIER_LABELS = {
    Tier.IN_PAGE: "",
    Tier.ACCESSIBILITY: " (accessibility tree)",
    Tier.LAYOUT: " (layout snapshot)",
}


@dataclass
class TierAttempt:
    tier: Tier
    outcome: str  # ok|failed|empty|insufficient
    detail: str = ""


@dataclass
class SnapshotResult:
    frame_key: str
    text: str
    ref_prefix: str
    tier: Tier | None
    refs: list[RefEntry] = field(default_factory=list)
    attempts: list[TierAttempt] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.refs


@dataclass
class PageSnapshot:
    results: list[SnapshotResult]
    text: str
    unavailable: list[str] = field(default_factory=list)


def clean_display_name(name: str) -> str:
    """Escape quotes for the rendered tree."""
    return name.replace('"', '\\"')


def format_entry(entry: RefEntry, indent: int = 1) -> str:
    prefix = "  " * indent
    return f'{prefix}- {entry.role} "{clean_display_name(entry.name)}" [ref={entry.ref_id}]'


def render_snapshot(path: FramePath, tier: Tier | None, refs: list[RefEntry]) -> str:
    header = "- document" if path.is_top_level else f"- frame {path.key}"
    lines = [f"{header}{_TIER_LABELS.get(tier, '') if tier else ''}:"]
    lines.extend(format_entry(entry) for entry in refs)
    if not refs:
        lines.append(f"  - {NO_ELEMENTS_MARKER}")
    return "\n".join(lines)


class SnapshotEngine:
    """Runs the collector tiers for a frame path and stores the refs.

    Usage:
        engine = SnapshotEngine(page, store, settings)
        result = await engine.snapshot("iframe#player >> iframe#content")
    """

    def __init__(
        self,
        page: Page,
        store: ReferenceStore,
        settings: Settings | None = None,
        collectors: list[Collector] | None = None,
        policy: EscalationPolicy | None = None,
    ) -> None:
        self.page = page
        self.store = store
        self.settings = settings or Settings()
        self.collectors = collectors if collectors is not None else default_collectors(self.settings)
        self.policy = policy or EscalationPolicy(min_entries=self.settings.min_entries)
        self.resolver = FrameChainResolver(page, self.settings.frame_timeout_ms)

    async def snapshot(
        self,
        frame_path: FramePath | str | None,
        scope: str | None = None,
        frame_id_hint: str | None = None,
    ) -> SnapshotResult:
        """Snapshot one frame and replace its entry set.

        Args:
            frame_path: Chained owner selectors; empty for the top-level document
            scope: Ref id scope ("s1" top level, "f<n>" frames)
            frame_id_hint: Protocol frame id to use when selectors cannot be matched

        Returns:
            SnapshotResult; an exhausted frame yields an empty result, not an error

        Raises:
            FrameNotFound: If the frame path cannot be resolved
        """
        path = as_frame_path(frame_path)
        scope = scope or (TOP_LEVEL_SCOPE if path.is_top_level else FRAME_SCOPE)

        with span("framewalk.snapshot", frame=path.key):
            target = await self.resolver.resolve(path)
            async with CollectionContext(
                target=target,
                protocol_timeout_ms=self.settings.protocol_timeout_ms,
                frame_id_hint=frame_id_hint,
            ) as ctx:
                tier, elements, attempts = await self._run_tiers(ctx)

        if tier is None:
            self.store.invalidate(path.key)
            logger.info(f"No interactive elements in frame {path.key!r} after {len(attempts)} tier(s)")
            return SnapshotResult(
                frame_key=path.key,
                text=render_snapshot(path, None, []),
                ref_prefix=scope,
                tier=None,
                attempts=attempts,
            )

        prefix = f"{scope}{tier.ref_letter}"
        refs = self.store.store(path.key, prefix, tier, elements)
        return SnapshotResult(
            frame_key=path.key,
            text=render_snapshot(path, tier, refs),
            ref_prefix=prefix,
            tier=tier,
            refs=refs,
            attempts=attempts,
        )

    async def _attempt(self, collector: Collector, ctx: CollectionContext) -> list[DiscoveredElement]:
        elements = await collector.collect(ctx)
        if not elements:
            raise EmptyResult(collector.tier.value)
        return elements

    async def _run_tiers(
        self, ctx: CollectionContext
    ) -> tuple[Tier | None, list[DiscoveredElement], list[TierAttempt]]:
        attempts: list[TierAttempt] = []
        best: tuple[Tier, list[DiscoveredElement]] | None = None

        for collector in self.collectors:
            try:
                elements = await self._attempt(collector, ctx)
            except CollectionFailed as e:
                logger.info(f"Tier {collector.tier.value} failed for {ctx.target.key!r}: {e.reason}")
                attempts.append(TierAttempt(collector.tier, "failed", e.reason))
                continue
            except EmptyResult:
                logger.debug(f"Tier {collector.tier.value} found nothing for {ctx.target.key!r}")
                attempts.append(TierAttempt(collector.tier, "empty"))
                continue

            if self.policy.is_sufficient(elements):
                attempts.append(TierAttempt(collector.tier, "ok", f"{len(elements)} element(s)"))
                return collector.tier, elements, attempts

            attempts.append(TierAttempt(collector.tier, "insufficient", f"{len(elements)} element(s)"))
            if best is None or len(elements) > len(best[1]):
                best = (collector.tier, elements)

        if best is not None:
            return best[0], best[1], attempts
        return None, [], attempts

    async def snapshot_page(self, include_frames: bool = False) -> PageSnapshot:
        """Snapshot the top-level document and, optionally, every frame below it.

        Frame paths come from each frame's owner element. Protocol frame ids
        are paired with them by position in the flattened frame tree, used
        only when selector matching is ambiguous.
        """
        results = [await self.snapshot(FramePath(), scope=TOP_LEVEL_SCOPE)]
        blocks = [results[0].text]
        unavailable: list[str] = []
        if not include_frames:
            return PageSnapshot(results=results, text=blocks[0])

        frames = await enumerate_frame_paths(self.page)
        flat_ids = await self._flat_frame_ids()
        for index, (_frame, path) in enumerate(frames, start=1):
            hint = flat_ids[index] if index < len(flat_ids) else None
            try:
                result = await self.snapshot(path, scope=f"f{index}", frame_id_hint=hint)
            except FrameNotFound as e:
                logger.info(f"Skipping frame {path.key!r}: {e}")
                unavailable.append(path.key)
                blocks.append(f"- frame {path.key} (unavailable)")
                continue
            results.append(result)
            blocks.append(result.text)

        return PageSnapshot(results=results, text="\n\n".join(blocks), unavailable=unavailable)

    async def _flat_frame_ids(self) -> list[str]:
        try:
            async with ProtocolSession.open(self.page, self.settings.protocol_timeout_ms) as session:
                return [f.id for f in flatten_frames(await get_frame_tree(session))]
        except ProtocolError as e:
            logger.debug(f"Frame tree unavailable, no positional hints: {e}")
            return []

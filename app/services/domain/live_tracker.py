"""
Domain service: incremental visit detection for real-time pings.

The tracker itself holds no mutable state. The caller owns a
LiveTrackingState and passes it into every tick; intervals stay open
across ticks until a genuine exit or an explicit flush. Because the state
only depends on the pings seen, it can always be rebuilt by replaying a
trailing window through a fresh state.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from app.domain.errors import GeometryError
from app.domain.models import Block, Ping, RawInterval
from app.services.domain.visit_segmenter import SegmentState, VisitSegmenter, normalize_pings
from app.utils.geometry import Ring, is_inside, load_block_ring

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedBlock:
    """A block with its validated ring."""
    block_id: str
    ring: Ring

    @classmethod
    def from_block(cls, block: Block) -> "TrackedBlock":
        return cls(block_id=block.id, ring=load_block_ring(block.geometry_geojson))


@dataclass
class TractorTrack:
    """Live state of one tractor."""
    tractor_id: str
    inside_block_id: Optional[str] = None
    last_ping: Optional[Ping] = None
    segments: Dict[str, SegmentState] = field(default_factory=dict)


@dataclass
class LiveTrackingState:
    """Caller-owned arena of tractor tracks, keyed by tractor id."""
    tracks: Dict[str, TractorTrack] = field(default_factory=dict)

    def track(self, tractor_id: str) -> TractorTrack:
        if tractor_id not in self.tracks:
            self.tracks[tractor_id] = TractorTrack(tractor_id=tractor_id)
        return self.tracks[tractor_id]


@dataclass(frozen=True)
class BlockEntry:
    """A tractor entered a block."""
    block_id: str
    tractor_id: str
    at: datetime


@dataclass
class TickResult:
    """Events produced by one tick."""
    entries: List[BlockEntry] = field(default_factory=list)
    closed: List[RawInterval] = field(default_factory=list)


class LiveTracker:
    """Advances per-(tractor, block) segment state one tick at a time."""

    def __init__(self, blocks: Sequence[Block], segmenter: Optional[VisitSegmenter] = None):
        self.segmenter = segmenter or VisitSegmenter()
        self.blocks: List[TrackedBlock] = []
        for block in blocks:
            try:
                self.blocks.append(TrackedBlock.from_block(block))
            except GeometryError as e:
                logger.warning(f"Block {block.id} not tracked: {e}")

    def tick(self, state: LiveTrackingState, pings: Sequence[Ping]) -> TickResult:
        """
        Feed newly received pings into the tracking state.

        Pings at or before a tractor's last processed ping are ignored.

        Args:
            state: Tracking state owned by the caller (mutated in place)
            pings: New pings, any tractor, any order

        Returns:
            Block entries and intervals closed by exits during this tick
        """
        result = TickResult()

        by_tractor: Dict[str, List[Ping]] = defaultdict(list)
        for ping in pings:
            by_tractor[ping.tractor_id].append(ping)

        for tractor_id, tractor_pings in by_tractor.items():
            track = state.track(tractor_id)
            for ping in normalize_pings(tractor_pings):
                if track.last_ping is not None and ping.ts <= track.last_ping.ts:
                    continue
                self._apply(track, ping, result)
                track.last_ping = ping

        if result.entries or result.closed:
            logger.debug(f"Tick: {len(result.entries)} entries, {len(result.closed)} closed intervals")
        return result

    def _apply(self, track: TractorTrack, ping: Ping, result: TickResult) -> None:
        inside_block_id = None

        for block in self.blocks:
            segment = track.segments.get(block.block_id)
            if segment is None:
                segment = SegmentState(tractor_id=track.tractor_id, block_id=block.block_id)
                track.segments[block.block_id] = segment

            inside = is_inside((ping.lon, ping.lat), block.ring)
            was_open = segment.is_open
            closed = self.segmenter.advance(segment, ping, inside)

            if inside:
                if inside_block_id is None:
                    inside_block_id = block.block_id
                if not was_open:
                    result.entries.append(BlockEntry(
                        block_id=block.block_id,
                        tractor_id=track.tractor_id,
                        at=ping.ts,
                    ))
            if closed is not None:
                result.closed.append(closed)

        track.inside_block_id = inside_block_id

    def flush(self, state: LiveTrackingState, tractor_id: Optional[str] = None) -> List[RawInterval]:
        """
        Close open intervals at their last inside ping.

        Args:
            state: Tracking state owned by the caller
            tractor_id: Only flush this tractor (default: all tractors)

        Returns:
            The intervals that were closed
        """
        tracks = [state.tracks[tractor_id]] if tractor_id in state.tracks else []
        if tractor_id is None:
            tracks = list(state.tracks.values())

        closed: List[RawInterval] = []
        for track in tracks:
            for segment in track.segments.values():
                interval = self.segmenter.close(segment)
                if interval is not None:
                    closed.append(interval)
            track.inside_block_id = None
        return closed

    def rebuild(self, pings: Sequence[Ping]) -> LiveTrackingState:
        """
        Re-derive tracking state by replaying a trailing window of pings.

        Args:
            pings: Recent pings covering the window to replay

        Returns:
            A fresh LiveTrackingState with open intervals left open
        """
        state = LiveTrackingState()
        self.tick(state, pings)
        logger.info(f"Rebuilt live state for {len(state.tracks)} tractors from {len(pings)} pings")
        return state

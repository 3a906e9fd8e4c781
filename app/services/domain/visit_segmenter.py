"""
Domain service: raw entry/exit detection for one tractor in one block.

A single pass over a tractor's time-ordered pings opens an interval on the
first ping inside the block, extends it while pings stay inside, and closes
it at the last inside ping once a ping falls outside.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from app.domain.models import Ping, RawInterval
from app.utils.geometry import Ring, is_inside

logger = logging.getLogger(__name__)


def normalize_pings(pings: Iterable[Ping]) -> List[Ping]:
    """
    Sort pings by timestamp and collapse duplicate timestamps.

    The first sample seen for a timestamp wins.

    Args:
        pings: Pings for one tractor, in any order

    Returns:
        Ascending, de-duplicated pings
    """
    ordered = sorted(pings, key=lambda p: p.ts)
    result: List[Ping] = []
    for ping in ordered:
        if result and result[-1].ts == ping.ts:
            continue
        result.append(ping)
    return result


@dataclass
class SegmentState:
    """Open-interval state for one (tractor, block) pair."""
    tractor_id: str
    block_id: str
    inside_since: Optional[datetime] = None
    last_inside_at: Optional[datetime] = None
    ping_count: int = 0

    @property
    def is_open(self) -> bool:
        return self.inside_since is not None

    def reset(self) -> None:
        self.inside_since = None
        self.last_inside_at = None
        self.ping_count = 0


class VisitSegmenter:
    """
    Converts a ping sequence plus a block ring into raw intervals.

    The transition step is exposed separately so the live tracker can keep
    an interval open across ticks using the same rules.
    """

    @staticmethod
    def advance(state: SegmentState, ping: Ping, inside: bool) -> Optional[RawInterval]:
        """
        Apply one ping to the segment state.

        Args:
            state: Mutable state for the (tractor, block) pair
            ping: Next ping in ascending time order
            inside: Whether the ping lies inside the block

        Returns:
            The interval closed by this ping, if it was a genuine exit
        """
        if inside:
            if not state.is_open:
                state.inside_since = ping.ts
                state.ping_count = 0
            state.last_inside_at = ping.ts
            state.ping_count += 1
            return None

        if state.is_open:
            return VisitSegmenter.close(state)
        return None

    @staticmethod
    def close(state: SegmentState) -> Optional[RawInterval]:
        """
        Close an open interval at its last inside ping and clear the state.

        Returns:
            The closed interval, or None if nothing was open
        """
        if not state.is_open:
            return None
        interval = RawInterval(
            tractor_id=state.tractor_id,
            block_id=state.block_id,
            started_at=state.inside_since,
            ended_at=state.last_inside_at,
            ping_count=state.ping_count,
        )
        state.reset()
        return interval

    def segment(
        self,
        block_id: str,
        ring: Ring,
        tractor_id: str,
        pings: Sequence[Ping],
    ) -> List[RawInterval]:
        """
        Detect raw entry/exit intervals in batch (historical) mode.

        An interval still open at the end of the data is closed at the last
        inside ping.

        Args:
            block_id: Block identifier
            ring: Validated block ring of (lon, lat) positions
            tractor_id: Tractor identifier
            pings: Ascending, de-duplicated pings of that tractor

        Returns:
            Time-ordered, disjoint raw intervals
        """
        state = SegmentState(tractor_id=tractor_id, block_id=block_id)
        intervals: List[RawInterval] = []

        for ping in pings:
            closed = self.advance(state, ping, is_inside((ping.lon, ping.lat), ring))
            if closed is not None:
                intervals.append(closed)

        trailing = self.close(state)
        if trailing is not None:
            intervals.append(trailing)

        logger.debug(
            f"Block {block_id} / tractor {tractor_id}: "
            f"{len(intervals)} raw intervals from {len(pings)} pings"
        )
        return intervals

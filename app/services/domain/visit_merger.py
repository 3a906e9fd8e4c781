"""
Domain service: gap-based merging of raw intervals into final visits.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.domain.models import RawInterval, Visit, visit_id_for
from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MergeConfig:
    """Configuration for visit merging."""

    gap_minutes: float = 30.0
    """Intervals separated by strictly less than this merge into one visit"""


class VisitMerger:
    """
    Greedy left fold over the raw intervals of one (block, tractor) pair.

    Inputs are time-ordered and disjoint, so a single pass yields the
    minimal number of visits for the configured gap. A gap exactly equal to
    the threshold does not merge.
    """

    def __init__(self, config: Optional[MergeConfig] = None):
        self.config = config or MergeConfig(gap_minutes=settings.merge_gap_minutes)

    def merge(
        self,
        intervals: Sequence[RawInterval],
        tenant_id: str,
    ) -> List[Visit]:
        """
        Merge raw intervals separated by short gaps.

        Args:
            intervals: Ordered raw intervals for one (block, tractor) pair
            tenant_id: Tenant that owns the block

        Returns:
            Final visits, time-ordered and pairwise non-overlapping
        """
        visits: List[Visit] = []
        current: Optional[RawInterval] = None

        for interval in intervals:
            if current is None:
                current = interval
                continue

            gap_minutes = (interval.started_at - current.ended_at).total_seconds() / 60.0

            if gap_minutes < self.config.gap_minutes:
                current = RawInterval(
                    tractor_id=current.tractor_id,
                    block_id=current.block_id,
                    started_at=current.started_at,
                    ended_at=interval.ended_at,
                    ping_count=current.ping_count + interval.ping_count,
                )
            else:
                visits.append(self._to_visit(current, tenant_id))
                current = interval

        if current is not None:
            visits.append(self._to_visit(current, tenant_id))

        if intervals:
            logger.debug(f"Merged {len(intervals)} raw intervals into {len(visits)} visits "
                         f"(gap < {self.config.gap_minutes} min)")
        return visits

    @staticmethod
    def _to_visit(interval: RawInterval, tenant_id: str) -> Visit:
        return Visit(
            id=visit_id_for(interval.block_id, interval.tractor_id, interval.started_at),
            block_id=interval.block_id,
            tenant_id=tenant_id,
            tractor_id=interval.tractor_id,
            started_at=interval.started_at,
            ended_at=interval.ended_at,
            ping_count=interval.ping_count,
        )

"""
Domain service: roll a block's final visits into summary counters.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from app.domain.models import BlockMetrics, Visit, ensure_utc


class MetricsAggregator:
    """
    Recomputes BlockMetrics from the complete visit set of a block.

    Counters are a snapshot relative to the run time; they are never patched
    incrementally and can go stale between runs.
    """

    WINDOW_24H = timedelta(hours=24)
    WINDOW_7D = timedelta(days=7)

    def aggregate(
        self,
        block_id: str,
        visits: Sequence[Visit],
        now: Optional[datetime] = None,
    ) -> BlockMetrics:
        """
        Compute block metrics.

        Args:
            block_id: Block identifier
            visits: All final visits of the block, across tractors
            now: Reference time (defaults to the current UTC time)

        Returns:
            BlockMetrics snapshot
        """
        now = ensure_utc(now) or datetime.now(timezone.utc)

        last: Optional[Visit] = None
        for visit in visits:
            if last is None or visit.last_activity_at > last.last_activity_at:
                last = visit

        since_24h = now - self.WINDOW_24H
        since_7d = now - self.WINDOW_7D

        return BlockMetrics(
            block_id=block_id,
            last_seen_at=last.last_activity_at if last else None,
            last_tractor_id=last.tractor_id if last else None,
            total_passes=len(visits),
            passes_24h=sum(1 for v in visits if v.started_at >= since_24h),
            passes_7d=sum(1 for v in visits if v.started_at >= since_7d),
            updated_at=now,
        )

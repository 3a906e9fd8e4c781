"""
Application service: coverage analysis for a stored visit.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from app.config import settings
from app.domain.errors import ResourceNotFoundError
from app.domain.models import Block, Ping, Visit
from app.domain.repositories import TelemetryStore
from app.services.application.pagination import read_all
from app.services.domain.coverage_analyzer import CoverageAnalyzer, CoverageStats
from app.services.domain.visit_segmenter import normalize_pings
from app.utils.geometry import load_block_ring

logger = logging.getLogger(__name__)


@dataclass
class VisitCoverage:
    """A visit with its coverage (None when there is not enough path data)."""
    visit: Visit
    block: Block
    ping_count: int
    stats: Optional[CoverageStats]


class CoverageService:
    """
    Loads a visit, its block and its ping path, then runs CoverageAnalyzer.

    Coverage is recomputed on every call and never persisted.
    """

    def __init__(
        self,
        store: TelemetryStore,
        analyzer: Optional[CoverageAnalyzer] = None,
        read_page_size: Optional[int] = None,
    ):
        self.store = store
        self.analyzer = analyzer or CoverageAnalyzer()
        self.read_page_size = read_page_size or settings.read_page_size

    async def get_visit_path(self, visit: Visit, now: Optional[datetime] = None) -> List[Ping]:
        """
        Fetch the pings of a visit's tractor within the visit's time range.

        An open visit extends to the current time.

        Args:
            visit: Stored visit
            now: Upper bound for open visits (defaults to now, UTC)

        Returns:
            Ascending, de-duplicated pings
        """
        end = visit.ended_at or now or datetime.now(timezone.utc)
        pings = await read_all(
            lambda offset, limit: self.store.list_pings(
                visit.tenant_id,
                tractor_id=visit.tractor_id,
                start=visit.started_at,
                end=end,
                offset=offset,
                limit=limit,
            ),
            self.read_page_size,
        )
        return normalize_pings(pings)

    async def get_visit_coverage(
        self,
        block_id: str,
        visit_id: str,
        now: Optional[datetime] = None,
    ) -> VisitCoverage:
        """
        Compute coverage of a block during one of its visits.

        Args:
            block_id: Block identifier
            visit_id: Visit identifier (must belong to the block)
            now: Upper bound for open visits

        Returns:
            VisitCoverage

        Raises:
            ResourceNotFoundError: If the block or visit is unknown
            GeometryError: If the block polygon is malformed
            PersistenceError: If the store cannot be read
        """
        visit = await self.store.get_visit(visit_id)
        if visit is None or visit.block_id != block_id:
            raise ResourceNotFoundError(f"Visit '{visit_id}' not found for block '{block_id}'")

        block = await self.store.get_block(block_id)
        if block is None:
            raise ResourceNotFoundError(f"Block '{block_id}' not found")

        ring = load_block_ring(block.geometry_geojson)
        pings = await self.get_visit_path(visit, now=now)
        stats = self.analyzer.analyze(pings, ring)

        if stats is None:
            logger.info(f"Visit {visit_id}: not enough pings for coverage ({len(pings)})")
        else:
            logger.info(f"Visit {visit_id}: coverage {stats.coverage_percentage:.1f}%")

        return VisitCoverage(visit=visit, block=block, ping_count=len(pings), stats=stats)

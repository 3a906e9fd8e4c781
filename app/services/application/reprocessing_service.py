"""
Application service: batch re-derivation of visits and block metrics.

Orchestrates reading blocks and pings from the store, running the domain
pipeline (segment -> merge -> aggregate) per block, and replacing the
stored visits and metrics of each block. No business logic here beyond
sequencing and error collection.
"""
import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from app.config import settings
from app.domain.errors import GeometryError, PersistenceError
from app.domain.models import Block, Ping, Visit
from app.domain.repositories import TelemetryStore
from app.services.application.pagination import read_all
from app.services.domain.metrics_aggregator import MetricsAggregator
from app.services.domain.visit_merger import VisitMerger
from app.services.domain.visit_segmenter import VisitSegmenter, normalize_pings
from app.utils.geometry import Ring, load_block_ring

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ReprocessingConfig:
    """Tunables for a reprocessing run."""
    read_page_size: int = 1000
    write_batch_size: int = 100
    max_concurrent_blocks: int = 4
    max_reported_errors: int = 50

    @classmethod
    def from_settings(cls) -> "ReprocessingConfig":
        return cls(
            read_page_size=settings.read_page_size,
            write_batch_size=settings.write_batch_size,
            max_concurrent_blocks=settings.max_concurrent_blocks,
            max_reported_errors=settings.max_reported_errors,
        )


@dataclass
class BlockOutcome:
    """Result of one block unit; each unit owns its own accumulator."""
    block_id: str
    visits_created: int = 0
    metrics_updated: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class ReprocessingResult:
    """Summary of a reprocessing run."""
    success: bool
    visits_created: int = 0
    metrics_updated: int = 0
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Sequence[BlockOutcome],
        max_errors: int,
    ) -> "ReprocessingResult":
        errors = [error for outcome in outcomes for error in outcome.errors]
        if len(errors) > max_errors:
            suppressed = len(errors) - max_errors
            errors = errors[:max_errors] + [f"... and {suppressed} more errors"]
        return cls(
            success=True,
            visits_created=sum(o.visits_created for o in outcomes),
            metrics_updated=sum(o.metrics_updated for o in outcomes),
            errors=errors,
        )


class ReprocessingService:
    """
    Re-derives visits and metrics for a tenant's blocks.

    Each block is an independent unit: delete the scope's stored visits,
    insert the new set in batches, then upsert the block metrics. Units run
    concurrently up to max_concurrent_blocks and a failure in one unit never
    aborts the others. Re-running an interrupted unit is always safe.
    """

    def __init__(
        self,
        store: TelemetryStore,
        segmenter: Optional[VisitSegmenter] = None,
        merger: Optional[VisitMerger] = None,
        aggregator: Optional[MetricsAggregator] = None,
        config: Optional[ReprocessingConfig] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            store: Telemetry store for reads and writes
            segmenter: Raw interval detector
            merger: Gap-based visit merger
            aggregator: Block metrics aggregator
            config: Run tunables (defaults from settings)
        """
        self.store = store
        self.segmenter = segmenter or VisitSegmenter()
        self.merger = merger or VisitMerger()
        self.aggregator = aggregator or MetricsAggregator()
        self.config = config or ReprocessingConfig.from_settings()

    async def reprocess(
        self,
        tenant_id: str,
        block_id: Optional[str] = None,
        tractor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReprocessingResult:
        """
        Reprocess visits and metrics for a tenant.

        This method orchestrates:
        1. Reading all target blocks (paginated)
        2. Reading all pings in scope (paginated) and grouping by tractor
        3. Running one block unit per block, concurrently
        4. Merging per-block outcomes into one result

        Args:
            tenant_id: Tenant whose blocks are processed
            block_id: Only process this block
            tractor_id: Only re-derive visits of this tractor
            now: Reference time for metrics windows (defaults to now, UTC)

        Returns:
            ReprocessingResult with counts and a bounded error list
        """
        now = now or datetime.now(timezone.utc)
        logger.info(f"Reprocessing visits for tenant {tenant_id} "
                    f"(block={block_id or '*'}, tractor={tractor_id or '*'})")

        try:
            blocks = await self._read_all(
                lambda offset, limit: self.store.list_blocks(
                    tenant_id, block_id=block_id, offset=offset, limit=limit,
                )
            )
        except PersistenceError as e:
            logger.error(f"Error fetching blocks for tenant {tenant_id}: {e.message}")
            return ReprocessingResult(success=False, errors=[f"Error fetching blocks: {e.message}"])

        if not blocks:
            logger.info("No blocks found")
            return ReprocessingResult(success=True)

        try:
            pings = await self._read_all(
                lambda offset, limit: self.store.list_pings(
                    tenant_id, tractor_id=tractor_id, offset=offset, limit=limit,
                )
            )
        except PersistenceError as e:
            logger.error(f"Error fetching pings for tenant {tenant_id}: {e.message}")
            return ReprocessingResult(success=False, errors=[f"Error fetching pings: {e.message}"])

        if not pings:
            logger.info("No GPS pings found; stored visits and metrics left unchanged")
            return ReprocessingResult(success=True)

        pings_by_tractor = self.group_pings(pings)
        logger.info(f"Processing {len(blocks)} blocks with {len(pings)} pings "
                    f"from {len(pings_by_tractor)} tractors")

        semaphore = asyncio.Semaphore(self.config.max_concurrent_blocks)

        async def run_unit(block: Block) -> BlockOutcome:
            async with semaphore:
                return await self._guarded_unit(block, tenant_id, pings_by_tractor, tractor_id, now)

        outcomes = await asyncio.gather(*(run_unit(block) for block in blocks))

        result = ReprocessingResult.from_outcomes(outcomes, self.config.max_reported_errors)
        logger.info(f"Processing complete: visits_created={result.visits_created}, "
                    f"metrics_updated={result.metrics_updated}, errors={len(result.errors)}")
        return result

    @staticmethod
    def group_pings(pings: Sequence[Ping]) -> Dict[str, List[Ping]]:
        """Group pings by tractor, each list ascending and de-duplicated."""
        grouped: Dict[str, List[Ping]] = defaultdict(list)
        for ping in pings:
            grouped[ping.tractor_id].append(ping)
        return {tractor_id: normalize_pings(items) for tractor_id, items in grouped.items()}

    def derive_visits(
        self,
        block_id: str,
        ring: Ring,
        tenant_id: str,
        pings_by_tractor: Dict[str, List[Ping]],
    ) -> List[Visit]:
        """
        Run segment -> merge for every tractor over one block.

        Args:
            block_id: Block identifier
            ring: Validated block ring
            tenant_id: Owning tenant
            pings_by_tractor: Ascending, de-duplicated pings per tractor

        Returns:
            Final visits of the block, grouped by tractor in id order
        """
        visits: List[Visit] = []
        for tractor_id in sorted(pings_by_tractor):
            raw = self.segmenter.segment(block_id, ring, tractor_id, pings_by_tractor[tractor_id])
            visits.extend(self.merger.merge(raw, tenant_id))
        return visits

    async def _guarded_unit(
        self,
        block: Block,
        tenant_id: str,
        pings_by_tractor: Dict[str, List[Ping]],
        tractor_id: Optional[str],
        now: datetime,
    ) -> BlockOutcome:
        try:
            return await self._process_block(block, tenant_id, pings_by_tractor, tractor_id, now)
        except Exception as e:
            logger.exception(f"Block {block.id}: unexpected error")
            return BlockOutcome(block_id=block.id, errors=[f"Block {block.id}: Unexpected error: {e}"])

    async def _process_block(
        self,
        block: Block,
        tenant_id: str,
        pings_by_tractor: Dict[str, List[Ping]],
        tractor_id: Optional[str],
        now: datetime,
    ) -> BlockOutcome:
        outcome = BlockOutcome(block_id=block.id)

        try:
            ring = load_block_ring(block.geometry_geojson)
        except GeometryError as e:
            logger.warning(f"Block {block.id}: invalid geometry: {e}")
            outcome.errors.append(f"Block {block.id}: Invalid geometry: {e}")
            return outcome

        visits = self.derive_visits(block.id, ring, tenant_id, pings_by_tractor)
        logger.info(f"Block {block.id}: Found {len(visits)} visits")

        try:
            await self.store.delete_visits(block.id, tractor_id=tractor_id)
        except PersistenceError as e:
            logger.error(f"Block {block.id}: error deleting old visits: {e.message}")
            outcome.errors.append(f"Block {block.id}: Error deleting old visits: {e.message}")
            return outcome

        insert_failed = False
        batch_size = self.config.write_batch_size
        for start in range(0, len(visits), batch_size):
            batch = visits[start:start + batch_size]
            try:
                await self.store.insert_visits(batch)
                outcome.visits_created += len(batch)
            except PersistenceError as e:
                logger.error(f"Block {block.id}: error inserting visits: {e.message}")
                outcome.errors.append(f"Block {block.id}: Error inserting visits: {e.message}")
                insert_failed = True

        if insert_failed:
            # Stored visits no longer match the derived set
            logger.warning(f"Block {block.id}: skipping metrics update after failed insert")
            return outcome

        try:
            # A tractor-scoped run only replaced part of the block's visits
            if tractor_id is None:
                block_visits = visits
            else:
                block_visits = await self._read_all(
                    lambda offset, limit: self.store.list_visits(
                        block.id, offset=offset, limit=limit,
                    )
                )
            metrics = self.aggregator.aggregate(block.id, block_visits, now=now)
            await self.store.upsert_block_metrics(metrics)
            outcome.metrics_updated = 1
        except PersistenceError as e:
            logger.error(f"Block {block.id}: error updating metrics: {e.message}")
            outcome.errors.append(f"Block {block.id}: Error updating metrics: {e.message}")

        return outcome

    async def _read_all(
        self,
        fetch_page: Callable[[int, int], Awaitable[List[T]]],
    ) -> List[T]:
        return await read_all(fetch_page, self.config.read_page_size)

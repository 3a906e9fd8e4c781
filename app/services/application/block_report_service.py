"""
Application service: pass history and health status of a block.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.config import settings
from app.domain.errors import ResourceNotFoundError
from app.domain.models import BlockMetrics
from app.domain.repositories import TelemetryStore
from app.services.application.pagination import read_all
from app.services.domain.visit_statistics import (
    BlockStatus,
    BlockVisitStats,
    block_status,
    summarize_visits,
)


@dataclass
class BlockReport:
    """Stored metrics plus statistics derived from the stored visits."""
    block_id: str
    status: BlockStatus
    metrics: Optional[BlockMetrics]
    stats: BlockVisitStats


class BlockReportService:
    """Reads a block's visits and metrics and summarizes them."""

    def __init__(self, store: TelemetryStore, read_page_size: Optional[int] = None):
        self.store = store
        self.read_page_size = read_page_size or settings.read_page_size

    async def get_block_report(
        self,
        block_id: str,
        alert_hours: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> BlockReport:
        """
        Build the report for a block.

        Args:
            block_id: Block identifier
            alert_hours: Staleness threshold for the status (defaults from settings)
            now: Reference time

        Returns:
            BlockReport

        Raises:
            ResourceNotFoundError: If the block is unknown
            PersistenceError: If the store cannot be read
        """
        block = await self.store.get_block(block_id)
        if block is None:
            raise ResourceNotFoundError(f"Block '{block_id}' not found")

        visits = await read_all(
            lambda offset, limit: self.store.list_visits(block_id, offset=offset, limit=limit),
            self.read_page_size,
        )
        metrics = await self.store.get_block_metrics(block_id)

        return BlockReport(
            block_id=block_id,
            status=block_status(metrics, alert_hours or settings.alert_hours, now=now),
            metrics=metrics,
            stats=summarize_visits(visits, now=now),
        )

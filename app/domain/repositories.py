"""
Storage port for telemetry data.

The processing core only sees this protocol; the HTTP store client and the
in-memory store both implement it. Every method may raise PersistenceError.
"""
from datetime import datetime
from typing import List, Optional, Protocol

from app.domain.models import Block, BlockMetrics, Ping, Visit


class TelemetryStore(Protocol):
    """Paginated reads of blocks and pings, writes of visits and metrics."""

    async def list_blocks(
        self,
        tenant_id: str,
        block_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> List[Block]:
        ...

    async def get_block(self, block_id: str) -> Optional[Block]:
        ...

    async def list_pings(
        self,
        tenant_id: str,
        tractor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> List[Ping]:
        """Pings ordered by ascending timestamp."""
        ...

    async def list_visits(
        self,
        block_id: str,
        tractor_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> List[Visit]:
        """Visits ordered by ascending start time."""
        ...

    async def get_visit(self, visit_id: str) -> Optional[Visit]:
        ...

    async def delete_visits(
        self,
        block_id: str,
        tractor_id: Optional[str] = None,
    ) -> None:
        ...

    async def insert_visits(self, visits: List[Visit]) -> None:
        ...

    async def get_block_metrics(self, block_id: str) -> Optional[BlockMetrics]:
        ...

    async def upsert_block_metrics(self, metrics: BlockMetrics) -> None:
        ...

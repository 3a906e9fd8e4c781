"""
Infrastructure layer: in-memory telemetry store.

Implements the same interface as TelemetryStoreClient on plain dicts. Used
for local runs and tests.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from app.domain.models import Block, BlockMetrics, Ping, Visit


class InMemoryTelemetryStore:
    """Dictionary-backed telemetry store."""

    def __init__(
        self,
        blocks: Iterable[Block] = (),
        pings: Iterable[Ping] = (),
        visits: Iterable[Visit] = (),
    ):
        self.blocks: Dict[str, Block] = {b.id: b for b in blocks}
        self.pings: List[Ping] = list(pings)
        self.visits: Dict[str, Visit] = {v.id: v for v in visits}
        self.metrics: Dict[str, BlockMetrics] = {}

    def add_pings(self, pings: Iterable[Ping]) -> None:
        self.pings.extend(pings)

    async def list_blocks(
        self,
        tenant_id: str,
        block_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> List[Block]:
        matching = sorted(
            (b for b in self.blocks.values()
             if b.tenant_id == tenant_id and (block_id is None or b.id == block_id)),
            key=lambda b: b.id,
        )
        return matching[offset:offset + limit]

    async def get_block(self, block_id: str) -> Optional[Block]:
        return self.blocks.get(block_id)

    async def list_pings(
        self,
        tenant_id: str,
        tractor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> List[Ping]:
        matching = [
            p for p in self.pings
            if p.tenant_id in (None, tenant_id)
            and (tractor_id is None or p.tractor_id == tractor_id)
            and (start is None or p.ts >= start)
            and (end is None or p.ts <= end)
        ]
        matching.sort(key=lambda p: (p.ts, p.tractor_id))
        return matching[offset:offset + limit]

    async def list_visits(
        self,
        block_id: str,
        tractor_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 1000,
    ) -> List[Visit]:
        matching = [
            v for v in self.visits.values()
            if v.block_id == block_id and (tractor_id is None or v.tractor_id == tractor_id)
        ]
        matching.sort(key=lambda v: (v.started_at, v.id))
        return matching[offset:offset + limit]

    async def get_visit(self, visit_id: str) -> Optional[Visit]:
        return self.visits.get(visit_id)

    async def delete_visits(
        self,
        block_id: str,
        tractor_id: Optional[str] = None,
    ) -> None:
        self.visits = {
            visit_id: v for visit_id, v in self.visits.items()
            if not (v.block_id == block_id and (tractor_id is None or v.tractor_id == tractor_id))
        }

    async def insert_visits(self, visits: List[Visit]) -> None:
        for visit in visits:
            self.visits[visit.id] = visit

    async def get_block_metrics(self, block_id: str) -> Optional[BlockMetrics]:
        return self.metrics.get(block_id)

    async def upsert_block_metrics(self, metrics: BlockMetrics) -> None:
        self.metrics[metrics.block_id] = metrics

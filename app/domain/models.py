"""
Domain models for blocks, tractors, GPS pings, visits and block metrics.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, databases, etc.).
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator


VISIT_ID_NAMESPACE = uuid.UUID("6f1c5a2e-3b7d-4c8e-9a41-2d5e7b0c9f13")


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def visit_id_for(block_id: str, tractor_id: str, started_at: datetime) -> str:
    """
    Deterministic visit identifier.

    The same (block, tractor, start) always maps to the same id so that
    reprocessing an unchanged ping set reproduces identical visit rows.
    """
    key = f"{block_id}:{tractor_id}:{ensure_utc(started_at).isoformat()}"
    return str(uuid.uuid5(VISIT_ID_NAMESPACE, key))


class Block(BaseModel):
    """Monitored field region."""
    id: str
    tenant_id: str
    name: Optional[str] = None
    geometry_geojson: Dict[str, Any] = Field(
        description="GeoJSON Polygon (or Feature wrapping one) with [lon, lat] positions"
    )


class Tractor(BaseModel):
    """Tracked piece of equipment."""
    id: str
    tenant_id: Optional[str] = None
    name: str
    identifier: str = Field(description="Identity label, e.g. plate or device serial")


class Ping(BaseModel):
    """One timestamped GPS sample for a tractor."""
    tractor_id: str
    ts: datetime
    lat: float
    lon: float
    speed: Optional[float] = Field(default=None, description="Ground speed in km/h")
    tenant_id: Optional[str] = None

    @field_validator("ts")
    @classmethod
    def _ts_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


@dataclass(frozen=True)
class RawInterval:
    """A single unmerged entry/exit detection. Never persisted."""
    tractor_id: str
    block_id: str
    started_at: datetime
    ended_at: datetime
    ping_count: int


class Visit(BaseModel):
    """Merged, persisted presence of one tractor inside one block."""
    id: str
    block_id: str
    tenant_id: str
    tractor_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    ping_count: int = Field(ge=0)

    @field_validator("started_at", "ended_at")
    @classmethod
    def _times_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def last_activity_at(self) -> datetime:
        """End of the visit, or its start while it is still open."""
        return self.ended_at or self.started_at


class BlockMetrics(BaseModel):
    """Block-level pass counters, recomputed wholesale on every run."""
    block_id: str
    last_seen_at: Optional[datetime] = None
    last_tractor_id: Optional[str] = None
    total_passes: int = 0
    passes_24h: int = 0
    passes_7d: int = 0
    updated_at: datetime

    @field_validator("last_seen_at", "updated_at")
    @classmethod
    def _times_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

"""
API response models using Pydantic.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from shapely.geometry import mapping

from app.services.application.block_report_service import BlockReport
from app.services.application.reprocessing_service import ReprocessingResult
from app.services.domain.coverage_analyzer import CoverageStats


class ReprocessResponse(BaseModel):
    """Response model for the batch reprocessing endpoint."""
    success: bool
    visits_created: int = Field(alias="visitsCreated", description="Visits written to the store")
    metrics_updated: int = Field(alias="metricsUpdated", description="Block metrics rows upserted")
    errors: List[str] = Field(description="Per-block error messages (bounded)")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "success": True,
                "visitsCreated": 42,
                "metricsUpdated": 3,
                "errors": ["Block b-7: Invalid geometry: ring is not closed"],
            }
        }

    @classmethod
    def from_result(cls, result: ReprocessingResult) -> "ReprocessResponse":
        return cls(
            success=result.success,
            visits_created=result.visits_created,
            metrics_updated=result.metrics_updated,
            errors=result.errors,
        )


class CoverageStatsModel(BaseModel):
    """Coverage of a block during one visit."""
    average_speed: float = Field(alias="averageSpeed", description="km/h")
    max_speed: float = Field(alias="maxSpeed", description="km/h")
    coverage_percentage: float = Field(alias="coveragePercentage", ge=0, le=100)
    covered_area: float = Field(alias="coveredArea", description="Hectares")
    total_distance: float = Field(alias="totalDistance", description="Meters")
    missed_areas: List[Dict[str, Any]] = Field(
        alias="missedAreas",
        description="GeoJSON Polygon features of the uncovered parts of the block"
    )

    class Config:
        populate_by_name = True

    @classmethod
    def from_stats(cls, stats: CoverageStats) -> "CoverageStatsModel":
        return cls(
            average_speed=stats.average_speed,
            max_speed=stats.max_speed,
            coverage_percentage=stats.coverage_percentage,
            covered_area=stats.covered_area,
            total_distance=stats.total_distance,
            missed_areas=[
                {"type": "Feature", "properties": {"id": idx}, "geometry": mapping(polygon)}
                for idx, polygon in enumerate(stats.missed_areas)
            ],
        )


class VisitCoverageResponse(BaseModel):
    """Response model for the visit coverage endpoint."""
    block_id: str
    visit_id: str
    tractor_id: str
    ping_count: int = Field(description="Pings on the visit path")
    has_data: bool = Field(description="False when fewer than two pings make coverage undefined")
    stats: Optional[CoverageStatsModel] = None


class DailyPassModel(BaseModel):
    day: date
    count: int


class WeeklyPassModel(BaseModel):
    week_start: date
    count: int


class BlockMetricsModel(BaseModel):
    last_seen_at: Optional[datetime] = None
    last_tractor_id: Optional[str] = None
    total_passes: int
    passes_24h: int
    passes_7d: int
    updated_at: datetime


class BlockVisitStatsResponse(BaseModel):
    """Response model for the block visit statistics endpoint."""
    block_id: str
    status: str = Field(description="healthy, warning or critical")
    metrics: Optional[BlockMetricsModel] = None
    daily_passes_90d: List[DailyPassModel]
    weekly_passes_3m: List[WeeklyPassModel]
    average_passes_per_month: float
    total_duration_minutes: float
    average_duration_minutes: float

    @classmethod
    def from_report(cls, report: BlockReport) -> "BlockVisitStatsResponse":
        metrics = None
        if report.metrics is not None:
            metrics = BlockMetricsModel(**report.metrics.model_dump(exclude={"block_id"}))
        return cls(
            block_id=report.block_id,
            status=report.status.value,
            metrics=metrics,
            daily_passes_90d=[
                DailyPassModel(day=d.day, count=d.count) for d in report.stats.daily_passes_90d
            ],
            weekly_passes_3m=[
                WeeklyPassModel(week_start=w.week_start, count=w.count)
                for w in report.stats.weekly_passes_3m
            ],
            average_passes_per_month=report.stats.average_passes_per_month,
            total_duration_minutes=report.stats.total_duration_minutes,
            average_duration_minutes=report.stats.average_duration_minutes,
        )

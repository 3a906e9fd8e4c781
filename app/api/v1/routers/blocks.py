"""
API router for block endpoints.
"""
from fastapi import APIRouter, HTTPException, Path, Query
from typing import Annotated, Optional

from app.api.dependencies import BlockReportServiceDep, CoverageServiceDep
from app.api.v1.models.responses import (
    BlockVisitStatsResponse,
    CoverageStatsModel,
    VisitCoverageResponse,
)
from app.domain.errors import GeometryError, ResourceNotFoundError


router = APIRouter(
    prefix="/blocks",
    tags=["blocks"],
)


@router.get(
    "/{block_id}/visits/{visit_id}/coverage",
    response_model=VisitCoverageResponse,
    summary="Get coverage of a block during a visit",
    description="""
    Compute how much of the block was swept during one visit.

    The visit path is buffered by half the implement work width, clipped to
    the block polygon, and compared with the block area. Missed areas are
    returned as GeoJSON polygon features.

    `has_data` is false when the visit has fewer than two pings; coverage is
    then undefined rather than zero.
    """,
    responses={
        404: {"description": "Block or visit not found"},
        422: {"description": "Block polygon is malformed"},
        429: {"description": "Rate limit exceeded"},
    }
)
async def get_visit_coverage(
    block_id: Annotated[str, Path(description="Block identifier")],
    visit_id: Annotated[str, Path(description="Visit identifier")],
    coverage_service: CoverageServiceDep,
) -> VisitCoverageResponse:
    """
    Get coverage statistics for a visit.

    Raises:
        HTTPException: If the block or visit is not found, or the block
            geometry is malformed
    """
    try:
        coverage = await coverage_service.get_visit_coverage(block_id, visit_id)
    except ResourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GeometryError as e:
        raise HTTPException(status_code=422, detail=f"Invalid block geometry: {e}")

    return VisitCoverageResponse(
        block_id=coverage.block.id,
        visit_id=coverage.visit.id,
        tractor_id=coverage.visit.tractor_id,
        ping_count=coverage.ping_count,
        has_data=coverage.stats is not None,
        stats=CoverageStatsModel.from_stats(coverage.stats) if coverage.stats else None,
    )


@router.get(
    "/{block_id}/visit-stats",
    response_model=BlockVisitStatsResponse,
    summary="Get pass history and status of a block",
    responses={
        404: {"description": "Block not found"},
        429: {"description": "Rate limit exceeded"},
    }
)
async def get_block_visit_stats(
    block_id: Annotated[str, Path(description="Block identifier")],
    report_service: BlockReportServiceDep,
    alert_hours: Annotated[
        Optional[float],
        Query(gt=0, description="Hours without a visit after which the block is critical"),
    ] = None,
) -> BlockVisitStatsResponse:
    """
    Get daily/weekly pass counts, durations and health status for a block.

    Raises:
        HTTPException: If the block is not found
    """
    try:
        report = await report_service.get_block_report(block_id, alert_hours=alert_hours)
    except ResourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return BlockVisitStatsResponse.from_report(report)

"""
API router for visit reprocessing.
"""
from fastapi import APIRouter

from app.api.dependencies import ReprocessingServiceDep
from app.api.v1.models.requests import ReprocessRequest
from app.api.v1.models.responses import ReprocessResponse


router = APIRouter(
    prefix="/visits",
    tags=["visits"],
)


@router.post(
    "/reprocess",
    response_model=ReprocessResponse,
    summary="Re-derive visits and block metrics",
    description="""
    Re-derive block visits and metrics for a tenant from its stored GPS pings.

    For every target block this endpoint:
    1. Detects raw entry/exit intervals per tractor (ray-casting containment)
    2. Merges intervals separated by less than the configured gap
    3. Replaces the stored visits of the block (optionally one tractor only)
    4. Recomputes and upserts the block metrics

    Per-block failures are reported in `errors` and do not abort other blocks.
    Re-running with unchanged pings reproduces identical visits.
    """,
    responses={
        200: {"description": "Run completed (check `errors` for per-block failures)"},
        422: {"description": "Invalid request body"},
        429: {"description": "Rate limit exceeded"},
    }
)
async def reprocess_visits(
    request: ReprocessRequest,
    reprocessing_service: ReprocessingServiceDep,
) -> ReprocessResponse:
    """
    Run the batch reprocessing for a tenant.

    Args:
        request: Tenant and optional block/tractor filters
        reprocessing_service: Reprocessing service (injected dependency)

    Returns:
        ReprocessResponse with counts and errors
    """
    result = await reprocessing_service.reprocess(
        tenant_id=request.tenant_id,
        block_id=request.block_id,
        tractor_id=request.tractor_id,
    )
    return ReprocessResponse.from_result(result)

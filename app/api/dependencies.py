"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from app.infrastructure.store_client import (
    TelemetryStoreClient,
    get_store_client,
)
from app.services.application.block_report_service import BlockReportService
from app.services.application.coverage_service import CoverageService
from app.services.application.reprocessing_service import ReprocessingService


def get_reprocessing_service(
    store: Annotated[TelemetryStoreClient, Depends(get_store_client)],
) -> ReprocessingService:
    """
    Dependency factory for ReprocessingService.

    Args:
        store: Telemetry store client (injected)

    Returns:
        ReprocessingService instance
    """
    return ReprocessingService(store=store)


def get_coverage_service(
    store: Annotated[TelemetryStoreClient, Depends(get_store_client)],
) -> CoverageService:
    """Dependency factory for CoverageService."""
    return CoverageService(store=store)


def get_block_report_service(
    store: Annotated[TelemetryStoreClient, Depends(get_store_client)],
) -> BlockReportService:
    """Dependency factory for BlockReportService."""
    return BlockReportService(store=store)


# Type aliases for cleaner route signatures
ReprocessingServiceDep = Annotated[ReprocessingService, Depends(get_reprocessing_service)]
CoverageServiceDep = Annotated[CoverageService, Depends(get_coverage_service)]
BlockReportServiceDep = Annotated[BlockReportService, Depends(get_block_report_service)]

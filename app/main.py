"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.config import settings
from app.middleware.error_handler import ErrorHandlerMiddleware
from app.api.v1.routers import blocks, visits

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/minute"],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup; close the store client on shutdown."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Visit config: merge_gap_minutes={settings.merge_gap_minutes}, "
                f"work_width_meters={settings.work_width_meters}")
    logger.info(f"Reprocessing config: read_page_size={settings.read_page_size}, "
                f"write_batch_size={settings.write_batch_size}, "
                f"max_concurrent_blocks={settings.max_concurrent_blocks}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    # Shutdown
    from app.infrastructure.store_client import get_store_client
    client = get_store_client()
    await client.close()
    logger.info("Telemetry store client closed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Block Visit Monitoring API

    This API turns tractor GPS pings into visits per field block, rolls
    visits into block metrics, and measures how much of a block a visit
    actually covered.

    ## Features

    - **Visit Reprocessing**: Re-derive visits and metrics for a tenant's
      blocks idempotently
    - **Coverage Analysis**: Swept-area percentage and missed zones for a visit
    - **Block Statistics**: Pass history and health status per block
    - **Robust Error Handling**: Per-block error collection and retried store reads
    - **Rate Limiting**: Per-client request limit from settings

    ## Visit Detection

    1. Ray-casting containment of each ping against the block polygon
    2. Raw entry/exit intervals per tractor
    3. Intervals separated by less than the merge gap become one visit
    4. Metrics are recomputed from the full visit set of the block
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Outermost: converts uncaught domain and store errors to JSON responses
app.add_middleware(ErrorHandlerMiddleware)

# Include routers
app.include_router(visits.router, prefix="/api/v1")
app.include_router(blocks.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Service identity and version.
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
    }

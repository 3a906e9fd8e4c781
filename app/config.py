"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telemetry Store Configuration
    store_base_url: str = Field(
        default="https://store.example.com",
        description="Base URL of the telemetry store (PostgREST-style REST API)"
    )
    store_api_key: str = Field(
        default="",
        description="Service key used to authenticate against the store"
    )
    store_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single store request"
    )

    # Retry Configuration (reads only)
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of attempts for store reads"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Visit Detection Parameters
    merge_gap_minutes: float = Field(
        default=30.0,
        gt=0,
        description="Raw intervals separated by less than this many minutes merge into one visit"
    )
    work_width_meters: float = Field(
        default=6.0,
        gt=0,
        description="Total implement work width used to buffer a visit path"
    )

    # Reprocessing
    read_page_size: int = Field(
        default=1000,
        ge=1,
        description="Rows fetched per page when reading blocks and pings"
    )
    write_batch_size: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Visits inserted per write request"
    )
    max_concurrent_blocks: int = Field(
        default=4,
        ge=1,
        description="Blocks reprocessed concurrently (bounded by store connections)"
    )
    max_reported_errors: int = Field(
        default=50,
        ge=1,
        description="Maximum number of error messages returned by a reprocessing run"
    )

    # Block Status
    alert_hours: float = Field(
        default=48.0,
        gt=0,
        description="Hours without a visit after which a block is critical"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Block Visit Monitor",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()

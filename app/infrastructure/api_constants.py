"""
Telemetry store endpoint constants and configuration.

This module contains the REST table paths and query conventions of the
telemetry store (PostgREST-style). Centralizing these values makes it easy
to swap out tables or update API versions.
"""


class StoreEndpoints:
    """Telemetry store table paths."""

    # Base path
    REST_BASE = "/rest/v1"

    # Tables
    BLOCKS = f"{REST_BASE}/blocks"
    GPS_PINGS = f"{REST_BASE}/gps_pings"
    BLOCK_VISITS = f"{REST_BASE}/block_visits"
    BLOCK_METRICS = f"{REST_BASE}/block_metrics"

    # Column selections
    BLOCK_COLUMNS = "id,tenant_id,name,geometry_geojson"
    PING_COLUMNS = "tractor_id,tenant_id,ts,lat,lon,speed"
    VISIT_COLUMNS = "id,block_id,tenant_id,tractor_id,started_at,ended_at,ping_count"
    METRICS_COLUMNS = (
        "block_id,last_seen_at,last_tractor_id,total_passes,"
        "passes_24h,passes_7d,updated_at"
    )

    @staticmethod
    def eq(value: str) -> str:
        """
        Equality filter value.

        Args:
            value: Column value to match

        Returns:
            Filter expression, e.g. 'eq.42'
        """
        return f"eq.{value}"

    @staticmethod
    def gte(value: str) -> str:
        return f"gte.{value}"

    @staticmethod
    def lte(value: str) -> str:
        return f"lte.{value}"


class StoreHeaders:
    """Request headers understood by the store."""

    RETURN_MINIMAL = "return=minimal"
    UPSERT = "resolution=merge-duplicates,return=minimal"


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"

    # Pagination
    DEFAULT_PAGE_SIZE = 1000

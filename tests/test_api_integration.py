"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle against an in-memory telemetry
store injected in place of the REST store client.
"""
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock

from app.main import app
from app.api.dependencies import get_reprocessing_service
from app.domain.errors import PersistenceError
from app.domain.models import Visit, visit_id_for
from app.infrastructure.store_client import get_store_client
from app.services.application.reprocessing_service import ReprocessingResult, ReprocessingService


@pytest.fixture
def api_store(memory_store):
    """Route every store dependency to the in-memory store."""
    app.dependency_overrides[get_store_client] = lambda: memory_store
    yield memory_store
    app.dependency_overrides.clear()


@pytest.fixture
def stored_visit(api_store, make_ping, t0):
    visit = Visit(
        id=visit_id_for("block-1", "tractor-a", t0),
        block_id="block-1",
        tenant_id="tenant-1",
        tractor_id="tractor-a",
        started_at=t0,
        ended_at=t0 + timedelta(minutes=3),
        ping_count=4,
    )
    api_store.visits[visit.id] = visit
    lons = [-71.4305, -71.4298, -71.4292, -71.4285]
    api_store.add_pings([
        make_ping(m, lon, -33.3105, speed=6.0) for m, lon in enumerate(lons)
    ])
    return visit


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        """Root endpoint should return healthy status."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        """Health endpoint should return healthy status."""
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ============================================================
# Reprocessing Endpoint Tests
# ============================================================

class TestReprocessEndpoint:
    """Tests for the batch reprocessing endpoint."""

    def test_missing_tenant_id(self, test_client):
        """Should return 422 when the tenant is not given."""
        response = test_client.post("/api/v1/visits/reprocess", json={})

        assert response.status_code == 422

    def test_response_uses_camel_case_counts(self, test_client):
        mock_service = AsyncMock(spec=ReprocessingService)
        mock_service.reprocess.return_value = ReprocessingResult(
            success=True,
            visits_created=7,
            metrics_updated=2,
            errors=["Block b-9: Invalid geometry: ring is not closed"],
        )
        app.dependency_overrides[get_reprocessing_service] = lambda: mock_service

        try:
            response = test_client.post(
                "/api/v1/visits/reprocess",
                json={"tenant_id": "tenant-1", "block_id": "b-9"},
            )

            assert response.status_code == 200
            assert response.json() == {
                "success": True,
                "visitsCreated": 7,
                "metricsUpdated": 2,
                "errors": ["Block b-9: Invalid geometry: ring is not closed"],
            }
            mock_service.reprocess.assert_awaited_once_with(
                tenant_id="tenant-1", block_id="b-9", tractor_id=None,
            )
        finally:
            app.dependency_overrides.clear()

    def test_reprocess_against_store(self, test_client, api_store, make_ping,
                                     inside_field, outside_field):
        api_store.add_pings(
            [make_ping(m, *inside_field) for m in range(3)]
            + [make_ping(10, *outside_field)]
        )

        response = test_client.post("/api/v1/visits/reprocess", json={"tenant_id": "tenant-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["visitsCreated"] == 1
        assert data["metricsUpdated"] == 1
        assert api_store.metrics["block-1"].total_passes == 1


# ============================================================
# Coverage Endpoint Tests
# ============================================================

class TestCoverageEndpoint:
    """Tests for the visit coverage endpoint."""

    def test_coverage_response(self, test_client, stored_visit):
        response = test_client.get(f"/api/v1/blocks/block-1/visits/{stored_visit.id}/coverage")

        assert response.status_code == 200
        data = response.json()
        assert data["visit_id"] == stored_visit.id
        assert data["has_data"] is True
        assert data["ping_count"] == 4
        stats = data["stats"]
        assert stats["averageSpeed"] == 6.0
        assert 0 < stats["coveragePercentage"] < 10
        assert len(stats["missedAreas"]) == 2
        assert stats["missedAreas"][0]["type"] == "Feature"
        assert stats["missedAreas"][0]["geometry"]["type"] == "Polygon"

    def test_unknown_visit(self, test_client, api_store):
        response = test_client.get("/api/v1/blocks/block-1/visits/nope/coverage")

        assert response.status_code == 404

    def test_store_failure_is_bad_gateway(self, test_client, api_store):
        api_store.get_visit = AsyncMock(
            side_effect=PersistenceError("Store request failed: 503 - down", status_code=503)
        )

        response = test_client.get("/api/v1/blocks/block-1/visits/v-1/coverage")

        assert response.status_code == 502
        assert response.json()["error"] == "Telemetry store error"


# ============================================================
# Visit Statistics Endpoint Tests
# ============================================================

class TestVisitStatsEndpoint:
    """Tests for the block visit statistics endpoint."""

    def test_stats_response(self, test_client, stored_visit):
        response = test_client.get("/api/v1/blocks/block-1/visit-stats")

        assert response.status_code == 200
        data = response.json()
        assert data["block_id"] == "block-1"
        assert data["status"] in ("healthy", "warning", "critical")
        assert len(data["daily_passes_90d"]) == 91
        assert data["total_duration_minutes"] == 3.0

    def test_unknown_block(self, test_client, api_store):
        response = test_client.get("/api/v1/blocks/missing/visit-stats")

        assert response.status_code == 404

    def test_invalid_alert_hours(self, test_client, api_store):
        response = test_client.get("/api/v1/blocks/block-1/visit-stats?alert_hours=0")

        assert response.status_code == 422


# ============================================================
# Response Format Tests
# ============================================================

class TestResponseFormats:
    """Tests for API response formats."""

    def test_openapi_schema_available(self, test_client):
        """OpenAPI schema should be available."""
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        paths = response.json()["paths"]
        assert "/api/v1/visits/reprocess" in paths
        assert "/api/v1/blocks/{block_id}/visits/{visit_id}/coverage" in paths
        assert "/api/v1/blocks/{block_id}/visit-stats" in paths

    def test_docs_endpoint_available(self, test_client):
        """Swagger docs should be available."""
        response = test_client.get("/docs")

        assert response.status_code == 200


# ============================================================
# Rate Limiting Tests
# ============================================================

class TestRateLimiting:
    """Tests for rate limiting functionality."""

    def test_rate_limit_documented_in_openapi(self, test_client):
        """Rate limit should be documented in OpenAPI."""
        response = test_client.get("/openapi.json")
        paths = response.json()["paths"]

        assert "429" in paths["/api/v1/visits/reprocess"]["post"]["responses"]
        assert "429" in paths["/api/v1/blocks/{block_id}/visits/{visit_id}/coverage"]["get"]["responses"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

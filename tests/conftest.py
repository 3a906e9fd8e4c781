"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Block rings and GeoJSON blocks
- Ping factories
- In-memory telemetry store
- FastAPI test client
"""
import os

# Store reads retry without sleeping in tests; must be set before app import
os.environ.setdefault("RETRY_MIN_WAIT", "0")
os.environ.setdefault("RETRY_MAX_WAIT", "0")

import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from fastapi.testclient import TestClient

from app.main import app
from app.domain.models import Block, Ping
from app.infrastructure.memory_store import InMemoryTelemetryStore


# ============================================================
# Geometry Fixtures
# ============================================================

@pytest.fixture
def unit_square_ring() -> list[tuple[float, float]]:
    """Unit square (0,0)-(1,0)-(1,1)-(0,1), closed."""
    return [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0), (0.0, 0.0)]


@pytest.fixture
def field_ring() -> list[tuple[float, float]]:
    """Roughly 93m x 111m field block (lon, lat), about 1 hectare."""
    return [
        (-71.4300, -33.3110),
        (-71.4290, -33.3110),
        (-71.4290, -33.3100),
        (-71.4300, -33.3100),
        (-71.4300, -33.3110),
    ]


@pytest.fixture
def field_block(field_ring) -> Block:
    """Field block as stored, with a GeoJSON Feature geometry."""
    return Block(
        id="block-1",
        tenant_id="tenant-1",
        name="North Vines",
        geometry_geojson={
            "type": "Feature",
            "properties": {},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[list(p) for p in field_ring]],
            },
        },
    )


@pytest.fixture
def unit_square_block(unit_square_ring) -> Block:
    """Unit square block with a bare GeoJSON Polygon geometry."""
    return Block(
        id="block-square",
        tenant_id="tenant-1",
        geometry_geojson={
            "type": "Polygon",
            "coordinates": [[list(p) for p in unit_square_ring]],
        },
    )


# ============================================================
# Ping Fixtures
# ============================================================

@pytest.fixture
def t0() -> datetime:
    """Reference start time for ping sequences."""
    return datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_ping(t0) -> Callable[..., Ping]:
    """Factory building a ping at t0 + minutes."""
    def _make(
        minutes: float,
        lon: float,
        lat: float,
        tractor_id: str = "tractor-a",
        speed: Optional[float] = None,
        tenant_id: Optional[str] = "tenant-1",
    ) -> Ping:
        return Ping(
            tractor_id=tractor_id,
            ts=t0 + timedelta(minutes=minutes),
            lat=lat,
            lon=lon,
            speed=speed,
            tenant_id=tenant_id,
        )
    return _make


@pytest.fixture
def inside_field() -> tuple[float, float]:
    """A (lon, lat) position well inside the field block."""
    return (-71.4295, -33.3105)


@pytest.fixture
def outside_field() -> tuple[float, float]:
    """A (lon, lat) position well outside the field block."""
    return (-71.4400, -33.3200)


# ============================================================
# Store Fixtures
# ============================================================

@pytest.fixture
def memory_store(field_block) -> InMemoryTelemetryStore:
    """In-memory store holding the field block and no pings."""
    return InMemoryTelemetryStore(blocks=[field_block])


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)

"""
Domain service: spatial coverage of a block during one visit.

The visit path is buffered by half the implement work width, clipped to
the block, and compared against the block area. Everything metric happens
in the block's UTM zone; missed areas are returned in lon/lat.

Steps:
1. Speed statistics from positive speed readings
2. Geodesic path length
3. Buffered sweep of the path
4. Covered area = block ∩ sweep (falls back to the sweep area)
5. Coverage percentage, clamped to 100
6. Missed areas = block - covered, one polygon per disjoint part (none
   when the intersection failed)
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import logging

import numpy as np
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from app.config import settings
from app.domain.errors import DegenerateCoverageError
from app.domain.models import Ping
from app.utils.geo_projection import LocalProjection, geodesic_length
from app.utils.geometry import Ring, buffer_line, difference, intersect, split_polygons

logger = logging.getLogger(__name__)

SQUARE_METERS_PER_HECTARE = 10_000.0


@dataclass
class CoverageConfig:
    """Configuration for coverage analysis."""

    work_width_meters: float = 6.0
    """Total implement width swept around the path"""


@dataclass
class CoverageStats:
    """Coverage of one block during one visit. Never persisted."""
    average_speed: float
    max_speed: float
    coverage_percentage: float
    covered_area: float
    """Hectares"""
    total_distance: float
    """Meters"""
    missed_areas: List[Polygon] = field(default_factory=list)
    """Uncovered parts of the block, lon/lat"""


class CoverageAnalyzer:
    """Computes swept-area coverage and missed zones for a visit path."""

    def __init__(self, config: Optional[CoverageConfig] = None):
        self.config = config or CoverageConfig(work_width_meters=settings.work_width_meters)

    def analyze(self, pings: Sequence[Ping], ring: Ring) -> Optional[CoverageStats]:
        """
        Analyze coverage of a block by a visit path.

        Args:
            pings: The visit's pings in ascending time order
            ring: Validated block ring of (lon, lat) positions

        Returns:
            CoverageStats, or None when fewer than two pings make coverage
            undefined (no data, as opposed to zero coverage)
        """
        if len(pings) < 2:
            logger.debug(f"Coverage undefined for {len(pings)} pings")
            return None

        average_speed, max_speed = self._speed_stats(pings)

        path_lonlat = [(p.lon, p.lat) for p in pings]
        total_distance = geodesic_length(path_lonlat)

        projection = LocalProjection.for_location(ring[0][0], ring[0][1])
        block_m = projection.to_meters(Polygon(ring))
        path_m = [projection.forward.transform(lon, lat) for lon, lat in path_lonlat]

        buffered = buffer_line(path_m, self.config.work_width_meters / 2.0)
        if buffered.is_empty:
            logger.warning("Buffered path is empty; reporting zero coverage")
            return CoverageStats(
                average_speed=average_speed,
                max_speed=max_speed,
                coverage_percentage=0.0,
                covered_area=0.0,
                total_distance=total_distance,
            )

        covered: Optional[BaseGeometry]
        try:
            covered = intersect(block_m, buffered)
        except DegenerateCoverageError as e:
            logger.warning(f"Falling back to buffered path area: {e}")
            covered = None

        if covered is not None:
            covered_m2 = covered.area
        else:
            covered_m2 = buffered.area

        block_m2 = block_m.area
        coverage_percentage = 0.0
        if block_m2 > 0:
            coverage_percentage = min(100.0, covered_m2 / block_m2 * 100.0)

        # Missed areas are unavailable when the overlay failed
        missed_areas: List[Polygon] = []
        if covered is not None:
            missed_areas = self._missed_areas(block_m, covered, projection)

        logger.debug(f"Coverage {coverage_percentage:.1f}% over {block_m2:.0f}m², "
                     f"{len(missed_areas)} missed areas, path {total_distance:.0f}m")

        return CoverageStats(
            average_speed=average_speed,
            max_speed=max_speed,
            coverage_percentage=coverage_percentage,
            covered_area=covered_m2 / SQUARE_METERS_PER_HECTARE,
            total_distance=total_distance,
            missed_areas=missed_areas,
        )

    @staticmethod
    def _speed_stats(pings: Sequence[Ping]) -> tuple[float, float]:
        speeds = np.array([p.speed for p in pings if p.speed is not None and p.speed > 0])
        if speeds.size == 0:
            return 0.0, 0.0
        return float(np.mean(speeds)), float(np.max(speeds))

    @staticmethod
    def _missed_areas(
        block_m: BaseGeometry,
        covered_m: BaseGeometry,
        projection: LocalProjection,
    ) -> List[Polygon]:
        try:
            missed = difference(block_m, covered_m)
        except DegenerateCoverageError as e:
            logger.warning(f"Missed areas unavailable: {e}")
            return []
        return [projection.to_lonlat(part) for part in split_polygons(missed)]

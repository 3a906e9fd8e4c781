"""
Geometry kernel for block containment and coverage analysis.

Provides utilities for:
- GeoJSON ring extraction and validation
- Ray-casting point-in-polygon tests
- Polygon area at field scale
- Path buffering and boolean polygon operations
"""
import logging
import math
from typing import Any, Dict, List, Sequence, Tuple

from shapely.errors import GEOSException
from shapely.geometry import LineString, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.validation import explain_validity

from app.domain.errors import DegenerateCoverageError, GeometryError
from app.utils.geo_projection import project_to_meters

logger = logging.getLogger(__name__)

Ring = List[Tuple[float, float]]

# Segments per quarter circle when buffering path ends and joins
BUFFER_QUAD_SEGMENTS = 8


def extract_ring(geojson: Dict[str, Any]) -> List[List[float]]:
    """
    Extract the outer ring of a GeoJSON Polygon or Feature<Polygon>.

    Args:
        geojson: GeoJSON geometry or feature mapping

    Returns:
        Outer ring as a list of [lon, lat] positions

    Raises:
        GeometryError: If the object is not a polygon or has no rings
    """
    if not isinstance(geojson, dict):
        raise GeometryError("geometry is not a GeoJSON object")

    geometry = geojson
    if geojson.get("type") == "Feature":
        geometry = geojson.get("geometry") or {}

    if geometry.get("type") != "Polygon":
        raise GeometryError(f"unsupported geometry type {geometry.get('type')!r}")

    rings = geometry.get("coordinates") or []
    if not rings:
        raise GeometryError("polygon has no rings")
    return rings[0]


def _shoelace(ring: Sequence[Sequence[float]]) -> float:
    """Signed planar area of a closed ring in its own units."""
    total = 0.0
    for i in range(len(ring) - 1):
        x1, y1 = ring[i][0], ring[i][1]
        x2, y2 = ring[i + 1][0], ring[i + 1][1]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def validate_ring(ring: Sequence[Sequence[float]]) -> Ring:
    """
    Validate a closed polygon ring.

    Args:
        ring: Sequence of (lon, lat) positions, first == last

    Returns:
        The ring as a list of (lon, lat) float tuples

    Raises:
        GeometryError: On too few vertices, an unclosed ring, non-finite
            positions or zero area
    """
    try:
        points = [(float(p[0]), float(p[1])) for p in ring]
    except (TypeError, ValueError, IndexError) as e:
        raise GeometryError(f"malformed position: {e}") from e

    if len(points) < 4:
        raise GeometryError(f"ring needs at least 4 positions, got {len(points)}")
    if not all(math.isfinite(x) and math.isfinite(y) for x, y in points):
        raise GeometryError("ring contains non-finite coordinates")
    if points[0] != points[-1]:
        raise GeometryError("ring is not closed")
    if len(set(points[:-1])) < 3:
        raise GeometryError("ring needs at least 3 distinct vertices")
    if _shoelace(points) == 0.0:
        raise GeometryError("ring has zero area")

    return points


def load_block_ring(geojson: Dict[str, Any]) -> Ring:
    """Extract and validate a block's outer ring."""
    return validate_ring(extract_ring(geojson))


def is_inside(point: Tuple[float, float], ring: Sequence[Sequence[float]]) -> bool:
    """
    Ray-casting (crossings) containment test over the outer ring.

    Boundary tie-break follows the comparator below exactly, so visit
    boundaries stay identical to previously computed ones.

    Args:
        point: (lon, lat) of the sample
        ring: Polygon outer ring of (lon, lat) positions

    Returns:
        True if the point is inside the ring
    """
    x, y = point
    inside = False
    j = len(ring) - 1

    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]

        if ((yi > y) != (yj > y)) and (x < (xj - xi) * (y - yi) / (yj - yi) + xi):
            inside = not inside
        j = i

    return inside


def polygon_area_m2(ring: Sequence[Sequence[float]]) -> float:
    """
    Planar area of a lon/lat ring in square meters.

    The ring is projected to its local UTM zone first; fine at field scale,
    not valid near the poles or across the antimeridian.
    """
    projected, _ = project_to_meters(ring)
    return abs(_shoelace(projected))


def buffer_line(
    line: Sequence[Tuple[float, float]],
    half_width: float,
) -> Polygon:
    """
    Expand an ordered point sequence into the area swept by an implement.

    Args:
        line: Ordered (x, y) positions in meters
        half_width: Half of the implement work width in meters

    Returns:
        Polygon swept by an implement of total width 2 * half_width
        (empty if the line has fewer than two points)
    """
    if len(line) < 2:
        return Polygon()
    path = LineString(line)
    buffered = path.buffer(half_width, quad_segs=BUFFER_QUAD_SEGMENTS)
    return as_polygonal(buffered)


def split_polygons(geometry: BaseGeometry) -> List[Polygon]:
    """
    Decompose a geometry into its non-empty polygon parts.

    Args:
        geometry: Polygon, MultiPolygon or GeometryCollection

    Returns:
        One Polygon per disjoint part; lines and points are dropped
    """
    if geometry is None or geometry.is_empty:
        return []
    if isinstance(geometry, Polygon):
        return [geometry]
    if hasattr(geometry, "geoms"):
        parts: List[Polygon] = []
        for part in geometry.geoms:
            parts.extend(split_polygons(part))
        return parts
    return []


def as_polygonal(geometry: BaseGeometry) -> BaseGeometry:
    """Keep only the polygonal part of an overlay result."""
    parts = split_polygons(geometry)
    if not parts:
        return Polygon()
    if len(parts) == 1:
        return parts[0]
    return MultiPolygon(parts)


def _check_valid(geometry: BaseGeometry, label: str) -> None:
    if geometry.is_empty:
        return
    if not geometry.is_valid:
        raise DegenerateCoverageError(f"{label} is invalid: {explain_validity(geometry)}")


def intersect(a: BaseGeometry, b: BaseGeometry) -> BaseGeometry:
    """
    Polygonal intersection of two geometries.

    Raises:
        DegenerateCoverageError: If either input is invalid or GEOS fails
    """
    _check_valid(a, "left operand")
    _check_valid(b, "right operand")
    try:
        result = a.intersection(b)
    except GEOSException as e:
        raise DegenerateCoverageError(f"intersection failed: {e}") from e
    return as_polygonal(result)


def difference(a: BaseGeometry, b: BaseGeometry) -> BaseGeometry:
    """
    Polygonal difference a - b (Polygon or MultiPolygon, possibly empty).

    Raises:
        DegenerateCoverageError: If either input is invalid or GEOS fails
    """
    _check_valid(a, "left operand")
    _check_valid(b, "right operand")
    try:
        result = a.difference(b)
    except GEOSException as e:
        raise DegenerateCoverageError(f"difference failed: {e}") from e
    return as_polygonal(result)

"""
Geospatial projection utilities for coordinate transformations.

Block and path geometry arrives as WGS84 (lon, lat). Buffering and area
work is done in the UTM zone of the block so that widths are in meters.
"""
from dataclasses import dataclass
from typing import List, Sequence, Tuple
from pyproj import Geod, Transformer
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform


WGS84 = "EPSG:4326"

# Shared ellipsoid for geodesic distances
_GEOD = Geod(ellps="WGS84")


def get_utm_zone(longitude: float) -> int:
    """
    Calculate the UTM zone number from longitude.

    Args:
        longitude: Longitude in degrees

    Returns:
        UTM zone number (1-60)
    """
    return min(60, int((longitude + 180) / 6) + 1)


def get_utm_crs(longitude: float, latitude: float) -> str:
    """
    Get the appropriate UTM CRS (Coordinate Reference System) for a location.

    Args:
        longitude: Longitude in degrees
        latitude: Latitude in degrees

    Returns:
        EPSG code for the UTM zone
    """
    zone = get_utm_zone(longitude)
    # Northern hemisphere: EPSG:326XX, Southern hemisphere: EPSG:327XX
    hemisphere = "6" if latitude >= 0 else "7"
    return f"EPSG:32{hemisphere}{zone:02d}"


@dataclass(frozen=True)
class LocalProjection:
    """Forward and reverse transformers between WGS84 and one UTM zone."""
    crs: str
    forward: Transformer
    reverse: Transformer

    @classmethod
    def for_location(cls, longitude: float, latitude: float) -> "LocalProjection":
        """
        Build the projection for the UTM zone containing a location.

        Args:
            longitude: Reference longitude in degrees
            latitude: Reference latitude in degrees

        Returns:
            LocalProjection instance
        """
        utm_crs = get_utm_crs(longitude, latitude)
        return cls(
            crs=utm_crs,
            forward=Transformer.from_crs(WGS84, utm_crs, always_xy=True),
            reverse=Transformer.from_crs(utm_crs, WGS84, always_xy=True),
        )

    def to_meters(self, geometry: BaseGeometry) -> BaseGeometry:
        """Project a lon/lat geometry to UTM meters."""
        return transform(self.forward.transform, geometry)

    def to_lonlat(self, geometry: BaseGeometry) -> BaseGeometry:
        """Project a UTM geometry back to lon/lat."""
        return transform(self.reverse.transform, geometry)


def project_to_meters(
    coordinates: Sequence[Sequence[float]],
) -> Tuple[List[Tuple[float, float]], LocalProjection]:
    """
    Project (lon, lat) coordinates to the UTM zone of the first coordinate.

    Args:
        coordinates: Sequence of (longitude, latitude) pairs in degrees

    Returns:
        Tuple of:
            - List of (x, y) coordinates in meters
            - LocalProjection for further (and reverse) transformations
    """
    if not coordinates:
        raise ValueError("Coordinates list cannot be empty")

    lon, lat = coordinates[0][0], coordinates[0][1]
    projection = LocalProjection.for_location(lon, lat)

    projected = []
    for coord in coordinates:
        x, y = projection.forward.transform(coord[0], coord[1])
        projected.append((x, y))

    return projected, projection


def geodesic_length(coordinates: Sequence[Sequence[float]]) -> float:
    """
    Length of a (lon, lat) polyline along the WGS84 ellipsoid.

    Args:
        coordinates: Ordered (longitude, latitude) pairs

    Returns:
        Length in meters (0 for fewer than two points)
    """
    if len(coordinates) < 2:
        return 0.0
    lons = [c[0] for c in coordinates]
    lats = [c[1] for c in coordinates]
    return float(_GEOD.line_length(lons, lats))

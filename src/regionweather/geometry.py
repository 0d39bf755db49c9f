"""Polygon geometry for user-drawn regions.

Centroid and area are computed in plain degree space. The area uses a
flat-earth conversion (one degree ~ 111.32 km on both axes), which is a
display approximation for small mid-latitude regions and is NOT
geodesically accurate: longitude degrees shrink with latitude and the
error grows toward the poles.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from regionweather._types import MAX_POINTS, MIN_POINTS, LatLon
from regionweather.exceptions import RegionValidationError

KM_PER_DEGREE = 111.32
SQ_KM_PER_SQ_DEGREE = KM_PER_DEGREE * KM_PER_DEGREE


def centroid(points: Sequence[LatLon]) -> LatLon:
    """Return the componentwise mean of the polygon vertices.

    Args:
        points: Vertices as ``(lat, lon)`` pairs, ring not closed.

    Returns:
        Mean ``(lat, lon)``; ``(0.0, 0.0)`` for an empty sequence.

    Example:
        >>> centroid([(0.0, 0.0), (0.0, 2.0), (2.0, 2.0), (2.0, 0.0)])
        (1.0, 1.0)
    """
    if not points:
        return (0.0, 0.0)
    n = len(points)
    lat = sum(p[0] for p in points) / n
    lon = sum(p[1] for p in points) / n
    return (lat, lon)


def area(points: Sequence[LatLon]) -> float:
    """Return the approximate area of the polygon in square kilometres.

    Applies the shoelace formula over consecutive vertex pairs (including
    the wrap-around pair), then scales square degrees by ``111.32**2``.

    Args:
        points: Vertices as ``(lat, lon)`` pairs, ring not closed.

    Returns:
        Non-negative area rounded to two decimals; ``0.0`` for fewer
        than three points or collinear vertices.

    Example:
        >>> area([(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0)])
        12392.14
    """
    n = len(points)
    if n < MIN_POINTS:
        return 0.0

    doubled = 0.0
    for i in range(n):
        j = (i + 1) % n
        doubled += points[i][0] * points[j][1]
        doubled -= points[j][0] * points[i][1]

    square_degrees = abs(doubled) / 2
    return round(square_degrees * SQ_KM_PER_SQ_DEGREE, 2)


def validate_points(points: Sequence[LatLon]) -> list[LatLon]:
    """Check a drawn polygon and return it as a list of float pairs.

    Args:
        points: Candidate vertices as ``(lat, lon)`` pairs.

    Returns:
        The vertices as a new list of ``(float, float)`` tuples.

    Raises:
        RegionValidationError: If the vertex count is outside [3, 12] or
            any coordinate is non-finite or outside WGS84 bounds.
    """
    if not MIN_POINTS <= len(points) <= MAX_POINTS:
        raise RegionValidationError(
            what="Cannot create region",
            cause=f"Polygon has {len(points)} points",
            fix=f"Draw a polygon with {MIN_POINTS} to {MAX_POINTS} points",
        )

    cleaned: list[LatLon] = []
    for lat, lon in points:
        lat_f = float(lat)
        lon_f = float(lon)
        if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
            raise RegionValidationError(
                what="Cannot create region",
                cause=f"Non-finite coordinate ({lat}, {lon})",
                fix="Provide numeric latitude/longitude values",
            )
        if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lon_f <= 180.0):
            raise RegionValidationError(
                what="Cannot create region",
                cause=f"Coordinate ({lat_f}, {lon_f}) is outside WGS84 bounds",
                fix="Latitude must be in [-90, 90] and longitude in [-180, 180]",
            )
        cleaned.append((lat_f, lon_f))
    return cleaned


def closed_ring(points: Sequence[LatLon]) -> list[list[float]]:
    """Return a GeoJSON linear ring for the polygon.

    GeoJSON orders coordinates as ``[lon, lat]`` and requires the first
    position to be repeated at the end.

    Example:
        >>> closed_ring([(1.0, 2.0), (3.0, 4.0), (5.0, 6.0)])
        [[2.0, 1.0], [4.0, 3.0], [6.0, 5.0], [2.0, 1.0]]
    """
    ring = [[lon, lat] for lat, lon in points]
    if ring:
        ring.append(list(ring[0]))
    return ring


def polygon_geometry(points: Sequence[LatLon]) -> dict[str, Any]:
    """Return a GeoJSON ``Polygon`` geometry for the vertices."""
    return {"type": "Polygon", "coordinates": [closed_ring(points)]}


def points_from_ring(ring: Sequence[Sequence[float]]) -> list[LatLon]:
    """Convert a drawn GeoJSON ring back into ``(lat, lon)`` vertices.

    Drawing tools emit closed rings in ``[lon, lat]`` order; the closing
    duplicate is dropped.

    Args:
        ring: GeoJSON positions, typically closed.

    Returns:
        Vertices in drawing order without the closing point.
    """
    coords = [(float(pos[1]), float(pos[0])) for pos in ring]
    if len(coords) > 1 and coords[0] == coords[-1]:
        coords = coords[:-1]
    return coords

"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

from shapely.geometry import Point, box

from ..config import settings
from ..errors import InvalidCoordinateError
from ..models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two (lng, lat) coordinates."""
    return haversine_km(a[1], a[0], b[1], b[0])


def path_distance_km(points: Sequence[Coordinate]) -> float:
    return sum(distance_km(points[i - 1], points[i]) for i in range(1, len(points)))


class ValidityEnvelope:
    """Rectangular lng/lat region outside of which coordinates are rejected."""

    def __init__(self, bounds: Sequence[float] | None = None) -> None:
        min_lng, min_lat, max_lng, max_lat = bounds or settings.envelope_bounds
        self.bounds = (min_lng, min_lat, max_lng, max_lat)
        self._polygon = box(min_lng, min_lat, max_lng, max_lat)

    def contains(self, coordinate: Coordinate) -> bool:
        if not is_finite_coordinate(coordinate):
            return False
        # covers() keeps points lying exactly on the boundary
        return self._polygon.covers(Point(coordinate[0], coordinate[1]))


def is_finite_coordinate(coordinate: object) -> bool:
    try:
        lng, lat = coordinate  # type: ignore[misc]
    except (TypeError, ValueError):
        return False
    if isinstance(lng, bool) or isinstance(lat, bool):
        return False
    if not isinstance(lng, (int, float)) or not isinstance(lat, (int, float)):
        return False
    return math.isfinite(lng) and math.isfinite(lat)


def require_finite_coordinate(coordinate: object, label: str = "coordinate") -> Coordinate:
    if not is_finite_coordinate(coordinate):
        raise InvalidCoordinateError(f"Invalid {label}: {coordinate!r}")
    lng, lat = coordinate  # type: ignore[misc]
    return (float(lng), float(lat))


def interpolate_line(origin: Coordinate, destination: Coordinate, steps: int) -> list[Coordinate]:
    """Evenly spaced points from origin to destination, both endpoints exact."""
    if steps < 2:
        raise ValueError("Interpolation requires at least two steps.")
    points: list[Coordinate] = [tuple(origin)]
    for i in range(1, steps - 1):
        ratio = i / (steps - 1)
        lng = origin[0] + (destination[0] - origin[0]) * ratio
        lat = origin[1] + (destination[1] - origin[1]) * ratio
        points.append((lng, lat))
    points.append(tuple(destination))
    return points


def nearest_point_index(points: Sequence[Coordinate], target: Coordinate) -> tuple[int, float]:
    """Return (index, distance_km) of the point closest to target."""
    best_index = -1
    best_distance = math.inf
    for index, point in enumerate(points):
        distance = distance_km(point, target)
        if distance < best_distance:
            best_distance = distance
            best_index = index
    return best_index, best_distance

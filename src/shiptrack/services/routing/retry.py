"""Bounded retry policy and the straight-line fallback route."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import distance_km, interpolate_line

FallbackProducer = Callable[[Coordinate, Coordinate], "tuple[list[Coordinate], list[float]]"]


def straight_line_route(
    origin: Coordinate,
    destination: Coordinate,
    steps: int | None = None,
    speed_kmh: float | None = None,
) -> tuple[list[Coordinate], list[float]]:
    """Interpolated straight route timed at a constant speed.

    ``time_array[-1]`` equals ``haversine_km(origin, destination) / speed * 3600``.
    """
    steps = steps if steps is not None else settings.fallback_steps
    speed_kmh = speed_kmh if speed_kmh is not None else settings.fallback_speed_kmh

    points = interpolate_line(origin, destination, steps)
    total_seconds = distance_km(origin, destination) / speed_kmh * 3600.0
    time_array = [total_seconds * i / (steps - 1) for i in range(steps)]
    time_array[-1] = total_seconds
    return points, time_array


@dataclass
class RetryPolicy:
    """How many times a failed provider call is re-attempted before falling back."""

    max_retries: int = field(default_factory=lambda: settings.route_max_retries)
    backoff_seconds: float = field(default_factory=lambda: settings.route_retry_backoff_seconds)
    fallback: FallbackProducer = straight_line_route

    def should_retry(self, retry_count: int) -> bool:
        return retry_count < self.max_retries

    def backoff_for(self, retry_count: int) -> float:
        """Extra delay before attempt ``retry_count`` (linear, zero by default)."""
        return self.backoff_seconds * retry_count

    def fallback_route(self, origin: Coordinate, destination: Coordinate) -> tuple[list[Coordinate], list[float]]:
        return self.fallback(origin, destination)

"""Normalization of provider routes into aligned (points, time_array) pairs."""

from __future__ import annotations

import logging
import math
from typing import Sequence

from ...models.domain import Coordinate
from ..geospatial import ValidityEnvelope

logger = logging.getLogger(__name__)


def align_time_array(times: Sequence[float], point_count: int) -> list[float]:
    """Force ``times`` to exactly ``point_count`` entries.

    One extra entry is taken to be a synthetic leading zero and dropped; a
    shorter list is padded with its last value; anything longer is truncated.
    """
    aligned = [float(t) for t in times]
    if len(aligned) == point_count:
        return aligned
    if len(aligned) == point_count + 1:
        return aligned[1:]
    if len(aligned) > point_count:
        return aligned[:point_count]
    pad_value = aligned[-1] if aligned else 0.0
    return aligned + [pad_value] * (point_count - len(aligned))


def filter_to_envelope(
    points: Sequence[Coordinate],
    times: Sequence[float],
    envelope: ValidityEnvelope,
) -> tuple[list[Coordinate], list[float]]:
    """Drop point/time pairs whose coordinate falls outside the envelope."""
    kept_points: list[Coordinate] = []
    kept_times: list[float] = []
    for point, time_value in zip(points, times):
        if envelope.contains(point):
            kept_points.append((float(point[0]), float(point[1])))
            kept_times.append(time_value)
    dropped = len(points) - len(kept_points)
    if dropped:
        logger.warning(f"Dropped {dropped} route points outside bounds {envelope.bounds}")
    return kept_points, kept_times


def sample_route(
    points: Sequence[Coordinate],
    times: Sequence[float],
    max_points: int,
) -> tuple[list[Coordinate], list[float]]:
    """Downsample by fixed stride keeping the first and last pair."""
    if len(points) != len(times):
        raise ValueError(f"Cannot sample misaligned route: {len(points)} points, {len(times)} times")
    if len(points) <= max_points:
        return list(points), list(times)
    if max_points < 2:
        raise ValueError("max_points must be at least 2")

    last = len(points) - 1
    stride = math.ceil(last / (max_points - 1))
    indices = list(range(0, last, stride))
    indices.append(last)
    return [points[i] for i in indices], [times[i] for i in indices]


def rebase_time_array(times: Sequence[float]) -> list[float]:
    """Shift so the first entry is zero and clamp to non-decreasing."""
    if not times:
        return []
    start = times[0]
    rebased: list[float] = []
    running = 0.0
    for value in times:
        shifted = value - start
        if not math.isfinite(shifted):
            shifted = running
        running = max(running, shifted)
        rebased.append(running)
    return rebased


def normalize_route(
    points: Sequence[Coordinate],
    times: Sequence[float],
    *,
    envelope: ValidityEnvelope,
    max_points: int,
) -> tuple[list[Coordinate], list[float]]:
    aligned_times = align_time_array(times, len(points))
    kept_points, kept_times = filter_to_envelope(points, aligned_times, envelope)
    sampled_points, sampled_times = sample_route(kept_points, kept_times, max_points)
    return sampled_points, rebase_time_array(sampled_times)

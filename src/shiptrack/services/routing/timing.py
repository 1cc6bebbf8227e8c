"""Scaling provider travel times into simulated delivery times."""

from __future__ import annotations

import math
import random
from typing import Sequence

from ...config import settings
from ...errors import InvalidSpeedError


def validate_speed(speed: object, carrier: str = "carrier") -> float:
    """Return ``speed`` as a float in (0, 1] or raise InvalidSpeedError."""
    if isinstance(speed, bool) or not isinstance(speed, (int, float)):
        raise InvalidSpeedError(f"Speed coefficient for {carrier} is not a number: {speed!r}")
    if not math.isfinite(speed) or speed <= 0 or speed > 1:
        raise InvalidSpeedError(f"Speed coefficient for {carrier} must be in (0, 1], got {speed}")
    return float(speed)


def draw_variance_factor(rng: random.Random | None = None) -> float:
    """Per-shipment multiplier drawn uniformly from the configured band."""
    low, high = settings.variance_factor_min, settings.variance_factor_max
    return (rng or random).uniform(low, high)


def scale_time_array(base_times: Sequence[float], speed: float, factor: float) -> list[float]:
    """``t_real[i] = t0[i] / speed * factor``."""
    speed = validate_speed(speed)
    return [t / speed * factor for t in base_times]

"""Domain models for orders, routes and carriers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

# (lng, lat)
Coordinate = Tuple[float, float]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    SHIPPING = "SHIPPING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


@dataclass(slots=True)
class Order:
    """A logical shipment owned by the surrounding application."""

    id: str
    order_no: str
    origin: Coordinate
    destination: Coordinate
    logistics: str
    status: OrderStatus = OrderStatus.PENDING
    current_location: Optional[Coordinate] = None
    created_at: datetime = field(default_factory=utcnow)
    estimated_time: Optional[datetime] = None
    actual_time: Optional[datetime] = None


@dataclass(slots=True)
class Route:
    """Trajectory of one shipped order.

    ``time_array[i]`` is the cumulative simulated delivery time, in seconds,
    needed to reach ``points[i]``.
    """

    id: str
    order_id: str
    points: List[Coordinate]
    time_array: List[float]
    current_step: int = 0
    created_at: datetime = field(default_factory=utcnow)

    @property
    def total_steps(self) -> int:
        return len(self.points)

    @property
    def last_index(self) -> int:
        return len(self.points) - 1

    def has_valid_time_array(self) -> bool:
        return bool(self.time_array) and len(self.time_array) == len(self.points)


class TimelineStatus:
    CREATED = "CREATED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


@dataclass(slots=True)
class TimelineEntry:
    order_id: str
    status: str
    description: str
    location: Optional[Coordinate] = None
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class LogisticsCompany:
    """Carrier with a speed coefficient in (0, 1]."""

    name: str
    speed: float
    time_limit_hours: float = 48.0


@dataclass(slots=True)
class RouteInfo:
    points: List[Coordinate]
    time_array: List[float]
    total_time_seconds: float

from datetime import datetime, timedelta, timezone

import pytest

from shiptrack.errors import RoutingProviderError
from shiptrack.models.domain import LogisticsCompany, Order, OrderStatus, Route
from shiptrack.persistence.memory import InMemoryOrderStore
from shiptrack.services.geospatial import distance_km, interpolate_line
from shiptrack.services.routing.queue import RouteQueue
from shiptrack.services.routing.retry import RetryPolicy
from shiptrack.tracking.broadcaster import EventBroadcaster

ORIGIN = (116.40, 39.90)
DESTINATION = (116.50, 40.00)


class FailingProvider:
    def __init__(self):
        self.calls = []

    async def route(self, origin, destination):
        self.calls.append((origin, destination))
        raise RoutingProviderError("provider unavailable")


class StraightProvider:
    """Five-point straight route timed at 36 km/h."""

    def __init__(self, steps: int = 5):
        self.steps = steps
        self.calls = []

    async def route(self, origin, destination):
        self.calls.append((origin, destination))
        points = interpolate_line(origin, destination, self.steps)
        total = distance_km(origin, destination) / 36.0 * 3600
        times = [total * i / (self.steps - 1) for i in range(self.steps)]
        return points, times


class FixedRng:
    def __init__(self, value: float = 1.0):
        self.value = value

    def uniform(self, low, high):
        return self.value


class FixedClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_queue(provider, max_retries: int = 0) -> RouteQueue:
    return RouteQueue(provider, interval_ms=0, retry_policy=RetryPolicy(max_retries=max_retries, backoff_seconds=0))


def make_order(order_id: str = "o1", destination=DESTINATION, status=OrderStatus.PENDING, logistics="SF Express", **kwargs) -> Order:
    return Order(
        id=order_id,
        order_no=f"ORD-{order_id}",
        origin=kwargs.pop("origin", ORIGIN),
        destination=destination,
        logistics=logistics,
        status=status,
        **kwargs,
    )


def add_shipping_order(store, order_id="o1", points=None, time_array=None, created_at=None, current_step=0):
    points = points or interpolate_line(ORIGIN, DESTINATION, 6)
    time_array = time_array if time_array is not None else [0, 9, 18, 27, 36, 45]
    store.add_order(make_order(order_id, status=OrderStatus.SHIPPING, current_location=points[0]))
    route = Route(
        id=f"r-{order_id}",
        order_id=order_id,
        points=points,
        time_array=time_array,
        current_step=current_step,
    )
    if created_at is not None:
        route.created_at = created_at
    return store.create_route(route)


@pytest.fixture
def store():
    store = InMemoryOrderStore()
    store.add_logistics_company(LogisticsCompany(name="SF Express", speed=0.5))
    store.add_logistics_company(LogisticsCompany(name="Fast Co", speed=1.0))
    return store


@pytest.fixture
def broadcaster():
    return EventBroadcaster()

import asyncio

import pytest

from conftest import DESTINATION, ORIGIN, FailingProvider, FixedClock, FixedRng, add_shipping_order, make_order, make_queue
from shiptrack.errors import InvalidOrderStateError, OrderNotFoundError, UnknownCarrierError
from shiptrack.models.domain import OrderStatus, TimelineStatus
from shiptrack.services.routing.retry import straight_line_route
from shiptrack.services.shipping import ShippingService
from shiptrack.services.simulator.service import DeliverySimulator


def _service(store, broadcaster, clock=None) -> ShippingService:
    simulator = DeliverySimulator(store, broadcaster, speed_factor=900, clock=clock)
    return ShippingService(
        store,
        make_queue(FailingProvider()),
        simulator,
        broadcaster,
        rng=FixedRng(1.0),
        clock=clock,
    )


def test_ship_order_uses_fallback_route_and_carrier_speed(store, broadcaster):
    clock = FixedClock()
    service = _service(store, broadcaster, clock)
    store.add_order(make_order("o1"))

    async def scenario():
        order, route = await service.ship_order("o1")
        active = service.simulator.has_timer("o1")
        service.simulator.shutdown()
        return order, route, active

    order, route, active = asyncio.run(scenario())

    _, fallback_times = straight_line_route(ORIGIN, DESTINATION)
    assert len(route.points) == 20
    assert route.time_array == pytest.approx([t / 0.5 for t in fallback_times])
    assert order.status == OrderStatus.SHIPPING
    assert order.current_location == ORIGIN
    assert (order.estimated_time - clock.now).total_seconds() == pytest.approx(route.time_array[-1] / 900)
    assert active
    assert [e.status for e in store.list_timeline("o1")] == [TimelineStatus.PICKED_UP]


def test_ship_order_rejects_non_pending_and_unknown(store, broadcaster):
    service = _service(store, broadcaster)
    add_shipping_order(store, "shipping")

    with pytest.raises(InvalidOrderStateError):
        asyncio.run(service.ship_order("shipping"))
    with pytest.raises(OrderNotFoundError):
        asyncio.run(service.ship_order("missing"))


def test_ship_order_unknown_carrier(store, broadcaster):
    service = _service(store, broadcaster)
    store.add_order(make_order("o1", logistics="Nobody"))

    with pytest.raises(UnknownCarrierError):
        asyncio.run(service.ship_order("o1"))
    assert store.get_order("o1").status == OrderStatus.PENDING


def test_batch_ship_counts_missing_orders(store, broadcaster):
    service = _service(store, broadcaster)
    store.add_order(make_order("a", (116.50, 40.00)))
    store.add_order(make_order("b", (116.60, 40.10)))

    async def scenario():
        result = await service.ship_orders_batch(["a", "b", "missing"])
        service.simulator.shutdown()
        return result

    result = asyncio.run(scenario())

    assert result["shipped"] == 2
    assert result["failed"] == 1
    assert result["total"] == 3
    assert len(result["errors"]) == 1
    route_a = store.get_route_for_order("a")
    route_b = store.get_route_for_order("b")
    assert route_b.points[: len(route_a.points)] == route_a.points
    assert store.get_order("b").status == OrderStatus.SHIPPING


def test_cancel_stops_timer(store, broadcaster):
    service = _service(store, broadcaster)
    add_shipping_order(store)

    async def scenario():
        service.simulator.start_timer("o1")
        order = service.cancel_order("o1")
        return order, service.simulator.has_timer("o1")

    order, active = asyncio.run(scenario())

    assert order.status == OrderStatus.CANCELLED
    assert not active
    with pytest.raises(InvalidOrderStateError):
        service.cancel_order("o1")


def test_deliver_order_completes_immediately(store, broadcaster):
    service = _service(store, broadcaster)
    add_shipping_order(store)

    order = service.deliver_order("o1")

    assert order.status == OrderStatus.DELIVERED
    assert order.current_location == DESTINATION
    assert store.get_route_for_order("o1").current_step == 5


def test_concurrent_ship_requests_ship_once(store, broadcaster):
    service = _service(store, broadcaster)
    store.add_order(make_order("o1"))

    async def scenario():
        results = await asyncio.gather(
            service.ship_order("o1"),
            service.ship_order("o1"),
            return_exceptions=True,
        )
        service.simulator.shutdown()
        return results

    results = asyncio.run(scenario())

    shipped = [r for r in results if isinstance(r, tuple)]
    rejected = [r for r in results if isinstance(r, InvalidOrderStateError)]
    assert len(shipped) == 1
    assert len(rejected) == 1
    assert store.get_order("o1").status == OrderStatus.SHIPPING

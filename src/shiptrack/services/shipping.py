"""Ship, batch-ship and cancel operations that feed the simulator."""

from __future__ import annotations

import logging
import random
import uuid
from datetime import timedelta
from typing import Sequence

from ..config import settings
from ..errors import InvalidOrderStateError, OrderNotFoundError, ShipTrackError, UnknownCarrierError
from ..models.domain import Order, OrderStatus, Route, RouteInfo, TimelineEntry, TimelineStatus, utcnow
from ..persistence.base import OrderStore
from ..tracking.broadcaster import EventBroadcaster
from .routing.planner import MultiRoutePlanner
from .routing.queue import RouteQueue
from .routing.timing import draw_variance_factor, scale_time_array, validate_speed
from .simulator.service import Clock, DeliverySimulator

logger = logging.getLogger(__name__)


class ShippingService:
    def __init__(
        self,
        store: OrderStore,
        route_queue: RouteQueue,
        simulator: DeliverySimulator,
        broadcaster: EventBroadcaster,
        *,
        planner: MultiRoutePlanner | None = None,
        rng: random.Random | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.route_queue = route_queue
        self.simulator = simulator
        self.broadcaster = broadcaster
        self.rng = rng
        self.planner = planner or MultiRoutePlanner(route_queue, rng=rng)
        self.clock = clock or utcnow

    def _require_order(self, order_id: str) -> Order:
        order = self.store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    def carrier_speed(self, name: str | None) -> float:
        carrier = name or settings.default_logistics
        company = self.store.get_logistics_company(carrier)
        if company is None:
            raise UnknownCarrierError(f"Unknown logistics company '{carrier}'")
        return validate_speed(company.speed, carrier)

    def _lookup_speed(self, name: str) -> float | None:
        company = self.store.get_logistics_company(name)
        return company.speed if company else None

    async def ship_order(self, order_id: str, route_info: RouteInfo | None = None) -> tuple[Order, Route]:
        """Acquire a trajectory for a pending order and start simulating it.

        Raises:
            OrderNotFoundError: unknown order id.
            InvalidOrderStateError: the order is not PENDING.
            UnknownCarrierError / InvalidSpeedError: the carrier cannot be used.
        """
        order = self._require_order(order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidOrderStateError(f"Order {order.order_no} is {order.status.value} and cannot be shipped")

        if route_info is None:
            speed = self.carrier_speed(order.logistics)
            points, base_times = await self.route_queue.get_route(order.origin, order.destination)
            factor = draw_variance_factor(self.rng)
            time_array = scale_time_array(base_times, speed, factor)
        else:
            points, time_array = list(route_info.points), list(route_info.time_array)

        # another request may have shipped or cancelled it while the route was fetched
        current = self._require_order(order_id)
        if current.status != OrderStatus.PENDING:
            raise InvalidOrderStateError(f"Order {current.order_no} is {current.status.value} and cannot be shipped")

        now = self.clock()
        route = self.store.create_route(Route(
            id=uuid.uuid4().hex,
            order_id=order.id,
            points=points,
            time_array=time_array,
            current_step=0,
            created_at=now,
        ))
        estimated_time = now + timedelta(seconds=time_array[-1] / self.simulator.speed_factor)
        order = self.store.mark_shipped(order.id, order.origin, estimated_time)
        self.store.add_timeline_entry(TimelineEntry(
            order_id=order.id,
            status=TimelineStatus.PICKED_UP,
            description="Parcel picked up at the dispatch point",
            location=order.origin,
            timestamp=now,
        ))
        self.broadcaster.broadcast_status_update(order.order_no, {
            "orderNo": order.order_no,
            "status": OrderStatus.SHIPPING.value,
            "message": "Parcel picked up at the dispatch point",
        })
        self.simulator.start_timer(order.id)
        logger.info(
            f"Shipped order {order.order_no}: {route.total_steps} points, "
            f"{time_array[-1]:.0f}s simulated delivery time"
        )
        return order, route

    async def ship_orders_batch(self, order_ids: Sequence[str]) -> dict:
        """Plan shared multi-stop routes for pending orders and ship each one.

        Planning errors (bad coordinates, mixed origins, unknown carrier) fail
        the whole batch; per-order shipping failures are collected.
        """
        errors: list[str] = []
        pending: list[Order] = []
        for order_id in order_ids:
            order = self.store.get_order(order_id)
            if order is None or order.status != OrderStatus.PENDING:
                errors.append(f"Order {order_id} does not exist or cannot be shipped")
                continue
            pending.append(order)

        plans = await self.planner.plan_routes_for_orders(pending, self._lookup_speed)

        shipped = 0
        for order in pending:
            try:
                await self.ship_order(order.id, plans[order.id])
                shipped += 1
            except ShipTrackError as exc:
                errors.append(f"Order {order.id} failed to ship: {exc}")
                logger.warning(f"Batch ship failed for order {order.id}: {exc}")

        return {
            "shipped": shipped,
            "failed": len(order_ids) - shipped,
            "total": len(order_ids),
            "errors": errors or None,
        }

    def cancel_order(self, order_id: str) -> Order:
        order = self._require_order(order_id)
        if order.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
            raise InvalidOrderStateError(f"Order {order.order_no} is already {order.status.value}")

        self.simulator.stop_timer(order.id)
        order = self.store.update_order_status(order.id, OrderStatus.CANCELLED)
        self.store.add_timeline_entry(TimelineEntry(
            order_id=order.id,
            status=TimelineStatus.CANCELLED,
            description="Order cancelled",
            location=order.current_location,
            timestamp=self.clock(),
        ))
        self.broadcaster.broadcast_status_update(order.order_no, {
            "orderNo": order.order_no,
            "status": OrderStatus.CANCELLED.value,
            "message": "Order cancelled",
        })
        return order

    def deliver_order(self, order_id: str) -> Order:
        return self.simulator.complete_now(order_id)

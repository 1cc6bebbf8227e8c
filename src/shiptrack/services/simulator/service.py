"""Delivery trajectory simulator.

Each shipping order gets one ``TrajectoryTimer``: a set of event-loop
callbacks, one per route step, all scheduled against a single start instant
so late callbacks never push later ones back. ``speed_factor`` compresses
simulated delivery seconds into wall-clock seconds.
"""

from __future__ import annotations

import asyncio
import logging
import math
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from ...config import settings
from ...errors import InvalidOrderStateError, OrderNotFoundError
from ...models.domain import Order, OrderStatus, Route, TimelineEntry, TimelineStatus, utcnow
from ...persistence.base import OrderStore
from ...tracking.broadcaster import EventBroadcaster
from ..geospatial import is_finite_coordinate

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class Milestone:
    threshold: float
    status: str
    description: str


MILESTONES = (
    Milestone(0.30, TimelineStatus.IN_TRANSIT, "Package is in transit"),
    Milestone(0.70, TimelineStatus.OUT_FOR_DELIVERY, "Package reached the destination city and is out for delivery"),
)


@dataclass
class TrajectoryTimer:
    order_id: str
    route_id: str
    started_at: datetime
    final_step: int = 0
    handles: list[asyncio.TimerHandle] = field(default_factory=list)

    def cancel(self) -> None:
        for handle in self.handles:
            handle.cancel()
        self.handles.clear()


def compute_step_offsets(
    time_array: Sequence[float],
    speed_factor: float,
    from_index: int = 0,
    already_elapsed: float = 0.0,
    min_step_seconds: float | None = None,
) -> list[tuple[int, float]]:
    """Wall-clock offsets for steps ``from_index + 1 .. last``.

    Offsets accumulate from one origin. ``already_elapsed`` is simulated time
    spent past ``time_array[from_index]`` and is subtracted from every offset.
    """
    floor = min_step_seconds if min_step_seconds is not None else settings.min_step_seconds
    offsets: list[tuple[int, float]] = []
    cumulative = 0.0
    for index in range(from_index + 1, len(time_array)):
        delta = max(time_array[index] - time_array[index - 1], floor)
        cumulative += delta
        offsets.append((index, max(cumulative - already_elapsed, 0.0) / speed_factor))
    return offsets


def compute_progress(route: Route, step: int) -> float:
    """Fraction of the trip completed at ``step`` (time based when possible)."""
    if route.has_valid_time_array() and route.time_array[-1] > 0:
        return min(max(route.time_array[step] / route.time_array[-1], 0.0), 1.0)
    return (step + 1) / route.total_steps


class DeliverySimulator:
    def __init__(
        self,
        store: OrderStore,
        broadcaster: EventBroadcaster,
        *,
        speed_factor: float | None = None,
        min_step_seconds: float | None = None,
        completion_retry_seconds: float | None = None,
        clock: Clock | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.speed_factor = speed_factor if speed_factor is not None else settings.speed_factor
        self.min_step_seconds = min_step_seconds if min_step_seconds is not None else settings.min_step_seconds
        self.completion_retry_seconds = (
            completion_retry_seconds if completion_retry_seconds is not None else settings.completion_retry_seconds
        )
        self.clock = clock or utcnow
        self._loop = loop
        self._timers: dict[str, TrajectoryTimer] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def active_order_ids(self) -> list[str]:
        return list(self._timers)

    def has_timer(self, order_id: str) -> bool:
        return order_id in self._timers

    # -- lifecycle -------------------------------------------------------

    def start_timer(self, order_id: str) -> bool:
        """Begin driving a shipping order from its current step.

        Returns False, without raising, when the order cannot be simulated.
        """
        order = self.store.get_order(order_id)
        route = self.store.get_route_for_order(order_id) if order else None
        if order is None or route is None:
            logger.info(f"Order {order_id} has no route; timer not started")
            return False
        if order.status != OrderStatus.SHIPPING:
            logger.info(f"Order {order.order_no} is {order.status.value}; timer not started")
            return False
        if not self._route_is_drivable(order, route):
            return False

        self._schedule(order, route, from_index=route.current_step)
        logger.info(f"Started trajectory timer for order {order.order_no} ({route.total_steps} points)")
        return True

    def stop_timer(self, order_id: str) -> None:
        timer = self._timers.pop(order_id, None)
        if timer is not None:
            timer.cancel()
            logger.debug(f"Stopped trajectory timer for order {order_id}")

    def shutdown(self) -> None:
        for order_id in list(self._timers):
            self.stop_timer(order_id)

    def recover_all_in_transit(self) -> int:
        """Resume every shipping order after a restart. Returns how many resumed."""
        now = self.clock()
        orders = self.store.list_orders(OrderStatus.SHIPPING)
        logger.info(f"Recovering {len(orders)} in-transit orders")
        resumed = 0
        for order in orders:
            try:
                if self.resume_order(order, now):
                    resumed += 1
            except Exception:
                logger.exception(f"Failed to resume order {order.order_no}")
        return resumed

    def resume_order(self, order: Order, now: datetime | None = None) -> bool:
        route = self.store.get_route_for_order(order.id)
        if route is None:
            logger.error(f"Shipping order {order.order_no} has no route; cannot resume")
            return False
        if not self._route_is_drivable(order, route):
            return False

        self.stop_timer(order.id)
        now = now or self.clock()
        origin_instant = route.created_at or order.created_at
        elapsed = max((now - origin_instant).total_seconds(), 0.0) * self.speed_factor
        step = max(bisect_right(route.time_array, elapsed) - 1, 0, route.current_step)

        if step >= route.last_index:
            logger.info(f"Order {order.order_no} finished while offline; completing")
            self._complete(order, route)
            return True

        if step > route.current_step:
            self.advance_to_step(order.id, step)
            route.current_step = step

        already_elapsed = max(elapsed - route.time_array[step], 0.0)
        self._schedule(order, route, from_index=step, already_elapsed=already_elapsed)
        logger.info(f"Resumed order {order.order_no} at step {step}/{route.last_index}")
        return True

    def _route_is_drivable(self, order: Order, route: Route) -> bool:
        if route.total_steps < 2 or not route.has_valid_time_array():
            logger.error(
                f"Route for order {order.order_no} is not drivable: "
                f"{len(route.points)} points, {len(route.time_array)} times"
            )
            return False
        return True

    def _schedule(self, order: Order, route: Route, *, from_index: int, already_elapsed: float = 0.0) -> None:
        self.stop_timer(order.id)
        loop = self._get_loop()
        base = loop.time()
        timer = TrajectoryTimer(
            order_id=order.id,
            route_id=route.id,
            started_at=self.clock(),
            final_step=route.last_index,
        )
        for step, offset in compute_step_offsets(
            route.time_array,
            self.speed_factor,
            from_index=from_index,
            already_elapsed=already_elapsed,
            min_step_seconds=self.min_step_seconds,
        ):
            timer.handles.append(loop.call_at(base + offset, self._on_step, order.id, step))
        self._timers[order.id] = timer

    def _on_step(self, order_id: str, step: int) -> None:
        try:
            self.advance_to_step(order_id, step)
        except Exception:
            # later steps still run; only the final step needs its own retry
            logger.exception(f"Step {step} update failed for order {order_id}")
            timer = self._timers.get(order_id)
            if timer is not None and step >= timer.final_step:
                logger.warning(f"Retrying delivery of order {order_id} in {self.completion_retry_seconds}s")
                timer.handles.append(
                    self._get_loop().call_later(self.completion_retry_seconds, self._on_step, order_id, step)
                )
            return

        timer = self._timers.get(order_id)
        if timer is not None and step >= timer.final_step:
            self._timers.pop(order_id, None)

    # -- transitions -----------------------------------------------------

    def advance_one_step(self, order_id: str) -> Order:
        """Manually move an order one step forward (or complete it)."""
        order = self.store.get_order(order_id)
        route = self.store.get_route_for_order(order_id) if order else None
        if order is None or route is None:
            raise OrderNotFoundError(f"Order or route for {order_id} not found")
        if order.status != OrderStatus.SHIPPING:
            raise InvalidOrderStateError(f"Order {order.order_no} is {order.status.value}, not SHIPPING")
        self.advance_to_step(order_id, route.current_step + 1)
        return self.store.get_order(order_id)

    def complete_now(self, order_id: str) -> Order:
        """Deliver a shipping order immediately, skipping the remaining steps."""
        order = self.store.get_order(order_id)
        route = self.store.get_route_for_order(order_id) if order else None
        if order is None or route is None:
            raise OrderNotFoundError(f"Order or route for {order_id} not found")
        if order.status != OrderStatus.SHIPPING:
            raise InvalidOrderStateError(f"Order {order.order_no} is {order.status.value}, not SHIPPING")
        self._complete(order, route)
        return self.store.get_order(order_id)

    def advance_to_step(self, order_id: str, step: int) -> None:
        order = self.store.get_order(order_id)
        route = self.store.get_route_for_order(order_id) if order else None
        if order is None or route is None:
            logger.warning(f"Order {order_id} disappeared; stopping its timer")
            self.stop_timer(order_id)
            return
        if order.status != OrderStatus.SHIPPING:
            logger.debug(f"Order {order.order_no} is {order.status.value}; ignoring step {step}")
            self.stop_timer(order_id)
            return

        if step >= route.last_index:
            self._complete(order, route)
            return
        if step <= route.current_step:
            return

        point = route.points[step]
        if not is_finite_coordinate(point):
            logger.error(f"Invalid point {point!r} at step {step} for order {order.order_no}; skipped")
            return

        previous_progress = compute_progress(route, route.current_step)
        self.store.apply_step(order.id, route.id, step, point)
        progress = compute_progress(route, step)
        self.broadcaster.broadcast_location_update(order.order_no, {
            "orderNo": order.order_no,
            "location": {"lng": point[0], "lat": point[1]},
            "progress": round(progress * 100, 2),
            "currentStep": step,
        })
        self._record_milestones(order, route, route.current_step, step, previous_progress, progress)

    def _record_milestones(
        self,
        order: Order,
        route: Route,
        previous_step: int,
        step: int,
        previous_progress: float,
        progress: float,
    ) -> None:
        use_time = route.has_valid_time_array() and route.time_array[-1] > 0
        for milestone in MILESTONES:
            if use_time:
                crossed = previous_progress < milestone.threshold <= progress
            else:
                marker = math.floor(route.total_steps * milestone.threshold)
                crossed = previous_step < marker <= step
            if not crossed or self.store.has_timeline_entry(order.id, milestone.status):
                continue
            self.store.add_timeline_entry(TimelineEntry(
                order_id=order.id,
                status=milestone.status,
                description=milestone.description,
                location=route.points[step],
                timestamp=self.clock(),
            ))
            self.broadcaster.broadcast_status_update(order.order_no, {
                "orderNo": order.order_no,
                "status": order.status.value,
                "message": milestone.description,
            })

    def _complete(self, order: Order, route: Route) -> None:
        destination = order.destination if is_finite_coordinate(order.destination) else route.points[-1]
        if not is_finite_coordinate(destination):
            logger.error(f"Order {order.order_no} has no valid destination; cannot complete")
            self.stop_timer(order.id)
            return

        actual_time = self.clock()
        # the timer survives a failed write so the final step can be retried
        self.store.complete_order(order.id, destination, actual_time)
        self.stop_timer(order.id)
        self.store.add_timeline_entry(TimelineEntry(
            order_id=order.id,
            status=TimelineStatus.DELIVERED,
            description="Package delivered and signed for",
            location=destination,
            timestamp=actual_time,
        ))
        self.broadcaster.broadcast_status_update(order.order_no, {
            "orderNo": order.order_no,
            "status": OrderStatus.DELIVERED.value,
            "message": "Package delivered and signed for",
        })
        self.broadcaster.broadcast_delivery_complete(order.order_no, {
            "orderNo": order.order_no,
            "status": OrderStatus.DELIVERED.value,
            "actualTime": actual_time.isoformat(),
        })
        logger.info(f"Order {order.order_no} delivered")

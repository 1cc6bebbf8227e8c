"""In-process publish/subscribe fan-out for tracking events."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

LOCATION_UPDATE = "location_update"
STATUS_UPDATE = "status_update"
DELIVERY_COMPLETE = "delivery_complete"


@dataclass(eq=False)
class Subscription:
    """A subscriber's event queue. ``room`` is None for the global feed."""

    room: Optional[str]
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=256))

    async def next_event(self) -> dict:
        return await self.queue.get()

    def drain(self) -> list[dict]:
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events


class EventBroadcaster:
    """Rooms keyed by order number plus a global feed for dashboards.

    Publishing never blocks: when a subscriber falls behind, its oldest
    event is dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rooms: dict[str, set[Subscription]] = {}
        self._global: set[Subscription] = set()

    def subscribe(self, order_no: str) -> Subscription:
        subscription = Subscription(room=order_no)
        with self._lock:
            self._rooms.setdefault(order_no, set()).add(subscription)
        logger.debug(f"Subscribed to order {order_no}")
        return subscription

    def subscribe_all(self) -> Subscription:
        subscription = Subscription(room=None)
        with self._lock:
            self._global.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription.room is None:
                self._global.discard(subscription)
                return
            members = self._rooms.get(subscription.room)
            if members is not None:
                members.discard(subscription)
                if not members:
                    del self._rooms[subscription.room]

    def subscriber_count(self, order_no: str | None = None) -> int:
        with self._lock:
            if order_no is None:
                return len(self._global)
            return len(self._rooms.get(order_no, ()))

    def _publish(self, targets: list[Subscription], event: str, data: dict[str, Any]) -> None:
        message = {"event": event, "data": data}
        for subscription in targets:
            try:
                subscription.queue.put_nowait(message)
            except asyncio.QueueFull:
                subscription.queue.get_nowait()
                subscription.queue.put_nowait(message)
                logger.warning(f"Subscriber to {subscription.room or 'all'} is lagging; dropped oldest event")

    def _room(self, order_no: str) -> list[Subscription]:
        with self._lock:
            return list(self._rooms.get(order_no, ()))

    def broadcast_location_update(self, order_no: str, data: dict[str, Any]) -> None:
        self._publish(self._room(order_no), LOCATION_UPDATE, data)

    def broadcast_status_update(self, order_no: str, data: dict[str, Any]) -> None:
        with self._lock:
            everyone = list(self._global)
        self._publish(self._room(order_no) + everyone, STATUS_UPDATE, data)

    def broadcast_delivery_complete(self, order_no: str, data: dict[str, Any]) -> None:
        self._publish(self._room(order_no), DELIVERY_COMPLETE, data)

"""Process-level wiring of the store, route queue, planner and simulator."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from ..persistence.base import OrderStore
from ..persistence.database import create_order_store
from ..tracking.broadcaster import EventBroadcaster
from .routing.amap_client import AmapClient, RoutingProvider
from .routing.planner import MultiRoutePlanner
from .routing.queue import RouteQueue
from .shipping import ShippingService
from .simulator.service import Clock, DeliverySimulator

logger = logging.getLogger(__name__)


@dataclass
class TrackingRuntime:
    store: OrderStore
    broadcaster: EventBroadcaster
    provider: RoutingProvider
    route_queue: RouteQueue
    planner: MultiRoutePlanner
    simulator: DeliverySimulator
    shipping: ShippingService

    @classmethod
    def build(
        cls,
        *,
        store: OrderStore | None = None,
        provider: RoutingProvider | None = None,
        route_queue: RouteQueue | None = None,
        speed_factor: float | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> "TrackingRuntime":
        store = store if store is not None else create_order_store()
        broadcaster = EventBroadcaster()
        provider = provider if provider is not None else AmapClient()
        route_queue = route_queue or RouteQueue(provider)
        planner = MultiRoutePlanner(route_queue, rng=rng)
        simulator = DeliverySimulator(store, broadcaster, speed_factor=speed_factor, clock=clock)
        shipping = ShippingService(
            store,
            route_queue,
            simulator,
            broadcaster,
            planner=planner,
            rng=rng,
            clock=clock,
        )
        return cls(
            store=store,
            broadcaster=broadcaster,
            provider=provider,
            route_queue=route_queue,
            planner=planner,
            simulator=simulator,
            shipping=shipping,
        )

    async def start(self) -> None:
        resumed = self.simulator.recover_all_in_transit()
        logger.info(f"Tracking runtime started; {resumed} trajectories resumed")

    async def stop(self) -> None:
        self.simulator.shutdown()
        await self.route_queue.close()
        logger.info("Tracking runtime stopped")

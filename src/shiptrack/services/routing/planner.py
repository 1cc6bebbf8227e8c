"""Multi-stop route planning for orders that share one dispatch origin.

Orders are grouped into proximity clusters, each cluster is visited in
nearest-neighbour order, the legs are fetched through the route queue and
stitched into one continuous path, and every order then receives the prefix
of that path ending at the point closest to its own destination.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Callable, Optional, Sequence

from ...config import settings
from ...errors import InvalidOrderInputError, RouteSegmentError, UnknownCarrierError
from ...models.domain import Coordinate, Order, RouteInfo
from ..geospatial import ValidityEnvelope, distance_km, is_finite_coordinate, nearest_point_index
from .queue import RouteQueue
from .timing import draw_variance_factor, scale_time_array, validate_speed

logger = logging.getLogger(__name__)

SpeedLookup = Callable[[str], Optional[float]]
OriginLookup = Callable[[Order], Coordinate]

# Degrees; origins closer than this are treated as the same dispatch point
ORIGIN_TOLERANCE = 1e-4


class MultiRoutePlanner:
    def __init__(
        self,
        route_queue: RouteQueue,
        *,
        cluster_radius_km: float | None = None,
        envelope: ValidityEnvelope | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.route_queue = route_queue
        self.cluster_radius_km = cluster_radius_km if cluster_radius_km is not None else settings.cluster_radius_km
        self.envelope = envelope or ValidityEnvelope()
        self.rng = rng

    def cluster_orders(self, orders: Sequence[Order]) -> list[list[Order]]:
        """Greedy single-pass clustering around seed destinations."""
        clusters: list[list[Order]] = []
        unassigned = list(orders)
        while unassigned:
            seed = unassigned.pop(0)
            cluster = [seed]
            remaining: list[Order] = []
            for order in unassigned:
                if distance_km(seed.destination, order.destination) <= self.cluster_radius_km:
                    cluster.append(order)
                else:
                    remaining.append(order)
            unassigned = remaining
            clusters.append(cluster)
        return clusters

    def sort_orders_in_cluster(self, cluster: Sequence[Order], origin: Coordinate) -> list[Order]:
        """Nearest-neighbour visiting order starting from the dispatch origin."""
        path: list[Order] = []
        unvisited = list(cluster)
        current = origin
        while unvisited:
            nearest_index = min(
                range(len(unvisited)),
                key=lambda i: distance_km(current, unvisited[i].destination),
            )
            nearest = unvisited.pop(nearest_index)
            path.append(nearest)
            current = nearest.destination
        return path

    async def generate_multi_route(
        self,
        sorted_orders: Sequence[Order],
        origin: Coordinate,
        speed: float,
        factor: float,
    ) -> tuple[list[Coordinate], list[float]]:
        """Fetch and stitch one segment per stop, then scale the combined times."""
        all_points: list[Coordinate] = []
        all_times: list[float] = []
        cumulative = 0.0

        for index, order in enumerate(sorted_orders):
            segment_origin = origin if index == 0 else sorted_orders[index - 1].destination
            segment_destination = order.destination
            points, times = await self.route_queue.get_route(segment_origin, segment_destination)

            if not points or len(times) != len(points):
                raise RouteSegmentError(
                    f"Invalid route segment {segment_origin} -> {segment_destination}: "
                    f"{len(points)} points, {len(times)} times"
                )

            if index == 0:
                all_points.extend(points)
                all_times.extend(times)
            else:
                all_points.extend(points[1:])
                all_times.extend(cumulative + t for t in times[1:])
            cumulative += times[-1]

        return all_points, scale_time_array(all_times, speed, factor)

    def extract_order_route(
        self,
        points: Sequence[Coordinate],
        time_array: Sequence[float],
        destination: Coordinate,
    ) -> RouteInfo:
        """Prefix of the stitched path ending nearest to ``destination``.

        This is an approximation: the stitched path need not pass exactly
        through the destination. Matches farther than the cluster radius are
        logged and kept.
        """
        target_index, nearest_km = nearest_point_index(points, destination)
        if target_index < 0:
            raise RouteSegmentError("Cannot extract an order route from an empty path.")
        if nearest_km > self.cluster_radius_km:
            logger.warning(
                f"Nearest route point is {nearest_km:.2f}km from destination {destination}"
            )

        order_points = list(points[: target_index + 1])
        order_times = list(time_array[: target_index + 1])
        if len(order_points) == 1:
            # destination coincides with the origin vertex
            order_points.append(tuple(destination))
            order_times.append(order_times[0])
        return RouteInfo(
            points=order_points,
            time_array=order_times,
            total_time_seconds=order_times[-1],
        )

    def _validate_orders(self, orders: Sequence[Order], origin_lookup: OriginLookup | None) -> dict[str, Coordinate]:
        origins: dict[str, Coordinate] = {}
        for order in orders:
            origin = origin_lookup(order) if origin_lookup else order.origin
            for label, coordinate in (("origin", origin), ("destination", order.destination)):
                if not is_finite_coordinate(coordinate) or not self.envelope.contains(coordinate):
                    raise InvalidOrderInputError(
                        f"Order {order.id} has an invalid {label}: {coordinate!r}"
                    )
            origins[order.id] = (float(origin[0]), float(origin[1]))

        shared = next(iter(origins.values()))
        for order_id, origin in origins.items():
            if not (math.isclose(origin[0], shared[0], abs_tol=ORIGIN_TOLERANCE)
                    and math.isclose(origin[1], shared[1], abs_tol=ORIGIN_TOLERANCE)):
                raise InvalidOrderInputError(
                    f"Order {order_id} origin {origin} differs from the shared dispatch origin {shared}"
                )
        return origins

    async def plan_routes_for_orders(
        self,
        orders: Sequence[Order],
        speed_lookup: SpeedLookup,
        origin_lookup: OriginLookup | None = None,
    ) -> dict[str, RouteInfo]:
        """Plan one route per order.

        Raises:
            InvalidOrderInputError: bad coordinates or more than one origin.
            UnknownCarrierError: a cluster's carrier cannot be resolved.
            InvalidSpeedError: the carrier's speed coefficient is outside (0, 1].
        """
        if not orders:
            return {}

        origins = self._validate_orders(orders, origin_lookup)
        origin = origins[orders[0].id]
        clusters = self.cluster_orders(orders)
        logger.info(f"Planning {len(orders)} orders in {len(clusters)} clusters")

        route_map: dict[str, RouteInfo] = {}
        for cluster in clusters:
            sorted_orders = self.sort_orders_in_cluster(cluster, origin)
            carrier = sorted_orders[0].logistics or settings.default_logistics
            speed = speed_lookup(carrier)
            if speed is None:
                raise UnknownCarrierError(f"Unknown logistics company '{carrier}'")
            speed = validate_speed(speed, carrier)
            factor = draw_variance_factor(self.rng)

            points, time_array = await self.generate_multi_route(sorted_orders, origin, speed, factor)
            for order in sorted_orders:
                route_map[order.id] = self.extract_order_route(points, time_array, order.destination)

        return route_map

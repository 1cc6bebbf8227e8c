"""In-process order store used when no database is configured, and in tests."""

from __future__ import annotations

import copy
import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional

from ..errors import InvalidOrderStateError, OrderNotFoundError
from ..models.domain import Coordinate, LogisticsCompany, Order, OrderStatus, Route, TimelineEntry


class InMemoryOrderStore:
    """Dict-backed store. Each method holds one lock, so every call is atomic."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._orders: dict[str, Order] = {}
        self._routes: dict[str, Route] = {}
        self._route_by_order: dict[str, str] = {}
        self._companies: dict[str, LogisticsCompany] = {}
        self._timeline: list[TimelineEntry] = []

    def _require_order(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    def add_order(self, order: Order) -> Order:
        with self._lock:
            self._orders[order.id] = copy.deepcopy(order)
            return copy.deepcopy(order)

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order else None

    def get_order_by_no(self, order_no: str) -> Optional[Order]:
        with self._lock:
            for order in self._orders.values():
                if order.order_no == order_no:
                    return copy.deepcopy(order)
            return None

    def list_orders(self, status: OrderStatus | None = None) -> list[Order]:
        with self._lock:
            return [
                copy.deepcopy(order)
                for order in self._orders.values()
                if status is None or order.status == status
            ]

    def add_logistics_company(self, company: LogisticsCompany) -> LogisticsCompany:
        with self._lock:
            self._companies[company.name] = replace(company)
            return replace(company)

    def get_logistics_company(self, name: str) -> Optional[LogisticsCompany]:
        with self._lock:
            company = self._companies.get(name)
            return replace(company) if company else None

    def create_route(self, route: Route) -> Route:
        with self._lock:
            self._require_order(route.order_id)
            if route.order_id in self._route_by_order:
                raise InvalidOrderStateError(f"Order {route.order_id} already has a route")
            self._routes[route.id] = copy.deepcopy(route)
            self._route_by_order[route.order_id] = route.id
            return copy.deepcopy(route)

    def get_route_for_order(self, order_id: str) -> Optional[Route]:
        with self._lock:
            route_id = self._route_by_order.get(order_id)
            if route_id is None:
                return None
            return copy.deepcopy(self._routes[route_id])

    def mark_shipped(self, order_id: str, location: Coordinate, estimated_time: datetime | None) -> Order:
        with self._lock:
            order = self._require_order(order_id)
            order.status = OrderStatus.SHIPPING
            order.current_location = tuple(location)
            order.estimated_time = estimated_time
            return copy.deepcopy(order)

    def apply_step(self, order_id: str, route_id: str, step: int, location: Coordinate) -> None:
        with self._lock:
            order = self._require_order(order_id)
            route = self._routes.get(route_id)
            if route is None or route.order_id != order_id:
                raise OrderNotFoundError(f"Route {route_id} not found for order {order_id}")
            if not 0 <= step <= route.last_index:
                raise ValueError(f"Step {step} outside route {route_id} (0..{route.last_index})")
            order.current_location = tuple(location)
            route.current_step = step

    def complete_order(self, order_id: str, location: Coordinate, actual_time: datetime) -> Order:
        with self._lock:
            order = self._require_order(order_id)
            order.status = OrderStatus.DELIVERED
            order.current_location = tuple(location)
            order.actual_time = actual_time
            route_id = self._route_by_order.get(order_id)
            if route_id is not None:
                route = self._routes[route_id]
                route.current_step = route.last_index
            return copy.deepcopy(order)

    def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        with self._lock:
            order = self._require_order(order_id)
            order.status = status
            return copy.deepcopy(order)

    def add_timeline_entry(self, entry: TimelineEntry) -> None:
        with self._lock:
            self._timeline.append(replace(entry))

    def has_timeline_entry(self, order_id: str, status: str) -> bool:
        with self._lock:
            return any(e.order_id == order_id and e.status == status for e in self._timeline)

    def list_timeline(self, order_id: str) -> list[TimelineEntry]:
        with self._lock:
            entries = [replace(e) for e in self._timeline if e.order_id == order_id]
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

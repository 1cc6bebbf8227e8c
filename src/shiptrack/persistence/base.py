"""Persistence gateway contract used by the tracking core."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ..models.domain import Coordinate, LogisticsCompany, Order, OrderStatus, Route, TimelineEntry


class OrderStore(Protocol):
    def add_order(self, order: Order) -> Order: ...

    def get_order(self, order_id: str) -> Optional[Order]: ...

    def get_order_by_no(self, order_no: str) -> Optional[Order]: ...

    def list_orders(self, status: OrderStatus | None = None) -> list[Order]: ...

    def add_logistics_company(self, company: LogisticsCompany) -> LogisticsCompany: ...

    def get_logistics_company(self, name: str) -> Optional[LogisticsCompany]: ...

    def create_route(self, route: Route) -> Route: ...

    def get_route_for_order(self, order_id: str) -> Optional[Route]: ...

    def mark_shipped(self, order_id: str, location: Coordinate, estimated_time: datetime | None) -> Order: ...

    def apply_step(self, order_id: str, route_id: str, step: int, location: Coordinate) -> None:
        """Write ``current_location`` and ``current_step`` as one unit."""
        ...

    def complete_order(self, order_id: str, location: Coordinate, actual_time: datetime) -> Order: ...

    def update_order_status(self, order_id: str, status: OrderStatus) -> Order: ...

    def add_timeline_entry(self, entry: TimelineEntry) -> None: ...

    def has_timeline_entry(self, order_id: str, status: str) -> bool: ...

    def list_timeline(self, order_id: str) -> list[TimelineEntry]: ...

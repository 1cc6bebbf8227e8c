"""Supabase-backed order store.

Expected tables: ``orders``, ``routes``, ``logistics_companies`` and
``logistics_timeline``. Step transitions go through the ``apply_route_step``
SQL function so that the order location and route step change together.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from supabase import Client

from ..errors import OrderNotFoundError
from ..models.domain import Coordinate, LogisticsCompany, Order, OrderStatus, Route, TimelineEntry

logger = logging.getLogger(__name__)


def _location_to_json(location: Coordinate | None) -> dict | None:
    if location is None:
        return None
    return {"lng": location[0], "lat": location[1]}


def _location_from_json(value: Any) -> Coordinate | None:
    if value is None:
        return None
    if isinstance(value, dict):
        return (float(value["lng"]), float(value["lat"]))
    return (float(value[0]), float(value[1]))


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _order_from_row(row: dict) -> Order:
    return Order(
        id=str(row["id"]),
        order_no=row["order_no"],
        origin=_location_from_json(row["origin"]),
        destination=_location_from_json(row["destination"]),
        logistics=row.get("logistics") or "",
        status=OrderStatus(row["status"]),
        current_location=_location_from_json(row.get("current_location")),
        created_at=_parse_datetime(row["created_at"]),
        estimated_time=_parse_datetime(row.get("estimated_time")),
        actual_time=_parse_datetime(row.get("actual_time")),
    )


def _route_from_row(row: dict) -> Route:
    return Route(
        id=str(row["id"]),
        order_id=str(row["order_id"]),
        points=[(float(p[0]), float(p[1])) for p in row.get("points") or []],
        time_array=[float(t) for t in row.get("time_array") or []],
        current_step=int(row.get("current_step") or 0),
        created_at=_parse_datetime(row["created_at"]),
    )


class SupabaseOrderStore:
    def __init__(self, client: Client) -> None:
        self.client = client

    def _single(self, response: Any, what: str) -> dict:
        rows = response.data or []
        if not rows:
            raise OrderNotFoundError(f"{what} not found")
        return rows[0]

    def add_order(self, order: Order) -> Order:
        row = {
            "id": order.id,
            "order_no": order.order_no,
            "status": order.status.value,
            "origin": _location_to_json(order.origin),
            "destination": _location_to_json(order.destination),
            "logistics": order.logistics,
            "current_location": _location_to_json(order.current_location),
            "created_at": _isoformat(order.created_at),
            "estimated_time": _isoformat(order.estimated_time),
            "actual_time": _isoformat(order.actual_time),
        }
        response = self.client.table("orders").insert(row).execute()
        return _order_from_row(self._single(response, f"Order {order.id}"))

    def get_order(self, order_id: str) -> Optional[Order]:
        response = self.client.table("orders").select("*").eq("id", order_id).limit(1).execute()
        rows = response.data or []
        return _order_from_row(rows[0]) if rows else None

    def get_order_by_no(self, order_no: str) -> Optional[Order]:
        response = self.client.table("orders").select("*").eq("order_no", order_no).limit(1).execute()
        rows = response.data or []
        return _order_from_row(rows[0]) if rows else None

    def list_orders(self, status: OrderStatus | None = None) -> list[Order]:
        query = self.client.table("orders").select("*")
        if status is not None:
            query = query.eq("status", status.value)
        response = query.execute()
        return [_order_from_row(row) for row in response.data or []]

    def add_logistics_company(self, company: LogisticsCompany) -> LogisticsCompany:
        self.client.table("logistics_companies").upsert(
            {"name": company.name, "speed": company.speed, "time_limit": company.time_limit_hours}
        ).execute()
        return company

    def get_logistics_company(self, name: str) -> Optional[LogisticsCompany]:
        response = self.client.table("logistics_companies").select("*").eq("name", name).limit(1).execute()
        rows = response.data or []
        if not rows:
            return None
        row = rows[0]
        return LogisticsCompany(
            name=row["name"],
            speed=float(row["speed"]),
            time_limit_hours=float(row.get("time_limit") or 48),
        )

    def create_route(self, route: Route) -> Route:
        row = {
            "id": route.id,
            "order_id": route.order_id,
            "points": [list(p) for p in route.points],
            "time_array": list(route.time_array),
            "current_step": route.current_step,
            "total_steps": route.total_steps,
            "created_at": _isoformat(route.created_at),
        }
        response = self.client.table("routes").insert(row).execute()
        return _route_from_row(self._single(response, f"Route {route.id}"))

    def get_route_for_order(self, order_id: str) -> Optional[Route]:
        response = self.client.table("routes").select("*").eq("order_id", order_id).limit(1).execute()
        rows = response.data or []
        return _route_from_row(rows[0]) if rows else None

    def mark_shipped(self, order_id: str, location: Coordinate, estimated_time: datetime | None) -> Order:
        response = (
            self.client.table("orders")
            .update({
                "status": OrderStatus.SHIPPING.value,
                "current_location": _location_to_json(location),
                "estimated_time": _isoformat(estimated_time),
            })
            .eq("id", order_id)
            .execute()
        )
        return _order_from_row(self._single(response, f"Order {order_id}"))

    def apply_step(self, order_id: str, route_id: str, step: int, location: Coordinate) -> None:
        self.client.rpc(
            "apply_route_step",
            {
                "p_order_id": order_id,
                "p_route_id": route_id,
                "p_step": step,
                "p_location": _location_to_json(location),
            },
        ).execute()

    def complete_order(self, order_id: str, location: Coordinate, actual_time: datetime) -> Order:
        response = (
            self.client.table("orders")
            .update({
                "status": OrderStatus.DELIVERED.value,
                "current_location": _location_to_json(location),
                "actual_time": _isoformat(actual_time),
            })
            .eq("id", order_id)
            .execute()
        )
        return _order_from_row(self._single(response, f"Order {order_id}"))

    def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        response = self.client.table("orders").update({"status": status.value}).eq("id", order_id).execute()
        return _order_from_row(self._single(response, f"Order {order_id}"))

    def add_timeline_entry(self, entry: TimelineEntry) -> None:
        self.client.table("logistics_timeline").insert({
            "order_id": entry.order_id,
            "status": entry.status,
            "description": entry.description,
            "location": _location_to_json(entry.location),
            "timestamp": _isoformat(entry.timestamp),
        }).execute()

    def has_timeline_entry(self, order_id: str, status: str) -> bool:
        response = (
            self.client.table("logistics_timeline")
            .select("id")
            .eq("order_id", order_id)
            .eq("status", status)
            .limit(1)
            .execute()
        )
        return bool(response.data)

    def list_timeline(self, order_id: str) -> list[TimelineEntry]:
        response = (
            self.client.table("logistics_timeline")
            .select("*")
            .eq("order_id", order_id)
            .order("timestamp", desc=True)
            .execute()
        )
        return [
            TimelineEntry(
                order_id=str(row["order_id"]),
                status=row["status"],
                description=row.get("description") or "",
                location=_location_from_json(row.get("location")),
                timestamp=_parse_datetime(row["timestamp"]),
            )
            for row in response.data or []
        ]


def create_order_store():
    """Supabase store when credentials are configured, in-memory otherwise."""
    from ..db.supabase import get_supabase_client
    from .memory import InMemoryOrderStore

    client = get_supabase_client()
    if client is None:
        logger.info("Supabase not configured - using in-memory order store")
        return InMemoryOrderStore()
    return SupabaseOrderStore(client)

"""Request/response schemas for shipping, routing and tracking endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.domain import Order, Route, RouteInfo, TimelineEntry


class CoordinateModel(BaseModel):
    lng: float
    lat: float

    @classmethod
    def from_pair(cls, pair) -> Optional["CoordinateModel"]:
        if pair is None:
            return None
        return cls(lng=pair[0], lat=pair[1])

    def as_pair(self) -> tuple[float, float]:
        return (self.lng, self.lat)


class AcquireRouteRequest(BaseModel):
    origin: CoordinateModel
    destination: CoordinateModel


class RouteInfoModel(BaseModel):
    points: List[List[float]]
    time_array: List[float]
    total_time_seconds: float

    @classmethod
    def from_parts(cls, points, time_array) -> "RouteInfoModel":
        return cls(
            points=[[p[0], p[1]] for p in points],
            time_array=list(time_array),
            total_time_seconds=time_array[-1] if time_array else 0.0,
        )

    @classmethod
    def from_info(cls, info: RouteInfo) -> "RouteInfoModel":
        return cls.from_parts(info.points, info.time_array)


class PlanOrderModel(BaseModel):
    id: str
    origin: CoordinateModel
    destination: CoordinateModel
    logistics: Optional[str] = None


class PlanRoutesRequest(BaseModel):
    orders: List[PlanOrderModel] = Field(default_factory=list)


class PlanRoutesResponse(BaseModel):
    routes: Dict[str, RouteInfoModel]


class BatchShipRequest(BaseModel):
    order_ids: List[str] = Field(..., min_length=1)

    @field_validator("order_ids")
    @classmethod
    def _strip_ids(cls, value: List[str]) -> List[str]:
        return [item.strip() for item in value if item.strip()]


class BatchShipResponse(BaseModel):
    shipped: int
    failed: int
    total: int
    errors: Optional[List[str]] = None


class OrderModel(BaseModel):
    id: str
    order_no: str
    status: str
    logistics: str
    origin: CoordinateModel
    destination: CoordinateModel
    current_location: Optional[CoordinateModel] = None
    created_at: datetime
    estimated_time: Optional[datetime] = None
    actual_time: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderModel":
        return cls(
            id=order.id,
            order_no=order.order_no,
            status=order.status.value,
            logistics=order.logistics,
            origin=CoordinateModel.from_pair(order.origin),
            destination=CoordinateModel.from_pair(order.destination),
            current_location=CoordinateModel.from_pair(order.current_location),
            created_at=order.created_at,
            estimated_time=order.estimated_time,
            actual_time=order.actual_time,
        )


class RouteModel(BaseModel):
    id: str
    order_id: str
    points: List[List[float]]
    time_array: List[float]
    current_step: int
    total_steps: int

    @classmethod
    def from_domain(cls, route: Route) -> "RouteModel":
        return cls(
            id=route.id,
            order_id=route.order_id,
            points=[[p[0], p[1]] for p in route.points],
            time_array=list(route.time_array),
            current_step=route.current_step,
            total_steps=route.total_steps,
        )


class TimelineEntryModel(BaseModel):
    status: str
    description: str
    location: Optional[CoordinateModel] = None
    timestamp: datetime

    @classmethod
    def from_domain(cls, entry: TimelineEntry) -> "TimelineEntryModel":
        return cls(
            status=entry.status,
            description=entry.description,
            location=CoordinateModel.from_pair(entry.location),
            timestamp=entry.timestamp,
        )


class ShipResponse(BaseModel):
    order: OrderModel
    route: RouteModel


class TrackingResponse(BaseModel):
    order: OrderModel
    route: Optional[RouteModel] = None
    timeline: List[TimelineEntryModel] = Field(default_factory=list)
    progress: float = 0.0

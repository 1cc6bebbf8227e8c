"""Route acquisition and multi-stop planning endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import InvalidInputError
from ...models.domain import Order
from ...schemas.tracking import AcquireRouteRequest, PlanRoutesRequest, PlanRoutesResponse, RouteInfoModel
from ...services.runtime import TrackingRuntime
from ..deps import get_runtime

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/acquire", response_model=RouteInfoModel, status_code=status.HTTP_200_OK)
async def acquire(payload: AcquireRouteRequest, runtime: TrackingRuntime = Depends(get_runtime)) -> RouteInfoModel:
    """Provider route between two points, or the straight-line fallback."""
    try:
        points, time_array = await runtime.route_queue.get_route(
            payload.origin.as_pair(),
            payload.destination.as_pair(),
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return RouteInfoModel.from_parts(points, time_array)


@router.post("/plan", response_model=PlanRoutesResponse, status_code=status.HTTP_200_OK)
async def plan(payload: PlanRoutesRequest, runtime: TrackingRuntime = Depends(get_runtime)) -> PlanRoutesResponse:
    orders = [
        Order(
            id=item.id,
            order_no=item.id,
            origin=item.origin.as_pair(),
            destination=item.destination.as_pair(),
            logistics=item.logistics or "",
        )
        for item in payload.orders
    ]

    def speed_lookup(name: str) -> float | None:
        company = runtime.store.get_logistics_company(name)
        return company.speed if company else None

    try:
        plans = await runtime.planner.plan_routes_for_orders(orders, speed_lookup)
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error planning routes: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan routes: {str(exc)}",
        ) from exc
    return PlanRoutesResponse(routes={order_id: RouteInfoModel.from_info(info) for order_id, info in plans.items()})

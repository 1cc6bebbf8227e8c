"""Order shipping endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import InvalidInputError, InvalidOrderStateError, OrderNotFoundError
from ...schemas.tracking import BatchShipRequest, BatchShipResponse, OrderModel, RouteModel, ShipResponse
from ...services.runtime import TrackingRuntime
from ..deps import get_runtime

router = APIRouter(prefix="/orders", tags=["orders"])


def _to_http_error(exc: Exception, action: str) -> HTTPException:
    if isinstance(exc, OrderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InvalidInputError, InvalidOrderStateError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logging.exception(f"Error during {action}: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}",
    )


@router.post("/{order_id}/ship", response_model=ShipResponse, status_code=status.HTTP_200_OK)
async def ship(order_id: str, runtime: TrackingRuntime = Depends(get_runtime)) -> ShipResponse:
    try:
        order, route = await runtime.shipping.ship_order(order_id)
    except Exception as exc:
        raise _to_http_error(exc, "ship order") from exc
    return ShipResponse(order=OrderModel.from_domain(order), route=RouteModel.from_domain(route))


@router.post("/batch-ship", response_model=BatchShipResponse, status_code=status.HTTP_200_OK)
async def batch_ship(payload: BatchShipRequest, runtime: TrackingRuntime = Depends(get_runtime)) -> BatchShipResponse:
    try:
        result = await runtime.shipping.ship_orders_batch(payload.order_ids)
    except Exception as exc:
        raise _to_http_error(exc, "batch ship orders") from exc
    return BatchShipResponse(**result)


@router.post("/{order_id}/cancel", response_model=OrderModel, status_code=status.HTTP_200_OK)
async def cancel(order_id: str, runtime: TrackingRuntime = Depends(get_runtime)) -> OrderModel:
    try:
        return OrderModel.from_domain(runtime.shipping.cancel_order(order_id))
    except Exception as exc:
        raise _to_http_error(exc, "cancel order") from exc


@router.post("/{order_id}/deliver", response_model=OrderModel, status_code=status.HTTP_200_OK)
async def deliver(order_id: str, runtime: TrackingRuntime = Depends(get_runtime)) -> OrderModel:
    try:
        return OrderModel.from_domain(runtime.shipping.deliver_order(order_id))
    except Exception as exc:
        raise _to_http_error(exc, "deliver order") from exc


@router.post("/{order_id}/step", response_model=OrderModel, status_code=status.HTTP_200_OK)
async def step(order_id: str, runtime: TrackingRuntime = Depends(get_runtime)) -> OrderModel:
    """Advance the simulated vehicle by exactly one route point."""
    try:
        return OrderModel.from_domain(runtime.simulator.advance_one_step(order_id))
    except Exception as exc:
        raise _to_http_error(exc, "advance order") from exc

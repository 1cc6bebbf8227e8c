"""Tracking endpoints: snapshot lookup and live event stream."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from ...schemas.tracking import OrderModel, RouteModel, TimelineEntryModel, TrackingResponse
from ...services.runtime import TrackingRuntime
from ...services.simulator.service import compute_progress
from ...tracking.broadcaster import LOCATION_UPDATE, Subscription
from ..deps import get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracking", tags=["tracking"])


@router.get("/{order_no}", response_model=TrackingResponse, status_code=status.HTTP_200_OK)
def track(order_no: str, runtime: TrackingRuntime = Depends(get_runtime)) -> TrackingResponse:
    order = runtime.store.get_order_by_no(order_no)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Order {order_no} not found")
    route = runtime.store.get_route_for_order(order.id)
    progress = compute_progress(route, route.current_step) * 100 if route and route.total_steps else 0.0
    return TrackingResponse(
        order=OrderModel.from_domain(order),
        route=RouteModel.from_domain(route) if route else None,
        timeline=[TimelineEntryModel.from_domain(e) for e in runtime.store.list_timeline(order.id)],
        progress=round(progress, 2),
    )


@router.websocket("/ws/{order_no}")
async def track_live(websocket: WebSocket, order_no: str) -> None:
    """Send the current location, then forward every event for the order."""
    runtime: TrackingRuntime = get_runtime(websocket)
    await websocket.accept()

    order = runtime.store.get_order_by_no(order_no)
    if order is None:
        await websocket.send_json({"event": "error", "data": {"message": f"Order {order_no} not found"}})
        await websocket.close()
        return

    subscription = runtime.broadcaster.subscribe(order_no)
    try:
        if order.current_location is not None:
            route = runtime.store.get_route_for_order(order.id)
            progress = compute_progress(route, route.current_step) * 100 if route else 0.0
            await websocket.send_json({
                "event": LOCATION_UPDATE,
                "data": {
                    "orderNo": order_no,
                    "location": {"lng": order.current_location[0], "lat": order.current_location[1]},
                    "status": order.status.value,
                    "progress": round(progress, 2),
                    "currentStep": route.current_step if route else 0,
                },
            })
        forwarder = asyncio.create_task(_forward(websocket, subscription))
        try:
            # clients only listen; receiving surfaces the disconnect
            while True:
                await websocket.receive_text()
        finally:
            forwarder.cancel()
    except WebSocketDisconnect:
        logger.debug(f"Tracking client for {order_no} disconnected")
    finally:
        runtime.broadcaster.unsubscribe(subscription)


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        message = await subscription.next_event()
        await websocket.send_json(message)

"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...db.supabase import check_tables
from ...persistence.database import SupabaseOrderStore
from ...services.routing.amap_client import AmapClient, check_health
from ...services.runtime import TrackingRuntime
from ..deps import get_runtime

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root(runtime: TrackingRuntime = Depends(get_runtime)) -> dict:
    """Simple health check endpoint that doesn't call any upstream service."""
    return {
        "status": "ok",
        "active_trajectories": len(runtime.simulator.active_order_ids()),
        "queued_route_requests": runtime.route_queue.pending_count,
    }


@router.get("/health/routing", status_code=status.HTTP_200_OK)
async def health_routing(runtime: TrackingRuntime = Depends(get_runtime)) -> dict:
    """Check the routing provider. Unhealthy only means fallback routes are in use."""
    provider = runtime.provider
    if not isinstance(provider, AmapClient):
        return {"service": "routing", "healthy": True, "provider": type(provider).__name__}
    healthy = await check_health(provider)
    return {"service": "amap", "healthy": healthy, "configured": bool(provider.api_key)}


@router.get("/health/storage", status_code=status.HTTP_200_OK)
def health_storage(runtime: TrackingRuntime = Depends(get_runtime)) -> dict:
    """Report which order store is active and whether its tables respond."""
    store = runtime.store
    if not isinstance(store, SupabaseOrderStore):
        return {"service": "storage", "backend": "memory", "healthy": True}
    tables = check_tables(store.client)
    return {"service": "storage", "backend": "supabase", "healthy": all(tables.values()), "tables": tables}

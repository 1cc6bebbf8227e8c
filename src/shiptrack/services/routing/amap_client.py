"""HTTP client for the AMap driving-direction service."""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

import httpx

from ...config import settings
from ...errors import RoutingProviderError
from ...models.domain import Coordinate

logger = logging.getLogger(__name__)


class RoutingProvider(Protocol):
    async def route(self, origin: Coordinate, destination: Coordinate) -> tuple[list[Coordinate], list[float]]:
        ...


def _format_coordinate(coordinate: Coordinate) -> str:
    return f"{coordinate[0]},{coordinate[1]}"


def _parse_duration(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return 0.0
    return duration if duration > 0 else 0.0


def parse_polyline(polyline: str) -> list[Coordinate]:
    """Parse an AMap ``"lng,lat;lng,lat"`` polyline, skipping malformed tokens."""
    points: list[Coordinate] = []
    for token in polyline.split(";"):
        parts = token.strip().split(",")
        if len(parts) != 2:
            continue
        try:
            points.append((float(parts[0]), float(parts[1])))
        except ValueError:
            continue
    return points


def parse_steps(steps: Sequence[dict]) -> tuple[list[Coordinate], list[float]]:
    """Flatten path steps into points with cumulative travel seconds.

    A step's duration is spread linearly across its own polyline. Steps that
    carry a duration but no polyline add their time to the previous point.
    """
    points: list[Coordinate] = []
    times: list[float] = []
    cumulative = 0.0

    for step in steps:
        duration = _parse_duration(step.get("duration"))
        step_points = parse_polyline(step.get("polyline") or "")
        if not step_points:
            cumulative += duration
            if times:
                times[-1] = cumulative
            continue

        start = cumulative
        count = len(step_points)
        for index, point in enumerate(step_points):
            if count == 1:
                offset = duration
            else:
                offset = duration * index / (count - 1)
            if not points:
                points.append(point)
                times.append(0.0)
                continue
            if point == points[-1]:
                times[-1] = max(times[-1], start + offset)
                continue
            points.append(point)
            times.append(start + offset)
        cumulative = start + duration

    return points, times


class AmapClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.amap_key
        self.base_url = (base_url or settings.amap_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.amap_timeout_seconds
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=5.0),
            transport=self._transport,
        )

    async def route(self, origin: Coordinate, destination: Coordinate) -> tuple[list[Coordinate], list[float]]:
        """Fetch a driving route as (points, cumulative_seconds).

        Raises:
            RoutingProviderError: key missing, transport failure, API error or
                a response without a usable path.
        """
        if not self.api_key:
            raise RoutingProviderError("AMap API key is not configured.")

        params = {
            "key": self.api_key,
            "origin": _format_coordinate(origin),
            "destination": _format_coordinate(destination),
            "extensions": "all",
        }
        url = f"{self.base_url}/direction/driving"

        async with self._get_client() as client:
            try:
                response = await client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPError as exc:
                raise RoutingProviderError(f"AMap request failed: {exc}") from exc
            except ValueError as exc:
                raise RoutingProviderError(f"AMap returned malformed JSON: {exc}") from exc

        if not isinstance(data, dict) or str(data.get("status")) != "1":
            info = data.get("info") if isinstance(data, dict) else data
            raise RoutingProviderError(f"AMap API error: {info}")

        paths = (data.get("route") or {}).get("paths") or []
        if not paths:
            raise RoutingProviderError("AMap found no path between the coordinates.")

        points, times = parse_steps(paths[0].get("steps") or [])
        if len(points) < 2:
            raise RoutingProviderError(f"AMap path has too few points ({len(points)}).")

        logger.debug(f"AMap route {params['origin']} -> {params['destination']}: {len(points)} points, {times[-1]:.0f}s")
        return points, times


async def check_health(client: AmapClient | None = None) -> bool:
    """Check AMap availability with a short request between two Beijing points."""
    client = client or AmapClient()
    if not client.api_key:
        return False
    try:
        await client.route((116.397428, 39.90923), (116.407428, 39.91923))
        return True
    except RoutingProviderError as exc:
        logger.warning(f"AMap health check failed: {exc}")
        return False

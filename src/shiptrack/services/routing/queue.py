"""Rate-limited, retrying queue in front of the routing provider.

Every route request goes through one FIFO drained by a single asyncio task.
Each provider call is followed by a fixed pause before the next one; failed requests are re-queued
at the back until the retry policy is exhausted, after which the request
resolves with a straight-line fallback. Callers never see provider errors.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field

from ...config import settings
from ...errors import RoutingProviderError
from ...models.domain import Coordinate
from ..geospatial import ValidityEnvelope, require_finite_coordinate
from .amap_client import AmapClient, RoutingProvider
from .normalize import normalize_route
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class RouteRequest:
    origin: Coordinate
    destination: Coordinate
    future: asyncio.Future
    retry_count: int = 0
    not_before: float = 0.0
    errors: list[str] = field(default_factory=list)


class RouteQueue:
    def __init__(
        self,
        provider: RoutingProvider | None = None,
        *,
        interval_ms: int | None = None,
        max_points: int | None = None,
        envelope: ValidityEnvelope | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.provider = provider if provider is not None else AmapClient()
        interval = interval_ms if interval_ms is not None else settings.route_request_interval_ms
        self.interval_seconds = interval / 1000.0
        self.max_points = max_points if max_points is not None else settings.max_route_points
        self.envelope = envelope or ValidityEnvelope()
        self.retry_policy = retry_policy or RetryPolicy()
        self._queue: deque[RouteRequest] = deque()
        self._drain_task: asyncio.Task | None = None
        self._last_call_at: float | None = None
        self._in_flight: RouteRequest | None = None
        self.provider_calls = 0
        self.fallbacks = 0

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    async def get_route(self, origin: Coordinate, destination: Coordinate) -> tuple[list[Coordinate], list[float]]:
        """Resolve a route for the pair, falling back to a straight line if needed.

        Raises:
            InvalidCoordinateError: origin or destination is not a finite pair.
        """
        origin = require_finite_coordinate(origin, "origin")
        destination = require_finite_coordinate(destination, "destination")

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append(RouteRequest(origin=origin, destination=destination, future=future))
        self._ensure_draining()
        return await future

    def _ensure_draining(self) -> None:
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        loop = asyncio.get_running_loop()
        while self._queue:
            request = self._pop_ready(loop.time())
            if request is None:
                earliest = min(item.not_before for item in self._queue)
                await asyncio.sleep(max(earliest - loop.time(), 0.0))
                continue
            if request.future.done():
                # caller went away
                continue
            self._in_flight = request
            try:
                await self._throttle(loop)
                await self._process(request, loop)
            finally:
                # the interval runs from the end of a call, whatever its outcome
                self._last_call_at = loop.time()
                self._in_flight = None

    def _pop_ready(self, now: float) -> RouteRequest | None:
        for request in self._queue:
            if request.not_before <= now:
                self._queue.remove(request)
                return request
        return None

    async def _throttle(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._last_call_at is not None:
            wait = self._last_call_at + self.interval_seconds - loop.time()
            if wait > 0:
                await asyncio.sleep(wait)

    async def _process(self, request: RouteRequest, loop: asyncio.AbstractEventLoop) -> None:
        self.provider_calls += 1
        try:
            raw_points, raw_times = await self.provider.route(request.origin, request.destination)
            points, times = normalize_route(
                raw_points,
                raw_times,
                envelope=self.envelope,
                max_points=self.max_points,
            )
            if len(points) < 2:
                raise RoutingProviderError(f"Only {len(points)} usable points after normalization.")
        except Exception as exc:
            self._handle_failure(request, exc, loop)
            return

        if not request.future.done():
            request.future.set_result((points, times))

    def _handle_failure(self, request: RouteRequest, exc: Exception, loop: asyncio.AbstractEventLoop) -> None:
        request.errors.append(str(exc))
        if self.retry_policy.should_retry(request.retry_count):
            request.retry_count += 1
            request.not_before = loop.time() + self.retry_policy.backoff_for(request.retry_count)
            self._queue.append(request)
            logger.warning(
                f"Route request failed, retry {request.retry_count}/{self.retry_policy.max_retries}: {exc}"
            )
            return

        logger.error(
            f"Route request failed after {self.retry_policy.max_retries} retries, "
            f"falling back to a straight line: {exc}"
        )
        self._resolve_with_fallback(request)

    def _resolve_with_fallback(self, request: RouteRequest) -> None:
        self.fallbacks += 1
        if not request.future.done():
            request.future.set_result(self.retry_policy.fallback_route(request.origin, request.destination))

    async def close(self) -> None:
        """Stop draining and resolve anything still queued with the fallback."""
        task, self._drain_task = self._drain_task, None
        in_flight = self._in_flight
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if in_flight is not None:
            self._resolve_with_fallback(in_flight)
        while self._queue:
            self._resolve_with_fallback(self._queue.popleft())

"""FastAPI dependencies."""

from __future__ import annotations

from starlette.requests import HTTPConnection

from ..services.runtime import TrackingRuntime


def get_runtime(connection: HTTPConnection) -> TrackingRuntime:
    return connection.app.state.runtime

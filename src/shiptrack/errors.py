"""Domain exceptions raised by the tracking core."""

from __future__ import annotations


class ShipTrackError(Exception):
    """Base class for all tracker errors."""


class InvalidInputError(ShipTrackError, ValueError):
    """Caller supplied data that can never succeed (not a transient condition)."""


class InvalidCoordinateError(InvalidInputError):
    pass


class InvalidOrderInputError(InvalidInputError):
    pass


class UnknownCarrierError(InvalidInputError):
    pass


class InvalidSpeedError(InvalidInputError):
    pass


class OrderNotFoundError(ShipTrackError, LookupError):
    pass


class InvalidOrderStateError(ShipTrackError):
    """The order exists but its status does not allow the requested operation."""


class RoutingProviderError(ShipTrackError):
    """The external routing provider could not produce a route."""


class RouteSegmentError(ShipTrackError):
    """A route segment violated the points/time alignment invariants."""

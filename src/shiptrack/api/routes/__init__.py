"""Route group exports."""

from . import health, orders, routes, tracking

__all__ = ["health", "orders", "routes", "tracking"]

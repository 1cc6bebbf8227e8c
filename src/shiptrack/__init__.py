"""Shipment trajectory tracking core."""

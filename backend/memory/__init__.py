"""
Memory layer: durable storage for generated trips.
"""

from .trip_store import InMemoryTripStore, PersistenceGateway, trip_status

__all__ = [
    "InMemoryTripStore",
    "PersistenceGateway",
    "trip_status",
]

"""
Trip persistence.

PersistenceGateway is the contract the caller uses once a batch has resolved.
InMemoryTripStore implements it for local runs and tests, storing trips as
camelCase documents the way the mobile client reads them.
"""

import asyncio
import time
from datetime import date
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..schemas.trip import Trip
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PersistenceGateway(Protocol):
    """Durable storage for generated trips."""

    async def save_trips(self, user_id: str, trips: Sequence[Trip]) -> None:
        """Replace the user's suggested (unsaved) trips with ``trips``."""
        ...


def trip_status(start_date: date, end_date: date, today: Optional[date] = None) -> str:
    """
    Classify a dated trip relative to today.

    Returns:
        "up" for upcoming, "cur" for in progress, "past" for finished
    """
    today = today or date.today()
    if start_date > today:
        return "up"
    if end_date < today:
        return "past"
    return "cur"


class InMemoryTripStore:
    """Process-local trip storage keyed by user id."""

    def __init__(self):
        self._suggested: Dict[str, List[Dict[str, Any]]] = {}
        self._user_trips: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def save_trips(self, user_id: str, trips: Sequence[Trip]) -> None:
        async with self._lock:
            self._suggested[user_id] = [trip.to_document() for trip in trips]
        logger.info("suggested_trips_saved", user_id=user_id, count=len(trips))

    async def list_suggested_trips(self, user_id: str) -> List[Dict[str, Any]]:
        async with self._lock:
            trips = list(self._suggested.get(user_id, []))
        # Stable order across reloads
        return sorted(trips, key=lambda doc: doc["id"])

    async def add_user_trip(
        self,
        user_id: str,
        trip: Trip,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None
    ) -> str:
        """
        Save a trip the user asked for.

        The document id is prefixed with the trip's status (``up``, ``cur`` or
        ``past``) when both dates are known.

        Returns:
            The document id
        """
        timestamp = str(int(time.time() * 1000))
        if start_date and end_date:
            doc_id = f"{trip_status(start_date, end_date, today)}_{timestamp}"
        else:
            doc_id = f"trip_{timestamp}"

        document = {
            "docId": doc_id,
            "tripPlan": trip.trip_plan,
            "tripData": {
                "startDate": start_date.isoformat() if start_date else "",
                "endDate": end_date.isoformat() if end_date else "",
            },
            "photoRef": trip.photo_ref,
            "name": trip.name,
            "createdAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        async with self._lock:
            self._user_trips.setdefault(user_id, {})[doc_id] = document
        logger.info("user_trip_saved", user_id=user_id, doc_id=doc_id)
        return doc_id

    async def list_user_trips(self, user_id: str) -> List[Dict[str, Any]]:
        async with self._lock:
            return list(self._user_trips.get(user_id, {}).values())

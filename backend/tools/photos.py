"""
Destination photo lookup via the Google Places API.

The Places client is synchronous (``requests``) and is moved off the event loop
with ``asyncio.to_thread``. PhotoEnricher wraps any lookup and turns every
failure into ``None``: a missing photo never fails an otherwise valid trip.
"""

import asyncio
from typing import Any, Dict, Optional, Protocol

import requests

from ..utils.exceptions import PhotoLookupError
from ..utils.logger import get_logger

logger = get_logger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
PHOTO_FIELDS = "photos"
INPUT_TYPE = "textquery"

# Statuses that mean "no such place", as opposed to a failed request
_EMPTY_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class PlaceLookup(Protocol):
    """Resolves a place name or place id to an opaque photo reference."""

    async def find_photo_reference(self, query: str, is_place_id: bool = False) -> Optional[str]:
        ...


def _first_photo_reference(place: Optional[Dict[str, Any]]) -> Optional[str]:
    photos = (place or {}).get("photos") or []
    if not photos:
        return None
    return photos[0].get("photo_reference") or None


class GooglePlacesClient:
    """Google Places client limited to the photo fields the pipeline needs."""

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None, session=None):
        if api_key is None or timeout is None:
            from ..utils.config import settings

            api_key = api_key if api_key is not None else settings.google_maps_api_key
            timeout = timeout if timeout is not None else settings.places_request_timeout
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

        if not self.api_key:
            logger.warning("places_api_key_missing", detail="photo references disabled")

    def _get(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{PLACES_BASE_URL}/{endpoint}/json"
        try:
            response = self.session.get(url, params={**params, "key": self.api_key}, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise PhotoLookupError(f"Places request failed: {e}", context={"endpoint": endpoint}) from e
        except ValueError as e:
            raise PhotoLookupError("Places response was not JSON", context={"endpoint": endpoint}) from e

        status = data.get("status", "OK")
        if status != "OK" and status not in _EMPTY_STATUSES:
            raise PhotoLookupError(
                f"Places API returned {status}",
                context={"endpoint": endpoint, "error_message": data.get("error_message")}
            )
        return data

    def photo_reference_for_text(self, query: str) -> Optional[str]:
        """First photo of the best Find Place match for a free-text name."""
        if not self.api_key:
            return None
        data = self._get("findplacefromtext", {
            "input": query,
            "inputtype": INPUT_TYPE,
            "fields": PHOTO_FIELDS,
        })
        candidates = data.get("candidates") or []
        return _first_photo_reference(candidates[0]) if candidates else None

    def photo_reference_for_place(self, place_id: str) -> Optional[str]:
        """First photo of a place known by its Google place id."""
        if not self.api_key:
            return None
        data = self._get("details", {"place_id": place_id, "fields": PHOTO_FIELDS})
        return _first_photo_reference(data.get("result"))

    async def find_photo_reference(self, query: str, is_place_id: bool = False) -> Optional[str]:
        if is_place_id:
            return await asyncio.to_thread(self.photo_reference_for_place, query)
        return await asyncio.to_thread(self.photo_reference_for_text, query)


class PhotoEnricher:
    """Best-effort photo reference resolution."""

    def __init__(self, lookup: Optional[PlaceLookup] = None):
        self._lookup = lookup

    @property
    def lookup(self) -> PlaceLookup:
        # Built lazily so importing the pipeline never needs Places settings
        if self._lookup is None:
            self._lookup = GooglePlacesClient()
        return self._lookup

    async def resolve_photo_ref(self, name_or_place_id: Optional[str], is_place_id: bool = False) -> Optional[str]:
        """
        Resolve a destination to a photo reference.

        Args:
            name_or_place_id: Free-text destination or a Google place id
            is_place_id: Whether ``name_or_place_id`` is a place id

        Returns:
            Photo reference, or None on not-found or any lookup failure
        """
        if not name_or_place_id or not name_or_place_id.strip():
            return None
        try:
            photo_ref = await self.lookup.find_photo_reference(name_or_place_id, is_place_id=is_place_id)
        except Exception as e:
            logger.warning(
                "photo_lookup_failed",
                query=name_or_place_id,
                is_place_id=is_place_id,
                error=str(e),
                error_type=type(e).__name__
            )
            return None

        if not photo_ref:
            logger.info("photo_not_found", query=name_or_place_id)
            return None
        return photo_ref

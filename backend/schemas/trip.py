"""
Schemas for generated trip plans.

The plan itself stays a plain dict (the model's JSON, decoded); the TypedDicts
below document the shape the prompts ask for. Only travelPlan, destination and
itinerary are guaranteed, see ``backend.tools.validation``.
"""
import time
import uuid
from typing import Any, Dict, List, Optional, TypedDict, Union

from pydantic import BaseModel, Field


# ============================================================================
# PARSED MODEL OUTPUT (documented shape, not enforced)
# ============================================================================

class GeoCoordinates(TypedDict, total=False):
    latitude: float
    longitude: float


class FlightInfo(TypedDict, total=False):
    airlineName: str
    flightPrice: Union[float, str]
    airlineUrl: str


class HotelOption(TypedDict, total=False):
    hotelName: str
    hotelAddress: str
    price: Union[float, str]
    geoCoordinates: GeoCoordinates
    rating: float
    description: str
    bookingUrl: str


class PlaceVisit(TypedDict, total=False):
    placeName: str
    placeDetails: str
    placeExtendedDetails: str
    geoCoordinates: GeoCoordinates
    ticketPrice: str
    placeUrl: str


class ItineraryDay(TypedDict, total=False):
    day: str
    places: List[PlaceVisit]


class TripDates(TypedDict, total=False):
    startDate: str
    endDate: str
    bestTimeToVisit: str


class TravelPlan(TypedDict, total=False):
    destination: str
    destinationType: str
    destinationDescription: str
    dates: TripDates
    budget: Union[float, str]
    photoRef: str
    flights: FlightInfo
    hotels: List[HotelOption]
    itinerary: List[ItineraryDay]


class ParsedTripPlan(TypedDict):
    travelPlan: TravelPlan


# ============================================================================
# PIPELINE OUTPUT
# ============================================================================

DEFAULT_DESCRIPTION = "No description available"


def generate_trip_id() -> str:
    """Unique per generation attempt: ``trip-<epoch ms>-<9 hex chars>``."""
    return f"trip-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class Trip(BaseModel):
    """A validated, enriched trip plan. Immutable once built."""
    id: str = Field(..., description="Unique trip identifier", example="trip-1718000000000-3f9a1c2b7")
    name: str = Field(..., description="Destination name as produced by the model", example="Kyoto, Japan")
    description: str = Field(default=DEFAULT_DESCRIPTION, description="Short destination description")
    photo_ref: Optional[str] = Field(
        default=None,
        alias="photoRef",
        description="Google Places photo reference, null when enrichment failed"
    )
    trip_plan: Dict[str, Any] = Field(
        ...,
        alias="tripPlan",
        description="The decoded model output, rooted at travelPlan"
    )

    class Config:
        frozen = True
        populate_by_name = True

    @classmethod
    def from_plan(cls, plan: Dict[str, Any], photo_ref: Optional[str] = None) -> "Trip":
        """Build a Trip from an already validated plan."""
        travel_plan = plan["travelPlan"]
        # Only destination is validated; any other field may have the wrong type
        description = travel_plan.get("destinationDescription")
        if not isinstance(description, str) or not description.strip():
            description = DEFAULT_DESCRIPTION
        return cls(
            id=generate_trip_id(),
            name=travel_plan["destination"],
            description=description,
            photo_ref=photo_ref,
            trip_plan=plan,
        )

    @property
    def travel_plan(self) -> TravelPlan:
        return self.trip_plan["travelPlan"]

    def to_document(self) -> Dict[str, Any]:
        """Camel-cased dict for storage and API responses."""
        return self.model_dump(by_alias=True)

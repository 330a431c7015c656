"""
Pydantic schemas for the trip generation pipeline
"""
from .trip import (
    GeoCoordinates,
    FlightInfo,
    HotelOption,
    PlaceVisit,
    ItineraryDay,
    TripDates,
    TravelPlan,
    ParsedTripPlan,
    Trip,
    generate_trip_id,
)
from .requests import GenerationRequest, GenerateTripRequest, RecommendTripsRequest
from .progress import BatchProgress, BatchState, SlotStatus

__all__ = [
    # Parsed model output
    "GeoCoordinates",
    "FlightInfo",
    "HotelOption",
    "PlaceVisit",
    "ItineraryDay",
    "TripDates",
    "TravelPlan",
    "ParsedTripPlan",
    # Pipeline models
    "Trip",
    "generate_trip_id",
    "GenerationRequest",
    "BatchProgress",
    "BatchState",
    "SlotStatus",
    # API request models
    "GenerateTripRequest",
    "RecommendTripsRequest",
]

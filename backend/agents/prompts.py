"""
Prompt templates for trip generation.

Three templates share the same formatting rules and JSON structure:
- DISCOVER_TRIP_PROMPT: the model picks a destination of a given type
- PLACE_TRIP_PROMPT: the trip is planned for a named place
- RECOMMEND_TRIP_PROMPT: a popular destination with fixed parameters, used for
  the recommended-trips batch

Placeholders use ``{name}`` syntax. The templates contain literal JSON braces,
so substitution is done with plain string replacement rather than str.format.
"""

import re
from typing import Dict, Optional

from ..schemas.requests import GenerationRequest

PLACEHOLDERS = (
    "destinationType",
    "name",
    "totalDays",
    "totalNight",
    "whoIsGoing",
    "budget",
    "activityLevel",
)

_PLACEHOLDER_RE = re.compile(r"\{(" + "|".join(PLACEHOLDERS) + r")\}")

_INTRO = "You are a travel planning AI assistant. Your task is to generate a travel plan in a strict JSON format."

_FORMATTING_RULES = """STRICT FORMATTING RULES:
1. Return ONLY a JSON object - no explanations, no markdown, no additional text
2. All property names must be exactly as specified in the structure below
3. All string values must use double quotes, never single quotes
4. No trailing commas in objects or arrays
5. No comments in the JSON
6. No line breaks within string values
7. Numbers must be unquoted
8. Boolean values must be unquoted (true/false)
9. Coordinates must be numbers, not strings
10. Prices must be numbers, not strings (except when including "Free" or currency symbols)
11. All URLs must be complete and valid (starting with http:// or https://)
12. Each day must have exactly 3 activities (morning, afternoon, evening)"""

_VALUE_CONSTRAINTS = """REQUIRED VALUE CONSTRAINTS:
1. Budget: Must match specified level (low=$100-200/day, average=$200-400/day, luxury=$400+/day)
2. Hotel ratings: Must be between 3.0 and 5.0
3. Coordinates: Must be real and accurate to within 100 meters
4. URLs: Must link to real websites or Google Maps listings
5. Descriptions: Must include specific facts and avoid generic language
6. Dates: Must be in current year and consider local weather/events
7. Activity spacing: Must be spread across morning, afternoon, and evening"""

_HOTELS_AND_ITINERARY = """    "hotels": [
      {
        "hotelName": "string",
        "hotelAddress": "string",
        "price": number,
        "geoCoordinates": {
          "latitude": number,
          "longitude": number
        },
        "rating": %(rating)s,
        "description": "string",
        "bookingUrl": "string"
      }
    ],
    "itinerary": [
      {
        "day": "string",
        "places": [
          {
            "placeName": "string",
            "placeDetails": "string",
            "placeExtendedDetails": "string",
            "geoCoordinates": {
              "latitude": number,
              "longitude": number
            },
            "ticketPrice": "string",
            "placeUrl": "string"
          }
        ]
      }
    ]
  }
}"""

_FLIGHTS = """    "flights": {
      "airlineName": "string",
      "flightPrice": number,
      "airlineUrl": "string"
    },
"""

_PLAN_STRUCTURE = (
    """Return this exact JSON structure with no deviations:
{
  "travelPlan": {
    "budget": number,
    "destination": "string",
    "photoRef": "string",
"""
    + _FLIGHTS
    + _HOTELS_AND_ITINERARY % {"rating": "number"}
)

_RECOMMEND_STRUCTURE = (
    """Return this exact JSON structure with no deviations:
{
  "travelPlan": {
    "budget": 5000,
    "numberOfDays": 5,
    "numberOfNights": 4,
    "destination": "string",
    "destinationType": "string",
    "destinationDescription": "string",
    "photoRef": "string",
    "dates": {
      "startDate": "YYYY-MM-DD",
      "endDate": "YYYY-MM-DD",
      "bestTimeToVisit": "string"
    },
"""
    + _FLIGHTS
    + _HOTELS_AND_ITINERARY % {"rating": "4.0"}
)

_PARTY_LINE = (
    "The trip is designed for {whoIsGoing} with a {budget} budget level "
    "and {activityLevel} activity level."
)

DISCOVER_TRIP_PROMPT = "\n".join([
    _INTRO,
    "Generate a detailed travel plan for a trip to a {destinationType} destination, "
    "lasting {totalDays} days and {totalNight} nights.",
    _PARTY_LINE,
    "",
    _FORMATTING_RULES,
    "",
    _VALUE_CONSTRAINTS,
    "",
    _PLAN_STRUCTURE,
])

PLACE_TRIP_PROMPT = "\n".join([
    _INTRO,
    "Generate a detailed travel plan for a trip to {name}, "
    "lasting {totalDays} days and {totalNight} nights.",
    _PARTY_LINE,
    "",
    _FORMATTING_RULES,
    "",
    _VALUE_CONSTRAINTS,
    "",
    _PLAN_STRUCTURE,
])

RECOMMEND_TRIP_PROMPT = "\n".join([
    _INTRO,
    "Generate a detailed travel plan for a popular tourist destination that meets these exact parameters:",
    "- Must be a top 50 global tourist destination by visitor numbers",
    "- Must be from a different continent than any other generated destination in this session",
    "- Must have a different primary tourism type (e.g., beach, cultural, historical, adventure)",
    "- Duration: Exactly 5 days",
    "- Group size: 2 adults",
    "- Budget level: Average ($300 per person per day)",
    "- Accommodation: 4-star hotels only",
    "- Activity level: Moderate (2-3 hours walking per day)",
    "",
    _FORMATTING_RULES,
    "",
    """REQUIRED VALUE CONSTRAINTS:
1. Budget: Must be exactly 5000
2. Hotel ratings: Must be exactly 4.0
3. Coordinates: Must be real and accurate to within 100 meters
4. URLs: Must link to real websites or Google Maps listings
5. Descriptions: Must include specific facts and avoid generic language
6. Dates: Must be in current year and during peak/shoulder season
7. Activity spacing: Must be spread across morning, afternoon, and evening""",
    "",
    _RECOMMEND_STRUCTURE,
])


def prompt_values(request: Optional[GenerationRequest]) -> Dict[str, str]:
    """Placeholder values for a request; missing fields become empty strings."""
    if request is None:
        return {key: "" for key in PLACEHOLDERS}
    return {
        "destinationType": request.destination_type or "",
        "name": request.destination_name or "",
        "totalDays": str(request.total_days),
        "totalNight": str(request.total_nights),
        "whoIsGoing": request.who_is_going or "",
        "budget": request.budget or "",
        "activityLevel": request.activity_level or "",
    }


def build_prompt(template: str, request: Optional[GenerationRequest]) -> str:
    """
    Fill every known placeholder in ``template``.

    Pure function: no I/O, and no placeholder survives in the result.

    Args:
        template: One of the prompt templates
        request: Trip parameters; None fills every placeholder with ''

    Returns:
        The final prompt text
    """
    values = prompt_values(request)
    return _PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], template)


def select_template(request: Optional[GenerationRequest]) -> str:
    """Discover template when a destination type is set, place template otherwise."""
    if request is None:
        return RECOMMEND_TRIP_PROMPT
    if request.is_discovery:
        return DISCOVER_TRIP_PROMPT
    return PLACE_TRIP_PROMPT


def build_generation_prompt(request: Optional[GenerationRequest]) -> str:
    return build_prompt(select_template(request), request)

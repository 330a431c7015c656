"""Structural validation of decoded trip plans."""

from typing import Any, Optional, Tuple


def check_trip_plan(plan: Any) -> Tuple[bool, Optional[str]]:
    """
    Check the minimum shape every generated plan must have.

    Only ``travelPlan``, a non-empty ``travelPlan.destination`` string and a
    ``travelPlan.itinerary`` list (possibly empty) are required. Hotels,
    flights, dates and the rest are optional because rendering tolerates
    their absence.

    Args:
        plan: Decoded model output

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(plan, dict):
        return False, f"Expected a JSON object, got {type(plan).__name__}"

    travel_plan = plan.get("travelPlan")
    if not isinstance(travel_plan, dict):
        return False, "Missing required field: travelPlan"

    destination = travel_plan.get("destination")
    if not isinstance(destination, str) or not destination.strip():
        return False, "travelPlan.destination must be a non-empty string"

    if "itinerary" not in travel_plan:
        return False, "Missing required field: travelPlan.itinerary"
    if not isinstance(travel_plan["itinerary"], list):
        return False, "travelPlan.itinerary must be a list"

    return True, None


def validate_trip_plan(plan: Any) -> bool:
    """True when ``plan`` has the required structure; never raises."""
    is_valid, _ = check_trip_plan(plan)
    return is_valid

"""
Tools package for the trip generation pipeline.

This package contains utility functions for:
- Repairing and decoding model output (json_repair)
- Structural validation of decoded plans (validation)
- Destination photo lookup (photos)
"""

from .json_repair import ResponseSanitizer, RepairPass, extract_json, parse_model_json
from .validation import check_trip_plan, validate_trip_plan
from .photos import GooglePlacesClient, PhotoEnricher, PlaceLookup

__all__ = [
    "ResponseSanitizer",
    "RepairPass",
    "extract_json",
    "parse_model_json",
    "check_trip_plan",
    "validate_trip_plan",
    "GooglePlacesClient",
    "PhotoEnricher",
    "PlaceLookup",
]

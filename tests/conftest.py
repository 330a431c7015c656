import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from backend.agents.llm_config import ModelReply
from backend.schemas import GenerationRequest, Trip
from backend.tools.photos import PhotoEnricher


SAMPLE_PLAN = {
    "travelPlan": {
        "budget": 1800,
        "destination": "Lisbon, Portugal",
        "destinationDescription": "Hilly coastal capital known for trams and tiled facades.",
        "flights": {
            "airlineName": "TAP Air Portugal",
            "flightPrice": 420,
            "airlineUrl": "https://www.flytap.com",
        },
        "hotels": [
            {
                "hotelName": "Memmo Alfama",
                "hotelAddress": "Travessa das Merceeiras 27, Lisbon",
                "price": 210,
                "geoCoordinates": {"latitude": 38.7111, "longitude": -9.1306},
                "rating": 4.5,
                "description": "Boutique hotel with a rooftop pool over the Tagus.",
                "bookingUrl": "https://www.memmohotels.com/alfama",
            }
        ],
        "itinerary": [
            {
                "day": "Day 1",
                "places": [
                    {
                        "placeName": "Belem Tower",
                        "placeDetails": "16th century fortified tower.",
                        "placeExtendedDetails": "UNESCO listed, built 1514-1519.",
                        "geoCoordinates": {"latitude": 38.6916, "longitude": -9.2160},
                        "ticketPrice": "8 EUR",
                        "placeUrl": "https://www.torrebelem.gov.pt",
                    }
                ],
            }
        ],
    }
}


class FakeModel:
    """PromptSender double; replays ``replies`` in order and repeats the last one."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    async def send_prompt(self, prompt_text):
        self.prompts.append(prompt_text)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return ModelReply(reply)


class RecordingSleep:
    """Async sleep double that records requested delays instead of waiting."""

    def __init__(self):
        self.calls = []

    async def __call__(self, delay):
        self.calls.append(delay)


@pytest.fixture
def sample_plan():
    return json.loads(json.dumps(SAMPLE_PLAN))


@pytest.fixture
def sample_json(sample_plan):
    return json.dumps(sample_plan)


@pytest.fixture
def sample_trip(sample_plan):
    return Trip.from_plan(sample_plan, photo_ref="photo-ref-123")


@pytest.fixture
def named_request():
    return GenerationRequest(
        destination_name="Lisbon, Portugal",
        place_id="ChIJO_PkYRozGQ0R0DaQ5L3rAAQ",
        total_days=3,
        total_nights=2,
        who_is_going="a couple",
        budget="average",
        activity_level="moderate",
    )


@pytest.fixture
def discovery_request():
    return GenerationRequest(
        destination_type="beach",
        total_days=5,
        total_nights=4,
        who_is_going="family",
        budget="luxury",
        activity_level="relaxed",
    )


@pytest.fixture
def place_lookup():
    lookup = MagicMock()
    lookup.find_photo_reference = AsyncMock(return_value="photo-ref-123")
    return lookup


@pytest.fixture
def photo_enricher(place_lookup):
    return PhotoEnricher(lookup=place_lookup)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()

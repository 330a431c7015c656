"""
Unit tests for backend/agents/generator.py and backend/agents/llm_config.py
"""
import asyncio
import json
import re
import pytest
from unittest.mock import AsyncMock, MagicMock

from conftest import FakeModel

from backend.agents.generator import TripGenerator
from backend.agents.llm_config import LLMProvider, ModelReply
from backend.schemas.trip import DEFAULT_DESCRIPTION
from backend.utils.exceptions import (
    ConfigurationError,
    EmptyResponseError,
    InvalidStructureError,
    ParseError,
    UpstreamOverloadError,
)

TRIP_ID_RE = re.compile(r"^trip-\d+-[0-9a-f]{9}$")


class OverloadedError(Exception):
    status_code = 503


class TestTripGeneratorAttempt:
    def test_valid_response_produces_trip(self, sample_json, photo_enricher, named_request):
        generator = TripGenerator(model=FakeModel(sample_json), photo_enricher=photo_enricher)
        trip = asyncio.run(generator.attempt(named_request))

        assert TRIP_ID_RE.match(trip.id)
        assert trip.name == "Lisbon, Portugal"
        assert trip.description.startswith("Hilly coastal capital")
        assert trip.photo_ref == "photo-ref-123"
        assert trip.travel_plan["itinerary"][0]["day"] == "Day 1"

    def test_each_attempt_gets_a_fresh_id(self, sample_json, photo_enricher):
        generator = TripGenerator(model=FakeModel(sample_json), photo_enricher=photo_enricher)
        first = asyncio.run(generator.attempt())
        second = asyncio.run(generator.attempt())
        assert first.id != second.id

    def test_prompt_matches_request(self, sample_json, photo_enricher, discovery_request):
        model = FakeModel(sample_json)
        generator = TripGenerator(model=model, photo_enricher=photo_enricher)
        asyncio.run(generator.attempt(discovery_request))
        assert "trip to a beach destination" in model.prompts[0]

    def test_stage_callbacks(self, sample_json, photo_enricher):
        stages = []
        generator = TripGenerator(model=FakeModel(sample_json), photo_enricher=photo_enricher)
        asyncio.run(generator.attempt(on_stage=lambda fraction, message: stages.append(fraction)))
        assert stages == [0.1, 0.3, 0.5, 0.7, 1.0]

    def test_fenced_response_is_repaired(self, sample_json, photo_enricher):
        generator = TripGenerator(model=FakeModel(f"```json\n{sample_json},\n```"), photo_enricher=photo_enricher)
        trip = asyncio.run(generator.attempt())
        assert trip.name == "Lisbon, Portugal"

    def test_missing_description_uses_default(self, photo_enricher):
        plan = {"travelPlan": {"destination": "Oslo", "itinerary": []}}
        generator = TripGenerator(model=FakeModel(json.dumps(plan)), photo_enricher=photo_enricher)
        trip = asyncio.run(generator.attempt())
        assert trip.description == DEFAULT_DESCRIPTION
        assert trip.trip_plan == plan

    @pytest.mark.parametrize("description", [["fjords", "museums"], 42, {"x": 1}, "   ", None])
    def test_unusable_description_uses_default(self, description, photo_enricher):
        plan = {"travelPlan": {"destination": "Oslo", "destinationDescription": description, "itinerary": []}}
        generator = TripGenerator(model=FakeModel(json.dumps(plan)), photo_enricher=photo_enricher)
        trip = asyncio.run(generator.attempt())
        assert trip.name == "Oslo"
        assert trip.description == DEFAULT_DESCRIPTION
        assert trip.trip_plan["travelPlan"]["destinationDescription"] == description

    def test_nan_in_reply_is_repaired(self, photo_enricher):
        reply = '{"travelPlan": {"destination": "Oslo", "budget": NaN, "itinerary": []}}'
        generator = TripGenerator(model=FakeModel(reply), photo_enricher=photo_enricher)
        trip = asyncio.run(generator.attempt())
        assert trip.trip_plan["travelPlan"]["budget"] == 0

    @pytest.mark.parametrize("reply", ["", "   \n "])
    def test_empty_response(self, reply, photo_enricher):
        generator = TripGenerator(model=FakeModel(reply), photo_enricher=photo_enricher)
        with pytest.raises(EmptyResponseError):
            asyncio.run(generator.attempt())

    def test_unparseable_response(self, photo_enricher):
        generator = TripGenerator(model=FakeModel("Sorry, no can do."), photo_enricher=photo_enricher)
        with pytest.raises(ParseError) as exc_info:
            asyncio.run(generator.attempt())
        assert exc_info.value.raw_text == "Sorry, no can do."

    def test_invalid_structure(self, photo_enricher, place_lookup):
        reply = json.dumps({"travelPlan": {"destination": "Oslo"}})
        generator = TripGenerator(model=FakeModel(reply), photo_enricher=photo_enricher)
        with pytest.raises(InvalidStructureError) as exc_info:
            asyncio.run(generator.attempt())
        assert "itinerary" in exc_info.value.context["reason"]
        place_lookup.find_photo_reference.assert_not_awaited()

    def test_overload_is_classified(self, photo_enricher):
        generator = TripGenerator(model=FakeModel(OverloadedError("busy")), photo_enricher=photo_enricher)
        with pytest.raises(UpstreamOverloadError) as exc_info:
            asyncio.run(generator.attempt())
        assert exc_info.value.status_code == 503

    def test_unclassified_model_error_propagates(self, photo_enricher):
        generator = TripGenerator(model=FakeModel(RuntimeError("invalid api key")), photo_enricher=photo_enricher)
        with pytest.raises(RuntimeError):
            asyncio.run(generator.attempt())


class TestPhotoResolution:
    def test_place_id_is_preferred(self, sample_json, photo_enricher, place_lookup, named_request):
        generator = TripGenerator(model=FakeModel(sample_json), photo_enricher=photo_enricher)
        asyncio.run(generator.attempt(named_request))
        place_lookup.find_photo_reference.assert_awaited_once_with(
            "ChIJO_PkYRozGQ0R0DaQ5L3rAAQ", is_place_id=True
        )

    def test_name_used_without_place_id(self, sample_json, photo_enricher, place_lookup, named_request):
        request = named_request.model_copy(update={"place_id": None, "destination_name": "Lisboa"})
        generator = TripGenerator(model=FakeModel(sample_json), photo_enricher=photo_enricher)
        asyncio.run(generator.attempt(request))
        place_lookup.find_photo_reference.assert_awaited_once_with("Lisboa", is_place_id=False)

    def test_discovery_uses_generated_destination(self, sample_json, photo_enricher, place_lookup, discovery_request):
        generator = TripGenerator(model=FakeModel(sample_json), photo_enricher=photo_enricher)
        asyncio.run(generator.attempt(discovery_request))
        place_lookup.find_photo_reference.assert_awaited_once_with("Lisbon, Portugal", is_place_id=False)

    def test_photo_failure_keeps_trip(self, sample_json, photo_enricher, place_lookup):
        place_lookup.find_photo_reference.side_effect = Exception("REQUEST_DENIED")
        generator = TripGenerator(model=FakeModel(sample_json), photo_enricher=photo_enricher)
        trip = asyncio.run(generator.attempt())
        assert trip.photo_ref is None
        assert trip.name == "Lisbon, Portugal"


class TestModelReply:
    def test_plain_text(self):
        assert asyncio.run(ModelReply("hello").text()) == "hello"

    def test_content_blocks(self):
        reply = ModelReply([{"type": "text", "text": "{\"a\": "}, "1}", {"type": "image_url"}])
        assert asyncio.run(reply.text()) == '{"a": 1}'

    def test_none_content(self):
        assert asyncio.run(ModelReply(None).text()) == ""


class TestLLMProvider:
    def test_missing_api_key(self):
        provider = LLMProvider()
        provider.api_key = None
        with pytest.raises(ConfigurationError):
            provider.get_model()

    def test_send_prompt_uses_chat_model(self):
        provider = LLMProvider(api_key="sk-test")
        provider._model = MagicMock()
        provider._model.ainvoke = AsyncMock(return_value=MagicMock(content="{\"ok\": true}"))

        reply = asyncio.run(provider.send_prompt("plan a trip"))

        assert asyncio.run(reply.text()) == '{"ok": true}'
        messages = provider._model.ainvoke.await_args.args[0]
        assert messages[0].content == "plan a trip"

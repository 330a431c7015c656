"""
Single trip generation attempt.

One attempt builds the prompt, calls the model once, repairs and validates the
output, looks up a destination photo and returns a Trip. It never retries;
RetryOrchestrator decides whether a failed attempt is worth repeating.
"""

import logging
from typing import Callable, Optional

from .llm_config import PromptSender
from .prompts import build_generation_prompt
from ..schemas.requests import GenerationRequest
from ..schemas.trip import Trip
from ..tools.json_repair import ResponseSanitizer, default_sanitizer
from ..tools.photos import PhotoEnricher
from ..tools.validation import check_trip_plan
from ..utils.exceptions import (
    EmptyResponseError,
    InvalidStructureError,
    JetsetError,
    UpstreamOverloadError,
)
from ..utils.retry import ErrorKind, classify_error, extract_status_code

logger = logging.getLogger(__name__)

StageCallback = Callable[[float, str], None]


class TripGenerator:
    """Runs one end-to-end generation attempt."""

    def __init__(
        self,
        model: Optional[PromptSender] = None,
        sanitizer: Optional[ResponseSanitizer] = None,
        photo_enricher: Optional[PhotoEnricher] = None
    ):
        if model is None:
            from .llm_config import llm_provider
            model = llm_provider
        self.model = model
        self.sanitizer = sanitizer or default_sanitizer
        self.photo_enricher = photo_enricher or PhotoEnricher()

    async def _invoke_model(self, prompt: str) -> str:
        """Call the model; transport failures are classified once, here."""
        try:
            reply = await self.model.send_prompt(prompt)
            return await reply.text()
        except JetsetError:
            raise
        except Exception as e:
            if classify_error(e) is ErrorKind.UPSTREAM_OVERLOAD:
                raise UpstreamOverloadError(
                    f"Model backend unavailable: {e}",
                    status_code=extract_status_code(e),
                    retry_after=getattr(e, "retry_after", None)
                ) from e
            raise

    async def _resolve_photo(self, request: Optional[GenerationRequest], destination: str) -> Optional[str]:
        if request is not None and not request.is_discovery:
            if request.place_id:
                return await self.photo_enricher.resolve_photo_ref(request.place_id, is_place_id=True)
            return await self.photo_enricher.resolve_photo_ref(request.destination_name or destination)
        return await self.photo_enricher.resolve_photo_ref(destination)

    async def attempt(
        self,
        request: Optional[GenerationRequest] = None,
        on_stage: Optional[StageCallback] = None
    ) -> Trip:
        """
        Generate one trip.

        Args:
            request: Trip parameters; None generates a recommended trip
            on_stage: Optional callback receiving (fraction, message) progress updates

        Returns:
            A validated Trip with a fresh id

        Raises:
            EmptyResponseError: If the model returned no text
            ParseError: If the output could not be repaired into JSON
            InvalidStructureError: If the JSON lacks the required fields
            UpstreamOverloadError: If the model backend is rate limited or overloaded
        """
        def stage(fraction: float, message: str) -> None:
            if on_stage is not None:
                on_stage(fraction, message)

        stage(0.1, "Preparing your travel preferences...")
        prompt = build_generation_prompt(request)

        stage(0.3, "Consulting our AI travel expert...")
        response_text = await self._invoke_model(prompt)
        if not response_text or not response_text.strip():
            raise EmptyResponseError("Empty response from AI")
        logger.debug(f"Raw AI response: {response_text}")

        stage(0.5, "Creating your personalized itinerary...")
        plan = self.sanitizer.parse(response_text)

        is_valid, error_msg = check_trip_plan(plan)
        if not is_valid:
            logger.error(f"Trip validation failed: {error_msg}")
            raise InvalidStructureError(
                "Invalid trip response structure",
                context={"reason": error_msg}
            )

        destination = plan["travelPlan"]["destination"]
        stage(0.7, "Finding the perfect photos for your destination...")
        photo_ref = await self._resolve_photo(request, destination)

        trip = Trip.from_plan(plan, photo_ref=photo_ref)
        logger.info(f"Generated trip {trip.id} for {trip.name}")
        stage(1.0, "Trip successfully generated!")
        return trip

"""
Pydantic schemas for generation requests and API request bodies
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class GenerationRequest(BaseModel):
    """
    Structured travel request handed to the pipeline.

    A non-empty ``destination_type`` selects the "discover a destination" prompt;
    otherwise the trip is planned for ``destination_name``.
    """
    destination_type: Optional[str] = Field(
        default=None,
        description="Kind of destination to discover",
        example="beach"
    )
    destination_name: Optional[str] = Field(
        default=None,
        description="Named place to plan for",
        example="Lisbon, Portugal"
    )
    place_id: Optional[str] = Field(
        default=None,
        description="Google place id of destination_name, when already known"
    )
    total_days: int = Field(..., ge=1, description="Trip length in days", example=5)
    total_nights: int = Field(..., ge=0, description="Trip length in nights", example=4)
    who_is_going: str = Field(default="", description="Travel party", example="a couple")
    budget: str = Field(default="", description="Budget level", example="average")
    activity_level: str = Field(default="", description="Activity level", example="moderate")

    @property
    def is_discovery(self) -> bool:
        return bool(self.destination_type)


class GenerateTripRequest(GenerationRequest):
    """Request body for generating one trip for a user"""
    user_id: str = Field(..., alias="userId", description="Owner of the generated trip")
    start_date: Optional[date] = Field(default=None, alias="startDate", description="Trip start date")
    end_date: Optional[date] = Field(default=None, alias="endDate", description="Trip end date")

    class Config:
        populate_by_name = True

    def to_generation_request(self) -> GenerationRequest:
        return GenerationRequest(**self.model_dump(include=set(GenerationRequest.model_fields)))


class RecommendTripsRequest(BaseModel):
    """Request body for refreshing a user's recommended trips"""
    user_id: str = Field(..., alias="userId", description="User whose suggested trips are replaced")
    count: Optional[int] = Field(default=None, ge=1, le=10, description="Number of trips to generate; defaults to BATCH_SIZE")

    class Config:
        populate_by_name = True

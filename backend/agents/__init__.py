"""
Trip generation agents package.

This package contains the prompt templates, LLM configuration, the single
generation attempt and the batch scheduler.
"""

from .prompts import (
    DISCOVER_TRIP_PROMPT,
    PLACE_TRIP_PROMPT,
    RECOMMEND_TRIP_PROMPT,
    build_prompt,
    build_generation_prompt,
    select_template,
)
from .llm_config import llm_provider, LLMProvider, ModelReply, PromptSender
from .generator import TripGenerator
from .batch import BatchScheduler

__all__ = [
    "DISCOVER_TRIP_PROMPT",
    "PLACE_TRIP_PROMPT",
    "RECOMMEND_TRIP_PROMPT",
    "build_prompt",
    "build_generation_prompt",
    "select_template",
    "llm_provider",
    "LLMProvider",
    "ModelReply",
    "PromptSender",
    "TripGenerator",
    "BatchScheduler",
]

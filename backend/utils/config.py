"""Configuration management using Pydantic Settings."""

import os
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Model invocation (OpenAI via LangChain)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    model_temperature: float = 0.7
    model_max_tokens: int = 8192
    model_max_retries: int = 0  # RetryOrchestrator owns retries

    # Google Places (photo references)
    google_maps_api_key: Optional[str] = None
    places_request_timeout: int = 10

    # App Configuration
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8081"]

    # Trip generation tunables (seconds)
    generation_max_attempts: int = 3
    generation_base_delay: float = 2.0
    generation_jitter: float = 1.0
    batch_size: int = 3
    batch_stagger_delay: float = 5.0
    batch_failure_cooldown: float = 7.0
    batch_item_timeout: float = 120.0

    class Config:
        """Pydantic configuration."""
        env_file = os.path.join(os.path.dirname(__file__), "..", ".env")
        case_sensitive = False
        extra = "ignore"
        protected_namespaces = ()


# Global settings instance
settings = Settings()

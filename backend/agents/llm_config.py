"""
LLM provider configuration.

This module owns the single request/response call to the text-generation
backend (OpenAI through LangChain). Errors from the client are left untouched
here; the generation attempt classifies them where they are received.
"""

from typing import Any, Optional, Protocol
import logging

from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from ..utils.config import settings
from ..utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ModelReply:
    """Reply from one model call; ``text()`` mirrors the async client contract."""

    def __init__(self, content: Any):
        self._content = content

    async def text(self) -> str:
        content = self._content
        # Some chat models return a list of content blocks
        if isinstance(content, list):
            parts = []
            for block in content:
                if isinstance(block, str):
                    parts.append(block)
                elif isinstance(block, dict) and block.get("type") == "text":
                    parts.append(block.get("text", ""))
            return "".join(parts)
        return content or ""


class PromptSender(Protocol):
    """The model-invocation contract the pipeline depends on."""

    async def send_prompt(self, prompt_text: str) -> ModelReply:
        ...


class LLMProvider:
    """
    Manages the chat model used for trip generation.

    The model is created on first use so importing the pipeline does not
    require credentials.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ):
        """Initialize the provider from explicit arguments or settings."""
        self.model_name = model_name or settings.openai_model
        self.api_key = api_key or settings.openai_api_key
        self.temperature = settings.model_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.model_max_tokens
        self._model = None

    def get_model(self) -> ChatOpenAI:
        """
        Get the chat model, creating it on first call.

        Returns:
            LangChain chat model instance

        Raises:
            ConfigurationError: If no OpenAI API key is configured
        """
        if self._model is None:
            if not self.api_key:
                raise ConfigurationError("OPENAI_API_KEY not found, trip generation unavailable")
            self._model = ChatOpenAI(
                model=self.model_name,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                max_retries=settings.model_max_retries,
                api_key=self.api_key
            )
            logger.info(f"Initialized {self.model_name} for trip generation")
        return self._model

    async def send_prompt(self, prompt_text: str) -> ModelReply:
        """
        Send one prompt and return the reply.

        Args:
            prompt_text: Fully built prompt

        Returns:
            ModelReply wrapping the message content
        """
        model = self.get_model()
        logger.info(f"Sending prompt to {self.model_name} ({len(prompt_text)} chars)")
        response = await model.ainvoke([HumanMessage(content=prompt_text)])
        return ModelReply(response.content)


# Global instance
llm_provider = LLMProvider()

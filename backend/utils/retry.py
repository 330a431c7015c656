"""
Retry utilities with exponential backoff for handling transient failures.

Foreign errors are mapped to a closed ErrorKind once, by classify_error, where
the model call fails. The orchestrator only reads the typed pipeline errors that
result; it retries the kinds in RETRYABLE_KINDS and degrades everything else,
including untyped exceptions, to ``None``.
"""

import asyncio
import random
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .exceptions import (
    EmptyResponseError,
    InvalidStructureError,
    ParseError,
    SlotTimeoutError,
    UpstreamOverloadError,
)
from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

OVERLOAD_STATUS_CODES = frozenset({429, 503})
OVERLOAD_MARKERS = ("429", "503", "overloaded", "timeout", "timed out", "rate limit")


class ErrorKind(str, Enum):
    """Closed set of failure categories seen by the retry layer."""
    EMPTY_RESPONSE = "empty_response"
    PARSE = "parse"
    INVALID_STRUCTURE = "invalid_structure"
    UPSTREAM_OVERLOAD = "upstream_overload"
    TIMEOUT = "timeout"
    FATAL = "fatal"


RETRYABLE_KINDS = frozenset({
    ErrorKind.EMPTY_RESPONSE,
    ErrorKind.PARSE,
    ErrorKind.INVALID_STRUCTURE,
    ErrorKind.UPSTREAM_OVERLOAD,
})


def extract_status_code(exc: BaseException) -> Optional[int]:
    """Return an HTTP-like status carried by a client exception, if any."""
    for attr in ("status_code", "status", "http_status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def pipeline_error_kind(exc: BaseException) -> ErrorKind:
    """ErrorKind of a typed pipeline error; anything else is FATAL."""
    if isinstance(exc, EmptyResponseError):
        return ErrorKind.EMPTY_RESPONSE
    if isinstance(exc, ParseError):
        return ErrorKind.PARSE
    if isinstance(exc, InvalidStructureError):
        return ErrorKind.INVALID_STRUCTURE
    if isinstance(exc, UpstreamOverloadError):
        return ErrorKind.UPSTREAM_OVERLOAD
    if isinstance(exc, SlotTimeoutError):
        return ErrorKind.TIMEOUT
    return ErrorKind.FATAL


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Map an exception to an ErrorKind at the point a collaborator's error is received.

    Pipeline errors are classified by type. Foreign exceptions (model client,
    transport) are classified by their status code first and by well-known
    message markers second.

    Args:
        exc: The exception to classify

    Returns:
        The matching ErrorKind; FATAL when nothing matches
    """
    kind = pipeline_error_kind(exc)
    if kind is not ErrorKind.FATAL:
        return kind

    if extract_status_code(exc) in OVERLOAD_STATUS_CODES:
        return ErrorKind.UPSTREAM_OVERLOAD
    if isinstance(exc, TimeoutError):
        return ErrorKind.UPSTREAM_OVERLOAD

    message = str(exc).lower()
    if any(marker in message for marker in OVERLOAD_MARKERS):
        return ErrorKind.UPSTREAM_OVERLOAD
    return ErrorKind.FATAL


def is_retryable(exc: BaseException) -> bool:
    """Whether a fresh attempt may succeed where this one failed."""
    return classify_error(exc) in RETRYABLE_KINDS


class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        exponential_base: float = 2.0,
        jitter: float = 1.0,
        max_delay: Optional[float] = None
    ):
        """
        Initialize retry configuration.

        Args:
            max_attempts: Total number of attempts, including the first
            base_delay: Backoff unit in seconds
            exponential_base: Base for exponential backoff calculation
            jitter: Upper bound in seconds of the uniform random term added to each delay
            max_delay: Optional ceiling in seconds for a single delay
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.max_delay = max_delay

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        from .config import settings

        return cls(
            max_attempts=settings.generation_max_attempts,
            base_delay=settings.generation_base_delay,
            jitter=settings.generation_jitter,
        )


def compute_backoff(
    attempt: int,
    config: RetryConfig,
    rand: Callable[[float, float], float] = random.uniform
) -> float:
    """
    Delay to wait before ``attempt`` (1-based; attempt 1 never waits).

    ``base_delay * exponential_base ** (attempt - 1) + uniform(0, jitter)``
    """
    if attempt <= 1:
        return 0.0
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    if config.max_delay is not None:
        delay = min(delay, config.max_delay)
    return delay + rand(0.0, config.jitter)


class RetryOrchestrator:
    """
    Runs an async attempt function with classification-aware backoff.

    ``run`` never raises for attempt failures: a non-retryable error or
    exhausting ``max_attempts`` resolves to ``None`` so one failed trip cannot
    abort the others.
    """

    def __init__(
        self,
        config: RetryConfig = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[float, float], float] = random.uniform
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._rand = rand

    async def run(self, attempt_fn: Callable[[], Awaitable[T]], label: str = "") -> Optional[T]:
        """
        Invoke ``attempt_fn`` until it succeeds or the policy gives up.

        Args:
            attempt_fn: Zero-argument coroutine factory, called once per attempt
            label: Name used in log events

        Returns:
            The first successful result, or None
        """
        name = label or getattr(attempt_fn, "__name__", "attempt")

        for attempt in range(1, self.config.max_attempts + 1):
            if attempt > 1:
                delay = compute_backoff(attempt, self.config, self._rand)
                logger.info(
                    "retry_backoff",
                    function=name,
                    attempt=attempt,
                    max_attempts=self.config.max_attempts,
                    retry_delay_seconds=round(delay, 3)
                )
                await self._sleep(delay)

            try:
                return await attempt_fn()
            except Exception as e:
                kind = pipeline_error_kind(e)

                if kind not in RETRYABLE_KINDS:
                    logger.error(
                        "non_retryable_error",
                        function=name,
                        attempt=attempt,
                        error=str(e),
                        error_type=type(e).__name__,
                        error_kind=kind.value
                    )
                    return None

                if attempt == self.config.max_attempts:
                    logger.error(
                        "retry_exhausted",
                        function=name,
                        attempts=self.config.max_attempts,
                        error=str(e),
                        error_type=type(e).__name__,
                        error_kind=kind.value
                    )
                    return None

                logger.warning(
                    "retry_attempt",
                    function=name,
                    attempt=attempt,
                    max_attempts=self.config.max_attempts,
                    error=str(e),
                    error_type=type(e).__name__,
                    error_kind=kind.value
                )

        return None


async def with_retry(
    attempt_fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 2.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> Optional[T]:
    """
    Convenience wrapper around RetryOrchestrator for one-off calls.

    Example:
        trip = await with_retry(lambda: generator.attempt(request))
        if trip is None:
            ...  # slot failed
    """
    orchestrator = RetryOrchestrator(
        RetryConfig(max_attempts=max_attempts, base_delay=base_delay),
        sleep=sleep
    )
    return await orchestrator.run(attempt_fn)

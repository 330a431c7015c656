"""
Exception taxonomy for the trip generation pipeline.

Transient errors describe a single failed generation attempt and may be retried;
permanent errors describe conditions a retry cannot fix.
"""

from typing import Optional


class JetsetError(Exception):
    """Base exception for all trip generation errors."""

    def __init__(self, message: str, context: dict = None):
        """
        Initialize exception with message and optional context.

        Args:
            message: Error message
            context: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class TransientError(JetsetError):
    """
    A failure of one attempt that a fresh attempt may not repeat.

    Examples:
        - Model returned nothing
        - Model returned text that could not be repaired into JSON
        - Upstream rate limiting or overload
    """
    pass


class PermanentError(JetsetError):
    """
    A failure that retrying will not fix.

    Examples:
        - Missing API credentials
        - Every slot of a batch failed
    """
    pass


# Generation attempt errors

class EmptyResponseError(TransientError):
    """The model call returned empty or whitespace-only text."""
    pass


class ParseError(TransientError):
    """No sanitizer stage produced decodable JSON."""

    def __init__(self, message: str, raw_text: str = "", context: dict = None):
        """
        Initialize parse error.

        Args:
            message: Error message
            raw_text: The untouched model output, kept for diagnostics
            context: Additional error context
        """
        super().__init__(message, context)
        self.raw_text = raw_text


class InvalidStructureError(TransientError):
    """The model output decoded but lacks travelPlan, destination or itinerary."""
    pass


class UpstreamOverloadError(TransientError):
    """The model backend reported rate limiting, overload or a transport timeout."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        context: dict = None
    ):
        super().__init__(message, context)
        self.status_code = status_code
        self.retry_after = retry_after


class SlotTimeoutError(TransientError):
    """A batch slot exceeded its wall-clock budget and was abandoned."""

    def __init__(self, slot: int, timeout: float, context: dict = None):
        super().__init__(f"Trip {slot + 1} timed out after {timeout:g}s", context)
        self.slot = slot
        self.timeout = timeout


# Batch errors

class BatchExhaustionError(PermanentError):
    """Every slot of a batch failed; nothing to hand to persistence."""

    def __init__(self, attempted: int, context: dict = None):
        super().__init__(f"Failed to generate any valid trips ({attempted} attempted)", context)
        self.attempted = attempted


class BatchInProgressError(PermanentError):
    """A batch was started on a scheduler that is already running one."""
    pass


class ConfigurationError(PermanentError):
    """Exception for configuration errors."""
    pass


class PhotoLookupError(JetsetError):
    """The place lookup service failed; always absorbed by the photo enricher."""
    pass

"""Structured logging for the generation pipeline (structlog over stdlib logging)."""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "jetset-trip-generator"


def add_log_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    if method_name == "warn":
        method_name = "warning"
    event_dict["level"] = method_name.upper()
    return event_dict


def service_tagger(environment: str):
    """Processor stamping every event with the service and its environment."""
    def tag(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("env", environment)
        return event_dict

    return tag


def configure_logging(log_level: str = "INFO", environment: str = "development", json_output: Optional[bool] = None) -> None:
    """
    Route structlog events through the standard library root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        environment: Deployment name added to each event
        json_output: Force JSON lines on or off; by default only development
            logs are rendered for the console
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    if json_output is None:
        json_output = environment != "development"

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        service_tagger(environment),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_job_context(**values: Any) -> None:
    """Attach key/values (user id, batch size) to every event logged by the current task."""
    structlog.contextvars.bind_contextvars(**values)


def clear_job_context() -> None:
    structlog.contextvars.clear_contextvars()


# Initialize logging on module import
from .config import settings

configure_logging(settings.log_level, settings.environment)

"""Logging configuration for the Grocery domain."""

import logging

import structlog

from grocery.settings import get_settings

logger = structlog.get_logger(__name__)

# Suppress noisy library loggers
logging.getLogger("protean").setLevel(logging.WARNING)


def configure_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """Configure structlog for the API process.

    ``LOG_FORMAT=json`` emits one JSON object per line; anything else renders
    for a console.
    """
    settings = get_settings()
    log_format = log_format or settings.log_format
    level = logging.getLevelName(log_level or settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )

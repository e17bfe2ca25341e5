"""
Logging configuration module for structured logging.

This module configures hostgate's logging system using structlog. It provides
JSON output for production and human-readable console output for development.
"""

import logging

import structlog

from hostgate.core.config.settings import settings


def configure_logging(log_level: str = None, json_logs: bool = None) -> None:
    """
    Configures the logging system.

    Sets up structlog with ISO timestamps, the log level, and either a JSON or
    a console renderer. Arguments default to the `LOG_LEVEL` and `LOG_JSON`
    settings.
    """
    if log_level is None:
        log_level = settings.LOG_LEVEL
    if json_logs is None:
        json_logs = settings.LOG_JSON

    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level.upper(), logging.INFO))

    processors = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()

"""
Structured logging setup.

Engine modules log through ``structlog.get_logger(__name__)`` using
snake_case event names and keyword context.  Loggers resolve the
configuration on first use, so components built before
``configure_logging()`` still pick it up.  Call it once at process start;
the HTTP app factory does this for you.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog through the stdlib logging module.

    Args:
        level: Minimum stdlib level name (``"DEBUG"``, ``"INFO"``, ...).
        json_output: Render JSON lines when True, a console format otherwise.
    """
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

"""structlog configuration.

Every module asks for a named logger via :func:`get_logger` and emits
snake_case events with key/value context, e.g.::

    logger.info("candle_closed", open_time=..., volume=...)
"""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(level: str | None = None, *, json_output: bool | None = None) -> None:
    """Configure stdlib logging + structlog once per process.

    Args:
        level: Log level name. Defaults to ``Settings.log_level``.
        json_output: Force JSON (True) or console (False) rendering. Defaults to
            console when ``Settings.debug`` is set, JSON otherwise.
    """
    from footprint_chart.config import get_settings

    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    if json_output is None:
        json_output = not settings.debug

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
        force=True,
    )

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)

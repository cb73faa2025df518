from __future__ import annotations

import logging
import sys

import structlog

from fundadmin.core.config import settings
from fundadmin.shared.enums import Env


def _renderer() -> structlog.types.Processor:
    if settings.log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging(level: str | None = None) -> None:
    """Send structlog events through stdlib logging to stdout.

    Bound actor and request id are merged into every event. Output is one JSON
    object per line unless ``LOG_FORMAT=console``.
    """
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=settings.env != Env.test,
    )

"""
structlog configuration for CLI runs.

Production renders one JSON object per line; development uses the coloured
console renderer. Standard library loggers (used by the leaf modules) are
routed to the same stream, so both kinds of log lines interleave in order.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from content_ingest.config.settings import get_settings

QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and stdlib logging.

    Args:
        level: Log level name; defaults to settings.log_level
        json_logs: Force JSON output on or off; defaults to production mode

    Usage:
        setup_logging()
        structlog.get_logger(__name__).info("Imported", title="Cursed slice")
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    use_json = settings.is_production if json_logs is None else json_logs

    processors = _shared_processors()
    if use_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_command(command: str) -> None:
    """Tag every following log line with the CLI command being run."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command)

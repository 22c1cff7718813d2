"""
Structured logging for finvec.

Library modules log through structlog.get_logger(__name__) with key-value
fields; setup_logging decides how those events are rendered. Command
output goes to stdout, so logs are always written to stderr.

Every event logged while a CLI command runs carries the command name and
the active backend (see bind_context).
"""

import logging
import sys

import structlog
from structlog.types import Processor

from finvec.config.settings import Settings, get_settings

# Third-party loggers that only matter when something is wrong
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _log_level(settings: Settings) -> int:
    if settings.debug:
        return logging.DEBUG
    return getattr(logging, settings.log_level)


def _renderer(settings: Settings) -> list[Processor]:
    if settings.is_production:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and the stdlib bridge.

    Production renders one JSON object per line (Hebrew summaries kept
    readable); other environments use the console renderer. DEBUG=true
    overrides LOG_LEVEL.
    """
    settings = settings or get_settings()
    level = _log_level(settings)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        *_renderer(settings),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_context(**kwargs) -> None:
    """Attach fields (e.g. command, backend) to every later event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()

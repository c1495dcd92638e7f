"""Structured logging for Times News.

Log lines are structlog events named in snake_case with key/value context.
The server binds the request route for the duration of each request so that
every event logged while handling it carries the route.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from times_news.config import get_settings
from times_news.errors import ConfigurationError

# Third-party loggers that only matter at WARNING and above
QUIET_LOGGERS = ("httpx", "httpcore", "aiohttp.access")


def _settings_level() -> tuple[str, bool]:
    """Level name and development flag from settings.

    Settings that fail to load still leave a readable console log so the
    configuration error itself can be reported.
    """
    try:
        settings = get_settings()
    except ConfigurationError:
        return "INFO", True
    return settings.log_level, settings.is_development


def _renderer(development: bool) -> Any:
    if development:
        return structlog.dev.ConsoleRenderer(colors=True)
    return structlog.processors.JSONRenderer()


def setup_logging(level: str | None = None, development: bool | None = None) -> None:
    """Configure structlog and stdlib logging.

    Args:
        level: Level name overriding ``LOG_LEVEL``.
        development: Console output when True, JSON lines otherwise;
            defaults to ``ENVIRONMENT == "development"``.
    """
    settings_level, settings_development = _settings_level()
    level_name = (level or settings_level).upper()
    if development is None:
        development = settings_development
    log_level = getattr(logging, level_name, logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            _renderer(development),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def request_context(**values: Any) -> Iterator[None]:
    """Bind ``values`` to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)

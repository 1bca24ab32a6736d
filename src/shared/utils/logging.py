"""Logging configuration shared by the API process and the background workers.

Everything goes through structlog on top of the stdlib root logger, so
library log records and our own keyword-style events end up in the same
handlers. Production and staging render JSON lines; other environments get
the console renderer.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog

_LEVEL_BY_ENVIRONMENT = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_JSON_ENVIRONMENTS = {"production", "staging"}

# Third-party loggers that are chatty at DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore", "stripe", "sqlalchemy.engine")

_MAX_LOG_BYTES = 10 * 1024 * 1024


def get_log_level(environment: str, override: str | None = None) -> str:
    """Return the log level for an environment, unless explicitly overridden."""
    if override:
        return override.upper()
    return _LEVEL_BY_ENVIRONMENT.get(environment.lower(), "INFO")


def _rotating_handler(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=_MAX_LOG_BYTES, backupCount=5, encoding="utf-8")
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(log_level: str, log_dir: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(log_level)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating_handler(directory / "checkout.log", log_level))
        handlers.append(_rotating_handler(directory / "checkout_error.log", logging.ERROR))
    handlers[0].setLevel(log_level)
    root.handlers = handlers

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_structlog(environment: str) -> None:
    if environment.lower() in _JSON_ENVIRONMENTS:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
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


def configure_logging(environment: str, log_level: str | None = None, log_dir: str | None = None) -> None:
    setup_stdlib_logging(get_log_level(environment, log_level), log_dir)
    setup_structlog(environment)


def add_context(**kwargs: Any) -> None:
    """Bind fields onto every log line emitted by the current thread or task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()

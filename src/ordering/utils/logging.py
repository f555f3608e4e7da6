"""Logging configuration for the checkout service.

structlog renders through the standard library so that Protean, httpx and
uvicorn records end up in the same handlers as ours.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_QUIET_LOGGERS = ("protean", "httpx", "httpcore", "asyncio", "urllib3")


def get_environment() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    """Get log level based on environment."""
    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }
    return os.getenv("LOG_LEVEL", level_map.get(get_environment(), "INFO"))


def setup_stdlib_logging(log_dir: str | None = None) -> None:
    log_level = get_log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    log_dir = log_dir or os.getenv("LOG_DIR")
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=path / "checkout.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_structlog() -> None:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # JSON lines in deployed environments, coloured console output locally
    if get_environment() in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(log_dir: str | None = None) -> None:
    """Configure all logging for the application."""
    setup_stdlib_logging(log_dir)
    setup_structlog()


def bind_order_context(**kwargs: Any) -> None:
    """Attach order identifiers to every log line emitted in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_order_context() -> None:
    structlog.contextvars.clear_contextvars()

"""Logging configuration for the shopping domain.

stdlib logging carries the output (console, plus rotating files unless
disabled); structlog formats it. Cart code logs with keyword context,
and the HTTP layer binds the caller's user id for the length of a request.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import structlog

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_NOISY_LOGGERS = ("urllib3", "asyncio", "protean", "httpx")


def current_environment() -> str:
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    """LOG_LEVEL wins; otherwise derived from the environment name."""
    return os.getenv("LOG_LEVEL", _LEVELS.get(current_environment(), "INFO"))


def _rotating(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(log_dir: str | None = None, log_file_prefix: str = "shopping") -> None:
    """Route stdlib logging to stdout and, outside tests, to rotating files.

    Set LOG_TO_FILE=0 to keep logs on the console only.
    """
    log_level = get_log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    to_file = os.getenv("LOG_TO_FILE", "0" if current_environment() == "test" else "1") != "0"
    if to_file:
        log_path = Path(log_dir or os.getenv("LOG_DIR", "logs"))
        log_path.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_rotating(log_path / f"{log_file_prefix}.log", log_level))
        root_logger.addHandler(_rotating(log_path / f"{log_file_prefix}_error.log", logging.ERROR))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_structlog() -> None:
    """JSON lines in production and staging, readable console output elsewhere."""
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

    if current_environment() in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(log_dir: str | None = None, log_file_prefix: str = "shopping") -> None:
    setup_stdlib_logging(log_dir=log_dir, log_file_prefix=log_file_prefix)
    setup_structlog()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**kwargs) -> None:
    """Attach request-scoped fields (user id, path) to every log line until cleared."""
    structlog.contextvars.bind_contextvars(**{k: v for k, v in kwargs.items() if v is not None})


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()

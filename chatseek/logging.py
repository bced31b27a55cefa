"""Structured logging and exception types for chatseek.

Every module gets its logger with ``logger = get_logger(__name__)`` and logs
with keyword context::

    logger.info("Fetched page", page=3, records=50)

``configure_logging`` is called once by the CLI. Library callers that never
configure logging get structlog's defaults.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from .paths import LOG_FILE


class ChatSeekError(Exception):
    """Error with a user-facing message, reported without a traceback."""


class ConfigurationError(ChatSeekError):
    """Required settings are missing or invalid."""


class TransportError(ChatSeekError):
    """A request to a remote API failed (HTTP error, network, bad payload)."""

    def __init__(
        self, message: str, *, status: int | None = None, url: str | None = None
    ):
        super().__init__(message)
        self.status = status
        self.url = url


_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)


def _close_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def configure_logging(verbose: bool = False, json_log: str | None = "auto") -> None:
    """Configure console and JSON logging.

    Args:
        verbose: Log DEBUG and up to stderr (default: WARNING and up)
        json_log: "auto" for the state-dir log file, "-" for stdout, any other
            value is a file path. None disables the JSON log.
    """
    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger("chatseek")
    _close_handlers(root)
    root.setLevel(logging.DEBUG)
    root.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_SHARED_PROCESSORS,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
        )
    )
    root.addHandler(console)

    if not json_log:
        return

    if json_log == "-":
        json_handler: logging.Handler = logging.StreamHandler(sys.stdout)
    else:
        path = LOG_FILE if json_log == "auto" else json_log
        try:
            if json_log == "auto":
                LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            json_handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as e:
            # Unwritable log location shouldn't break the command itself
            root.warning("Cannot open JSON log %s: %s", path, e)
            return

    json_handler.setLevel(logging.DEBUG)
    json_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_SHARED_PROCESSORS,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.dict_tracebacks,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    root.addHandler(json_handler)

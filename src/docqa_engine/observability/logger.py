"""structlog configuration and logger factory."""

from __future__ import annotations

import logging

import structlog

_configured = False


def setup_logging(level: str = "INFO", json: bool = False) -> None:
    """Configure structlog once per process.

    Console rendering is used for local runs; ``json=True`` emits one JSON
    object per event for log shipping.
    """
    global _configured
    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)


def is_configured() -> bool:
    return _configured

"""Structured logging for The Best Thing.

Services emit JSON lines so the HTTP layer can ship them as-is; the local
simulation and admin tooling use the console renderer instead. Voter
identity is bound per request with `vote_context` and merged into every
event logged while a vote is being recorded.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars
from structlog.processors import (
    JSONRenderer,
    StackInfoRenderer,
    TimeStamper,
    add_log_level,
    format_exc_info,
)

DEFAULT_LOG_LEVEL = os.getenv("BESTTHING_LOG_LEVEL", "INFO")


def configure_logging(cli_mode: bool = False, log_level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure structlog once at process start.

    Args:
        cli_mode: Render human-readable console output instead of JSON.
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    processors = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso"),
        StackInfoRenderer(),
        format_exc_info,
    ]

    if cli_mode:
        from structlog.dev import ConsoleRenderer
        renderer = ConsoleRenderer(colors=True)
    else:
        renderer = JSONRenderer()

    processors.append(renderer)

    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def vote_context(user_id: int | None = None, session_id: str | None = None) -> Iterator[None]:
    """Bind the voter to every event logged inside the block.

    Anonymous votes bind nothing, so their events carry no identity keys.
    """
    context = {
        key: value
        for key, value in (("user_id", user_id), ("session_id", session_id))
        if value is not None
    }
    with bound_contextvars(**context):
        yield


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Return a structlog logger, optionally named after the calling module."""
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()

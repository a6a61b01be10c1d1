"""
Structured logging configuration using structlog.

JSON lines in production, colored console output in development.
Request handlers bind ``request_id``; per-source work runs inside
``source_context`` so fetch, apply and event lines carry ``source_id``.
"""

import logging
import sys
from contextlib import contextmanager
from typing import IO, Iterator

import structlog
from structlog.types import Processor

from community_pulse.config.settings import Settings, get_settings
from community_pulse.observability.tracing import add_trace_context

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access", "hpack")


def _processors(settings: Settings) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.tracing_enabled:
        processors.append(add_trace_context)

    if settings.is_production:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def setup_logging(settings: Settings | None = None, stream: IO[str] | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        settings: Defaults to ``get_settings()``.
        stream: Log destination. The server logs to stdout; the CLI passes
            stderr so command output stays machine-readable.
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def source_context(source_id: str) -> Iterator[None]:
    """Bind ``source_id`` to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(source_id=source_id):
        yield


def bind_context(**kwargs) -> None:
    """Bind key-value pairs to all subsequent log lines in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()

"""
Structured logging for the relay.

Production emits one JSON object per line; development gets the colored
console renderer. Every structlog line emitted inside a poll pass carries
that pass's `pass_id`. Lower layers log through the stdlib `logging`
module and share the same stream and level.
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.types import Processor

from forum_relay.config.settings import get_settings

# Libraries whose INFO output is per-request noise
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "redis")


def setup_logging(log_level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and route stdlib logging through the same output.

    Args:
        log_level: Overrides settings.log_level
        json_logs: Overrides the production check for JSON rendering
    """
    settings = get_settings()
    level = log_level or settings.log_level
    as_json = settings.is_production if json_logs is None else json_logs

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if as_json:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
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
        level=getattr(logging, level),
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def new_pass_id() -> str:
    return uuid.uuid4().hex[:8]


@contextmanager
def pass_context(pass_id: str | None = None) -> Iterator[str]:
    """
    Tag every structlog line inside the block with a poll pass id.

    The previous context is restored on exit, so passes never leak their id
    into later log lines.

    Usage:
        with pass_context() as pass_id:
            await service.run_pass()
    """
    pass_id = pass_id or new_pass_id()
    with structlog.contextvars.bound_contextvars(pass_id=pass_id):
        yield pass_id

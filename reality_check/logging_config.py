"""structlog setup for the Reality Check service.

One JSON object per line (``LOG_PRETTY=1`` switches to the console renderer).
Records from stdlib loggers (uvicorn, aiohttp, redis, elasticsearch) are
rendered by the same formatter, so every line carries the bound request and
conversation ids.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

__all__ = [
    "configure_logging",
    "bind_request_context",
    "clear_request_context",
]

_configured = False


def _renderer():
    if os.getenv("LOG_PRETTY", "0").lower() in {"1", "true", "yes"}:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging(force: bool = False, stream: Optional[IO[str]] = None) -> None:
    """Install the logging pipeline; repeat calls are no-ops unless ``force``."""
    global _configured
    if _configured and not force:
        return

    context_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=context_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                _renderer(),
            ],
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *context_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def bind_request_context(
    request_id: Optional[str] = None,
    conversation_id: Optional[str] = None,
) -> None:
    """Attach ids to every log line emitted from the current context."""
    ids = {"request_id": request_id, "conversation_id": conversation_id}
    bound = {k: v for k, v in ids.items() if v}
    if bound:
        bind_contextvars(**bound)


def clear_request_context() -> None:
    clear_contextvars()

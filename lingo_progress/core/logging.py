"""Structured logging for the service.

Events go through structlog and end up on the stdlib root logger, so library
output (uvicorn, SQLAlchemy) and our own events share one stream.
"""

import logging
import sys
import uuid

import structlog

from lingo_progress.core.config import settings

# Libraries that log every statement or request at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "uvicorn.access")


def _renderer():
    if settings.LOG_FORMAT == "plain":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def setup_logging():
    level = getattr(logging, settings.LOG_LEVEL)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.dict_tracebacks,
            _renderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.contextvars.bind_contextvars(service=settings.SERVICE_NAME)


def request_context(method: str, path: str, request_id: str = None):
    """Context manager binding per-request fields to every event inside it."""
    return structlog.contextvars.bound_contextvars(
        request_id=request_id or uuid.uuid4().hex,
        method=method,
        path=path,
    )

"""structlog setup for the reader service.

Events are rendered as JSON lines by default; ``LOG_FORMAT=console``
switches to structlog's human-readable renderer for local runs. Values
bound with ``bind_request_context`` (e.g. the requested section) are
merged into every event emitted while handling that request.
"""

import logging

import structlog

from .config import settings


def _renderer():
    if settings.log_format.lower() == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    logging.basicConfig(level=settings.log_level.upper(), format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _renderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging()


def bind_request_context(**values) -> None:
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def get_logger(name: str | None = None):
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)

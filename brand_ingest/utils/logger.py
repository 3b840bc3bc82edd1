"""
Structured logging configuration.

Provides consistent logging across the application with JSON formatting, and
the observability port the pipeline emits its stage events through.
"""

import logging
import sys
from typing import Any, Optional, Protocol

import structlog
from structlog.types import Processor


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure application-wide structured logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Whether to output logs in JSON format.
        log_file: Optional file path for logging output.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )
    # Playwright and httpx are chatty at DEBUG
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.upper()))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger for the given module name.

    Args:
        name: Logger name, typically __name__.

    Returns:
        Configured structlog logger instance.
    """
    return structlog.get_logger(name)


class LogContext:
    """Context manager for adding temporary log context."""

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        self._token = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token:
            structlog.contextvars.unbind_contextvars(*self.context.keys())


# =============================================================================
# Observability Port
# =============================================================================

class EventSink(Protocol):
    """Receives structured pipeline events."""

    def emit(self, event: str, **fields: Any) -> None:
        ...


class StructlogEventSink:
    """
    Default sink forwarding events to structlog.

    Events whose name ends in ``_failed`` are logged at error level, skips at
    debug level and everything else at info level.
    """

    def __init__(self, logger: Optional[structlog.BoundLogger] = None):
        self._logger = logger or get_logger("brand_ingest.events")

    def emit(self, event: str, **fields: Any) -> None:
        if event.endswith("_failed"):
            self._logger.error(event, **fields)
        elif event.endswith("_skipped"):
            self._logger.debug(event, **fields)
        else:
            self._logger.info(event, **fields)


class RecordingEventSink:
    """In-memory sink for tests."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, dict(fields)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def find(self, event: str) -> list[dict[str, Any]]:
        return [fields for name, fields in self.events if name == event]

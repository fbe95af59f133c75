"""Structured logging and OpenTelemetry spans for protogen-core.

This module provides:
- configure_logging: structlog over stdlib logging, written to stderr so
  command output on stdout stays machine-readable
- span: an OpenTelemetry span around tool resolution, dependency resolution
  and unit compilation, mirrored as ``{name}_started/_completed/_failed`` events
- retry_logger: tenacity ``before_sleep`` hook for repository transfers
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span
    from tenacity import RetryCallState

TRACER_NAME = "protogen.core"

logger = structlog.get_logger(__name__)


def configure_logging(
    log_level: str = "INFO",
    *,
    json_format: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Configure structured logging for protogen.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        json_format: JSON lines with ISO timestamps if True, else a
            human-readable console format without timestamps.
        stream: Destination of log records. Defaults to stderr.

    Example:
        >>> configure_logging("DEBUG", json_format=False)
    """
    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=getattr(logging, log_level.upper()),
        force=True,
    )


@contextmanager
def span(name: str, *, attributes: dict[str, Any] | None = None) -> Iterator[Span]:
    """Run a block inside an OpenTelemetry span and log its outcome.

    Without an OpenTelemetry SDK the span is a no-op; the log events are
    emitted either way. A failing block is recorded on the span and logged
    as ``{name}_failed`` before the exception propagates.

    Args:
        name: Span and event name, e.g. "locate_tool" or "compile_unit".
        attributes: Span attributes, also bound to the log events.

    Example:
        >>> with span("locate_tool", attributes={"tool.version": "3.11.0"}):
        ...     locator.locate("3.11.0")
    """
    attrs = attributes or {}
    tracer = trace.get_tracer(TRACER_NAME)

    with tracer.start_as_current_span(name, attributes=attrs) as s:
        logger.debug(f"{name}_started", **attrs)
        try:
            yield s
        except Exception as exc:
            s.set_status(Status(StatusCode.ERROR, str(exc)))
            s.record_exception(exc)
            logger.error(f"{name}_failed", error=str(exc), **attrs)
            raise
        s.set_status(Status(StatusCode.OK))
        logger.info(f"{name}_completed", **attrs)


def retry_logger(url: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    """Build a tenacity ``before_sleep`` hook logging ``transfer_retry``.

    Args:
        url: URL being fetched.
        max_attempts: Attempts allowed for the URL.

    Returns:
        Callback invoked by tenacity before each backoff sleep.
    """

    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "transfer_retry",
            url=url,
            attempt=state.attempt_number,
            max_attempts=max_attempts,
            error=str(exc),
        )

    return before_sleep

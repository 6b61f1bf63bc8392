"""Structured logging and OpenTelemetry spans for tsgen.

This module provides:
- Structured logging setup via structlog
- shard_operation / partition_operation: spans carrying shard and catalog
  partition attributes, timed in the completion log event
- record_shard_result / log_shard_written: series and point counts on the
  active span and in the log
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer
    from structlog.stdlib import BoundLogger

# Module-level logger and tracer
_logger: BoundLogger | None = None
_tracer: Tracer | None = None

TRACER_NAME = "tsgen"

# Span attribute keys
ATTR_DATABASE = "tsgen.database"
ATTR_SHARD_ID = "tsgen.shard.id"
ATTR_SHARD_START = "tsgen.shard.start_time"
ATTR_SHARD_END = "tsgen.shard.end_time"
ATTR_PARTITION_ID = "tsgen.partition.id"
ATTR_SERIES_WRITTEN = "tsgen.series_written"
ATTR_POINTS_WRITTEN = "tsgen.points_written"


def get_logger() -> BoundLogger:
    """Get the tsgen logger, creating it on first use."""
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(TRACER_NAME)
    assert _logger is not None  # Type narrowing for mypy
    return _logger


def get_tracer() -> Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def configure_logging(
    *,
    log_level: str = "WARNING",
    json_format: bool = False,
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the tsgen CLI.

    Log lines go to stderr so they never interleave with the summary table
    and result lines printed on stdout.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        json_format: If True, render one JSON object per line.
        add_timestamp: If True, add an ISO timestamp to each entry.

    Example:
        >>> configure_logging(log_level="DEBUG", json_format=True)
    """
    level = getattr(logging, log_level.upper())
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@contextmanager
def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
    log_start: bool = True,
    log_end: bool = True,
) -> Iterator[Span]:
    """Create an OpenTelemetry span with structured logging.

    The completed and failed events carry ``elapsed_seconds``.

    Args:
        name: Span name (e.g., "shard_write", "partition_compact").
        kind: Span kind.
        attributes: Optional span attributes, also bound to the log events.
        log_start: If True, log span start at debug level.
        log_end: If True, log span completion.

    Yields:
        OpenTelemetry Span instance.
    """
    tracer = get_tracer()
    logger = get_logger()
    attrs = attributes or {}
    start = time.perf_counter()

    with tracer.start_as_current_span(name, kind=kind, attributes=attrs) as s:
        if log_start:
            logger.debug(f"{name}_started", **attrs)
        try:
            yield s
        except Exception as exc:
            s.set_status(Status(StatusCode.ERROR, str(exc)))
            s.record_exception(exc)
            logger.error(
                f"{name}_failed",
                error=str(exc),
                elapsed_seconds=round(time.perf_counter() - start, 3),
                **attrs,
            )
            raise
        s.set_status(Status(StatusCode.OK))
        if log_end:
            logger.info(
                f"{name}_completed",
                elapsed_seconds=round(time.perf_counter() - start, 3),
                **attrs,
            )


@contextmanager
def shard_operation(
    operation: str,
    *,
    shard_id: int,
    database: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    log_end: bool = True,
) -> Iterator[Span]:
    """Create a span for work on one shard.

    Args:
        operation: Operation name; the span is named ``shard_<operation>``.
        shard_id: Shard group ID.
        database: Database the shard belongs to.
        start_time: Start of the shard group window.
        end_time: End of the shard group window.
        log_end: If True, log span completion.

    Yields:
        OpenTelemetry Span instance.

    Example:
        >>> with shard_operation("write", shard_id=3, database="db") as s:
        ...     series, points = write_shard(3)
        ...     record_shard_result(s, series=series, points=points)
    """
    attrs: dict[str, Any] = {ATTR_SHARD_ID: shard_id}
    if database:
        attrs[ATTR_DATABASE] = database
    if start_time is not None:
        attrs[ATTR_SHARD_START] = start_time.isoformat()
    if end_time is not None:
        attrs[ATTR_SHARD_END] = end_time.isoformat()

    with span(f"shard_{operation}", attributes=attrs, log_end=log_end) as s:
        yield s


@contextmanager
def partition_operation(
    operation: str,
    *,
    partition_id: int,
    database: str | None = None,
) -> Iterator[Span]:
    """Create a span for work on one series catalog partition.

    Only failures are logged; a run compacts every partition.

    Example:
        >>> with partition_operation("compact", partition_id=5, database="db"):
        ...     partition.compact()
    """
    attrs: dict[str, Any] = {ATTR_PARTITION_ID: partition_id}
    if database:
        attrs[ATTR_DATABASE] = database

    with span(f"partition_{operation}", attributes=attrs, log_start=False, log_end=False) as s:
        yield s


def record_shard_result(s: Span, *, series: int, points: int) -> None:
    """Attach series and point counts to a shard span."""
    s.set_attribute(ATTR_SERIES_WRITTEN, series)
    s.set_attribute(ATTR_POINTS_WRITTEN, points)


def log_shard_written(
    shard_id: int,
    series: int,
    points: int,
    *,
    database: str | None = None,
) -> None:
    """Log a completed shard.

    Example:
        >>> log_shard_written(3, series=1000, points=100_000, database="db")
    """
    get_logger().info(
        "shard_written",
        shard_id=shard_id,
        database=database,
        series=series,
        points=points,
    )

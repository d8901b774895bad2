"""Structured logging for the rescan gate.

The webhook binds ``request_id``, ``repo`` and ``path`` into structlog's
context variables for the duration of one evaluation. ``merge_contextvars``
then stamps them onto every event logged underneath, Xray client errors
included, so one download can be followed through the logs by its ULID.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import Processor

# Keys bound per webhook call; unbound again when the call ends
DOWNLOAD_CONTEXT_KEYS = ("request_id", "repo", "path")

# Evaluations slower than this are logged at warning level
SLOW_EVALUATION_MS = 1000.0


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines when True, coloured console output otherwise.
    """
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "rescan_gate") -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to *name*."""
    return structlog.get_logger(name)


@contextmanager
def timed_evaluation(
    logger: Any, slow_threshold_ms: float = SLOW_EVALUATION_MS
) -> Iterator[dict[str, Any]]:
    """Time one download evaluation and log how it ended.

    Yields a dict the caller fills with outcome fields (``status``); they are
    logged next to ``duration_ms`` when the block exits. An exception escaping
    the block is logged and re-raised.
    """
    outcome: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield outcome
    except Exception as exc:
        logger.error(
            "Download evaluation failed",
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            error=str(exc),
            error_type=type(exc).__name__,
        )
        raise

    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    if duration_ms > slow_threshold_ms:
        logger.warning("Slow download evaluation", duration_ms=duration_ms, **outcome)
    else:
        logger.debug("Download evaluation completed", duration_ms=duration_ms, **outcome)


# Sensible defaults until main.py reconfigures from the environment
configure_logging()

"""
Structured logging (structlog) plus lightweight monitoring hooks.

Events are snake_case names with keyword fields, e.g.
``logger.info("transaction_labeled", transaction_id=..., label="Rent")``.
Counters live in-process until a Prometheus/OTEL exporter replaces them.
"""

import inspect
import logging
import sys
import time
from collections import Counter
from functools import wraps
from typing import Any, Callable

import structlog
from structlog.types import EventDict, Processor

from labeler.core.config import settings


def _app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("version", settings.app_version)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def configure_logging() -> None:
    """
    Configure structlog once per process

    JSON lines when ``LOG_JSON`` is set, colored console output otherwise.
    Output goes to stderr because the MCP stdio transport owns stdout.
    """
    level = logging.getLevelName(settings.log_level)
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _app_context,
    ]
    if settings.log_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


_COUNTERS: Counter = Counter()


def _counter_key(name: str, labels: dict[str, Any]) -> tuple:
    return (name, tuple(sorted(labels.items())))


def metrics_counter(name: str, **labels: Any) -> None:
    """Increment counter ``name`` for this label set."""
    _COUNTERS[_counter_key(name, labels)] += 1


def get_metric(name: str, **labels: Any) -> int:
    """Current value of a counter; 0 when never incremented."""
    return _COUNTERS[_counter_key(name, labels)]


def _log_latency(func: Callable, operation: str, started: float) -> None:
    get_logger(func.__module__).info(
        "latency",
        operation=operation,
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
    )


def measure_latency(operation: str):
    """Log wall-clock latency of a sync or async callable, failures included."""

    def decorator(func):
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _log_latency(func, operation, started)

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _log_latency(func, operation, started)

        return sync_wrapper

    return decorator


def log_provider_call(
    *,
    operation: str,
    provider: str,
    latency_ms: float,
    dimension: int | None = None,
    error: str | None = None,
) -> None:
    """One log line per embedding provider request."""
    get_logger("labeler.embedding").info(
        "embedding_provider_call",
        operation=operation,
        provider=provider,
        latency_ms=round(latency_ms, 2),
        dimension=dimension,
        error=error,
    )

"""Observability package for logging and metrics."""

from pastcare_core.observability.logging import (
    StructuredLogger,
    JsonFormatter,
    RequestContext,
    get_logger,
    configure_logging,
)
from pastcare_core.observability.metrics import (
    MetricsCollector,
    get_collector,
)

__all__ = [
    "StructuredLogger",
    "JsonFormatter",
    "RequestContext",
    "get_logger",
    "configure_logging",
    "MetricsCollector",
    "get_collector",
]

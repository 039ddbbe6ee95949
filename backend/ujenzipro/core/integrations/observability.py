"""
Observability hooks.
Exceptions are logged with context and counted per type so the health
endpoint can surface them; an OTLP exporter can be attached here later.
"""

from collections import Counter
from typing import Dict, Optional
import logging

from ujenzipro.core.config import settings

logger = logging.getLogger(__name__)

_exception_counts: Counter = Counter()


def setup_observability() -> None:
    """Initialize the observability hooks for this process."""
    _exception_counts.clear()
    logger.info(
        "Setting up observability",
        extra={
            "otel_endpoint": settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            "service_name": settings.OTEL_SERVICE_NAME,
        },
    )


def record_exception(exc: Exception, path: Optional[str] = None) -> None:
    """
    Record an exception in the observability backend.

    Args:
        exc: The exception that occurred
        path: Request path or component name where it surfaced
    """
    _exception_counts[type(exc).__name__] += 1
    logger.error(
        f"Exception recorded: {type(exc).__name__}",
        extra={
            "exception_message": str(exc),
            "path": path,
        },
    )


def exception_counts() -> Dict[str, int]:
    """Snapshot of recorded exceptions by type."""
    return dict(_exception_counts)

"""Observability helpers."""

from session_summary.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_session_usage,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_session_usage",
]

"""Observability helpers."""

from sectorboard.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_refetch,
    record_mutation,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_refetch",
    "record_mutation",
]

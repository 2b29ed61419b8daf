"""Observability helpers."""

from harvester.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_enrichment_failure,
    record_refresh,
    record_rows,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_enrichment_failure",
    "record_refresh",
    "record_rows",
]

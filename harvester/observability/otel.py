"""OpenTelemetry + Prometheus fallback wiring for the metadata harvester."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from harvester import config

logger = logging.getLogger("harvester.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_refresh_counter: Any | None = None
_refresh_latency_hist: Any | None = None
_rows_counter: Any | None = None
_enrichment_failure_counter: Any | None = None

_prom_enabled = False
_prom_refresh_counter: Any | None = None
_prom_refresh_latency_hist: Any | None = None
_prom_rows_counter: Any | None = None
_prom_enrichment_failure_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str) -> str:
    return (value or "").strip() or "unknown"


def _start_prometheus() -> None:
    global _prom_enabled
    global _prom_refresh_counter, _prom_refresh_latency_hist, _prom_rows_counter, _prom_enrichment_failure_counter
    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom_refresh_counter = Counter(
            "harvester_refresh_runs_total",
            "Count of harvest refresh runs",
            ["result"],
        )
        _prom_refresh_latency_hist = Histogram(
            "harvester_refresh_duration_ms",
            "Duration of harvest refresh runs",
            ["result"],
        )
        _prom_rows_counter = Counter(
            "harvester_rows_total",
            "Rows inserted or skipped by the upsert gate",
            ["table", "outcome"],
        )
        _prom_enrichment_failure_counter = Counter(
            "harvester_enrichment_failures_total",
            "Recoverable enrichment lookup failures",
            ["operation"],
        )
        _prom_enabled = True
        logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _refresh_counter, _refresh_latency_hist, _rows_counter, _enrichment_failure_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (HARVESTER_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    service_name = config.OTEL_SERVICE_NAME or "metadata-harvester"
    resource = Resource.create({"service.name": service_name, "service.namespace": "harvester"})

    trace_provider = TracerProvider(resource=resource)
    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=metrics_endpoint or None))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("harvester")

    _refresh_counter = meter.create_counter(
        "harvester_refresh_runs_total",
        unit="1",
        description="Count of harvest refresh runs",
    )
    _refresh_latency_hist = meter.create_histogram(
        "harvester_refresh_duration_ms",
        unit="ms",
        description="Duration of harvest refresh runs",
    )
    _rows_counter = meter.create_counter(
        "harvester_rows_total",
        unit="1",
        description="Rows inserted or skipped by the upsert gate",
    )
    _enrichment_failure_counter = meter.create_counter(
        "harvester_enrichment_failures_total",
        unit="1",
        description="Recoverable enrichment lookup failures",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("harvester")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:
        logger.debug("FastAPI uninstrumentation failed", exc_info=True)
    for provider in (_meter_provider, _trace_provider):
        try:
            if provider is not None:
                provider.shutdown()
        except Exception:
            logger.debug("Telemetry provider shutdown failed", exc_info=True)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_refresh(result: str, duration_ms: float) -> None:
    labels = {"result": _label(result)}
    duration = max(0.0, float(duration_ms))
    if _enabled and _refresh_counter is not None:
        _refresh_counter.add(1, labels)
    if _enabled and _refresh_latency_hist is not None:
        _refresh_latency_hist.record(duration, labels)
    if _prom_enabled and _prom_refresh_counter is not None:
        _prom_refresh_counter.labels(**labels).inc()
    if _prom_enabled and _prom_refresh_latency_hist is not None:
        _prom_refresh_latency_hist.labels(**labels).observe(duration)


def record_rows(table: str, outcome: str, count: int = 1) -> None:
    safe_count = max(0, int(count))
    if safe_count == 0:
        return
    labels = {"table": _label(table), "outcome": _label(outcome)}
    if _enabled and _rows_counter is not None:
        _rows_counter.add(safe_count, labels)
    if _prom_enabled and _prom_rows_counter is not None:
        _prom_rows_counter.labels(**labels).inc(safe_count)


def record_enrichment_failure(operation: str) -> None:
    labels = {"operation": _label(operation)}
    if _enabled and _enrichment_failure_counter is not None:
        _enrichment_failure_counter.add(1, labels)
    if _prom_enabled and _prom_enrichment_failure_counter is not None:
        _prom_enrichment_failure_counter.labels(**labels).inc()

"""OpenTelemetry + Prometheus fallback wiring for SectorBoard."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from sectorboard import config

logger = logging.getLogger("sectorboard.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_refetch_counter: Any | None = None
_refetch_latency_hist: Any | None = None
_mutation_counter: Any | None = None

_prom_enabled = False
_prom_refetch_counter: Any | None = None
_prom_refetch_latency_hist: Any | None = None
_prom_mutation_counter: Any | None = None


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


def _prom_labels(*, sector_id: str, **extra: str) -> dict[str, str]:
    labels = {"sector": sector_id or "unknown"}
    for key, value in extra.items():
        labels[key] = (value or "").strip() or "unknown"
    return labels


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _refetch_counter, _refetch_latency_hist, _mutation_counter
    global _prom_enabled, _prom_refetch_counter, _prom_refetch_latency_hist, _prom_mutation_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (SECTORBOARD_OTEL_ENABLED=false)")
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

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "sectorboard"

    resource = Resource.create({"service.name": service_name, "service.namespace": "sectorboard"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=metrics_endpoint or None))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("sectorboard")

    _refetch_counter = meter.create_counter(
        "sectorboard_refetch_total",
        unit="1",
        description="Entity refetches by outcome",
    )
    _refetch_latency_hist = meter.create_histogram(
        "sectorboard_refetch_latency_ms",
        unit="ms",
        description="Latency of entity refetch queries",
    )
    _mutation_counter = meter.create_counter(
        "sectorboard_mutations_total",
        unit="1",
        description="Entity mutations by action and outcome",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("sectorboard")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_refetch_counter = Counter(
                "sectorboard_refetch_total",
                "Entity refetches by outcome",
                ["entity", "result", "sector"],
            )
            _prom_refetch_latency_hist = Histogram(
                "sectorboard_refetch_latency_ms",
                "Latency of entity refetch queries",
                ["entity", "result", "sector"],
            )
            _prom_mutation_counter = Counter(
                "sectorboard_mutations_total",
                "Entity mutations by action and outcome",
                ["entity", "action", "result", "sector"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    steps = (
        ("fastapi instrumentation", (lambda: _fastapi_instrumentor.uninstrument_app(app)) if app and _fastapi_instrumentor else None),
        ("meter provider", _meter_provider.shutdown if _meter_provider is not None else None),
        ("trace provider", _trace_provider.shutdown if _trace_provider is not None else None),
    )
    for label, step in steps:
        if step is None:
            continue
        try:
            step()
        except Exception as exc:
            logger.warning("Failed to shut down %s: %s", label, exc)
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


def record_refetch(entity: str, result: str, duration_ms: float, *, sector_id: str) -> None:
    labels = {
        "entity": entity or "unknown",
        "result": result or "unknown",
        "sector_id": sector_id or "unknown",
    }
    if _enabled and _refetch_counter is not None:
        _refetch_counter.add(1, labels)
    if _enabled and _refetch_latency_hist is not None:
        _refetch_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_refetch_counter is not None:
        prom = _prom_labels(sector_id=sector_id, entity=entity, result=result)
        _prom_refetch_counter.labels(**prom).inc()
    if _prom_enabled and _prom_refetch_latency_hist is not None:
        prom = _prom_labels(sector_id=sector_id, entity=entity, result=result)
        _prom_refetch_latency_hist.labels(**prom).observe(max(0.0, float(duration_ms)))


def record_mutation(entity: str, action: str, result: str, *, sector_id: str) -> None:
    labels = {
        "entity": entity or "unknown",
        "action": action or "unknown",
        "result": result or "unknown",
        "sector_id": sector_id or "unknown",
    }
    if _enabled and _mutation_counter is not None:
        _mutation_counter.add(1, labels)
    if _prom_enabled and _prom_mutation_counter is not None:
        prom = _prom_labels(sector_id=sector_id, entity=entity, action=action, result=result)
        _prom_mutation_counter.labels(**prom).inc()

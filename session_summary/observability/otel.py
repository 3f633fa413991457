"""OpenTelemetry wiring for session-summary runs."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from session_summary import config

logger = logging.getLogger("session_summary.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None

_sessions_counter: Any | None = None
_tool_calls_counter: Any | None = None
_tokens_counter: Any | None = None
_cost_counter: Any | None = None


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


def initialize() -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider
    global _sessions_counter, _tool_calls_counter, _tokens_counter, _cost_counter

    if _initialized:
        return
    _initialized = True

    if not config.OTEL_ENABLED:
        logger.debug("OpenTelemetry disabled (SESSION_SUMMARY_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
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
    service_name = config.OTEL_SERVICE_NAME or "session-summary"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "session-summary",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("session_summary")

    _sessions_counter = meter.create_counter(
        "session_summary_sessions_total",
        unit="1",
        description="Session-end reports produced, by exit reason",
    )
    _tool_calls_counter = meter.create_counter(
        "session_summary_tool_calls_total",
        unit="1",
        description="Tool call outcomes observed in session transcripts",
    )
    _tokens_counter = meter.create_counter(
        "session_summary_tokens_total",
        unit="1",
        description="Token totals by model and direction",
    )
    _cost_counter = meter.create_counter(
        "session_summary_cost_usd_total",
        unit="usd",
        description="Estimated session cost",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("session_summary")
    _enabled = True
    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown() -> None:
    """Flush and stop providers; a one-shot process must flush before exiting."""
    global _enabled
    if not _initialized:
        return
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
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


def record_session_usage(
    *,
    exit_reason: str,
    tools: dict[str, int],
    tool_errors: int,
    models: dict[str, tuple[int, int]],
    cost_usd: float,
) -> None:
    """Export one session's totals; ``models`` maps model -> (input, output) tokens."""
    if not _enabled:
        return
    reason = exit_reason or "unknown"
    if _sessions_counter is not None:
        _sessions_counter.add(1, {"exit_reason": reason})
    if _tool_calls_counter is not None:
        for tool, count in tools.items():
            if count > 0:
                _tool_calls_counter.add(count, {"tool": tool or "unknown"})
        if tool_errors > 0:
            _tool_calls_counter.add(tool_errors, {"tool": "all", "status": "error"})
    if _tokens_counter is not None:
        for model, (token_input, token_output) in models.items():
            label = (model or "unknown").strip() or "unknown"
            if token_input > 0:
                _tokens_counter.add(token_input, {"model": label, "direction": "input"})
            if token_output > 0:
                _tokens_counter.add(token_output, {"model": label, "direction": "output"})
    if _cost_counter is not None and cost_usd > 0:
        _cost_counter.add(float(cost_usd), {"exit_reason": reason})

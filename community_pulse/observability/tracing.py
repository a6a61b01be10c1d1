"""
OpenTelemetry tracing for fetch cycles, inbound events and HTTP requests.

Span layout:

    refresh.cycle            one per fetch cycle (trigger, sources)
      refresh.source         one per registry entry (source_id, outcome)
    inbound.event            one per applied event (source_id, event_type)
    GET /sources ...         one per HTTP request, from the API middleware

Tracing is off unless ``setup_tracing()`` ran; until then ``get_tracer``
hands out no-op tracers and the helpers below cost next to nothing.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Span, StatusCode, Tracer

logger = logging.getLogger(__name__)

_provider: TracerProvider | None = None


def setup_tracing(
    service_name: str,
    otlp_endpoint: str | None = None,
    *,
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """
    Install the global TracerProvider.

    Spans go to an OTLP gRPC collector in batches. A custom ``exporter``
    (tests use InMemorySpanExporter) is fed synchronously instead.
    """
    global _provider

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if exporter is None:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        endpoint = otlp_endpoint or "http://localhost:4317"
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )
    else:
        endpoint = "(custom exporter)"
        provider.add_span_processor(SimpleSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _provider = provider
    logger.info("Tracing enabled: service=%s endpoint=%s", service_name, endpoint)
    return provider


def shutdown_tracing() -> None:
    """Flush pending spans. Safe to call when tracing was never set up."""
    if _provider is not None:
        _provider.force_flush()


def get_tracer(name: str) -> Tracer:
    return trace.get_tracer(name)


def is_tracing_enabled() -> bool:
    return _provider is not None


def annotate(span: Span, **attributes: Any) -> None:
    """Set span attributes, skipping None values (OTel rejects them)."""
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


@contextmanager
def traced(
    tracer: Tracer,
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Run a block inside a span; an escaping exception marks the span failed."""
    with tracer.start_as_current_span(name, record_exception=False) as span:
        annotate(span, **(attributes or {}))
        try:
            yield span
        except Exception as exc:
            span.set_status(StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise


def current_trace_id() -> str | None:
    """Hex trace id of the active span, or None outside a recorded span."""
    ctx = trace.get_current_span().get_span_context()
    if not ctx.is_valid:
        return None
    return f"{ctx.trace_id:032x}"


def add_trace_context(
    logger_: Any, method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor: stamp trace_id/span_id of the active span on each line."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = f"{ctx.trace_id:032x}"
        event_dict["span_id"] = f"{ctx.span_id:016x}"
    return event_dict

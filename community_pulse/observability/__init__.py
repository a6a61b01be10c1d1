"""Observability layer - logging, metrics, and tracing."""

from community_pulse.observability.logging import setup_logging
from community_pulse.observability.metrics import MetricsCollector, get_metrics
from community_pulse.observability.tracing import get_tracer, setup_tracing

__all__ = ["setup_logging", "MetricsCollector", "get_metrics", "setup_tracing", "get_tracer"]

"""
Prometheus metrics for monitoring the snapshot pipeline.

Defines and exposes metrics for:
- Fetch cycles and per-source fetch latency
- Resolution/fetch errors per source
- Cache size and health scores
- WebSocket subscribers and pushed events
- Inbound provider events

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from community_pulse.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for community-pulse.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_fetch_error("EX_HITMEN", "FetchError")
        metrics.set_health_score("EX_HITMEN", 72)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Cycles
        self.fetch_cycles = Counter(
            "community_pulse_fetch_cycles_total",
            "Total number of completed fetch cycles",
            ["trigger"],  # scheduler, manual, event
        )

        self.cycle_latency = Histogram(
            "community_pulse_cycle_latency_seconds",
            "Time to run one fetch cycle across all sources",
            buckets=LATENCY_BUCKETS,
        )

        self.fetch_latency = Histogram(
            "community_pulse_fetch_latency_seconds",
            "Time to fetch one source snapshot",
            ["source_id"],
            buckets=LATENCY_BUCKETS,
        )

        # Errors
        self.fetch_errors = Counter(
            "community_pulse_fetch_errors_total",
            "Total per-source resolution and fetch errors",
            ["source_id", "error_type"],
        )

        # Cache
        self.cache_size = Gauge(
            "community_pulse_cache_size",
            "Number of sources held in the snapshot cache",
        )

        self.health_score = Gauge(
            "community_pulse_health_score",
            "Latest overall health score per source",
            ["source_id"],
        )

        # Push channel
        self.ws_connections = Gauge(
            "community_pulse_ws_connections",
            "Number of connected WebSocket subscribers",
        )

        self.events_pushed = Counter(
            "community_pulse_events_pushed_total",
            "Total messages delivered to subscribers",
            ["topic"],
        )

        # Inbound
        self.inbound_events = Counter(
            "community_pulse_inbound_events_total",
            "Total inbound provider events applied",
            ["event_type"],
        )

        self.upstream_connected = Gauge(
            "community_pulse_upstream_connected",
            "Upstream provider status (1=connected, 0=disconnected)",
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_cycle(self, trigger: str, latency: float) -> None:
        self.fetch_cycles.labels(trigger=trigger).inc()
        self.cycle_latency.observe(latency)

    def record_fetch_latency(self, source_id: str, latency: float) -> None:
        self.fetch_latency.labels(source_id=source_id).observe(latency)

    def record_fetch_error(self, source_id: str, error_type: str) -> None:
        self.fetch_errors.labels(source_id=source_id, error_type=error_type).inc()

    def set_cache_size(self, size: int) -> None:
        self.cache_size.set(size)

    def set_health_score(self, source_id: str, score: int) -> None:
        self.health_score.labels(source_id=source_id).set(score)

    def set_ws_connections(self, count: int) -> None:
        self.ws_connections.set(count)

    def record_broadcast(self, topic: str, delivered: int) -> None:
        if delivered:
            self.events_pushed.labels(topic=topic).inc(delivered)

    def record_inbound_event(self, event_type: str) -> None:
        self.inbound_events.labels(event_type=event_type).inc()

    def set_upstream_connected(self, connected: bool) -> None:
        self.upstream_connected.set(1 if connected else 0)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics

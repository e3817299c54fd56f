"""
Prometheus metrics collection.

Keeps simple in-memory counters and lets Prometheus handle storage.
Each collector owns its registry so several app instances (tests) can
coexist in one process.
"""

import time
from typing import Optional

import structlog
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from .. import __version__

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """Centralized metrics collection for the audit relay."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()

        # Service info
        self.service_info = Info(
            "auditrelay_service",
            "Audit relay service information",
            registry=self.registry,
        )
        self.service_info.info({
            "version": __version__,
            "service": "auditrelay",
        })

        # Ingestion metrics
        self.ingest_requests_total = Counter(
            "ingest_requests_total",
            "Audit log callback requests by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.audit_logs_received_total = Counter(
            "audit_logs_received_total",
            "Total audit log records accepted into the queue",
            registry=self.registry,
        )

        self.batch_size_records = Histogram(
            "ingest_batch_size_records",
            "Number of records per accepted batch",
            buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000],
            registry=self.registry,
        )

        # Delivery metrics
        self.deliveries_total = Counter(
            "deliveries_total",
            "Delivery attempts to Slack by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.delivery_duration = Histogram(
            "delivery_duration_seconds",
            "Duration of a single delivery attempt in seconds",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        self.queue_depth = Gauge(
            "queue_depth",
            "Records waiting for delivery",
            registry=self.registry,
        )

        self.uptime_seconds = Gauge(
            "uptime_seconds",
            "Service uptime in seconds",
            registry=self.registry,
        )

        self._start_time = time.time()

    def record_ingest_request(self, outcome: str) -> None:
        """Record one callback request (accepted, empty, unauthorized, misconfigured)."""
        self.ingest_requests_total.labels(outcome=outcome).inc()

    def record_ingestion(self, records_count: int, queue_size: int) -> None:
        """Record records accepted into the queue."""
        self.audit_logs_received_total.inc(records_count)
        self.batch_size_records.observe(records_count)
        self.queue_depth.set(queue_size)

    def record_delivery(self, success: bool, duration_seconds: float, queue_size: int) -> None:
        """Record one delivery attempt."""
        outcome = "success" if success else "failure"
        self.deliveries_total.labels(outcome=outcome).inc()
        self.delivery_duration.observe(duration_seconds)
        self.queue_depth.set(queue_size)

    def render(self) -> bytes:
        """Render the registry in Prometheus text format."""
        self.uptime_seconds.set(time.time() - self._start_time)
        return generate_latest(self.registry)

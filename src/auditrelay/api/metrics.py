"""
Prometheus metrics endpoint.

Exposes metrics in Prometheus text format for scraping.
"""

import structlog
from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="""
    Prometheus metrics endpoint in standard text format.

    **Key Metrics:**
    - ingest_requests_total{outcome} - Callback requests by outcome
    - audit_logs_received_total - Records accepted into the queue
    - deliveries_total{outcome} - Slack delivery attempts
    - delivery_duration_seconds - Delivery latency histogram
    - queue_depth - Records waiting for delivery
    """,
)
async def get_metrics(request: Request) -> Response:
    """Return metrics in Prometheus text format."""
    metrics_collector = getattr(request.app.state, "metrics", None)

    if not metrics_collector:
        logger.warning("Metrics collector not initialized")
        return Response(
            content="# Metrics collector not initialized\n",
            media_type=CONTENT_TYPE_LATEST,
        )

    queue = getattr(request.app.state, "queue", None)
    if queue is not None:
        metrics_collector.queue_depth.set(len(queue))

    metrics_data = metrics_collector.render()
    logger.debug("Metrics scraped successfully", size_bytes=len(metrics_data))

    return Response(
        content=metrics_data,
        media_type=CONTENT_TYPE_LATEST,
    )

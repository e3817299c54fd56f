"""
Main FastAPI application entry point.

This module sets up the FastAPI app with routes, exception handlers and
the lifespan that owns the queue and the drip dispatcher.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .api import audit_router, healthz_router, metrics_router
from .config import Settings, get_settings
from .core.channel import DeliveryChannel, SlackChannel
from .core.dispatcher import DripDispatcher
from .core.exceptions import AuditRelayException
from .core.gateway import IngestGateway
from .core.health import HealthChecker
from .core.metrics import MetricsCollector
from .core.queue import OrderedQueue


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    # aiohttp access noise
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_lifespan_handler(settings: Settings, channel: Optional[DeliveryChannel] = None) -> Any:
    """Create a lifespan handler with access to settings."""
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        FastAPI lifespan context manager.

        Builds the shared queue, wires the gateway and dispatcher to it and
        runs the dispatcher for the lifetime of the app.
        """
        logger = structlog.get_logger(__name__)
        logger.info("Starting audit relay", version=app.version)

        metrics_collector = MetricsCollector()
        app.state.metrics = metrics_collector

        queue = OrderedQueue()
        app.state.queue = queue

        app.state.gateway = IngestGateway(
            queue=queue,
            security_token=settings.salesforce.security_token,
            metrics=metrics_collector,
        )

        if not settings.salesforce.is_configured:
            logger.error("CRITICAL: SALESFORCE_SECURITY_TOKEN is not set. All callbacks will fail.")

        delivery_channel = channel or SlackChannel(
            settings.slack,
            timeout_seconds=settings.dispatcher.delivery_timeout_seconds,
        )
        dispatcher = DripDispatcher(
            queue=queue,
            channel=delivery_channel,
            interval_seconds=settings.dispatcher.throttle_delay_seconds,
            delivery_timeout_seconds=settings.dispatcher.delivery_timeout_seconds,
            metrics=metrics_collector,
        )
        app.state.dispatcher = dispatcher
        app.state.health_checker = HealthChecker(settings, dispatcher)

        if settings.dispatcher.enabled:
            await dispatcher.start()
        else:
            logger.warning("Drip dispatcher disabled; records will stay queued")

        try:
            logger.info("Audit relay started", port=settings.port)
            yield
        finally:
            logger.info("Shutting down audit relay")
            await dispatcher.stop()
            remaining = len(queue)
            if remaining:
                logger.warning("Discarding undelivered records on shutdown", queue_size=remaining)
            logger.info("Audit relay shutdown complete")

    return lifespan


async def audit_relay_exception_handler(request: Request, exc: AuditRelayException) -> JSONResponse:
    """Handle custom audit relay exceptions."""
    logger = structlog.get_logger(__name__)
    logger.error(
        "Request rejected",
        error=str(exc),
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": str(exc),
            "details": exc.details,
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = structlog.get_logger(__name__)
    logger.error(
        "Unexpected exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )


def create_app(
    settings: Optional[Settings] = None,
    channel: Optional[DeliveryChannel] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings
        channel: Delivery channel to use instead of Slack
    """
    settings = settings or get_settings()

    configure_logging(settings.log_level)

    app = FastAPI(
        title="Audit Relay",
        description="Salesforce audit log → Slack drip relay",
        version=__version__,
        lifespan=create_lifespan_handler(settings, channel),
    )

    app.add_exception_handler(AuditRelayException, audit_relay_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(audit_router, tags=["audit"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(healthz_router, tags=["health"])

    @app.get("/", include_in_schema=False)
    async def root() -> Dict[str, str]:
        """Root endpoint with service information."""
        return {
            "service": "Audit Relay",
            "version": app.version,
            "description": "Salesforce audit log → Slack drip relay",
            "docs": "/docs",
        }

    return app


def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "auditrelay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


# Create the app instance
app = create_app()


if __name__ == "__main__":
    run()

"""
Health checker for the relay's dependencies.

Checks:
- Dispatcher running
- Required configuration present
- Delivery not stuck failing
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, List

import structlog

from ..config import Settings
from .dispatcher import DripDispatcher

logger = structlog.get_logger(__name__)


@dataclass
class HealthCheck:
    """Individual health check result."""
    name: str
    status: str  # "healthy", "unhealthy"
    message: str
    details: Dict[str, Any]
    last_check: float


@dataclass
class HealthStatus:
    """Overall health status."""
    is_healthy: bool
    checks: Dict[str, HealthCheck]
    failed_checks: List[str]
    queue_size: int
    timestamp: float


class HealthChecker:
    """Readiness checks backing /readyz."""

    def __init__(self, settings: Settings, dispatcher: DripDispatcher):
        self.settings = settings
        self.dispatcher = dispatcher

    def check_all(self) -> HealthStatus:
        """Perform all health checks and return overall status."""
        results = [
            self._check_dispatcher(),
            self._check_configuration(),
            self._check_delivery(),
        ]

        checks = {check.name: check for check in results}
        failed_checks = [check.name for check in results if check.status != "healthy"]

        if failed_checks:
            logger.debug("Readiness checks failed", failed_checks=failed_checks)

        return HealthStatus(
            is_healthy=not failed_checks,
            checks=checks,
            failed_checks=failed_checks,
            queue_size=len(self.dispatcher.queue),
            timestamp=time.time(),
        )

    def _check_dispatcher(self) -> HealthCheck:
        running = self.dispatcher.is_running
        return HealthCheck(
            name="dispatcher",
            status="healthy" if running else "unhealthy",
            message="Dispatcher running" if running else "Dispatcher not running",
            details={"state": self.dispatcher.state.value},
            last_check=time.time(),
        )

    def _check_configuration(self) -> HealthCheck:
        missing = []
        if not self.settings.salesforce.is_configured:
            missing.append("SALESFORCE_SECURITY_TOKEN")
        if not self.settings.slack.is_configured:
            missing.append("SLACK_WEBHOOK_URL")

        return HealthCheck(
            name="configuration",
            status="unhealthy" if missing else "healthy",
            message=f"Missing settings: {', '.join(missing)}" if missing else "Configuration complete",
            details={"missing": missing},
            last_check=time.time(),
        )

    def _check_delivery(self) -> HealthCheck:
        threshold = self.settings.dispatcher.unhealthy_after_failures
        failures = self.dispatcher.consecutive_failures
        healthy = failures < threshold

        return HealthCheck(
            name="delivery",
            status="healthy" if healthy else "unhealthy",
            message=(
                "Deliveries succeeding" if healthy
                else f"{failures} consecutive delivery failures"
            ),
            details={
                "consecutive_failures": failures,
                "threshold": threshold,
                "delivered_total": self.dispatcher.delivered_total,
                "failed_total": self.dispatcher.failed_total,
                "last_error": self.dispatcher.last_error,
                "last_success_at": self.dispatcher.last_success_at,
            },
            last_check=time.time(),
        )

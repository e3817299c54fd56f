"""
Ingest gateway for the Salesforce audit-log callback.

Orchestrates:
1. Shared secret presence check
2. Token check
3. Payload check
4. Reordering to oldest-first and enqueueing

The gateway returns as soon as the batch is queued; delivery happens
later in the dispatcher.
"""

import hmac
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from .exceptions import AuthenticationError, ConfigurationError
from .metrics import MetricsCollector
from .queue import OrderedQueue

logger = structlog.get_logger(__name__)

NO_LOGS_MESSAGE = "Accepted. No logs to process."


@dataclass
class IngestOutcome:
    """Result of ingesting one callback payload."""
    count: int
    queue_size: int
    message: str


def _mask_token(token: str) -> str:
    return token[:4] + "..." if len(token) > 4 else "***"


class IngestGateway:
    """
    Validates a callback payload and appends its records to the queue.

    Salesforce sends records newest first; the queue holds them oldest
    first so Slack receives them in chronological order.
    """

    def __init__(
        self,
        queue: OrderedQueue,
        security_token: Optional[str],
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.queue = queue
        self.security_token = security_token
        self.metrics = metrics

    def _record(self, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_ingest_request(outcome)

    def authenticate(self, token: Optional[str]) -> None:
        """
        Check the callback token against the configured shared secret.

        Raises ConfigurationError if no secret is configured and
        AuthenticationError if the token is missing or wrong.
        """
        if not self.security_token:
            logger.error("CRITICAL: SALESFORCE_SECURITY_TOKEN is not set.")
            self._record("misconfigured")
            raise ConfigurationError(setting="SALESFORCE_SECURITY_TOKEN")

        if not isinstance(token, str) or not token:
            logger.warning("Missing token received. Rejecting request.")
            self._record("unauthorized")
            raise AuthenticationError()

        # surrogatepass: JSON allows lone surrogate escapes in strings
        if not hmac.compare_digest(
            token.encode("utf-8", "surrogatepass"),
            self.security_token.encode("utf-8", "surrogatepass"),
        ):
            logger.warning("Invalid token received. Rejecting request.", token=_mask_token(token))
            self._record("unauthorized")
            raise AuthenticationError()

    def ingest(self, token: Optional[str], logs: Any) -> IngestOutcome:
        """
        Authenticate and enqueue a batch of audit records.

        Args:
            token: Shared secret sent by the caller
            logs: Records as received, newest first

        Returns:
            IngestOutcome with the number of records queued
        """
        self.authenticate(token)

        records = self._normalize(logs)
        if not records:
            logger.info("Received valid token but no logs. Payload was empty.")
            self._record("empty")
            return IngestOutcome(count=0, queue_size=len(self.queue), message=NO_LOGS_MESSAGE)

        # Newest first on the wire, oldest first in the queue
        records.reverse()
        queue_size = self.queue.append_all(records)

        logger.info("Received logs", count=len(records), queue_size=queue_size)

        self._record("accepted")
        if self.metrics:
            self.metrics.record_ingestion(len(records), queue_size)

        return IngestOutcome(
            count=len(records),
            queue_size=queue_size,
            message=f"Accepted. Queued {len(records)} new logs.",
        )

    def _normalize(self, logs: Any) -> List[Dict[str, Any]]:
        """Copy mapping entries into plain dicts; anything else is skipped."""
        if not isinstance(logs, list) or not logs:
            return []

        records = [dict(entry) for entry in logs if isinstance(entry, Mapping)]
        skipped = len(logs) - len(records)
        if skipped:
            logger.warning("Skipping non-object log entries", skipped=skipped, received=len(logs))
        return records

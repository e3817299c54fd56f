"""
Delivery channel to Slack.

The dispatcher only depends on the DeliveryChannel protocol; SlackChannel
formats an audit record into a text block and posts it to an incoming
webhook with aiohttp.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import aiohttp
import structlog

from ..config import SlackSettings

logger = structlog.get_logger(__name__)

MISSING_VALUE = "N/A"

# (label, record field) in display order
SLACK_FIELDS = (
    ("Action", "Action"),
    ("Section", "Section"),
    ("Display", "Display"),
    ("Created By User", "CreatedByUser"),
    ("Created Date", "AuditCreatedDate"),
    ("Delegate User", "DelegateUser"),
)


@dataclass
class DeliveryResult:
    """Result of a single delivery attempt."""
    success: bool
    error_message: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def ok(cls, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(success=True, status_code=status_code)

    @classmethod
    def failed(cls, error_message: str, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(success=False, error_message=error_message, status_code=status_code)


class DeliveryChannel(Protocol):
    """Anything the dispatcher can hand a record to."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def deliver(self, record: Mapping[str, Any]) -> DeliveryResult: ...


def format_slack_message(record: Mapping[str, Any]) -> str:
    """
    Build the Slack text block for one audit record.

    Missing or empty fields render as N/A.
    """
    lines = []
    for label, field in SLACK_FIELDS:
        value = record.get(field)
        lines.append(f"*{label}:* {value if value else MISSING_VALUE}")
    return "\n".join(lines)


class SlackChannel:
    """
    Posts audit records to a Slack incoming webhook.

    Never raises from deliver(); every problem comes back as a failed
    DeliveryResult so the dispatcher can requeue the record.
    """

    def __init__(self, settings: SlackSettings, timeout_seconds: float = 5.0):
        self.settings = settings
        self.timeout_seconds = timeout_seconds
        self.session: Optional[aiohttp.ClientSession] = None

        logger.info("Slack channel initialized", webhook_configured=settings.is_configured)

    async def start(self) -> None:
        """Open the HTTP session."""
        if self.session:
            return

        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
        )
        logger.info("Slack channel started")

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

        logger.info("Slack channel stopped")

    async def deliver(self, record: Mapping[str, Any]) -> DeliveryResult:
        """Post one record to Slack."""
        if not self.settings.webhook_url:
            logger.error("CRITICAL: SLACK_WEBHOOK_URL is not set. Cannot post to Slack.")
            return DeliveryResult.failed("SLACK_WEBHOOK_URL is not set")

        if not self.session:
            return DeliveryResult.failed("Slack channel not started")

        payload = {"text": format_slack_message(record)}
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "auditrelay/0.1",
        }

        try:
            async with self.session.post(
                self.settings.webhook_url,
                json=payload,
                headers=headers,
            ) as response:
                if 200 <= response.status < 300:
                    return DeliveryResult.ok(status_code=response.status)

                error_text = await response.text()
                return DeliveryResult.failed(
                    f"Slack API error: {response.status} {error_text}",
                    status_code=response.status,
                )

        except asyncio.TimeoutError:
            return DeliveryResult.failed(f"Slack request timed out after {self.timeout_seconds}s")
        except aiohttp.ClientError as e:
            return DeliveryResult.failed(f"Slack request failed: {type(e).__name__}: {e}")

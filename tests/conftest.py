"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

import asyncio
from typing import Any, Dict, Generator, List, Mapping, Optional, Sequence, Type, Union

import pytest
from fastapi.testclient import TestClient

from auditrelay.config import (
    DispatcherSettings,
    SalesforceSettings,
    Settings,
    SlackSettings,
    get_settings,
)
from auditrelay.core.channel import DeliveryResult
from auditrelay.main import create_app

TEST_SECRET = "S3CR3T"

CONFIG_ENV_VARS = [
    "AUDITRELAY_CONFIG_FILE",
    "HOST",
    "PORT",
    "DEBUG",
    "LOG_LEVEL",
    "SALESFORCE_SECURITY_TOKEN",
    "SLACK_WEBHOOK_URL",
    "DISPATCHER_THROTTLE_DELAY_MS",
    "DISPATCHER_DELIVERY_TIMEOUT_SECONDS",
    "DISPATCHER_UNHEALTHY_AFTER_FAILURES",
    "DISPATCHER_ENABLED",
]

Outcome = Union[bool, BaseException]


class FakeChannel:
    """
    Scripted in-memory delivery channel.

    Each attempt consumes the next outcome: True succeeds, False fails,
    an exception instance is raised. Once the script runs out every
    attempt uses `default`.
    """

    def __init__(
        self,
        outcomes: Optional[Sequence[Outcome]] = None,
        default: bool = True,
        delay: float = 0.0,
    ) -> None:
        self.outcomes: List[Outcome] = list(outcomes or [])
        self.default = default
        self.delay = delay
        self.attempts: List[Mapping[str, Any]] = []
        self.delivered: List[Mapping[str, Any]] = []
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def deliver(self, record: Mapping[str, Any]) -> DeliveryResult:
        self.attempts.append(record)
        if self.delay:
            await asyncio.sleep(self.delay)

        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome:
            self.delivered.append(record)
            return DeliveryResult.ok(status_code=200)
        return DeliveryResult.failed("Slack API error: 503 service unavailable", status_code=503)


@pytest.fixture
def fake_channel_cls() -> Type[FakeChannel]:
    """The scripted channel class, for tests that need custom scripts."""
    return FakeChannel


@pytest.fixture
def fake_channel() -> FakeChannel:
    """Channel that always succeeds."""
    return FakeChannel()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove configuration env vars for the duration of a test."""
    for name in CONFIG_ENV_VARS:
        # setenv first so monkeypatch restores the original state afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_config() -> Dict[str, Any]:
    """Test configuration data as it would appear in config.yaml."""
    return {
        "server": {
            "host": "127.0.0.1",
            "port": 8088,
            "debug": False,
            "log_level": "DEBUG",
        },
        "salesforce": {
            "security_token": TEST_SECRET,
        },
        "slack": {
            "webhook_url": "https://hooks.slack.test/services/T000/B000/XXXX",
        },
        "dispatcher": {
            "throttle_delay_ms": 250,
            "delivery_timeout_seconds": 2.5,
            "unhealthy_after_failures": 3,
            "enabled": False,
        },
    }


def make_settings(
    security_token: Optional[str] = TEST_SECRET,
    webhook_url: Optional[str] = "https://hooks.slack.test/services/T000/B000/XXXX",
    **dispatcher: Any,
) -> Settings:
    """Build settings without touching the environment-backed cache."""
    dispatcher.setdefault("enabled", False)
    return Settings(
        log_level="DEBUG",
        salesforce=SalesforceSettings(security_token=security_token),
        slack=SlackSettings(webhook_url=webhook_url),
        dispatcher=DispatcherSettings(**dispatcher),
    )


@pytest.fixture
def settings_factory() -> Any:
    """Factory for settings with overrides."""
    return make_settings


@pytest.fixture
def settings() -> Settings:
    """Settings with both secrets configured and the dispatcher disabled."""
    return make_settings()


@pytest.fixture
def test_client(settings: Settings, fake_channel: FakeChannel) -> Generator[TestClient, None, None]:
    """FastAPI test client; the dispatcher is not started so the queue can be inspected."""
    app = create_app(settings, channel=fake_channel)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def audit_logs() -> List[Dict[str, Any]]:
    """Two audit records as Salesforce sends them, newest first."""
    return [
        {"Action": "Export", "CreatedByUser": "alice"},
        {"Action": "Login", "CreatedByUser": "bob"},
    ]


@pytest.fixture
def full_audit_record() -> Dict[str, Any]:
    """Audit record with every field the Slack message shows."""
    return {
        "Action": "changedPassword",
        "Section": "Manage Users",
        "Display": "Changed password for user jdoe@example.com",
        "CreatedByUser": "admin@example.com",
        "AuditCreatedDate": "2025-09-22T10:30:00.000Z",
        "DelegateUser": "support@example.com",
    }

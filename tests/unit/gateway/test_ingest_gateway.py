"""
Tests for the ingest gateway.

Check order matters: configuration, then token, then payload.
"""

import pytest

from auditrelay.core.exceptions import AuthenticationError, ConfigurationError
from auditrelay.core.gateway import NO_LOGS_MESSAGE, IngestGateway
from auditrelay.core.metrics import MetricsCollector
from auditrelay.core.queue import OrderedQueue

SECRET = "S3CR3T"


@pytest.fixture
def queue() -> OrderedQueue:
    return OrderedQueue()


@pytest.fixture
def gateway(queue: OrderedQueue) -> IngestGateway:
    return IngestGateway(queue=queue, security_token=SECRET)


class TestIngestGatewayAuthentication:
    """Secret and token checks."""

    @pytest.mark.parametrize("secret", [None, ""])
    def test_missing_secret_is_configuration_error(self, queue, secret) -> None:
        gateway = IngestGateway(queue=queue, security_token=secret)

        with pytest.raises(ConfigurationError) as exc_info:
            gateway.ingest(SECRET, [{"Action": "Login"}])

        assert exc_info.value.status_code == 500
        assert len(queue) == 0

    def test_missing_secret_checked_before_token(self, queue) -> None:
        """A missing secret wins over a missing token."""
        gateway = IngestGateway(queue=queue, security_token=None)

        with pytest.raises(ConfigurationError):
            gateway.ingest(None, None)

    @pytest.mark.parametrize("token", [None, "", 12345, ["S3CR3T"], "\ud800", "S3CR3T\udfff"])
    def test_missing_or_malformed_token(self, gateway, queue, token) -> None:
        with pytest.raises(AuthenticationError) as exc_info:
            gateway.ingest(token, [{"Action": "Login"}])

        assert exc_info.value.status_code == 401
        assert len(queue) == 0

    def test_wrong_token_never_mutates_queue(self, gateway, queue) -> None:
        queue.append_all([{"Action": "Existing"}])

        for _ in range(5):
            with pytest.raises(AuthenticationError):
                gateway.ingest("wrong", [{"Action": "Login"}, {"Action": "Logout"}])

        assert queue.snapshot() == [{"Action": "Existing"}]

    def test_token_check_before_payload_check(self, gateway) -> None:
        """Bad token with empty logs is still unauthorized."""
        with pytest.raises(AuthenticationError):
            gateway.ingest("wrong", [])


class TestIngestGatewayPayload:
    """Payload handling after a successful token check."""

    @pytest.mark.parametrize("logs", [None, [], {}, "not-a-list", 42])
    def test_empty_or_invalid_logs_accepted_with_nothing_to_do(self, gateway, queue, logs) -> None:
        outcome = gateway.ingest(SECRET, logs)

        assert outcome.count == 0
        assert outcome.message == NO_LOGS_MESSAGE
        assert len(queue) == 0

    def test_batch_is_reversed_to_chronological_order(self, gateway, queue) -> None:
        r1, r2, r3 = {"id": "r1"}, {"id": "r2"}, {"id": "r3"}

        gateway.ingest(SECRET, [r1, r2, r3])

        assert [queue.pop_front() for _ in range(3)] == [r3, r2, r1]

    def test_length_grows_by_batch_size(self, gateway, queue) -> None:
        queue.append_all([{"id": "old"}])
        before = len(queue)

        outcome = gateway.ingest(SECRET, [{"id": i} for i in range(7)])

        assert len(queue) == before + 7
        assert outcome.count == 7
        assert outcome.queue_size == before + 7
        assert outcome.message == "Accepted. Queued 7 new logs."

    def test_batches_append_after_existing_records(self, gateway, queue) -> None:
        gateway.ingest(SECRET, [{"id": 2}, {"id": 1}])
        gateway.ingest(SECRET, [{"id": 4}, {"id": 3}])

        assert [r["id"] for r in queue.snapshot()] == [1, 2, 3, 4]

    def test_non_mapping_entries_are_skipped(self, gateway, queue) -> None:
        outcome = gateway.ingest(SECRET, [{"id": 2}, None, "junk", {"id": 1}])

        assert outcome.count == 2
        assert queue.snapshot() == [{"id": 1}, {"id": 2}]

    def test_only_non_mapping_entries_is_nothing_to_do(self, gateway, queue) -> None:
        outcome = gateway.ingest(SECRET, [None, 1, "x"])

        assert outcome.count == 0
        assert outcome.message == NO_LOGS_MESSAGE
        assert len(queue) == 0

    def test_records_are_copied(self, gateway, queue) -> None:
        """Later changes to the caller's objects do not leak into the queue."""
        record = {"Action": "Login"}
        gateway.ingest(SECRET, [record])

        record["Action"] = "Tampered"

        assert queue.snapshot() == [{"Action": "Login"}]


class TestIngestGatewayMetrics:
    """Metric recording."""

    def test_outcomes_are_counted(self, queue) -> None:
        metrics = MetricsCollector()
        gateway = IngestGateway(queue=queue, security_token=SECRET, metrics=metrics)

        gateway.ingest(SECRET, [{"id": 1}, {"id": 2}])
        gateway.ingest(SECRET, [])
        with pytest.raises(AuthenticationError):
            gateway.ingest("wrong", [{"id": 3}])

        registry = metrics.registry
        assert registry.get_sample_value("ingest_requests_total", {"outcome": "accepted"}) == 1.0
        assert registry.get_sample_value("ingest_requests_total", {"outcome": "empty"}) == 1.0
        assert registry.get_sample_value("ingest_requests_total", {"outcome": "unauthorized"}) == 1.0
        assert registry.get_sample_value("audit_logs_received_total") == 2.0
        assert registry.get_sample_value("queue_depth") == 2.0

"""
Drip dispatcher: the single consumer of the audit queue.

Once per throttle interval it takes the oldest record and hands it to the
delivery channel. A failed attempt puts the record back at the head, so it
is retried on the next tick before anything newer.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from .channel import DeliveryChannel, DeliveryResult
from .metrics import MetricsCollector
from .queue import OrderedQueue

logger = structlog.get_logger(__name__)


class DispatcherState(str, Enum):
    IDLE = "idle"
    DELIVERING = "delivering"


class TickOutcome(str, Enum):
    IDLE = "idle"
    DELIVERED = "delivered"
    REQUEUED = "requeued"


class DripDispatcher:
    """
    Background service that drains the queue at a fixed rate.

    Features:
    - Fixed cadence measured from tick start
    - Bounded delivery attempts
    - Head-of-line retry, forever, without backoff
    """

    def __init__(
        self,
        queue: OrderedQueue,
        channel: DeliveryChannel,
        interval_seconds: float = 1.1,
        delivery_timeout_seconds: float = 5.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.queue = queue
        self.channel = channel
        self.interval = interval_seconds
        self.delivery_timeout = delivery_timeout_seconds
        self.metrics = metrics
        self.state = DispatcherState.IDLE

        self.delivered_total = 0
        self.failed_total = 0
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None
        self.last_success_at: Optional[float] = None

        self._task: Optional[asyncio.Task[None]] = None
        self._running = False

        logger.info(
            "Drip dispatcher initialized",
            interval_seconds=interval_seconds,
            delivery_timeout_seconds=delivery_timeout_seconds,
        )

    @property
    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the channel and the tick loop."""
        if self._running:
            return

        await self.channel.start()

        self._running = True
        self._task = asyncio.create_task(self._run_loop())

        logger.info("Drip dispatcher started", queue_size=len(self.queue))

    async def stop(self) -> None:
        """Stop the tick loop and close the channel."""
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        await self.channel.stop()

        logger.info("Drip dispatcher stopped", queue_size=len(self.queue))

    async def _run_loop(self) -> None:
        """Main dispatcher loop."""
        loop = asyncio.get_running_loop()
        while self._running:
            started = loop.time()
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Dispatcher tick error", error=str(e), exc_info=True)

            # Next tick is due one interval after this one started
            delay = self.interval - (loop.time() - started)
            try:
                await asyncio.sleep(max(0.0, delay))
            except asyncio.CancelledError:
                break

    async def tick(self) -> TickOutcome:
        """
        Run one delivery step.

        Returns:
            IDLE if the queue was empty, DELIVERED on success, REQUEUED when
            the record went back to the head of the queue.
        """
        record = self.queue.pop_front()
        if record is None:
            self.state = DispatcherState.IDLE
            return TickOutcome.IDLE

        self.state = DispatcherState.DELIVERING
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self.channel.deliver(record),
                timeout=self.delivery_timeout,
            )
        except asyncio.TimeoutError:
            result = DeliveryResult.failed(
                f"Delivery timed out after {self.delivery_timeout}s"
            )
        except asyncio.CancelledError:
            # Shutting down mid-delivery; the record must not be lost
            self.queue.push_front(record)
            self.state = DispatcherState.IDLE
            raise
        except Exception as e:
            result = DeliveryResult.failed(f"{type(e).__name__}: {e}")
        finally:
            duration = time.monotonic() - started

        if not result.success:
            self.queue.push_front(record)

        self.state = DispatcherState.IDLE
        self._observe(record, result, duration)

        return TickOutcome.DELIVERED if result.success else TickOutcome.REQUEUED

    def _observe(self, record: Any, result: DeliveryResult, duration: float) -> None:
        queue_size = len(self.queue)

        if result.success:
            self.delivered_total += 1
            self.consecutive_failures = 0
            self.last_success_at = time.time()
            logger.info(
                "Posted log to Slack",
                action=record.get("Action"),
                created_by=record.get("CreatedByUser"),
                queue_size=queue_size,
            )
        else:
            self.failed_total += 1
            self.consecutive_failures += 1
            self.last_error = result.error_message
            logger.error(
                "Failed to post log to Slack. Re-queueing.",
                error=result.error_message,
                status_code=result.status_code,
                consecutive_failures=self.consecutive_failures,
                queue_size=queue_size,
            )

        if self.metrics:
            self.metrics.record_delivery(result.success, duration, queue_size)

    def stats(self) -> Dict[str, Any]:
        """Counters for health reporting."""
        return {
            "running": self.is_running,
            "state": self.state.value,
            "queue_size": len(self.queue),
            "delivered_total": self.delivered_total,
            "failed_total": self.failed_total,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
            "last_success_at": self.last_success_at,
        }

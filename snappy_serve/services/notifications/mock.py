"""
Mock Notification Service

Simulates WhatsApp/SMS sending for development.
No actual messages are sent - just logged and recorded in ``sent``.
"""

import asyncio
import random
import uuid
import logging

from snappy_serve.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)

logger = logging.getLogger(__name__)


class MockNotificationService(BaseNotificationService):
    """Mock notification service for development."""

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
        cafe_name: str = "Snappy Serve Cafe",
    ):
        super().__init__(cafe_name=cafe_name)
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.sent: list[tuple[str, str]] = []
        logger.info(f"MockNotificationService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        """Simulate network latency."""
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def send(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Simulate sending a message."""
        await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock message failed (simulated) to {to_phone}")
            return NotificationResult(
                delivered=False,
                reason="Simulated delivery failure",
                provider="mock"
            )

        message_id = f"msg_mock_{uuid.uuid4().hex[:12]}"
        self.sent.append((to_phone, message))
        logger.info(f"Mock message sent to {to_phone}: {message[:50]}... (ID: {message_id})")

        return NotificationResult(
            delivered=True,
            message_id=message_id,
            provider="mock"
        )

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True

"""
Fire-and-forget Notification Dispatch

OTP and bill messages are sent from a background task so the request that
triggered them never waits on, or fails because of, the gateway. Outcomes
only reach the log.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from snappy_serve.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)

logger = logging.getLogger(__name__)

SendCall = Callable[[BaseNotificationService], Awaitable[NotificationResult]]


class NotificationDispatcher:
    """Spawns delivery tasks and keeps them referenced until they finish."""

    def __init__(self, service: BaseNotificationService):
        self.service = service
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, send: SendCall, description: str) -> asyncio.Task:
        """
        Schedule a send on the running loop and return immediately.

        Args:
            send: Called with the notification service, returns the send coroutine
            description: What is being sent, for the log
        """
        task = asyncio.get_running_loop().create_task(self._run(send, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, send: SendCall, description: str) -> None:
        try:
            result = await send(self.service)
        except Exception:
            logger.exception(f"Notification crashed: {description}")
            return

        if result.delivered:
            logger.info(f"Notification delivered: {description} (ID: {result.message_id})")
        else:
            logger.warning(f"Notification not delivered: {description} ({result.reason})")

    async def drain(self) -> None:
        """Wait for every outstanding delivery (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

"""
Notification Service Factory

Returns Mock or Twilio notification service based on ENV_MODE.
"""

import logging

from snappy_serve.core.config import Settings
from snappy_serve.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)
from snappy_serve.services.notifications.dispatcher import NotificationDispatcher
from snappy_serve.services.notifications.mock import MockNotificationService
from snappy_serve.services.notifications.real import TwilioNotificationService

logger = logging.getLogger(__name__)


def build_notification_service(settings: Settings) -> BaseNotificationService:
    """Create the configured notification service."""
    if settings.is_development:
        logger.info("Notification Service: Using MockNotificationService (development mode)")
        return MockNotificationService(
            failure_rate=settings.notification_failure_rate,
            min_latency=settings.notification_min_latency,
            max_latency=settings.notification_max_latency,
            cafe_name=settings.cafe_name,
        )
    else:
        logger.info(f"Notification Service: Using TwilioNotificationService ({settings.env_mode.value} mode)")
        return TwilioNotificationService(settings)


__all__ = [
    "build_notification_service",
    "BaseNotificationService",
    "NotificationResult",
    "NotificationDispatcher",
    "MockNotificationService",
    "TwilioNotificationService",
]

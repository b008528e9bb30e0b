"""
Real Notification Service

Production implementation using Twilio, over either the WhatsApp channel
(``whatsapp:`` addressed messages) or plain SMS.
"""

import asyncio
import logging
from typing import Optional

from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioException

from snappy_serve.core.config import NotificationChannel, Settings
from snappy_serve.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)
from snappy_serve.services.phone import TRANSPORT_PREFIX

logger = logging.getLogger(__name__)


def whatsapp_address(phone: str) -> str:
    """Twilio expects WhatsApp numbers as whatsapp:+<E.164>."""
    return phone if phone.startswith(TRANSPORT_PREFIX) else f"{TRANSPORT_PREFIX}{phone}"


class TwilioNotificationService(BaseNotificationService):
    """Production notification service using Twilio WhatsApp or SMS."""

    def __init__(self, settings: Settings, client: Optional[TwilioClient] = None):
        super().__init__(cafe_name=settings.cafe_name)
        self.channel = settings.notification_channel

        if self.channel == NotificationChannel.WHATSAPP:
            sender = settings.twilio_whatsapp_from
            self.from_address = whatsapp_address(sender) if sender else None
        else:
            self.from_address = settings.twilio_phone_number

        if client is not None:
            self.twilio_client = client
        elif settings.twilio_account_sid and settings.twilio_auth_token:
            self.twilio_client = TwilioClient(
                settings.twilio_account_sid,
                settings.twilio_auth_token
            )
        else:
            self.twilio_client = None
            logger.warning("Twilio credentials not configured")

        logger.info(f"TwilioNotificationService initialized (channel={self.channel.value})")

    @property
    def provider_name(self) -> str:
        return f"twilio-{self.channel.value}"

    async def send(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Send a message via Twilio."""
        if not self.twilio_client or not self.from_address:
            return NotificationResult(
                delivered=False,
                reason="Twilio not configured",
                provider=self.provider_name
            )

        to = whatsapp_address(to_phone) if self.channel == NotificationChannel.WHATSAPP else to_phone

        try:
            # The Twilio client is blocking; keep it off the event loop
            result = await asyncio.to_thread(
                self.twilio_client.messages.create,
                body=message,
                from_=self.from_address,
                to=to,
            )

            logger.info(f"Message sent to {to}: {result.sid}")

            return NotificationResult(
                delivered=True,
                message_id=result.sid,
                provider=self.provider_name
            )

        except TwilioException as e:
            logger.error(f"Twilio error: {e}")
            return NotificationResult(
                delivered=False,
                reason=str(e),
                provider=self.provider_name
            )
        except Exception as e:
            logger.error(f"Twilio transport error: {e}")
            return NotificationResult(
                delivered=False,
                reason=str(e),
                provider=self.provider_name
            )

    async def health_check(self) -> bool:
        """Configured credentials and sender are enough to attempt delivery."""
        return self.twilio_client is not None and bool(self.from_address)

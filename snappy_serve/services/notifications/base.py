"""
Notification Service Abstract Base Class

Defines the single capability the cafe core needs from a messaging gateway:
``send(phone, message)``. Implementations must never raise; a failed
delivery is reported through ``NotificationResult.delivered``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from snappy_serve.schemas import Bill


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    delivered: bool
    message_id: Optional[str] = None
    reason: Optional[str] = None
    provider: str = "unknown"


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    def __init__(self, cafe_name: str = "Snappy Serve Cafe"):
        self.cafe_name = cafe_name

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Send a text message to a normalized phone."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass

    async def send_otp(self, to_phone: str, code: str) -> NotificationResult:
        """Send a one-time verification code."""
        message = f"Your {self.cafe_name} verification code is: {code}"
        return await self.send(to_phone, message)

    async def send_bill_notification(self, to_phone: str, bill: "Bill") -> NotificationResult:
        """Tell a customer their bill is ready."""
        message = (
            f"Bill Generated!\n\n"
            f"Customer: {bill.customer_name}\n"
            f"Table: {bill.table_number or 'N/A'}\n"
            f"Total: {bill.total}\n\n"
            f"Thank you for dining at {self.cafe_name}!"
        )
        return await self.send(to_phone, message)

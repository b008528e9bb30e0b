"""
Storage Abstract Base Class

Every store keeps three collections: orders, bills and customers.
Implementations raise ``StorageUnavailable`` when they cannot serve a call;
``FallbackStore`` turns that into an in-memory operation.

There are no transactions or locks: a find followed by an upsert is not
atomic, and concurrent writers overwrite each other (last write wins).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from snappy_serve.schemas import Bill, Customer, Order
from snappy_serve.services.lifecycle import OrderStatus


@dataclass
class OrderFilter:
    """Query options for listing orders."""
    status: Optional[OrderStatus] = None
    exclude_completed: bool = False
    since: Optional[int] = None

    def matches(self, order: Order) -> bool:
        if self.status is not None and order.status != self.status:
            return False
        if self.exclude_completed and order.status == OrderStatus.COMPLETED:
            return False
        if self.since is not None and order.created_at < self.since:
            return False
        return True


class BaseStore(ABC):
    """Abstract base class for order/bill/customer storage."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        pass

    async def connect(self) -> None:
        """Prepare the store (create tables, open pools)."""

    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    # Orders -----------------------------------------------------------------

    @abstractmethod
    async def find_order(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def upsert_order(self, order: Order) -> Order:
        pass

    @abstractmethod
    async def list_orders(self, order_filter: Optional[OrderFilter] = None) -> list[Order]:
        """Orders matching the filter, oldest first."""
        pass

    # Bills ------------------------------------------------------------------

    @abstractmethod
    async def find_bill(self, bill_id: str) -> Optional[Bill]:
        pass

    @abstractmethod
    async def insert_bill(self, bill: Bill) -> Bill:
        pass

    @abstractmethod
    async def list_bills(
        self,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
    ) -> list[Bill]:
        """Bills created within [start_ms, end_ms] (inclusive), oldest first."""
        pass

    @abstractmethod
    async def list_bills_by_customer(self, phone: str) -> list[Bill]:
        """Bills for a normalized phone, newest first."""
        pass

    # Customers --------------------------------------------------------------

    @abstractmethod
    async def find_customer(self, phone: str) -> Optional[Customer]:
        pass

    @abstractmethod
    async def upsert_customer(self, customer: Customer) -> Customer:
        pass

    @abstractmethod
    async def list_customers(self) -> list[Customer]:
        pass

    async def touch_customer(
        self,
        phone: str,
        now: int,
        name: Optional[str] = None,
        table_number: Optional[int] = None,
        verified: bool = False,
    ) -> Customer:
        """
        Upsert a customer keyed by normalized phone.

        ``createdAt`` is kept from the existing record; ``updatedAt`` is always
        refreshed. Name and table are overwritten only when given.
        """
        existing = await self.find_customer(phone)
        if existing is None:
            customer = Customer(phone=phone, created_at=now)
        else:
            customer = existing.model_copy()

        if name is not None:
            customer.name = name
        if table_number is not None:
            customer.table_number = table_number
        if verified:
            customer.verified_at = now
        customer.updated_at = now

        return await self.upsert_customer(customer)

"""
Fallback Store

Wraps a persistent store with an in-memory one. Writes go to memory first
and then to the primary; reads come from the primary. Whenever the primary
raises ``StorageUnavailable`` the equivalent in-memory operation is used
instead and the caller never sees the failure.

Writes the primary missed are queued in ``unsynced`` and replayed, oldest
first, before the next primary call. Lookups by key that the primary
cannot answer are also tried against memory.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from snappy_serve.core.errors import StorageUnavailable
from snappy_serve.schemas import Bill, Customer, Order
from snappy_serve.services.storage.base import BaseStore, OrderFilter
from snappy_serve.services.storage.memory import MemoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackStore(BaseStore):
    """Persistent store with in-memory degradation."""

    def __init__(self, primary: BaseStore, memory: Optional[MemoryStore] = None):
        self.primary = primary
        self.memory = memory or MemoryStore()
        self.unsynced: dict[tuple[str, str], Callable[[], Awaitable]] = {}

    @property
    def backend_name(self) -> str:
        return f"{self.primary.backend_name}+memory"

    async def _resync(self) -> None:
        while self.unsynced:
            key = next(iter(self.unsynced))
            replay = self.unsynced.pop(key)
            try:
                await replay()
            except StorageUnavailable:
                # A newer write for the same key supersedes this one
                self.unsynced.setdefault(key, replay)
                raise
            logger.info(f"Resynced {key[0]} {key[1]} to {self.primary.backend_name}")

    async def _read(
        self,
        operation: str,
        primary_call: Callable[[], Awaitable[T]],
        memory_call: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            await self._resync()
            return await primary_call()
        except StorageUnavailable as e:
            logger.warning(f"{operation}: {e}; serving from in-memory store")
            return await memory_call()

    async def _find(
        self,
        operation: str,
        primary_call: Callable[[], Awaitable[Optional[T]]],
        memory_call: Callable[[], Awaitable[Optional[T]]],
    ) -> Optional[T]:
        found = await self._read(operation, primary_call, memory_call)
        if found is None:
            found = await memory_call()
        return found

    async def _write(
        self,
        operation: str,
        key: tuple[str, str],
        primary_call: Callable[[], Awaitable[T]],
        memory_call: Callable[[], Awaitable[T]],
    ) -> T:
        result = await memory_call()
        try:
            await self._resync()
            await primary_call()
        except StorageUnavailable as e:
            self.unsynced.pop(key, None)
            self.unsynced[key] = primary_call
            logger.warning(f"{operation}: {e}; kept in in-memory store only")
        return result

    async def connect(self) -> None:
        await self.primary.connect()

    async def close(self) -> None:
        await self.primary.close()

    async def health_check(self) -> bool:
        return await self.primary.health_check()

    async def find_order(self, order_id: str) -> Optional[Order]:
        return await self._find(
            "find_order",
            lambda: self.primary.find_order(order_id),
            lambda: self.memory.find_order(order_id),
        )

    async def upsert_order(self, order: Order) -> Order:
        return await self._write(
            "upsert_order",
            ("order", order.id),
            lambda: self.primary.upsert_order(order),
            lambda: self.memory.upsert_order(order),
        )

    async def list_orders(self, order_filter: Optional[OrderFilter] = None) -> list[Order]:
        return await self._read(
            "list_orders",
            lambda: self.primary.list_orders(order_filter),
            lambda: self.memory.list_orders(order_filter),
        )

    async def find_bill(self, bill_id: str) -> Optional[Bill]:
        return await self._find(
            "find_bill",
            lambda: self.primary.find_bill(bill_id),
            lambda: self.memory.find_bill(bill_id),
        )

    async def insert_bill(self, bill: Bill) -> Bill:
        return await self._write(
            "insert_bill",
            ("bill", bill.id),
            lambda: self.primary.insert_bill(bill),
            lambda: self.memory.insert_bill(bill),
        )

    async def list_bills(
        self,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
    ) -> list[Bill]:
        return await self._read(
            "list_bills",
            lambda: self.primary.list_bills(start_ms, end_ms),
            lambda: self.memory.list_bills(start_ms, end_ms),
        )

    async def list_bills_by_customer(self, phone: str) -> list[Bill]:
        return await self._read(
            "list_bills_by_customer",
            lambda: self.primary.list_bills_by_customer(phone),
            lambda: self.memory.list_bills_by_customer(phone),
        )

    async def find_customer(self, phone: str) -> Optional[Customer]:
        return await self._find(
            "find_customer",
            lambda: self.primary.find_customer(phone),
            lambda: self.memory.find_customer(phone),
        )

    async def upsert_customer(self, customer: Customer) -> Customer:
        return await self._write(
            "upsert_customer",
            ("customer", customer.phone),
            lambda: self.primary.upsert_customer(customer),
            lambda: self.memory.upsert_customer(customer),
        )

    async def list_customers(self) -> list[Customer]:
        return await self._read(
            "list_customers",
            lambda: self.primary.list_customers(),
            lambda: self.memory.list_customers(),
        )

"""
In-memory Store

Plain dictionaries owned by the store instance; contents are lost on
restart. Records are copied on the way in and out so callers never hold a
live reference into the store.
"""

from typing import Optional

from snappy_serve.schemas import Bill, Customer, Order
from snappy_serve.services.storage.base import BaseStore, OrderFilter


class MemoryStore(BaseStore):
    """Process-local storage, also the fallback for the SQL store."""

    def __init__(self):
        self.orders: dict[str, Order] = {}
        self.bills: dict[str, Bill] = {}
        self.customers: dict[str, Customer] = {}

    @property
    def backend_name(self) -> str:
        return "memory"

    async def health_check(self) -> bool:
        return True

    async def find_order(self, order_id: str) -> Optional[Order]:
        order = self.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def upsert_order(self, order: Order) -> Order:
        self.orders[order.id] = order.model_copy(deep=True)
        return order

    async def list_orders(self, order_filter: Optional[OrderFilter] = None) -> list[Order]:
        order_filter = order_filter or OrderFilter()
        matches = [o for o in self.orders.values() if order_filter.matches(o)]
        matches.sort(key=lambda o: o.created_at)
        return [o.model_copy(deep=True) for o in matches]

    async def find_bill(self, bill_id: str) -> Optional[Bill]:
        bill = self.bills.get(bill_id)
        return bill.model_copy(deep=True) if bill else None

    async def insert_bill(self, bill: Bill) -> Bill:
        self.bills[bill.id] = bill.model_copy(deep=True)
        return bill

    async def list_bills(
        self,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
    ) -> list[Bill]:
        matches = [
            b for b in self.bills.values()
            if (start_ms is None or b.created_at >= start_ms)
            and (end_ms is None or b.created_at <= end_ms)
        ]
        matches.sort(key=lambda b: b.created_at)
        return [b.model_copy(deep=True) for b in matches]

    async def list_bills_by_customer(self, phone: str) -> list[Bill]:
        matches = [b for b in self.bills.values() if b.customer_phone == phone]
        matches.sort(key=lambda b: b.created_at, reverse=True)
        return [b.model_copy(deep=True) for b in matches]

    async def find_customer(self, phone: str) -> Optional[Customer]:
        customer = self.customers.get(phone)
        return customer.model_copy() if customer else None

    async def upsert_customer(self, customer: Customer) -> Customer:
        self.customers[customer.phone] = customer.model_copy()
        return customer

    async def list_customers(self) -> list[Customer]:
        return [c.model_copy() for c in self.customers.values()]

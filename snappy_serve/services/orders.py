"""
Order / Bill / Customer Service

Facade the API talks to. Validates input, applies the lifecycle and bill
arithmetic, and reads and writes through the configured store. Every
operation returns a ``ServiceResult``.

There is no locking: ``update_order_status`` reads the order, checks the
transition and writes it back, so two concurrent updates can both pass the
check and the last write wins.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo

from snappy_serve.core.errors import (
    CafeError,
    EmptyItems,
    ErrorKind,
    InvalidPhone,
    ServiceResult,
    ValidationFailed,
)
from snappy_serve.core.time_utils import day_end_ms, day_start_ms, now_ms
from snappy_serve.schemas import (
    Bill,
    BillCreate,
    Customer,
    CustomerUpsert,
    DailyReport,
    LineItem,
    MonthlyReport,
    Order,
    OrderCreate,
    WeeklyReport,
)
from snappy_serve.services import lifecycle, reporting
from snappy_serve.services.billing import compute_bill, order_total
from snappy_serve.services.lifecycle import OrderStatus
from snappy_serve.services.notifications import NotificationDispatcher
from snappy_serve.services.phone import is_valid_phone, normalize_phone
from snappy_serve.services.storage import BaseStore, OrderFilter

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Guest"


def new_order_id() -> str:
    return f"ORD-{uuid.uuid4().hex[:12]}"


def new_bill_id() -> str:
    return f"BILL-{uuid.uuid4().hex[:12]}"


def _item_keys(items: list[LineItem]) -> list[tuple]:
    return sorted((item.id or item.name, item.price, item.quantity) for item in items)


@dataclass
class CafeService:
    """Order, bill, customer and report operations over one store."""
    store: BaseStore
    dispatcher: NotificationDispatcher
    default_country_code: str = "+1"
    tax_rate_percent: int = 5
    service_rate_percent: int = 2
    report_tz: ZoneInfo = ZoneInfo("UTC")
    clock: Callable[[], int] = now_ms

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _optional_phone(self, raw: Optional[str]) -> Optional[str]:
        """Normalize an optional phone; present-but-invalid is an error."""
        if not raw:
            return None
        if not is_valid_phone(raw, self.default_country_code):
            raise InvalidPhone("Invalid phone format")
        return normalize_phone(raw, self.default_country_code)

    def _require_phone(self, raw: Optional[str]) -> Union[str, ServiceResult]:
        if not raw:
            return ServiceResult.fail(ErrorKind.VALIDATION, "Phone required")
        if not is_valid_phone(raw, self.default_country_code):
            return ServiceResult.fail(ErrorKind.INVALID_PHONE, "Invalid phone format")
        return normalize_phone(raw, self.default_country_code)

    @staticmethod
    def _snapshot(items: list[LineItem]) -> list[LineItem]:
        return [item.model_copy(deep=True) for item in items]

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def create_order(self, payload: OrderCreate) -> ServiceResult[Order]:
        """Place a new PENDING order."""
        if not payload.items:
            return ServiceResult.fail(ErrorKind.VALIDATION, "No items in order")
        try:
            phone = self._optional_phone(payload.customer_phone)
        except ValidationFailed as e:
            return ServiceResult.fail(e.kind, str(e))

        items = self._snapshot(payload.items)
        total = payload.total_amount if payload.total_amount is not None else order_total(items)

        order = Order(
            id=new_order_id(),
            table_number=payload.table_number,
            customer_name=payload.customer_name or DEFAULT_CUSTOMER_NAME,
            customer_phone=phone,
            items=items,
            total_amount=total,
            status=OrderStatus.PENDING,
            created_at=self.clock(),
        )
        await self.store.upsert_order(order)
        logger.info(f"Order {order.id} created for table {order.table_number} ({len(items)} items, total {total})")
        return ServiceResult.ok(order)

    async def get_order(self, order_id: str) -> ServiceResult[Order]:
        order = await self.store.find_order(order_id)
        if order is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Order not found")
        return ServiceResult.ok(order)

    async def list_orders(
        self,
        status: Optional[str] = None,
        exclude_completed: bool = False,
        since: Optional[int] = None,
    ) -> ServiceResult[list[Order]]:
        try:
            parsed = lifecycle.parse_status(status) if status else None
        except ValidationFailed as e:
            return ServiceResult.fail(e.kind, str(e))

        orders = await self.store.list_orders(OrderFilter(
            status=parsed,
            exclude_completed=exclude_completed,
            since=since,
        ))
        return ServiceResult.ok(orders)

    async def update_order_status(self, order_id: str, status: Optional[str]) -> ServiceResult[Order]:
        """
        Advance an order through the lifecycle.

        A missing status returns the order unchanged. Illegal transitions,
        including anything out of COMPLETED, are rejected.
        """
        order = await self.store.find_order(order_id)
        if order is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Order not found")
        if not status:
            return ServiceResult.ok(order)

        try:
            target = lifecycle.parse_status(status)
            updated = lifecycle.advance(order, target, self.clock())
        except CafeError as e:
            logger.warning(f"Order {order_id}: rejected status change to {status}: {e}")
            return ServiceResult.fail(e.kind, str(e))

        await self.store.upsert_order(updated)
        logger.info(f"Order {order_id}: {order.status.value} -> {updated.status.value}")
        return ServiceResult.ok(updated)

    # =========================================================================
    # BILLS
    # =========================================================================

    async def create_bill(self, payload: BillCreate) -> ServiceResult[Bill]:
        """
        Compute and store a bill.

        With ``orderId`` the order must be READY or BILL_REQUESTED. The bill
        then copies the order's table, customer and items; items in the body
        may be omitted but must match the order when given. The order is
        moved to COMPLETED once the bill is stored. A phone on the bill gets
        a background notification.
        """
        try:
            phone = self._optional_phone(payload.customer_phone)
        except ValidationFailed as e:
            return ServiceResult.fail(e.kind, str(e))

        order = None
        table_number = payload.table_number
        customer_name = payload.customer_name
        items = payload.items
        if payload.order_id:
            order = await self.store.find_order(payload.order_id)
            if order is None:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Order not found")
            if not lifecycle.is_billable(order.status):
                return ServiceResult.fail(
                    ErrorKind.INVALID_TRANSITION,
                    f"Cannot bill an order that is {order.status.value}",
                )
            if items and _item_keys(items) != _item_keys(order.items):
                return ServiceResult.fail(ErrorKind.VALIDATION, "Bill items do not match the order")
            table_number = order.table_number
            customer_name = order.customer_name
            phone = order.customer_phone or phone
            items = order.items

        try:
            totals = compute_bill(items, self.tax_rate_percent, self.service_rate_percent)
        except EmptyItems:
            return ServiceResult.fail(ErrorKind.VALIDATION, "No items to bill")

        now = self.clock()
        bill = Bill(
            id=new_bill_id(),
            order_id=payload.order_id,
            table_number=table_number,
            customer_name=customer_name or DEFAULT_CUSTOMER_NAME,
            customer_phone=phone,
            items=self._snapshot(items),
            subtotal=totals.subtotal,
            tax=totals.tax,
            service=totals.service,
            total=totals.total,
            created_at=now,
        )
        await self.store.insert_bill(bill)
        logger.info(f"Bill {bill.id} generated: total {bill.total}")

        if order is not None:
            await self.store.upsert_order(lifecycle.advance(order, OrderStatus.COMPLETED, now))
            logger.info(f"Order {order.id}: {order.status.value} -> COMPLETED (billed by {bill.id})")

        if phone:
            self.dispatcher.dispatch(
                lambda service: service.send_bill_notification(phone, bill),
                f"bill {bill.id} to {phone}",
            )
        return ServiceResult.ok(bill)

    async def get_bill(self, bill_id: str) -> ServiceResult[Bill]:
        bill = await self.store.find_bill(bill_id)
        if bill is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Bill not found")
        return ServiceResult.ok(bill)

    async def list_bills_by_customer(self, raw_phone: Optional[str]) -> ServiceResult[list[Bill]]:
        phone = self._require_phone(raw_phone)
        if isinstance(phone, ServiceResult):
            return phone
        return ServiceResult.ok(await self.store.list_bills_by_customer(phone))

    async def generate_sample_bills(self) -> ServiceResult[list[Bill]]:
        """Seed two reference bills (totals 161 and 43) for dashboard testing."""
        samples = [
            BillCreate(
                table_number=4,
                customer_name="h",
                items=[LineItem(id="tea-1", name="Masala Chai", price=30, quantity=5)],
            ),
            BillCreate(
                table_number=2,
                customer_name="varshit",
                items=[LineItem(id="snack-1", name="Samosa", price=20, quantity=2)],
            ),
        ]
        bills = []
        for sample in samples:
            result = await self.create_bill(sample)
            if not result.success:
                return ServiceResult.fail(result.error, result.message)
            bills.append(result.value)
        return ServiceResult.ok(bills)

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    async def upsert_customer(self, payload: CustomerUpsert) -> ServiceResult[Customer]:
        phone = self._require_phone(payload.phone)
        if isinstance(phone, ServiceResult):
            return phone
        customer = await self.store.touch_customer(
            phone,
            self.clock(),
            name=payload.name,
            table_number=payload.table_number,
        )
        return ServiceResult.ok(customer)

    async def list_customers(self) -> ServiceResult[list[Customer]]:
        return ServiceResult.ok(await self.store.list_customers())

    # =========================================================================
    # REPORTS
    # =========================================================================

    async def _bills_for(self, first: date, last: date) -> list[Bill]:
        return await self.store.list_bills(
            day_start_ms(first, self.report_tz),
            day_end_ms(last, self.report_tz),
        )

    async def daily_report(self, day: date) -> ServiceResult[DailyReport]:
        bills = await self._bills_for(day, day)
        return ServiceResult.ok(reporting.daily_report(bills, day, self.report_tz))

    async def weekly_report(self, day: date) -> ServiceResult[WeeklyReport]:
        bills = await self._bills_for(*reporting.week_bounds(day))
        return ServiceResult.ok(reporting.weekly_report(bills, day, self.report_tz))

    async def monthly_report(self, day: date) -> ServiceResult[MonthlyReport]:
        bills = await self._bills_for(*reporting.month_bounds(day))
        return ServiceResult.ok(reporting.monthly_report(bills, day, self.report_tz))

import asyncio
from datetime import date

from snappy_serve.core.errors import ErrorKind
from snappy_serve.schemas import BillCreate, CustomerUpsert, LineItem, OrderCreate
from snappy_serve.services.lifecycle import OrderStatus
from snappy_serve.services.notifications import MockNotificationService, NotificationDispatcher
from snappy_serve.services.orders import CafeService
from snappy_serve.services.storage import MemoryStore
from tests.helpers import FakeClock, START_MS, utc_ms

CHAI = LineItem(id="tea-1", name="Masala Chai", price=30, quantity=5)
SAMOSA = LineItem(id="snack-1", name="Samosa", price=20, quantity=2)


def place(cafe: CafeService, **fields):
    fields.setdefault("items", [CHAI])
    return asyncio.run(cafe.create_order(OrderCreate(**fields)))


def move(cafe: CafeService, order_id: str, *statuses: str):
    result = None
    for status in statuses:
        result = asyncio.run(cafe.update_order_status(order_id, status))
    return result


# =============================================================================
# ORDERS
# =============================================================================

def test_create_order_defaults(cafe, clock):
    result = place(cafe, table_number=4)
    order = result.value

    assert result.success
    assert order.id.startswith("ORD-")
    assert order.status == OrderStatus.PENDING
    assert order.customer_name == "Guest"
    assert order.total_amount == 150
    assert order.created_at == START_MS
    assert order.timestamp == START_MS


def test_create_order_keeps_client_total(cafe):
    assert place(cafe, total_amount=140).value.total_amount == 140


def test_create_order_normalizes_phone(cafe):
    assert place(cafe, customer_phone="0415 555 1234").value.customer_phone == "+14155551234"


def test_create_order_rejects_bad_input(cafe):
    empty = place(cafe, items=[])
    bad_phone = place(cafe, customer_phone="12")

    assert empty.error == ErrorKind.VALIDATION
    assert empty.message == "No items in order"
    assert bad_phone.error == ErrorKind.INVALID_PHONE
    assert asyncio.run(cafe.store.list_orders()) == []


def test_get_order(cafe):
    order_id = place(cafe).value.id
    assert asyncio.run(cafe.get_order(order_id)).value.id == order_id
    assert asyncio.run(cafe.get_order("ORD-nope")).error == ErrorKind.NOT_FOUND


def test_list_orders_filters(cafe, clock):
    first = place(cafe).value.id
    clock.advance(1_000)
    second = place(cafe).value.id
    move(cafe, first, "PREPARING", "READY", "COMPLETED")

    everything = asyncio.run(cafe.list_orders()).value
    open_orders = asyncio.run(cafe.list_orders(exclude_completed=True)).value
    recent = asyncio.run(cafe.list_orders(since=START_MS + 1)).value
    completed = asyncio.run(cafe.list_orders(status="completed")).value

    assert [o.id for o in everything] == [first, second]
    assert [o.id for o in open_orders] == [second]
    assert [o.id for o in recent] == [second]
    assert [o.id for o in completed] == [first]
    assert asyncio.run(cafe.list_orders(status="COOKING")).error == ErrorKind.VALIDATION


def test_status_updates_stamp_updated_at(cafe, clock):
    order_id = place(cafe).value.id
    clock.advance(60_000)
    result = move(cafe, order_id, "PREPARING")

    assert result.value.status == OrderStatus.PREPARING
    assert result.value.updated_at == START_MS + 60_000
    assert asyncio.run(cafe.get_order(order_id)).value.status == OrderStatus.PREPARING


def test_missing_status_returns_order_unchanged(cafe):
    order_id = place(cafe).value.id
    result = move(cafe, order_id, None)
    assert result.success
    assert result.value.status == OrderStatus.PENDING
    assert result.value.updated_at is None


def test_update_errors(cafe):
    order_id = place(cafe).value.id

    assert move(cafe, "ORD-nope", "READY").error == ErrorKind.NOT_FOUND
    assert move(cafe, order_id, "COOKING").error == ErrorKind.VALIDATION
    skipped = move(cafe, order_id, "READY")
    assert skipped.error == ErrorKind.INVALID_TRANSITION
    assert skipped.http_status == 409


def test_completed_orders_are_final(cafe):
    order_id = place(cafe).value.id
    move(cafe, order_id, "PREPARING", "READY", "BILL_REQUESTED", "COMPLETED")

    for status in ("PENDING", "PREPARING", "READY", "BILL_REQUESTED", "COMPLETED"):
        assert move(cafe, order_id, status).error == ErrorKind.INVALID_TRANSITION
    assert asyncio.run(cafe.get_order(order_id)).value.status == OrderStatus.COMPLETED


class GatedStore(MemoryStore):
    """Holds every order read until ``readers`` of them are in flight."""

    def __init__(self, readers: int):
        super().__init__()
        self.readers = readers
        self.armed = False
        self.waiting = 0
        self.gate = None

    async def find_order(self, order_id):
        order = await super().find_order(order_id)
        if self.armed:
            self.waiting += 1
            if self.waiting >= self.readers:
                self.gate.set()
            await self.gate.wait()
        return order


def test_concurrent_updates_both_succeed_without_locking(clock):
    store = GatedStore(readers=2)
    cafe = CafeService(
        store=store,
        dispatcher=NotificationDispatcher(MockNotificationService()),
        clock=clock,
    )
    order_id = place(cafe).value.id
    move(cafe, order_id, "PREPARING", "READY")

    async def race():
        store.gate = asyncio.Event()
        store.armed = True
        return await asyncio.gather(
            cafe.update_order_status(order_id, "COMPLETED"),
            cafe.update_order_status(order_id, "COMPLETED"),
        )

    first, second = asyncio.run(race())
    store.armed = False

    assert first.success and second.success
    assert asyncio.run(store.find_order(order_id)).status == OrderStatus.COMPLETED


# =============================================================================
# BILLS
# =============================================================================

def bill(cafe: CafeService, **fields):
    fields.setdefault("items", [CHAI])

    async def scenario():
        result = await cafe.create_bill(BillCreate(**fields))
        await cafe.dispatcher.drain()
        return result

    return asyncio.run(scenario())


def test_create_bill_totals(cafe):
    first = bill(cafe, customer_name="h", table_number=4).value
    second = bill(cafe, items=[SAMOSA]).value

    assert (first.subtotal, first.tax, first.service, first.total) == (150, 8, 3, 161)
    assert (second.subtotal, second.tax, second.service, second.total) == (40, 2, 1, 43)
    assert first.id.startswith("BILL-")
    assert asyncio.run(cafe.get_bill(first.id)).value.total == 161


def test_bill_snapshots_items(cafe):
    items = [LineItem(id="tea-1", name="Masala Chai", price=30, quantity=5)]
    created = bill(cafe, items=items).value
    items[0].price = 999

    assert asyncio.run(cafe.get_bill(created.id)).value.items[0].price == 30


def test_bill_validation(cafe, store):
    assert bill(cafe, items=[]).error == ErrorKind.VALIDATION
    assert asyncio.run(store.list_bills()) == []
    assert bill(cafe, customer_phone="123").error == ErrorKind.INVALID_PHONE
    assert asyncio.run(store.list_bills()) == []
    assert asyncio.run(cafe.get_bill("BILL-nope")).error == ErrorKind.NOT_FOUND


def test_bill_completes_its_order(cafe, clock):
    order_id = place(cafe).value.id
    move(cafe, order_id, "PREPARING", "READY")
    clock.advance(5_000)

    created = bill(cafe, order_id=order_id).value
    order = asyncio.run(cafe.get_order(order_id)).value

    assert created.order_id == order_id
    assert order.status == OrderStatus.COMPLETED
    assert order.updated_at == START_MS + 5_000


def test_bill_for_order_copies_the_order(cafe, notifications):
    order = place(cafe, table_number=4, customer_name="Asha", customer_phone="415-555-1234").value
    move(cafe, order.id, "PREPARING", "READY")

    created = bill(cafe, order_id=order.id, items=[]).value

    assert created.table_number == 4
    assert created.customer_name == "Asha"
    assert created.customer_phone == "+14155551234"
    assert [(i.name, i.price, i.quantity) for i in created.items] == [("Masala Chai", 30, 5)]
    assert created.subtotal == order.total_amount == 150
    assert created.total == 161
    assert [phone for phone, _ in notifications.sent] == ["+14155551234"]


def test_bill_items_must_match_the_order(cafe, store):
    order_id = place(cafe, table_number=4, customer_name="Asha").value.id
    move(cafe, order_id, "PREPARING", "READY")

    result = bill(cafe, order_id=order_id, items=[LineItem(id="snack-1", name="Samosa", price=20, quantity=1)])

    assert result.error == ErrorKind.VALIDATION
    assert asyncio.run(store.list_bills()) == []
    assert asyncio.run(cafe.get_order(order_id)).value.status == OrderStatus.READY


def test_bill_rejected_for_unready_order(cafe, store):
    order_id = place(cafe).value.id

    result = bill(cafe, order_id=order_id)
    assert result.error == ErrorKind.INVALID_TRANSITION
    assert asyncio.run(store.list_bills()) == []
    assert bill(cafe, order_id="ORD-nope").error == ErrorKind.NOT_FOUND


def test_bill_notifies_customer(cafe, notifications):
    bill(cafe, customer_phone="415-555-1234", customer_name="Asha")

    [(phone, message)] = notifications.sent
    assert phone == "+14155551234"
    assert "161" in message


def test_bill_without_phone_sends_nothing(cafe, notifications):
    bill(cafe)
    assert notifications.sent == []


def test_bill_succeeds_when_notification_fails(store, clock):
    failing = MockNotificationService(failure_rate=1.0)
    cafe = CafeService(store=store, dispatcher=NotificationDispatcher(failing), clock=clock)

    result = bill(cafe, customer_phone="+14155551234")
    assert result.success
    assert len(asyncio.run(store.list_bills())) == 1


def test_bills_by_customer(cafe, clock):
    older = bill(cafe, customer_phone="+1 415 555 1234").value
    clock.advance(1_000)
    newer = bill(cafe, customer_phone="whatsapp:+14155551234").value
    bill(cafe, customer_phone="+14155550000")

    result = asyncio.run(cafe.list_bills_by_customer("(415) 555-1234"))
    assert [b.id for b in result.value] == [newer.id, older.id]
    assert asyncio.run(cafe.list_bills_by_customer("12")).error == ErrorKind.INVALID_PHONE


def test_generate_sample_bills(cafe):
    result = asyncio.run(cafe.generate_sample_bills())
    assert [b.total for b in result.value] == [161, 43]


# =============================================================================
# CUSTOMERS
# =============================================================================

def test_upsert_customer_preserves_created_at(cafe, clock):
    first = asyncio.run(cafe.upsert_customer(CustomerUpsert(phone="0415 555 1234", name="Asha"))).value
    clock.advance(10_000)
    second = asyncio.run(cafe.upsert_customer(CustomerUpsert(phone="+14155551234", table_number=7))).value

    assert first.phone == second.phone == "+14155551234"
    assert second.created_at == START_MS
    assert second.updated_at == START_MS + 10_000
    assert second.name == "Asha"
    assert second.table_number == 7
    assert len(asyncio.run(cafe.list_customers()).value) == 1


def test_upsert_customer_requires_phone(cafe):
    assert asyncio.run(cafe.upsert_customer(CustomerUpsert(name="Asha"))).error == ErrorKind.VALIDATION
    assert asyncio.run(cafe.upsert_customer(CustomerUpsert(phone="99"))).error == ErrorKind.INVALID_PHONE


def test_daily_report_reads_store(cafe, clock):
    bill(cafe)
    clock.advance(24 * 3600 * 1000)
    bill(cafe, items=[SAMOSA])

    report = asyncio.run(cafe.daily_report(date(2026, 10, 12))).value
    assert report.total_orders == 1
    assert report.total_revenue == 161


class RecordingStore(MemoryStore):
    """Memory store that remembers the windows bills were listed for."""

    def __init__(self):
        super().__init__()
        self.windows = []

    async def list_bills(self, start_ms=None, end_ms=None):
        self.windows.append((start_ms, end_ms))
        return await super().list_bills(start_ms, end_ms)


def test_weekly_and_monthly_reports_query_their_window(clock):
    store = RecordingStore()
    cafe = CafeService(store=store, dispatcher=NotificationDispatcher(MockNotificationService()), clock=clock)
    bill(cafe)
    clock.advance(40 * 24 * 3600 * 1000)
    bill(cafe, items=[SAMOSA])

    weekly = asyncio.run(cafe.weekly_report(date(2026, 10, 14))).value
    monthly = asyncio.run(cafe.monthly_report(date(2026, 10, 14))).value

    assert (weekly.total_orders, monthly.total_orders) == (1, 1)
    assert store.windows == [
        (utc_ms(2026, 10, 12), utc_ms(2026, 10, 19) - 1),
        (utc_ms(2026, 10, 1), utc_ms(2026, 11, 1) - 1),
    ]

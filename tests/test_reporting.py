from datetime import date
from zoneinfo import ZoneInfo

import pytest

from snappy_serve.schemas import Bill, LineItem
from snappy_serve.services import reporting
from snappy_serve.services.billing import compute_bill
from tests.helpers import utc_ms

UTC = ZoneInfo("UTC")
MONDAY = date(2026, 10, 12)

CHAI = {"id": "tea-1", "name": "Masala Chai", "price": 30}
SAMOSA = {"id": "snack-1", "name": "Samosa", "price": 20}


def make_bill(created_at: int, customer_name: str = "Guest", items=()) -> Bill:
    items = [LineItem(**line) for line in items]
    totals = compute_bill(items)
    return Bill(
        id=f"BILL-{created_at}",
        customer_name=customer_name,
        items=items,
        subtotal=totals.subtotal,
        tax=totals.tax,
        service=totals.service,
        total=totals.total,
        created_at=created_at,
    )


@pytest.fixture
def monday_bills():
    return [
        make_bill(utc_ms(2026, 10, 12, 9, 15), "h", items=[{**CHAI, "quantity": 5}]),
        make_bill(utc_ms(2026, 10, 12, 9, 45), "varshit", items=[{**SAMOSA, "quantity": 2}]),
        make_bill(utc_ms(2026, 10, 12, 14, 0), "h", items=[{**SAMOSA, "quantity": 2}]),
        # Sunday night, outside the day
        make_bill(utc_ms(2026, 10, 11, 23, 59, 59), "late", items=[{**CHAI, "quantity": 1}]),
    ]


def test_daily_report(monday_bills):
    report = reporting.daily_report(monday_bills, MONDAY, UTC)

    assert report.date == "2026-10-12"
    assert report.total_orders == 3
    assert report.total_revenue == 161 + 43 + 43
    assert report.average_order_value == pytest.approx(247 / 3)
    assert report.total_customers == 2

    assert len(report.hourly_breakdown) == 24
    assert report.hourly_breakdown[0].hour == "00:00"
    nine = report.hourly_breakdown[9]
    assert (nine.hour, nine.orders, nine.revenue) == ("09:00", 2, 204)
    assert report.hourly_breakdown[14].revenue == 43
    assert sum(b.orders for b in report.hourly_breakdown) == 3


def test_daily_report_wire_format(monday_bills):
    payload = reporting.daily_report(monday_bills, MONDAY, UTC).model_dump(by_alias=True)
    assert {"date", "totalOrders", "totalRevenue", "averageOrderValue",
            "totalCustomers", "topItems", "hourlyBreakdown"} <= payload.keys()


def test_empty_day():
    report = reporting.daily_report([], MONDAY, UTC)
    assert report.total_orders == 0
    assert report.total_revenue == 0
    assert report.average_order_value == 0
    assert report.top_items == []
    assert all(b.orders == 0 and b.revenue == 0 for b in report.hourly_breakdown)


def test_day_boundaries_are_inclusive():
    bills = [
        make_bill(utc_ms(2026, 10, 12, 0, 0), items=[CHAI]),
        make_bill(utc_ms(2026, 10, 12, 23, 59, 59) + 999, items=[CHAI]),
        make_bill(utc_ms(2026, 10, 13, 0, 0), items=[CHAI]),
    ]
    assert reporting.daily_report(bills, MONDAY, UTC).total_orders == 2


def test_report_timezone_moves_day_boundary():
    kolkata = ZoneInfo("Asia/Kolkata")
    # 20:00 UTC is 01:30 the next morning in Kolkata
    bills = [make_bill(utc_ms(2026, 10, 12, 20, 0), items=[CHAI])]

    assert reporting.daily_report(bills, MONDAY, kolkata).total_orders == 0
    report = reporting.daily_report(bills, date(2026, 10, 13), kolkata)
    assert report.total_orders == 1
    assert report.hourly_breakdown[1].orders == 1


def test_top_items_ranking(monday_bills):
    top = reporting.top_items(monday_bills)
    assert [(t.name, t.quantity, t.revenue) for t in top] == [
        ("Masala Chai", 6, 180),
        ("Samosa", 4, 80),
    ]


def test_top_items_group_by_name_without_id():
    bills = [
        make_bill(1, items=[{"name": "Lassi", "price": 60}]),
        make_bill(2, items=[{"name": "Lassi", "price": 60, "quantity": 2}]),
    ]
    [lassi] = reporting.top_items(bills)
    assert (lassi.quantity, lassi.revenue) == (3, 180)


def test_top_items_ties_keep_first_seen_order():
    bills = [make_bill(1, items=[
        {"id": "a", "name": "Poha", "price": 40},
        {"id": "b", "name": "Upma", "price": 40},
        {"id": "c", "name": "Idli", "price": 40, "quantity": 2},
    ])]
    assert [t.name for t in reporting.top_items(bills)] == ["Idli", "Poha", "Upma"]


def test_top_items_limited_to_ten():
    items = [{"id": f"item-{i}", "name": f"Item {i}", "price": 10, "quantity": i + 1} for i in range(12)]
    top = reporting.top_items([make_bill(1, items=items)])
    assert len(top) == 10
    assert top[0].name == "Item 11"


def test_weekly_report():
    bills = [
        make_bill(utc_ms(2026, 10, 12, 10, 0), items=[CHAI]),
        make_bill(utc_ms(2026, 10, 14, 10, 0), items=[CHAI]),
        make_bill(utc_ms(2026, 10, 18, 23, 59), items=[CHAI]),
        make_bill(utc_ms(2026, 10, 19, 0, 0), items=[CHAI]),
    ]
    report = reporting.weekly_report(bills, date(2026, 10, 14), UTC)

    assert report.week == "2026-10-12 to 2026-10-18"
    assert report.total_orders == 3
    assert [d.day for d in report.daily_breakdown] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    assert [d.orders for d in report.daily_breakdown] == [1, 0, 1, 0, 0, 0, 1]
    assert report.daily_breakdown[6].date == "2026-10-18"


def test_monthly_report():
    bills = [
        make_bill(utc_ms(2026, 10, 1, 8, 0), items=[CHAI]),
        make_bill(utc_ms(2026, 10, 8, 8, 0), items=[CHAI]),
        make_bill(utc_ms(2026, 10, 31, 22, 0), items=[CHAI]),
        make_bill(utc_ms(2026, 11, 1, 0, 0), items=[CHAI]),
    ]
    report = reporting.monthly_report(bills, date(2026, 10, 20), UTC)

    assert report.month == "2026-10"
    assert report.total_orders == 3
    assert [w.week for w in report.weekly_breakdown] == ["Week 1", "Week 2", "Week 3", "Week 4", "Week 5"]
    assert [w.orders for w in report.weekly_breakdown] == [1, 1, 0, 0, 1]


def test_february_has_four_weeks():
    report = reporting.monthly_report([], date(2026, 2, 10), UTC)
    assert len(report.weekly_breakdown) == 4

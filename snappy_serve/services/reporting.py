"""
Reporting Aggregator

Folds bills into revenue, top-item and per-period statistics. Every
function here is pure: it only reads the bills it is given, so reports can
be recomputed on demand and nothing is cached.

Bills are filtered to the requested window here as well, so callers may
pass a superset (e.g. every bill in the store).
"""

import calendar
from datetime import date, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from snappy_serve.core.time_utils import day_end_ms, day_start_ms, local_datetime
from snappy_serve.schemas import (
    Bill,
    DailyBucket,
    DailyReport,
    HourlyBucket,
    MonthlyReport,
    TopItem,
    WeeklyBucket,
    WeeklyReport,
)

TOP_ITEMS_LIMIT = 10


def bills_between(bills: Iterable[Bill], start_ms: int, end_ms: int) -> list[Bill]:
    """Bills with createdAt in [start_ms, end_ms], inclusive both ends."""
    return [b for b in bills if start_ms <= b.created_at <= end_ms]


def top_items(bills: Iterable[Bill], limit: int = TOP_ITEMS_LIMIT) -> list[TopItem]:
    """
    Best sellers by quantity.

    Lines are grouped by item id, or by name when the id is missing. Ties keep
    the order in which items were first seen.
    """
    grouped: dict[str, TopItem] = {}
    for bill in bills:
        for item in bill.items:
            key = item.id or item.name
            entry = grouped.get(key)
            if entry is None:
                entry = grouped[key] = TopItem(name=item.name, quantity=0, revenue=0)
            entry.quantity += item.quantity
            entry.revenue += item.line_total

    ranked = sorted(grouped.values(), key=lambda e: e.quantity, reverse=True)
    return ranked[:limit]


def _summary(bills: list[Bill]) -> dict:
    total_revenue = sum(b.total for b in bills)
    total_orders = len(bills)
    return {
        "total_orders": total_orders,
        "total_revenue": total_revenue,
        "average_order_value": total_revenue / total_orders if total_orders else 0,
        # Customers are counted by display name, not phone
        "total_customers": len({b.customer_name for b in bills}),
        "top_items": top_items(bills),
    }


def _bucket(bills: Iterable[Bill]) -> tuple[int, int]:
    bills = list(bills)
    return len(bills), sum(b.total for b in bills)


def daily_report(bills: Iterable[Bill], day: date, tz: ZoneInfo) -> DailyReport:
    """Statistics for one calendar day in ``tz`` with 24 hourly buckets."""
    day_bills = bills_between(bills, day_start_ms(day, tz), day_end_ms(day, tz))

    by_hour: dict[int, list[Bill]] = {h: [] for h in range(24)}
    for bill in day_bills:
        by_hour[local_datetime(bill.created_at, tz).hour].append(bill)

    hourly = []
    for hour in range(24):
        orders, revenue = _bucket(by_hour[hour])
        hourly.append(HourlyBucket(hour=f"{hour:02d}:00", orders=orders, revenue=revenue))

    return DailyReport(date=day.isoformat(), hourly_breakdown=hourly, **_summary(day_bills))


def week_bounds(day: date) -> tuple[date, date]:
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def month_bounds(day: date) -> tuple[date, date]:
    return day.replace(day=1), day.replace(day=calendar.monthrange(day.year, day.month)[1])


def weekly_report(bills: Iterable[Bill], day: date, tz: ZoneInfo) -> WeeklyReport:
    """Monday-to-Sunday week containing ``day``."""
    bills = list(bills)
    monday, sunday = week_bounds(day)
    week_bills = bills_between(bills, day_start_ms(monday, tz), day_end_ms(sunday, tz))

    daily = []
    for offset in range(7):
        current = monday + timedelta(days=offset)
        orders, revenue = _bucket(
            bills_between(week_bills, day_start_ms(current, tz), day_end_ms(current, tz))
        )
        daily.append(DailyBucket(
            day=current.strftime("%a"),
            date=current.isoformat(),
            orders=orders,
            revenue=revenue,
        ))

    return WeeklyReport(
        week=f"{monday.isoformat()} to {sunday.isoformat()}",
        daily_breakdown=daily,
        **_summary(week_bills),
    )


def monthly_report(bills: Iterable[Bill], day: date, tz: ZoneInfo) -> MonthlyReport:
    """Calendar month containing ``day``, split into 7-day weeks from the 1st."""
    bills = list(bills)
    first, last = month_bounds(day)
    month_bills = bills_between(bills, day_start_ms(first, tz), day_end_ms(last, tz))

    weekly = []
    week_start = first
    week_number = 1
    while week_start <= last:
        week_end = min(week_start + timedelta(days=6), last)
        orders, revenue = _bucket(
            bills_between(month_bills, day_start_ms(week_start, tz), day_end_ms(week_end, tz))
        )
        weekly.append(WeeklyBucket(week=f"Week {week_number}", orders=orders, revenue=revenue))
        week_start = week_end + timedelta(days=1)
        week_number += 1

    return MonthlyReport(
        month=first.strftime("%Y-%m"),
        weekly_breakdown=weekly,
        **_summary(month_bills),
    )

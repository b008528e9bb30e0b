import time
from datetime import date, datetime, time as dt_time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name}")


def to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def day_start_ms(day: date, tz: ZoneInfo) -> int:
    """00:00:00.000 of ``day`` in ``tz`` as epoch milliseconds."""
    return to_ms(datetime.combine(day, dt_time.min, tzinfo=tz))


def day_end_ms(day: date, tz: ZoneInfo) -> int:
    """23:59:59.999 of ``day`` in ``tz`` as epoch milliseconds."""
    return day_start_ms(day + timedelta(days=1), tz) - 1


def local_datetime(ms: int, tz: ZoneInfo) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=tz)


def today(tz: ZoneInfo) -> date:
    return datetime.now(tz).date()


def parse_date(value: Optional[str], tz: ZoneInfo) -> date:
    """
    Parse YYYY-MM-DD; empty means today in ``tz``.

    Raises:
        ValueError: Malformed date
    """
    if not value:
        return today(tz)
    return date.fromisoformat(value.strip())

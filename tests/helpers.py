from datetime import datetime, timezone

from snappy_serve.core.config import Settings
from snappy_serve.core.time_utils import to_ms

# 2026-10-12 09:00:00 UTC, a Monday
START_MS = 1_791_795_600_000


class FakeClock:
    """Callable clock returning epoch milliseconds under test control."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def utc_ms(*args) -> int:
    """utc_ms(2026, 10, 12, 9, 15) -> epoch milliseconds."""
    return to_ms(datetime(*args, tzinfo=timezone.utc))


def make_settings(**overrides) -> Settings:
    values = {
        "env_mode": "development",
        "storage_backend": "memory",
        "default_country_code": "+1",
        "notification_failure_rate": 0.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)

import pytest
from fastapi.testclient import TestClient

from snappy_serve.core.config import get_settings
from snappy_serve.main import create_app
from snappy_serve.services.notifications import MockNotificationService, NotificationDispatcher
from snappy_serve.services.orders import CafeService
from snappy_serve.services.storage import MemoryStore
from tests.helpers import FakeClock, make_settings


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIRECTORY", str(tmp_path / "data"))
    monkeypatch.setenv("DEFAULT_COUNTRY_CODE", "+1")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifications():
    return MockNotificationService()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cafe(store, notifications, clock):
    return CafeService(
        store=store,
        dispatcher=NotificationDispatcher(notifications),
        default_country_code="+1",
        clock=clock,
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client

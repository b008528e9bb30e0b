import asyncio
import logging
from types import SimpleNamespace

from twilio.base.exceptions import TwilioException

from snappy_serve.schemas import Bill, LineItem
from snappy_serve.services.notifications import (
    BaseNotificationService,
    MockNotificationService,
    NotificationDispatcher,
    NotificationResult,
    TwilioNotificationService,
    build_notification_service,
)
from snappy_serve.services.notifications import mock as mock_module
from tests.helpers import make_settings


class FakeMessages:
    def __init__(self, error: Exception = None):
        self.error = error
        self.created = []

    def create(self, body, from_, to):
        if self.error:
            raise self.error
        self.created.append({"body": body, "from_": from_, "to": to})
        return SimpleNamespace(sid="SM123")


def fake_client(error: Exception = None):
    return SimpleNamespace(messages=FakeMessages(error))


def twilio_settings(**overrides):
    values = {
        "env_mode": "production",
        "twilio_account_sid": "AC123",
        "twilio_auth_token": "secret",
        "twilio_whatsapp_from": "+14155238886",
        "twilio_phone_number": "+15005550006",
    }
    values.update(overrides)
    return make_settings(**values)


def test_twilio_whatsapp_addresses():
    client = fake_client()
    service = TwilioNotificationService(twilio_settings(), client=client)

    result = asyncio.run(service.send("+14155551234", "hello"))

    assert result == NotificationResult(delivered=True, message_id="SM123", provider="twilio-whatsapp")
    assert client.messages.created == [
        {"body": "hello", "from_": "whatsapp:+14155238886", "to": "whatsapp:+14155551234"},
    ]


def test_twilio_sms_channel():
    client = fake_client()
    service = TwilioNotificationService(twilio_settings(notification_channel="sms"), client=client)

    asyncio.run(service.send("+14155551234", "hello"))

    assert client.messages.created[0]["from_"] == "+15005550006"
    assert client.messages.created[0]["to"] == "+14155551234"
    assert service.provider_name == "twilio-sms"


def test_twilio_errors_are_reported_not_raised():
    service = TwilioNotificationService(twilio_settings(), client=fake_client(TwilioException("bad number")))
    result = asyncio.run(service.send("+14155551234", "hello"))
    assert not result.delivered
    assert result.reason == "bad number"


def test_twilio_not_configured():
    settings = make_settings(env_mode="production")
    service = TwilioNotificationService(settings)

    result = asyncio.run(service.send("+14155551234", "hello"))
    assert not result.delivered
    assert result.reason == "Twilio not configured"
    assert asyncio.run(service.health_check()) is False
    assert "TWILIO_ACCOUNT_SID" in settings.validate_production_config()


def test_factory_picks_service_by_mode():
    assert isinstance(build_notification_service(make_settings()), MockNotificationService)
    assert isinstance(build_notification_service(twilio_settings()), TwilioNotificationService)


def test_factory_passes_mock_settings():
    settings = make_settings(
        notification_failure_rate=0.25,
        notification_min_latency=0.01,
        notification_max_latency=0.02,
    )
    service = build_notification_service(settings)

    assert (service.failure_rate, service.min_latency, service.max_latency) == (0.25, 0.01, 0.02)


def test_mock_latency_delays_send(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(mock_module, "asyncio", SimpleNamespace(sleep=fake_sleep))
    service = MockNotificationService(min_latency=0.05, max_latency=0.1)

    assert asyncio.run(service.send("+14155551234", "hello")).delivered
    [delay] = delays
    assert 0.05 <= delay <= 0.1


def test_message_templates():
    service = MockNotificationService(cafe_name="Chai Point")
    bill = Bill(
        id="BILL-1",
        table_number=4,
        customer_name="Asha",
        items=[LineItem(name="Masala Chai", price=30, quantity=5)],
        subtotal=150,
        tax=8,
        service=3,
        total=161,
        created_at=0,
    )

    asyncio.run(service.send_otp("+14155551234", "4821"))
    asyncio.run(service.send_bill_notification("+14155551234", bill))

    otp_message, bill_message = [message for _, message in service.sent]
    assert "4821" in otp_message and "Chai Point" in otp_message
    assert "Total: 161" in bill_message and "Table: 4" in bill_message


class ExplodingService(BaseNotificationService):
    @property
    def provider_name(self) -> str:
        return "exploding"

    async def send(self, to_phone, message):
        raise RuntimeError("gateway on fire")

    async def health_check(self) -> bool:
        return False


def test_dispatcher_contains_crashes(caplog):
    dispatcher = NotificationDispatcher(ExplodingService())

    async def scenario():
        dispatcher.dispatch(lambda service: service.send_otp("+14155551234", "1234"), "OTP")
        assert dispatcher.pending == 1
        await dispatcher.drain()

    with caplog.at_level(logging.ERROR):
        asyncio.run(scenario())

    assert dispatcher.pending == 0
    assert "Notification crashed: OTP" in caplog.text


def test_dispatcher_logs_undelivered(caplog):
    dispatcher = NotificationDispatcher(MockNotificationService(failure_rate=1.0))

    async def scenario():
        dispatcher.dispatch(lambda service: service.send("+14155551234", "hi"), "test message")
        await dispatcher.drain()

    with caplog.at_level(logging.WARNING):
        asyncio.run(scenario())

    assert "Notification not delivered: test message" in caplog.text

import pytest

from snappy_serve.core.config import get_settings
from snappy_serve.services.phone import is_valid_phone, normalize_phone


@pytest.mark.parametrize("raw, expected", [
    ("0455123456", "+1455123456"),
    ("0455 123 456", "+1455123456"),
    ("+1 (415) 555-1234", "+14155551234"),
    ("whatsapp:+14155551234", "+14155551234"),
    ("whatsapp:415-555-1234", "+14155551234"),
    ("  +91 98765 43210  ", "+919876543210"),
    (4155551234, "+14155551234"),
])
def test_normalize(raw, expected):
    assert normalize_phone(raw, "+1") == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "whatsapp:"])
def test_normalize_nothing_usable(raw):
    assert normalize_phone(raw, "+1") is None


@pytest.mark.parametrize("raw", ["0455123456", "whatsapp:+44 7700 900123", "415.555.1234", "+1"])
def test_normalize_is_idempotent(raw):
    once = normalize_phone(raw, "+1")
    assert normalize_phone(once, "+1") == once


def test_country_code_from_settings(monkeypatch):
    monkeypatch.setenv("DEFAULT_COUNTRY_CODE", "+91")
    get_settings.cache_clear()
    assert normalize_phone("98765 43210") == "+919876543210"


def test_explicit_plus_ignores_country_code():
    assert normalize_phone("+447700900123", "+91") == "+447700900123"


@pytest.mark.parametrize("raw, valid", [
    ("+12345678", True),
    ("+1234567", False),
    ("12345", False),
    ("0455123456", True),
    ("", False),
    (None, False),
    ("call me", False),
])
def test_is_valid_phone(raw, valid):
    assert is_valid_phone(raw, "+1") is valid

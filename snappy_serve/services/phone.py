"""
Phone Normalization

Turns whatever a customer typed ("0455 123 456", "whatsapp:+1 415-555-1234")
into one comparable key. The key is used everywhere phones are compared:
OTP records, customers and bills.
"""

import re
from typing import Optional

from snappy_serve.core.config import get_settings

TRANSPORT_PREFIX = "whatsapp:"
MIN_DIGITS = 8

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_phone(raw: Optional[str], default_country_code: Optional[str] = None) -> Optional[str]:
    """
    Canonicalize a raw phone string.

    Args:
        raw: User input, possibly with spaces, dashes or a whatsapp: prefix
        default_country_code: Prefix for numbers without a leading +
            (defaults to the DEFAULT_COUNTRY_CODE setting)

    Returns:
        "+<digits>" or None when nothing usable remains
    """
    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None

    if value.startswith(TRANSPORT_PREFIX):
        value = value[len(TRANSPORT_PREFIX):].strip()

    has_plus = value.startswith("+")
    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return None

    if not has_plus:
        if default_country_code is None:
            default_country_code = get_settings().default_country_code
        # "0455..." with +1 is "+1455...", not "+10455..."
        digits = default_country_code.lstrip("+") + digits.lstrip("0")

    return f"+{digits}"


def is_valid_phone(raw: Optional[str], default_country_code: Optional[str] = None) -> bool:
    """Loose sanity check: at least 8 digits after normalization."""
    normalized = normalize_phone(raw, default_country_code)
    if not normalized:
        return False
    return len(normalized) - 1 >= MIN_DIGITS

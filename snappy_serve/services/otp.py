"""
OTP Session Manager

Issues and verifies 4-digit one-time codes keyed by normalized phone.

    request_otp ──▶ record {code, createdAt, attempts=0} ──▶ background send
    verify_otp  ──▶ match ──▶ delete record, upsert customer (verifiedAt)

One outstanding code per phone; a new request overwrites the old one.
Records live in a plain dict on the manager (no locking) and disappear on
restart; expired ones are also swept on every new request. Expiry and the
attempt cap are both configurable and both switch off at 0, which restores
unlimited, never-expiring codes.
"""

import logging
import secrets
from dataclasses import dataclass, field
from typing import Callable, Optional

from snappy_serve.core.errors import ErrorKind, ServiceResult, StorageUnavailable
from snappy_serve.core.time_utils import now_ms
from snappy_serve.services.notifications import NotificationDispatcher
from snappy_serve.services.phone import is_valid_phone, normalize_phone
from snappy_serve.services.storage import BaseStore

logger = logging.getLogger(__name__)

CODE_MIN = 1000
CODE_MAX = 9999


@dataclass
class OtpRecord:
    code: str
    created_at: int
    attempts: int = 0


@dataclass
class OtpIssued:
    phone: str
    code: str


@dataclass
class OtpVerified:
    phone: str


def generate_code() -> str:
    """Uniform over [1000, 9999]."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


@dataclass
class OtpSessionManager:
    """Owns the OTP table for one application instance."""
    store: BaseStore
    dispatcher: NotificationDispatcher
    default_country_code: str = "+1"
    ttl_seconds: int = 0
    max_attempts: int = 0
    clock: Callable[[], int] = now_ms
    code_factory: Callable[[], str] = generate_code
    records: dict[str, OtpRecord] = field(default_factory=dict)

    def _normalize(self, raw_phone: Optional[str]) -> Optional[str]:
        if not is_valid_phone(raw_phone, self.default_country_code):
            return None
        return normalize_phone(raw_phone, self.default_country_code)

    def _expired(self, record: OtpRecord, now: int) -> bool:
        if self.ttl_seconds <= 0:
            return False
        return now - record.created_at > self.ttl_seconds * 1000

    def _prune(self, now: int) -> None:
        """Drop expired codes nobody came back to verify."""
        for phone in [p for p, r in self.records.items() if self._expired(r, now)]:
            del self.records[phone]

    def pending(self) -> dict[str, dict]:
        """Snapshot of outstanding codes (development debug endpoint)."""
        return {
            phone: {"code": r.code, "createdAt": r.created_at, "attempts": r.attempts}
            for phone, r in self.records.items()
        }

    def request_otp(self, raw_phone: Optional[str]) -> ServiceResult[OtpIssued]:
        """
        Issue a new code and send it in the background.

        Delivery problems are only logged; the code is issued either way.
        Must be called from a running event loop.
        """
        if not raw_phone:
            return ServiceResult.fail(ErrorKind.INVALID_PHONE, "Phone required")
        phone = self._normalize(raw_phone)
        if phone is None:
            return ServiceResult.fail(ErrorKind.INVALID_PHONE, "Invalid phone format")

        now = self.clock()
        self._prune(now)
        code = self.code_factory()
        self.records[phone] = OtpRecord(code=code, created_at=now)
        logger.info(f"OTP issued for {phone}")
        logger.debug(f"OTP for {phone}: {code}")

        self.dispatcher.dispatch(
            lambda service: service.send_otp(phone, code),
            f"OTP to {phone}",
        )
        return ServiceResult.ok(OtpIssued(phone=phone, code=code))

    async def verify_otp(self, raw_phone: Optional[str], code: Optional[str]) -> ServiceResult[OtpVerified]:
        """Check a code; on success consume it and mark the customer verified."""
        if not raw_phone or not code:
            return ServiceResult.fail(ErrorKind.VALIDATION, "Phone and code required")
        phone = self._normalize(raw_phone)
        if phone is None:
            return ServiceResult.fail(ErrorKind.INVALID_PHONE, "Invalid phone format")

        record = self.records.get(phone)
        if record is None:
            return ServiceResult.fail(ErrorKind.NO_OTP_REQUESTED, "No OTP requested")

        now = self.clock()
        if self._expired(record, now):
            del self.records[phone]
            return ServiceResult.fail(ErrorKind.OTP_EXPIRED, "OTP expired, request a new code")

        if record.code != str(code).strip():
            record.attempts += 1
            if self.max_attempts and record.attempts >= self.max_attempts:
                del self.records[phone]
                logger.warning(f"OTP for {phone} discarded after {record.attempts} wrong attempts")
                return ServiceResult.fail(ErrorKind.TOO_MANY_ATTEMPTS, "Too many attempts, request a new code")
            return ServiceResult.fail(ErrorKind.INVALID_CODE, "Invalid code")

        del self.records[phone]
        try:
            await self.store.touch_customer(phone, now, verified=True)
        except StorageUnavailable as e:
            logger.warning(f"Could not record verification for {phone}: {e}")

        logger.info(f"OTP verified for {phone}")
        return ServiceResult.ok(OtpVerified(phone=phone))

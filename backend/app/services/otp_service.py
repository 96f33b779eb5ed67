"""
OTP Registry - single-use numeric codes for phone verification

One outstanding record per phone. Issuing again overwrites the previous code.
A record is removed on successful verification, when found expired, or on the
attempt after the last allowed failure.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ..exceptions import OTPExpired, OTPMismatch, OTPNotFound, OTPTooManyAttempts
from .store import KeyValueStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp_code() -> str:
    """6-digit code drawn uniformly from [100000, 999999]"""
    return str(100000 + secrets.randbelow(900000))


class OTPRegistry:

    def __init__(
        self,
        store: KeyValueStore,
        expire_minutes: int = 5,
        max_attempts: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ttl = timedelta(minutes=expire_minutes)
        self.max_attempts = max_attempts
        self.clock = clock

    @staticmethod
    def _key(phone: str) -> str:
        return f"otp:{phone}"

    def issue(self, phone: str, identity: Any) -> str:
        """Create a fresh code for `phone`, replacing any pending one."""
        code = generate_otp_code()
        expires_at = self.clock() + self.ttl
        self.store.set(
            self._key(phone),
            {
                "phone": phone,
                "code": code,
                "expires_at": expires_at.isoformat(),
                "attempt_count": 0,
                "identity": identity,
            },
            expires_at,
        )
        logger.info(f"OTP issued for phone {phone}, expires at {expires_at.isoformat()}")
        return code

    def discard(self, phone: str) -> bool:
        return self.store.delete(self._key(phone))

    def attempts(self, phone: str) -> Optional[int]:
        """Attempts used on the pending code, None when nothing is pending. Read-only."""
        record = self.store.get(self._key(phone))
        return None if record is None else record["attempt_count"]

    def verify(self, phone: str, code: str) -> Any:
        """
        Check `code` against the pending record for `phone`.

        Returns the identity stored at issue time. Raises OTPNotFound,
        OTPExpired, OTPTooManyAttempts or OTPMismatch.
        """
        key = self._key(phone)
        record = self.store.get(key)
        if record is None:
            raise OTPNotFound()

        if self.clock() > datetime.fromisoformat(record["expires_at"]):
            self.store.delete(key)
            logger.info(f"OTP for phone {phone} expired")
            raise OTPExpired()

        if record["attempt_count"] >= self.max_attempts:
            self.store.delete(key)
            logger.warning(f"OTP for phone {phone} invalidated after {record['attempt_count']} failed attempts")
            raise OTPTooManyAttempts()

        record["attempt_count"] += 1
        if not secrets.compare_digest(record["code"].encode(), str(code).encode()):
            self.store.set(key, record, datetime.fromisoformat(record["expires_at"]))
            logger.info(f"OTP mismatch for phone {phone} (attempt {record['attempt_count']})")
            raise OTPMismatch(record["attempt_count"])

        self.store.delete(key)
        logger.info(f"OTP verified for phone {phone}")
        return record["identity"]

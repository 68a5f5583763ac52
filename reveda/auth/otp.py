"""
One-time passcode generation and expiry policy.

Pure policy: nothing here touches the database. The authentication service
attaches the generated code and expiry to a user record.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

OTP_MIN = 100000
OTP_MAX = 999999

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    """
    Treat naive datetimes as UTC.

    SQLite drops tzinfo on the way back from the database, so stored
    expiries may come back naive.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

class OTPService:
    """
    Issues six digit numeric codes with a fixed validity window.

    Args:
        expire_minutes: Lifetime of a code (default: 10)
        clock: Callable returning the current aware UTC datetime
    """

    def __init__(self, expire_minutes: int = 10, clock: Callable[[], datetime] = utc_now):
        self.expire_minutes = expire_minutes
        self.clock = clock

    def generate(self) -> str:
        """
        Generate a uniformly random code in the range 100000-999999.

        Returns:
            A six character string of digits
        """
        return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))

    def expiry_from_now(self) -> datetime:
        """Expiry timestamp for a code issued now."""
        return self.clock() + timedelta(minutes=self.expire_minutes)

    def is_expired(self, expiry: datetime, now: Optional[datetime] = None) -> bool:
        """
        Check whether a code has expired.

        Args:
            expiry: Expiry stored with the code
            now: Reference time (defaults to the service clock)

        Returns:
            bool: True only if ``now`` is strictly after ``expiry``
        """
        now = as_utc(now or self.clock())
        return now > as_utc(expiry)

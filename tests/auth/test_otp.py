"""
Tests for OTP generation and expiry policy.
"""
from datetime import datetime, timedelta, timezone

from reveda.auth.otp import OTPService


def test_generated_codes_are_six_digits():
    otp = OTPService()
    for _ in range(2000):
        code = otp.generate()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_codes_vary():
    otp = OTPService()
    assert len({otp.generate() for _ in range(50)}) > 1


def test_expiry_is_ten_minutes_from_issuance(clock, otp_service):
    assert otp_service.expiry_from_now() == clock.now + timedelta(minutes=10)


def test_is_expired_is_strict(otp_service):
    expiry = datetime(2026, 1, 1, 12, 10, tzinfo=timezone.utc)
    assert otp_service.is_expired(expiry, now=expiry) is False
    assert otp_service.is_expired(expiry, now=expiry - timedelta(seconds=1)) is False
    assert otp_service.is_expired(expiry, now=expiry + timedelta(microseconds=1)) is True


def test_naive_expiry_is_treated_as_utc(clock, otp_service):
    naive_expiry = (clock.now + timedelta(minutes=5)).replace(tzinfo=None)
    assert otp_service.is_expired(naive_expiry) is False
    clock.advance(minutes=6)
    assert otp_service.is_expired(naive_expiry) is True

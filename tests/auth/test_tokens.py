"""
Tests for access/refresh token issuance and verification.
"""
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from reveda.auth.exceptions import InvalidTokenError
from reveda.auth.tokens import TokenService

from conftest import ACCESS_SECRET, REFRESH_SECRET


@pytest.fixture
def user(make_user):
    return make_user(is_verified=True)


def test_access_token_round_trip(token_service, user):
    claims = token_service.verify_access_token(token_service.issue_access_token(user))
    assert claims.user_id == str(user.id)
    assert claims.email == "jane@x.com"
    assert claims.is_verified is True


def test_token_lifetimes(token_service, user):
    now = datetime.now(timezone.utc)
    access = token_service.verify_access_token(token_service.issue_access_token(user))
    refresh = token_service.verify_refresh_token(token_service.issue_refresh_token(user))
    assert timedelta(minutes=14) < access.expires_at - now <= timedelta(minutes=15, seconds=5)
    assert timedelta(days=6, hours=23) < refresh.expires_at - now <= timedelta(days=7, seconds=5)


def test_access_token_rejected_as_refresh_token(token_service, user):
    with pytest.raises(InvalidTokenError):
        token_service.verify_refresh_token(token_service.issue_access_token(user))


def test_refresh_token_rejected_as_access_token(token_service, user):
    with pytest.raises(InvalidTokenError):
        token_service.verify_access_token(token_service.issue_refresh_token(user))


def test_refresh_shaped_token_signed_with_access_secret_is_rejected(token_service, user):
    forged = jwt.encode(
        {"userId": str(user.id), "email": user.email, "isVerified": True, "type": "refresh",
         "exp": datetime.now(timezone.utc) + timedelta(days=1)},
        ACCESS_SECRET, algorithm="HS256",
    )
    with pytest.raises(InvalidTokenError):
        token_service.verify_refresh_token(forged)


def test_wrong_signature_is_rejected(token_service, user):
    other = TokenService("another-access", "another-refresh")
    with pytest.raises(InvalidTokenError):
        token_service.verify_refresh_token(other.issue_refresh_token(user))


def test_tampered_token_is_rejected(token_service, user):
    token = token_service.issue_access_token(user)
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload[:-2] + ("AA" if payload[-2:] != "AA" else "BB"), signature])
    with pytest.raises(InvalidTokenError):
        token_service.verify_access_token(tampered)


def test_expired_token_is_rejected_like_a_tampered_one(user):
    service = TokenService(ACCESS_SECRET, REFRESH_SECRET, access_expires=timedelta(seconds=-1))
    with pytest.raises(InvalidTokenError) as excinfo:
        service.verify_access_token(service.issue_access_token(user))
    assert excinfo.value.detail == "Invalid token"


def test_garbage_and_payload_without_user_id_are_rejected(token_service):
    with pytest.raises(InvalidTokenError):
        token_service.verify_access_token("not-a-jwt")
    missing_user = jwt.encode(
        {"email": "a@b.com", "type": "access", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        ACCESS_SECRET, algorithm="HS256",
    )
    with pytest.raises(InvalidTokenError):
        token_service.verify_access_token(missing_user)


def test_issue_tokens_returns_distinct_pair(token_service, user):
    pair = token_service.issue_tokens(user)
    assert pair.access_token != pair.refresh_token
    assert pair.to_dict() == {"accessToken": pair.access_token, "refreshToken": pair.refresh_token}

"""
Test configuration for the ReVeda backend.
"""
import os

# Settings are read at import time, so the environment is prepared first
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["AUTH_RATE_LIMIT"] = "100000"
os.environ["OTP_RATE_LIMIT"] = "100000"
os.environ.pop("BOOTSTRAP_ADMIN_EMAIL", None)

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reveda.database import Base, get_db
from reveda.main import app
from reveda.auth.dependencies import (
    get_google_verifier,
    get_notifier,
    get_otp_service,
    get_token_service,
)
from reveda.auth.federated import FederatedIdentity
from reveda.auth.models import RoleName
from reveda.auth.otp import OTPService
from reveda.auth.repository import RoleRepository, UserRepository
from reveda.auth.service import AuthService
from reveda.auth.tokens import TokenService
from reveda.core.bootstrap import seed_roles

# Test database URL
TEST_DATABASE_URL = "sqlite:///./test.db"

# Create test database engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"
GOOGLE_CLIENT_ID = "test-client-id"
MOCK_GOOGLE_TOKEN = "mock-google-id-token-dev"


class FakeNotifier:
    """Records every OTP instead of sending it; ``fail`` makes every send fail."""

    def __init__(self):
        self.sent: List[Dict[str, str]] = []
        self.fail = False

    async def send_otp_email(self, address, code, display_name):
        if self.fail:
            return False
        self.sent.append({"channel": "email", "to": address, "code": code})
        return True

    async def send_otp_sms(self, number, code):
        if self.fail:
            return False
        self.sent.append({"channel": "sms", "to": number, "code": code})
        return True

    @property
    def last(self) -> Optional[Dict[str, str]]:
        return self.sent[-1] if self.sent else None


class FakeGoogleVerifier:
    """Accepts the tokens registered in ``identities``."""

    def __init__(self):
        self.identities: Dict[str, FederatedIdentity] = {}
        self.calls: List[str] = []

    async def verify(self, identity_token, expected_audience=None):
        self.calls.append(identity_token)
        if expected_audience != GOOGLE_CLIENT_ID:
            return None
        return self.identities.get(identity_token)


class FrozenClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def run(coro):
    """Drive an async service call from a sync test."""
    return asyncio.run(coro)


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database with seeded roles for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    seed_roles(db)
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def google():
    return FakeGoogleVerifier()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def otp_service(clock):
    return OTPService(expire_minutes=10, clock=clock)


@pytest.fixture
def token_service():
    return TokenService(ACCESS_SECRET, REFRESH_SECRET)


@pytest.fixture
def users(db):
    return UserRepository(db)


@pytest.fixture
def roles(db):
    return RoleRepository(db)


@pytest.fixture
def auth_service(users, roles, otp_service, token_service, notifier, google):
    return AuthService(
        users=users,
        roles=roles,
        otp=otp_service,
        tokens=token_service,
        notifier=notifier,
        google=google,
        google_client_id=GOOGLE_CLIENT_ID,
        mock_google_token=MOCK_GOOGLE_TOKEN,
    )


@pytest.fixture
def make_user(users, roles):
    """Insert a user directly into the store."""
    def _make_user(email="jane@x.com", phone_number="9876543210", role=RoleName.PATIENT,
                   is_verified=False, **fields):
        role_row = roles.find_role_by_name(role.value)
        return users.create_user(
            first_name=fields.pop("first_name", "Jane"),
            last_name=fields.pop("last_name", "Doe"),
            email=email,
            phone_number=phone_number,
            role_id=role_row.id,
            is_verified=is_verified,
            **fields,
        )
    return _make_user


@pytest.fixture(scope="function")
def client(db, notifier, google, otp_service, token_service):
    """
    Create a test client with a test database session and fake delivery channels.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_google_verifier] = lambda: google
    app.dependency_overrides[get_otp_service] = lambda: otp_service
    app.dependency_overrides[get_token_service] = lambda: token_service

    with TestClient(app) as client:
        yield client

    app.dependency_overrides = {}


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}

"""
FastAPI dependencies for authentication and authorization.

Long-lived components (token signer, OTP policy, notification dispatcher,
Google verifier) are built once from settings; per-request components bind
them to the request's database session. Tests swap any of them through
``app.dependency_overrides``.
"""
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..core.audit_service import create_audit_log
from ..database import get_db
from .exceptions import AuthError, PermissionDeniedException
from .federated import GoogleIdentityVerifier, build_google_verifier
from .gate import AccessGate
from .models import RoleName, User
from .notifications import NotificationDispatcher, build_notification_dispatcher
from .otp import OTPService
from .repository import RoleRepository, UserRepository
from .service import AuthService
from .tokens import TokenService, build_token_service

@lru_cache
def get_token_service() -> TokenService:
    return build_token_service(settings)

@lru_cache
def get_otp_service() -> OTPService:
    return OTPService(expire_minutes=settings.otp_expire_minutes)

@lru_cache
def get_notifier() -> NotificationDispatcher:
    return build_notification_dispatcher(settings)

@lru_cache
def get_google_verifier() -> GoogleIdentityVerifier:
    return build_google_verifier(settings)

def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)

def get_auth_service(
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    otp: OTPService = Depends(get_otp_service),
    notifier: NotificationDispatcher = Depends(get_notifier),
    google: GoogleIdentityVerifier = Depends(get_google_verifier),
) -> AuthService:
    return AuthService(
        users=UserRepository(db),
        roles=RoleRepository(db),
        otp=otp,
        tokens=tokens,
        notifier=notifier,
        google=google,
        google_client_id=settings.google_client_id,
        # The development sentinel never reaches a production service
        mock_google_token=settings.google_mock_token if settings.is_development else None,
    )

def get_access_gate(
    users: UserRepository = Depends(get_user_repository),
    tokens: TokenService = Depends(get_token_service),
) -> AccessGate:
    return AccessGate(tokens=tokens, users=users)

def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db),
) -> User:
    """
    Get current authenticated user from the bearer token, re-read from the database.

    Raises:
        MissingCredentialError / InvalidTokenError / UnknownUserError
    """
    try:
        return gate.authenticate(authorization)
    except AuthError as e:
        create_audit_log(db, action="ACCESS_DENIED", request=request,
                         details={"path": request.url.path, "reason": type(e).__name__})
        raise

def get_verified_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Get current user and require a verified account (live database state).

    Raises:
        UnverifiedAccountError: If the account is not verified
    """
    return AccessGate.require_verification(current_user)

def require_roles(allowed_roles: List[RoleName]):
    """
    Dependency factory to require specific roles on a verified account.

    Args:
        allowed_roles: List of roles that are allowed access

    Returns:
        Function that checks if user has required role
    """
    allowed = {role.value for role in allowed_roles}

    def role_checker(current_user: User = Depends(get_verified_user)) -> User:
        if current_user.role_name not in allowed:
            raise PermissionDeniedException(
                f"Access denied. Required roles: {sorted(allowed)}. Your role: {current_user.role_name}"
            )
        return current_user
    return role_checker

require_admin = require_roles([RoleName.ADMIN])

"""
Authentication service layer for business logic.

``AuthService`` drives signup, OTP login, OTP verification, resend, token
refresh and Google sign-in. It owns the rules that span more than one
component: one active OTP per user, the verification flag only ever turning
on, doctors needing administrator approval, and deleting a fresh signup whose
OTP could not be delivered.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from .exceptions import (
    ConfigurationError,
    ConflictError,
    DeliveryError,
    InvalidFederatedTokenError,
    InvalidOTPError,
    NotFoundError,
    OTPExpiredError,
    PendingApprovalError,
)
from .federated import FederatedIdentity, GoogleIdentityVerifier
from .models import RoleName, User
from .notifications import NotificationDispatcher
from .otp import OTPService
from .repository import RoleRepository, UserRepository, normalize_email
from .tokens import TokenPair, TokenService

# Set up logging
logger = logging.getLogger(__name__)

PHONE_IDENTIFIER_PATTERN = re.compile(r"^[0-9+]{10,15}$")

MOCK_GOOGLE_IDENTITY = FederatedIdentity(
    email="test.user@example.com",
    first_name="Test",
    last_name="User",
    picture=None,
    federated_id="mock-google-id",
)

@dataclass
class AuthResult:
    """A user together with a freshly minted token pair."""
    user: User
    tokens: TokenPair

def looks_like_phone(identifier: str) -> bool:
    return bool(PHONE_IDENTIFIER_PATTERN.match(identifier.strip()))

class AuthService:
    """
    Authentication orchestrator.

    Args:
        users: Identity store for users
        roles: Identity store for roles
        otp: Passcode generator and expiry policy
        tokens: Token signer/verifier
        notifier: Email/SMS delivery
        google: Google ID token verifier
        google_client_id: Audience Google tokens must be issued for
        mock_google_token: Development sentinel that skips Google verification;
            must be None in production
    """

    def __init__(
        self,
        users: UserRepository,
        roles: RoleRepository,
        otp: OTPService,
        tokens: TokenService,
        notifier: NotificationDispatcher,
        google: GoogleIdentityVerifier,
        google_client_id: Optional[str] = None,
        mock_google_token: Optional[str] = None,
    ):
        self.users = users
        self.roles = roles
        self.otp = otp
        self.tokens = tokens
        self.notifier = notifier
        self.google = google
        self.google_client_id = google_client_id
        self.mock_google_token = mock_google_token

    def _patient_role(self):
        role = self.roles.find_role_by_name(RoleName.PATIENT.value)
        if not role:
            logger.error("Default Patient role is missing; roles were not seeded")
            raise ConfigurationError("Default Patient role not found")
        return role

    async def _dispatch(self, user: User, code: str, identifier: Optional[str] = None) -> bool:
        """
        Deliver a code using the channel preference of login and resend:
        SMS when the identifier looks like a phone number, else email, else
        whichever channel the user has.
        """
        if identifier and looks_like_phone(identifier) and user.phone_number:
            return await self.notifier.send_otp_sms(user.phone_number, code)
        if user.email:
            return await self.notifier.send_otp_email(user.email, code, user.first_name)
        if user.phone_number:
            return await self.notifier.send_otp_sms(user.phone_number, code)
        logger.error(f"User {user.id} has no contact channel for OTP delivery")
        return False

    def _ensure_not_pending_doctor(self, user: User) -> None:
        # isVerified doubles as "approved by an administrator" for doctors
        if user.is_doctor and not user.is_verified:
            logger.warning(f"Doctor {user.id} is pending approval")
            raise PendingApprovalError()

    def _update_user(self, user_id: int, fields: dict) -> User:
        user = self.users.update_user_by_id(user_id, fields)
        if not user:
            # Deleted between lookup and write
            logger.warning(f"User {user_id} disappeared before update")
            raise NotFoundError("User not found")
        return user

    def _issue_otp(self, user: User) -> str:
        """Generate a code, overwriting any previous one, and persist it."""
        code = self.otp.generate()
        self._update_user(user.id, {
            "otp_code": code,
            "otp_expires_at": self.otp.expiry_from_now(),
        })
        return code

    async def signup(self, first_name: str, last_name: str, email: str, phone_number: Optional[str]) -> User:
        """
        Register a new patient and send them an OTP.

        Args:
            first_name: User's first name
            last_name: User's last name
            email: User's email address
            phone_number: User's phone number (optional)

        Returns:
            User: The created, still unverified user

        Raises:
            ConflictError: If the email or phone number is already registered
            ConfigurationError: If the Patient role has not been seeded
            DeliveryError: If the OTP could not be sent; the user is deleted again
        """
        email = normalize_email(email)
        phone_number = phone_number.strip() if phone_number else None
        logger.info(f"Signup attempt for {email}")

        if self.users.exists_by_email_or_phone(email, phone_number):
            logger.warning(f"Signup rejected: {email} or phone already registered")
            raise ConflictError()

        patient_role = self._patient_role()

        code = self.otp.generate()
        user = self.users.create_user(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone_number=phone_number,
            otp_code=code,
            otp_expires_at=self.otp.expiry_from_now(),
            role_id=patient_role.id,
            is_verified=False,
        )
        logger.info(f"User {user.id} created, sending signup OTP")

        if email:
            sent = await self.notifier.send_otp_email(email, code, first_name)
        elif phone_number:
            sent = await self.notifier.send_otp_sms(phone_number, code)
        else:
            sent = False

        if not sent:
            # Compensating delete; a crash before this line leaves an unverified orphan
            self.users.delete_user_by_id(user.id)
            logger.warning(f"Signup OTP delivery failed for {email}; user {user.id} rolled back")
            raise DeliveryError("Failed to send OTP")

        return user

    async def login(self, identifier: str) -> User:
        """
        Start an OTP login for an email address or phone number.

        Returns:
            User: The matching user (tokens are only issued after verify_otp)

        Raises:
            NotFoundError: If no user matches
            PendingApprovalError: If the user is a doctor awaiting approval
            DeliveryError: If the OTP could not be sent (the new OTP stays stored)
        """
        user = self.users.find_user_by_email_or_phone(identifier)
        if not user:
            logger.warning(f"Login failed: no user for identifier {identifier}")
            raise NotFoundError()

        self._ensure_not_pending_doctor(user)

        code = self._issue_otp(user)
        if not await self._dispatch(user, code, identifier):
            raise DeliveryError()

        logger.info(f"Login OTP sent for user {user.id}")
        return user

    async def verify_otp(self, identifier: str, code: str) -> AuthResult:
        """
        Verify a passcode and sign the user in.

        Args:
            identifier: Email address or phone number
            code: Passcode as typed by the user (compared verbatim)

        Returns:
            AuthResult: Verified user and a new token pair

        Raises:
            NotFoundError: If no user matches
            PendingApprovalError: If the user is a doctor awaiting approval
            InvalidOTPError: If there is no active code or it does not match
            OTPExpiredError: If the active code has expired
        """
        user = self.users.find_user_by_email_or_phone(identifier)
        if not user:
            logger.warning(f"OTP verification failed: no user for identifier {identifier}")
            raise NotFoundError("User not found")

        self._ensure_not_pending_doctor(user)

        if not user.otp_code or user.otp_code != code:
            logger.warning(f"OTP verification failed: invalid code for user {user.id}")
            raise InvalidOTPError()

        if not user.otp_expires_at or self.otp.is_expired(user.otp_expires_at):
            logger.warning(f"OTP verification failed: expired code for user {user.id}")
            raise OTPExpiredError()

        updates = {"otp_code": None, "otp_expires_at": None}
        if not user.is_verified:
            updates["is_verified"] = True
        user = self._update_user(user.id, updates)

        logger.info(f"OTP verified for user {user.id}")
        return AuthResult(user=user, tokens=self.tokens.issue_tokens(user))

    async def resend_otp(self, identifier: str) -> None:
        """
        Issue a brand new code, invalidating any unconsumed one.

        Raises:
            NotFoundError: If no user matches
            PendingApprovalError: If the user is a doctor awaiting approval
            DeliveryError: If the OTP could not be sent
        """
        user = self.users.find_user_by_email_or_phone(identifier)
        if not user:
            logger.warning(f"Resend OTP failed: no user for identifier {identifier}")
            raise NotFoundError("User not found")

        self._ensure_not_pending_doctor(user)
        code = self._issue_otp(user)
        if not await self._dispatch(user, code, identifier):
            raise DeliveryError("Failed to send OTP")

        logger.info(f"OTP resent for user {user.id}")

    async def refresh_token(self, refresh_token: str) -> AuthResult:
        """
        Exchange a refresh token for a new access + refresh pair.

        The previous refresh token stays valid until it expires.

        Raises:
            InvalidTokenError: If the refresh token is invalid or expired
            NotFoundError: If the user no longer exists
        """
        claims = self.tokens.verify_refresh_token(refresh_token)
        user = self.users.find_user_by_id(claims.user_id)
        if not user:
            logger.warning(f"Token refresh failed: user {claims.user_id} no longer exists")
            raise NotFoundError("User not found")

        logger.info(f"Token refreshed for user {user.id} ({user.email})")
        return AuthResult(user=user, tokens=self.tokens.issue_tokens(user))

    async def login_with_google(self, identity_token: str) -> AuthResult:
        """
        Sign in with a Google ID token, creating a pre-verified patient on first use.

        Raises:
            InvalidFederatedTokenError: If the token is rejected or has no email
            PendingApprovalError: If the account is a doctor awaiting approval
            ConfigurationError: If a new user is needed and the Patient role is missing
        """
        if self.mock_google_token and identity_token == self.mock_google_token:
            logger.warning("Development Google token used; skipping Google verification")
            identity = MOCK_GOOGLE_IDENTITY
        else:
            identity = await self.google.verify(identity_token, self.google_client_id)

        if identity is None:
            raise InvalidFederatedTokenError()
        if not identity.email:
            raise InvalidFederatedTokenError("Google account must have an email")

        user = self.users.find_user_by_email(identity.email)
        if not user:
            patient_role = self._patient_role()
            user = self.users.create_user(
                first_name=identity.first_name,
                last_name=identity.last_name,
                email=identity.email,
                phone_number=None,
                role_id=patient_role.id,
                is_verified=True,
                profile_picture=identity.picture,
                federated_id=identity.federated_id,
            )
            logger.info(f"Created user {user.id} from Google sign-in")
        else:
            self._ensure_not_pending_doctor(user)
            updates = {}
            if not user.is_verified:
                updates["is_verified"] = True
            if not user.profile_picture and identity.picture:
                updates["profile_picture"] = identity.picture
            if not user.federated_id:
                updates["federated_id"] = identity.federated_id
            if updates:
                user = self._update_user(user.id, updates)
            logger.info(f"Google sign-in for existing user {user.id}")

        return AuthResult(user=user, tokens=self.tokens.issue_tokens(user))

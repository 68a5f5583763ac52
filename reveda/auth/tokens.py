"""
JWT token creation and verification.

Access and refresh tokens are signed with different secrets so that one
cannot stand in for the other. Verification is stateless: claims are a
snapshot taken when the token was minted.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import jwt, JWTError

from .exceptions import InvalidTokenError
from .models import User

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

@dataclass(frozen=True)
class TokenClaims:
    """Decoded token payload."""
    user_id: str
    email: str
    is_verified: bool
    expires_at: datetime

@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self) -> Dict[str, str]:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}

class TokenService:
    """
    Mints and verifies signed access/refresh tokens.

    Args:
        access_secret: Secret for access tokens
        refresh_secret: Secret for refresh tokens
        algorithm: JWT signing algorithm
        access_expires: Access token lifetime (default: 15 minutes)
        refresh_expires: Refresh token lifetime (default: 7 days)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_expires: timedelta = timedelta(minutes=15),
        refresh_expires: timedelta = timedelta(days=7),
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_expires = access_expires
        self.refresh_expires = refresh_expires

    def _encode(self, user: User, secret: str, token_type: str, lifetime: timedelta) -> str:
        to_encode = {
            "userId": str(user.id),
            "email": user.email,
            "isVerified": bool(user.is_verified),
            "type": token_type,
            "exp": datetime.now(timezone.utc) + lifetime,
        }
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str, token_type: str) -> TokenClaims:
        try:
            payload: Dict[str, Any] = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError as e:
            # Expired and tampered tokens are reported the same way
            logger.info(f"Rejected {token_type} token: {type(e).__name__}")
            raise InvalidTokenError()

        if payload.get("type") != token_type or not payload.get("userId") or "exp" not in payload:
            logger.info(f"Rejected {token_type} token: malformed payload")
            raise InvalidTokenError()

        return TokenClaims(
            user_id=str(payload["userId"]),
            email=payload.get("email"),
            is_verified=bool(payload.get("isVerified", False)),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def issue_access_token(self, user: User) -> str:
        return self._encode(user, self.access_secret, ACCESS_TOKEN_TYPE, self.access_expires)

    def issue_refresh_token(self, user: User) -> str:
        return self._encode(user, self.refresh_secret, REFRESH_TOKEN_TYPE, self.refresh_expires)

    def issue_tokens(self, user: User) -> TokenPair:
        """Mint a fresh access + refresh pair from the user's current state."""
        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=self.issue_refresh_token(user),
        )

    def verify_access_token(self, token: str) -> TokenClaims:
        """
        Verify an access token.

        Raises:
            InvalidTokenError: On bad signature, malformed payload or expiry
        """
        return self._decode(token, self.access_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        """
        Verify a refresh token.

        Raises:
            InvalidTokenError: On bad signature, malformed payload or expiry
        """
        return self._decode(token, self.refresh_secret, REFRESH_TOKEN_TYPE)

def build_token_service(settings) -> TokenService:
    return TokenService(
        access_secret=settings.jwt_access_secret,
        refresh_secret=settings.jwt_refresh_secret,
        algorithm=settings.jwt_algorithm,
        access_expires=timedelta(minutes=settings.access_token_expire_minutes),
        refresh_expires=timedelta(days=settings.refresh_token_expire_days),
    )

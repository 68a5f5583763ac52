"""
Access gate for protected requests.

Tokens are verified statelessly, but the user is always re-read from the
store: deleting a user revokes their access tokens immediately, and the
verification check uses live state rather than the token's claim.
"""
import logging
from typing import Optional

from .exceptions import MissingCredentialError, UnknownUserError, UnverifiedAccountError
from .models import User
from .repository import UserRepository
from .tokens import TokenService

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "

def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header value.

    Raises:
        MissingCredentialError: If the header is absent or malformed
    """
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        raise MissingCredentialError()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token or " " in token:
        raise MissingCredentialError()
    return token

class AccessGate:
    def __init__(self, tokens: TokenService, users: UserRepository):
        self.tokens = tokens
        self.users = users

    def authenticate(self, authorization: Optional[str]) -> User:
        """
        Resolve the user behind a bearer credential.

        Raises:
            MissingCredentialError: No or malformed credential
            InvalidTokenError: Token fails verification
            UnknownUserError: Token refers to a deleted user
        """
        token = extract_bearer_token(authorization)
        claims = self.tokens.verify_access_token(token)
        user = self.users.find_user_by_id(claims.user_id)
        if not user:
            logger.warning(f"Valid token for unknown user {claims.user_id}")
            raise UnknownUserError()
        return user

    @staticmethod
    def require_verification(user: User) -> User:
        """
        Raises:
            UnverifiedAccountError: Unless the stored user is verified
        """
        if not user.is_verified:
            logger.info(f"Unverified user {user.id} denied access")
            raise UnverifiedAccountError()
        return user

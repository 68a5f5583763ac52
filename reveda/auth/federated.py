"""
Google sign-in: validation of Google ID tokens.

Tokens are checked against Google's tokeninfo endpoint, which verifies the
signature and expiry; the audience and issuer are checked here.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")

@dataclass(frozen=True)
class FederatedIdentity:
    """Profile claims taken from a verified third-party assertion."""
    email: Optional[str]
    first_name: str
    last_name: str
    picture: Optional[str]
    federated_id: str

class GoogleIdentityVerifier:
    """
    Verifies Google ID tokens.

    Args:
        client_id: OAuth client id the tokens must be issued for
        tokeninfo_url: Google tokeninfo endpoint
        timeout: HTTP timeout in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(self, client_id: Optional[str], tokeninfo_url: str,
                 timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = client_id
        self.tokeninfo_url = tokeninfo_url
        self.timeout = timeout
        self.transport = transport

    async def verify(self, identity_token: str, expected_audience: Optional[str] = None) -> Optional[FederatedIdentity]:
        """
        Verify an ID token.

        Args:
            identity_token: Raw Google ID token
            expected_audience: Audience to enforce (defaults to the configured client id)

        Returns:
            FederatedIdentity if the token is genuine, None otherwise
        """
        audience = expected_audience or self.client_id
        if not audience:
            logger.error("Google client id is not configured; rejecting Google sign-in")
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.tokeninfo_url, params={"id_token": identity_token})
        except httpx.HTTPError as e:
            logger.error(f"Google tokeninfo request failed: {e!r}")
            return None

        if response.status_code != 200:
            logger.info(f"Google rejected ID token (status {response.status_code})")
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Google tokeninfo returned a non-JSON body")
            return None
        if not isinstance(payload, dict):
            logger.warning("Google tokeninfo returned an unexpected payload")
            return None
        if payload.get("aud") != audience:
            logger.warning("Google ID token issued for a different audience")
            return None
        if payload.get("iss") not in GOOGLE_ISSUERS:
            logger.warning(f"Google ID token has unexpected issuer {payload.get('iss')}")
            return None
        if not payload.get("sub"):
            return None

        return FederatedIdentity(
            email=payload.get("email"),
            first_name=payload.get("given_name") or "User",
            last_name=payload.get("family_name") or "",
            picture=payload.get("picture"),
            federated_id=payload["sub"],
        )

def build_google_verifier(settings) -> GoogleIdentityVerifier:
    return GoogleIdentityVerifier(
        client_id=settings.google_client_id,
        tokeninfo_url=settings.google_tokeninfo_url,
        timeout=settings.notification_timeout_seconds,
    )

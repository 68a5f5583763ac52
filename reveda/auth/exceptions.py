"""
Authentication-specific exceptions.

Every expected failure of the authentication core has its own class. The HTTP
boundary translates them through ``status_code``; the core never does.
"""
from fastapi import status

from ..exceptions import AppException

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}

class AuthError(AppException):
    """Base class for authentication exceptions."""

class ConflictError(AuthError):
    """Raised when an identity with the same email or phone number already exists."""
    status_code = status.HTTP_409_CONFLICT
    detail = "User with this email or phone number already exists"

class NotFoundError(AuthError):
    """Raised when no user matches the supplied identifier."""
    status_code = status.HTTP_404_NOT_FOUND
    detail = "User not found. Please signup first."

class PendingApprovalError(AuthError):
    """Raised when a doctor account has not been approved by an administrator yet."""
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Your account is pending Admin approval. Please wait for verification."

class InvalidOTPError(AuthError):
    """Raised when the stored OTP is missing or does not match."""
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid OTP"

class OTPExpiredError(AuthError):
    """Raised when the stored OTP is past its expiry."""
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "OTP expired"

class DeliveryError(AuthError):
    """Raised when the OTP could not be delivered by email or SMS."""
    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "Failed to send OTP. Please try again."

class InvalidTokenError(AuthError):
    """Raised for a bad signature, malformed payload or expired token alike."""
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid token"
    headers = BEARER_CHALLENGE

class InvalidFederatedTokenError(AuthError):
    """Raised when a Google ID token cannot be verified or carries no email."""
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid Google token"

class MissingCredentialError(AuthError):
    """Raised when a protected request carries no bearer token."""
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Access denied. No token provided."
    headers = BEARER_CHALLENGE

class UnknownUserError(AuthError):
    """Raised when a valid token refers to a user that no longer exists."""
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid token. User not found."
    headers = BEARER_CHALLENGE

class UnverifiedAccountError(AuthError):
    """Raised when an unverified account reaches a verified-only resource."""
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Please verify your account to access this resource."

class PermissionDeniedException(AuthError):
    """Raised when user doesn't have the required role."""
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Permission denied"

class ConfigurationError(AuthError):
    """Raised for deployment mistakes such as a missing seed role or weak secrets."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Server configuration error"

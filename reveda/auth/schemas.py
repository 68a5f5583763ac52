"""
Auth Schemas - Pydantic models for request validation and response serialization.

JSON bodies use camelCase names (``firstName``, ``phoneNumber``, ...); the
Python attributes are snake_case.
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime

from .models import User
from .tokens import TokenPair

PHONE_PATTERN = r"^[6-9]\d{9}$"
OTP_PATTERN = r"^\d{6}$"

class CamelModel(BaseModel):
    class Config:
        populate_by_name = True
        str_strip_whitespace = True

class SignupRequest(CamelModel):
    """
    Signup Schema - Used for patient self-registration

    Fields:
    - first_name / last_name: 2 to 50 characters
    - email: Valid email address, stored lower-case
    - phone_number: Ten digit Indian mobile number
    """
    first_name: str = Field(..., alias="firstName", min_length=2, max_length=50)
    last_name: str = Field(..., alias="lastName", min_length=2, max_length=50)
    email: EmailStr
    phone_number: str = Field(..., alias="phoneNumber", pattern=PHONE_PATTERN)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

class DoctorRegistrationRequest(SignupRequest):
    """Identity part of a doctor registration; approval happens later."""

class IdentifierRequest(CamelModel):
    """Email address or phone number, used by login and resend-otp."""
    identifier: str = Field(..., min_length=1, description="Email or phone number")

class VerifyOTPRequest(IdentifierRequest):
    otp: str = Field(..., pattern=OTP_PATTERN, description="Six digit code")

class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)

class GoogleLoginRequest(CamelModel):
    id_token: str = Field(..., alias="idToken", min_length=1)

class UserResponse(CamelModel):
    """
    User Response Schema - Safe public view of a user.

    OTP fields and the password hash are never part of it; the role is
    flattened to its name.
    """
    id: int
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    email: str
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    profile_picture: Optional[str] = Field(None, alias="profilePicture")
    is_verified: bool = Field(..., alias="isVerified")
    role: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            phone_number=user.phone_number,
            profile_picture=user.profile_picture,
            is_verified=bool(user.is_verified),
            role=user.role_name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

class UserSummary(CamelModel):
    """Minimal payload returned by signup and login."""
    user_id: int = Field(..., alias="userId")
    email: str
    phone_number: Optional[str] = Field(None, alias="phoneNumber")

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(user_id=user.id, email=user.email, phone_number=user.phone_number)

class TokensResponse(CamelModel):
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")

    @classmethod
    def from_pair(cls, tokens: TokenPair) -> "TokensResponse":
        return cls(**tokens.to_dict())

class AuditLogResponse(CamelModel):
    """
    Audit Log entry as shown to administrators.

    Fields:
    - id: Audit Log ID
    - user_id: User the entry is about (if any)
    - action: Action name, e.g. LOGIN_OTP_SENT
    - details: Additional context
    - ip_address: Client IP of the request
    - timestamp: When the action happened
    """
    id: int
    user_id: Optional[int] = Field(None, alias="userId")
    action: str
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = Field(None, alias="ipAddress")
    timestamp: Optional[datetime] = None

    @classmethod
    def from_entry(cls, entry) -> "AuditLogResponse":
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            action=entry.action,
            details=entry.details,
            ip_address=entry.ip_address,
            timestamp=entry.timestamp,
        )

class AuthPayload(CamelModel):
    user: UserResponse
    tokens: TokensResponse

class ProfilePayload(CamelModel):
    user: UserResponse

def envelope(message: str, data: Any = None) -> dict:
    """Build a success envelope, serializing pydantic payloads by alias."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(by_alias=True, mode="json") if isinstance(item, BaseModel) else item
                for item in data]
    return {"success": True, "message": message, "data": data}

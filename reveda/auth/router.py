"""
Authentication routes.

Thin HTTP boundary over ``AuthService``: validates bodies, records the
security audit trail and wraps results in the ``{success, message, data}``
envelope. Failures propagate as ``AuthError`` subclasses and are turned
into responses by the global exception handlers.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from sqlalchemy.orm import Session

from ..core.audit_service import create_audit_log, list_audit_logs
from ..core.cloudinary import ALLOWED_IMAGE_TYPES, MAX_IMAGE_BYTES, upload_profile_image
from ..database import get_db
from ..exceptions import AppException
from .dependencies import get_auth_service, get_user_repository, get_verified_user, require_admin
from .exceptions import AuthError, NotFoundError
from .models import User
from .repository import UserRepository
from .schemas import (
    AuditLogResponse,
    AuthPayload,
    GoogleLoginRequest,
    IdentifierRequest,
    ProfilePayload,
    RefreshTokenRequest,
    SignupRequest,
    TokensResponse,
    UserResponse,
    UserSummary,
    VerifyOTPRequest,
    envelope,
)
from .service import AuthResult, AuthService

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter()

def _auth_payload(result: AuthResult) -> AuthPayload:
    return AuthPayload(user=UserResponse.from_user(result.user), tokens=TokensResponse.from_pair(result.tokens))

@router.post("/signup", status_code=status.HTTP_201_CREATED, summary="Patient signup with OTP")
async def signup_route(
    payload: SignupRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db)
):
    """
    Register a patient and send a verification OTP to their email.

    Returns 409 if the email or phone number is taken and 502 if the OTP
    could not be delivered (no account is kept in that case).
    """
    try:
        user = await service.signup(payload.first_name, payload.last_name, payload.email, payload.phone_number)
    except AuthError as e:
        create_audit_log(db, action="SIGNUP_FAILED", request=request,
                         details={"email": payload.email, "reason": type(e).__name__})
        raise
    create_audit_log(db, action="SIGNUP_SUCCESS", user_id=user.id, request=request, details={"email": user.email})
    return envelope(
        "User registered successfully. Please verify your email with the OTP sent.",
        UserSummary.from_user(user)
    )

@router.post("/login", summary="Request a login OTP")
async def login_route(
    payload: IdentifierRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db)
):
    """Send a login OTP to the user identified by email or phone number."""
    try:
        user = await service.login(payload.identifier)
    except AuthError as e:
        create_audit_log(db, action="LOGIN_FAILED", request=request,
                         details={"identifier": payload.identifier, "reason": type(e).__name__})
        raise
    create_audit_log(db, action="LOGIN_OTP_SENT", user_id=user.id, request=request)
    return envelope("OTP sent successfully.", UserSummary.from_user(user))

@router.post("/verify-otp", summary="Verify OTP and receive tokens")
async def verify_otp_route(
    payload: VerifyOTPRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db)
):
    try:
        result = await service.verify_otp(payload.identifier, payload.otp)
    except AuthError as e:
        create_audit_log(db, action="OTP_VERIFY_FAILED", request=request,
                         details={"identifier": payload.identifier, "reason": type(e).__name__})
        raise
    create_audit_log(db, action="OTP_VERIFY_SUCCESS", user_id=result.user.id, request=request)
    return envelope("OTP verified successfully", _auth_payload(result))

@router.post("/resend-otp", summary="Resend OTP")
async def resend_otp_route(
    payload: IdentifierRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db)
):
    try:
        await service.resend_otp(payload.identifier)
    except AuthError as e:
        create_audit_log(db, action="OTP_RESEND_FAILED", request=request,
                         details={"identifier": payload.identifier, "reason": type(e).__name__})
        raise
    create_audit_log(db, action="OTP_RESENT", request=request, details={"identifier": payload.identifier})
    return envelope("OTP resent successfully.")

@router.post("/refresh-token", summary="Exchange a refresh token for a new token pair")
async def refresh_token_route(
    payload: RefreshTokenRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db)
):
    try:
        result = await service.refresh_token(payload.refresh_token)
    except AuthError as e:
        create_audit_log(db, action="TOKEN_REFRESH_FAILED", request=request, details={"reason": type(e).__name__})
        raise
    create_audit_log(db, action="TOKEN_REFRESHED", user_id=result.user.id, request=request)
    return envelope("Token refreshed successfully", _auth_payload(result))

@router.post("/google-login", summary="Sign in with a Google ID token")
async def google_login_route(
    payload: GoogleLoginRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db)
):
    try:
        result = await service.login_with_google(payload.id_token)
    except AuthError as e:
        create_audit_log(db, action="GOOGLE_LOGIN_FAILED", request=request, details={"reason": type(e).__name__})
        raise
    create_audit_log(db, action="GOOGLE_LOGIN_SUCCESS", user_id=result.user.id, request=request)
    return envelope("Google Login Successful", _auth_payload(result))

@router.get("/profile", summary="Current user's profile")
async def get_profile_route(current_user: User = Depends(get_verified_user)):
    return envelope("Profile fetched successfully", ProfilePayload(user=UserResponse.from_user(current_user)))

@router.post("/profile-image", summary="Upload a profile picture")
async def upload_profile_image_route(
    request: Request,
    profile_picture: UploadFile = File(..., alias="profilePicture"),
    current_user: User = Depends(get_verified_user),
    users: UserRepository = Depends(get_user_repository),
    db: Session = Depends(get_db)
):
    """
    Upload a jpg, png or webp image (max 2MB) and store its URL on the user.
    """
    if profile_picture.content_type not in ALLOWED_IMAGE_TYPES:
        raise AppException("Invalid image type. Only jpg, png, webp allowed.")
    if profile_picture.size and profile_picture.size > MAX_IMAGE_BYTES:
        raise AppException("Image too large. Max 2MB allowed.")

    image_url = upload_profile_image(profile_picture.file, current_user.id)
    if not image_url:
        raise AppException("Profile image upload failed", status_code=status.HTTP_502_BAD_GATEWAY)

    user = users.update_user_by_id(current_user.id, {"profile_picture": image_url})
    if not user:
        raise NotFoundError("User not found")
    create_audit_log(db, action="PROFILE_IMAGE_UPDATED", user_id=user.id, request=request)
    return envelope("Profile picture updated successfully", ProfilePayload(user=UserResponse.from_user(user)))

@router.get("/admin/audit-logs", summary="Admin Retrieves Audit Logs")
async def get_audit_logs_route(
    user_id: Optional[int] = Query(None, alias="userId"),
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    current_admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Newest first. Admins can filter by user id and action."""
    logs = list_audit_logs(db, user_id=user_id, action=action, limit=limit)
    return envelope(f"{len(logs)} audit log(s)", [AuditLogResponse.from_entry(entry) for entry in logs])

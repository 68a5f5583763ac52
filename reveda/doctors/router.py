"""
Doctor Router - doctor registration and administrator approval.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from ..auth.dependencies import get_user_repository, require_admin
from ..auth.models import User
from ..auth.repository import RoleRepository, UserRepository
from ..auth.schemas import DoctorRegistrationRequest, UserResponse, UserSummary, envelope
from ..core.audit_service import create_audit_log
from ..database import get_db
from .service import approve_doctor, list_pending_doctors, register_doctor_identity

router = APIRouter()

@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register a doctor (pending approval)")
async def register_doctor_route(
    payload: DoctorRegistrationRequest,
    request: Request,
    users: UserRepository = Depends(get_user_repository),
    db: Session = Depends(get_db)
):
    user = register_doctor_identity(
        users, RoleRepository(db),
        payload.first_name, payload.last_name, payload.email, payload.phone_number
    )
    create_audit_log(db, action="DOCTOR_REGISTERED_PENDING_APPROVAL", user_id=user.id, request=request)
    return envelope(
        "Doctor registered successfully. Your account is pending administrator approval.",
        UserSummary.from_user(user)
    )

@router.get("/pending", summary="Doctors awaiting approval")
async def pending_doctors_route(
    users: UserRepository = Depends(get_user_repository),
    admin: User = Depends(require_admin)
):
    doctors = list_pending_doctors(users)
    return envelope(f"{len(doctors)} doctor(s) pending approval", [UserResponse.from_user(d) for d in doctors])

@router.post("/{user_id}/approve", summary="Approve a doctor")
async def approve_doctor_route(
    user_id: int,
    request: Request,
    users: UserRepository = Depends(get_user_repository),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = approve_doctor(users, user_id, admin)
    create_audit_log(db, action="DOCTOR_APPROVED", user_id=admin.id, request=request,
                     details={"doctor_id": user.id})
    return envelope("Doctor approved successfully", UserResponse.from_user(user))

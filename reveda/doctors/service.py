"""
Doctor Service - identity side of doctor onboarding.

A registered doctor gets a Doctor-role user with ``is_verified`` off; for
doctors that flag also means "approved by an administrator", so the account
cannot log in until ``approve_doctor`` turns it on.
"""
import logging
from typing import List, Optional

from ..auth.exceptions import ConfigurationError, ConflictError, NotFoundError
from ..auth.models import RoleName, User
from ..auth.repository import RoleRepository, UserRepository, normalize_email

# Set up logging
logger = logging.getLogger(__name__)

def register_doctor_identity(
    users: UserRepository,
    roles: RoleRepository,
    first_name: str,
    last_name: str,
    email: str,
    phone_number: Optional[str],
) -> User:
    """
    Create the login identity for a newly registered doctor.

    Args:
        users: User store
        roles: Role store
        first_name / last_name: Doctor's name
        email: Doctor's email address
        phone_number: Doctor's phone number

    Returns:
        User: The pending (unverified) doctor user

    Raises:
        ConflictError: If the email or phone number already belongs to a user
        ConfigurationError: If the Doctor role has not been seeded
    """
    email = normalize_email(email)
    if users.exists_by_email_or_phone(email, phone_number):
        logger.warning(f"Doctor registration rejected: {email} or phone already registered")
        raise ConflictError("Doctor with this email or phone number already exists")

    doctor_role = roles.find_role_by_name(RoleName.DOCTOR.value)
    if not doctor_role:
        raise ConfigurationError("Doctor role not found")

    user = users.create_user(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone_number=phone_number,
        role_id=doctor_role.id,
        is_verified=False,
    )
    logger.info(f"Doctor account created (pending approval): {user.id}")
    return user

def list_pending_doctors(users: UserRepository) -> List[User]:
    return users.list_users_by_role(RoleName.DOCTOR.value, is_verified=False)

def approve_doctor(users: UserRepository, user_id: int, admin: User) -> User:
    """
    Approve a doctor so they can log in. Approving twice is a no-op.

    Raises:
        NotFoundError: If no doctor has this id
    """
    user = users.find_user_by_id(user_id)
    if not user or not user.is_doctor:
        raise NotFoundError("Doctor not found")

    if user.is_verified:
        logger.info(f"Doctor {user.id} already approved")
        return user

    user = users.update_user_by_id(user.id, {"is_verified": True})
    if not user:
        raise NotFoundError("Doctor not found")
    logger.info(f"Doctor {user.email} (ID: {user.id}) approved by admin {admin.email} (ID: {admin.id})")
    return user

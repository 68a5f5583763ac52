"""
Startup tasks: role seeding, first admin creation and configuration checks.
"""
import logging
from sqlalchemy.orm import Session

from ..auth.exceptions import ConfigurationError
from ..auth.models import RoleName
from ..auth.repository import RoleRepository, UserRepository
from ..config import DEV_ACCESS_SECRET, DEV_REFRESH_SECRET

logger = logging.getLogger(__name__)

def seed_roles(db: Session) -> int:
    """
    Create any missing default role.

    Returns:
        int: Number of roles created
    """
    roles = RoleRepository(db)
    created = 0
    for role_name in RoleName:
        if not roles.find_role_by_name(role_name.value):
            roles.create_role(role_name.value, description=f"Default {role_name.value} role")
            created += 1
            logger.info(f"Seeded role: {role_name.value}")
    return created

def ensure_default_role(db: Session) -> None:
    """
    Fail fast when the Patient role every signup needs is missing.

    Raises:
        ConfigurationError: If the Patient role does not exist
    """
    if not RoleRepository(db).find_role_by_name(RoleName.PATIENT.value):
        raise ConfigurationError("Default Patient role not found")

def check_secrets(settings) -> None:
    """
    Refuse to run production with development or shared JWT secrets.

    Raises:
        ConfigurationError: On an unsafe secret setup
    """
    if settings.jwt_access_secret == settings.jwt_refresh_secret:
        raise ConfigurationError("Access and refresh token secrets must differ")
    dev_secrets = {DEV_ACCESS_SECRET, DEV_REFRESH_SECRET}
    if settings.is_production and dev_secrets & {settings.jwt_access_secret, settings.jwt_refresh_secret}:
        raise ConfigurationError("Development JWT secrets cannot be used in production")

def admin_exists(db: Session) -> bool:
    """
    Check if any admin user exists in the database.

    Args:
        db: Database session

    Returns:
        bool: True if at least one admin exists, False otherwise
    """
    return len(UserRepository(db).list_users_by_role(RoleName.ADMIN.value)) > 0

def bootstrap_admin_if_needed(db: Session, settings) -> bool:
    """
    Create the first admin from environment variables if no admin exists.

    The admin signs in like everyone else, with an OTP sent to the
    configured email address or phone number.

    Returns:
        bool: True if an admin was created
    """
    logger.info("Checking for existing admin users...")
    if admin_exists(db):
        logger.info("Admin users found. Bootstrap not needed.")
        return False

    if not settings.bootstrap_admin_email:
        logger.warning("No admin users and BOOTSTRAP_ADMIN_EMAIL is not set; bootstrap skipped")
        return False

    users = UserRepository(db)
    if users.exists_by_email_or_phone(settings.bootstrap_admin_email, settings.bootstrap_admin_phone):
        logger.warning(f"Bootstrap failed: {settings.bootstrap_admin_email} already belongs to a user")
        return False

    admin_role = RoleRepository(db).find_role_by_name(RoleName.ADMIN.value)
    if not admin_role:
        raise ConfigurationError("Admin role not found")

    admin = users.create_user(
        first_name=settings.bootstrap_admin_first_name,
        last_name=settings.bootstrap_admin_last_name,
        email=settings.bootstrap_admin_email,
        phone_number=settings.bootstrap_admin_phone,
        role_id=admin_role.id,
        is_verified=True,
    )
    logger.info(f"Bootstrap admin created successfully: {admin.email} (ID: {admin.id})")
    return True

def run_startup_tasks(db: Session, settings) -> None:
    check_secrets(settings)
    seed_roles(db)
    bootstrap_admin_if_needed(db, settings)
    ensure_default_role(db)

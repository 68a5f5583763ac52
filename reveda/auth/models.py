"""
Identity models - users and the roles they belong to.

The one-time passcode is not a table of its own: a user holds at most one
active code (``otp_code`` + ``otp_expires_at``) which every new issuance
overwrites and a successful verification clears.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from ..database import Base

class RoleName(str, enum.Enum):
    """
    Enumeration for the roles seeded at startup.

    Roles:
    - PATIENT: Default role for self-registered and Google users
    - DOCTOR: Practitioners; login additionally requires administrator approval
    - ADMIN: System administrators
    - MARKETING: Marketing team members
    """
    PATIENT = "Patient"
    DOCTOR = "Doctor"
    ADMIN = "Admin"
    MARKETING = "Marketing"

class Role(Base):
    """
    Role Model - A named permission group referenced by users.

    Fields:
    - id: Primary key
    - name: Unique display name (see RoleName)
    - slug: Lower-case unique identifier
    - description: Free text description
    - permissions: List of permission strings
    """
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    slug = Column(String(50), unique=True, nullable=False)
    description = Column(String, nullable=True)
    permissions = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    users = relationship("User", back_populates="role")

    def __repr__(self):
        return f"<Role(id={self.id}, name='{self.name}')>"

class User(Base):
    """
    User Model - Identity record for every person that signs in.

    Fields:
    - id: Primary key for user identification
    - first_name / last_name: User's name
    - email: Unique, stored lower-case
    - phone_number: Unique when present; Google sign-ups may not have one
    - password_hash: Only for password-capable flows, unused by OTP login
    - profile_picture: URL of the profile image
    - is_verified: Set once the user proves ownership of a contact channel
      (for doctors it also means "approved by an administrator"); never reset
    - otp_code: Active six digit one-time passcode, if any
    - otp_expires_at: Expiry of ``otp_code``; cleared together with it
    - role_id: Foreign key to Role
    - federated_id: Google subject identifier, unique when present
    - created_at / updated_at: Timestamps
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False, default="")
    email = Column(String, unique=True, index=True, nullable=False)
    phone_number = Column(String(20), unique=True, index=True, nullable=True)
    password_hash = Column(String, nullable=True)
    profile_picture = Column(String, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    otp_code = Column(String(6), nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=True)
    federated_id = Column(String, unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    role = relationship("Role", back_populates="users", lazy="joined")

    def __repr__(self):
        """String representation of the User model"""
        return f"<User(id={self.id}, email='{self.email}', verified={self.is_verified})>"

    @property
    def role_name(self):
        """Name of the user's role, or None if no role is attached"""
        return self.role.name if self.role else None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_doctor(self) -> bool:
        return self.role_name == RoleName.DOCTOR.value

"""
Identity store - persistence of users and roles.

Every operation touches a single row and commits on its own; nothing here
spans more than one write, so callers that need compensation (signup
rollback) must do it themselves.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .exceptions import ConflictError
from .models import Role, User

logger = logging.getLogger(__name__)

def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim and lower-case an email address."""
    return email.strip().lower() if email else email

def _coerce_id(user_id: Union[int, str, None]) -> Optional[int]:
    try:
        return int(user_id)
    except (TypeError, ValueError):
        return None

class UserRepository:
    """
    CRUD operations on User rows.

    Args:
        db: Database session used for every call
    """

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, **fields: Any) -> User:
        """
        Insert a new user.

        Raises:
            ConflictError: If the email, phone number or federated id is taken
        """
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        user = User(**fields)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"User insert rejected by unique constraint: {e.orig}")
            raise ConflictError()
        self.db.refresh(user)
        return user

    def find_user_by_email_or_phone(self, identifier: str) -> Optional[User]:
        """Find a user whose email (case-insensitive) or phone number equals the identifier."""
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        return self.db.query(User).filter(
            or_(User.email == identifier.lower(), User.phone_number == identifier)
        ).first()

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def find_user_by_id(self, user_id: Union[int, str]) -> Optional[User]:
        user_id = _coerce_id(user_id)
        if user_id is None:
            return None
        return self.db.query(User).filter(User.id == user_id).first()

    def update_user_by_id(self, user_id: Union[int, str], fields: Dict[str, Any]) -> Optional[User]:
        """
        Set the given columns on one user (last write wins per column set).

        Returns:
            The refreshed user, or None if it does not exist
        """
        user = self.find_user_by_id(user_id)
        if not user:
            return None
        for key, value in fields.items():
            setattr(user, key, value)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"User {user_id} update rejected by unique constraint: {e.orig}")
            raise ConflictError()
        self.db.refresh(user)
        return user

    def delete_user_by_id(self, user_id: Union[int, str]) -> bool:
        user = self.find_user_by_id(user_id)
        if not user:
            return False
        self.db.delete(user)
        self.db.commit()
        return True

    def exists_by_email_or_phone(self, email: Optional[str], phone_number: Optional[str]) -> bool:
        """True if any user has this email or (when given) this phone number."""
        conditions = []
        if email:
            conditions.append(User.email == normalize_email(email))
        if phone_number:
            conditions.append(User.phone_number == phone_number.strip())
        if not conditions:
            return False
        return self.db.query(User.id).filter(or_(*conditions)).first() is not None

    def list_users_by_role(self, role_name: str, is_verified: Optional[bool] = None) -> List[User]:
        query = self.db.query(User).join(Role).filter(Role.name == role_name)
        if is_verified is not None:
            query = query.filter(User.is_verified == is_verified)
        return query.order_by(User.id).all()

class RoleRepository:
    """Lookup and seeding of Role rows."""

    def __init__(self, db: Session):
        self.db = db

    def find_role_by_name(self, name: str) -> Optional[Role]:
        return self.db.query(Role).filter(Role.name == name).first()

    def create_role(self, name: str, description: Optional[str] = None,
                    permissions: Optional[List[str]] = None) -> Role:
        role = Role(name=name, slug=name.lower(), description=description, permissions=permissions or [])
        self.db.add(role)
        self.db.commit()
        self.db.refresh(role)
        return role

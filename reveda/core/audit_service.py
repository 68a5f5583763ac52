import logging
from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .audit_models import AuditLog

logger = logging.getLogger(__name__)

def create_audit_log(
    db: Session,
    action: str,
    user_id: Optional[int] = None,
    request: Optional[Request] = None,
    details: Optional[Dict[str, Any]] = None
) -> Optional[AuditLog]:
    """
    Creates an audit log entry.

    A failure to write the entry is logged and does not fail the request.

    Args:
        db: The database session.
        action: A string describing the action performed (e.g., 'LOGIN_OTP_SENT', 'OTP_VERIFY_FAILED').
        user_id: The ID of the user who performed the action (if applicable).
        request: The FastAPI request object to extract IP address (if available).
        details: A dictionary containing additional context or data related to the action.

    Returns:
        The created AuditLog object, or None if it could not be stored.
    """
    ip_address = None
    if request and request.client:
        ip_address = request.client.host

    audit_entry = AuditLog(
        user_id=user_id,
        action=action,
        ip_address=ip_address,
        details=details
    )
    try:
        db.add(audit_entry)
        db.commit()
        db.refresh(audit_entry)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to write audit log '{action}': {e}")
        return None
    return audit_entry

def list_audit_logs(db: Session, user_id: Optional[int] = None, action: Optional[str] = None,
                    limit: int = 100) -> List[AuditLog]:
    query = db.query(AuditLog)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.id.desc()).limit(limit).all()

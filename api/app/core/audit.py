"""Audit log helper shared by the API routers."""
from typing import Optional
from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog


def create_audit_log(db: Session, entity_type: str, entity_id: int, action: str,
                     user_id: int, changes: Optional[dict] = None) -> AuditLog:
    """Create an audit log entry in the caller's transaction."""
    audit_log = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        user_id=user_id,
        changes=changes
    )
    db.add(audit_log)
    return audit_log

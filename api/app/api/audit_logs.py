"""Audit log routes."""
from datetime import datetime
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.audit_log import AuditLog
from app.models.user import User
from app.schemas.audit_log import AuditLogResponse

router = APIRouter()


def filtered_logs(db: Session, entity_type: Optional[str], entity_id: Optional[int],
                  action: Optional[str], user_id: Optional[int], since: Optional[datetime]):
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if since is not None:
        query = query.filter(AuditLog.timestamp >= since)
    return query


@router.get("/", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_type: Optional[str] = Query(None, description="CourseCatalog, CatalogVersion or ApprovalWorkflow"),
    entity_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None, description="CREATE, PROMOTE, APPROVE, REJECT, CANCEL, ..."),
    user_id: Optional[int] = Query(None, description="Actor who made the change"),
    since: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Most recent entries first."""
    query = filtered_logs(db, entity_type, entity_id, action, user_id, since)
    return query.options(joinedload(AuditLog.user)).order_by(
        AuditLog.timestamp.desc(), AuditLog.log_id.desc()
    ).offset(offset).limit(limit).all()


@router.get("/actions", response_model=Dict[str, int])
def count_actions(
    entity_type: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Number of entries per action."""
    query = filtered_logs(db, entity_type, None, None, None, since)
    rows = query.with_entities(AuditLog.action, func.count(AuditLog.log_id)).group_by(AuditLog.action).all()
    return {action: count for action, count in rows}

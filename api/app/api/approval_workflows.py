"""Approval workflow routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, selectinload
from app.core.audit import create_audit_log
from app.core.concurrency import run_with_retry
from app.core.database import get_db
from app.core.deps import get_current_user, get_versioning_service
from app.core.roles import can_review, is_admin
from app.core.versioning_service import CatalogVersioningService
from app.models.approval_workflow import ApprovalWorkflow, WorkflowStatus
from app.models.user import User
from app.schemas.approval_workflow import (
    ApprovalWorkflowResponse,
    StepDecisionRequest,
    WorkflowCancelRequest,
)

router = APIRouter()


@router.get("/", response_model=List[ApprovalWorkflowResponse])
def list_workflows(
    catalog_id: Optional[int] = Query(None),
    version_id: Optional[int] = Query(None),
    status_filter: Optional[WorkflowStatus] = Query(None, alias="status"),
    assigned_to_me: bool = Query(False, description="Only workflows whose active step is assigned to me"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(ApprovalWorkflow).options(selectinload(ApprovalWorkflow.steps))
    if catalog_id is not None:
        query = query.filter(ApprovalWorkflow.catalog_id == catalog_id)
    if version_id is not None:
        query = query.filter(ApprovalWorkflow.version_id == version_id)
    if status_filter:
        query = query.filter(ApprovalWorkflow.status == status_filter.value)
    workflows = query.order_by(ApprovalWorkflow.initiated_at.desc(), ApprovalWorkflow.workflow_id.desc()).all()

    if assigned_to_me:
        workflows = [
            w for w in workflows
            if w.active_step is not None and w.active_step.assigned_to_id == current_user.user_id
        ]
    return workflows


@router.get("/{workflow_id}", response_model=ApprovalWorkflowResponse)
def get_workflow(
    workflow_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    return service.workflows.get_workflow(workflow_id)


@router.post("/{workflow_id}/decisions", response_model=ApprovalWorkflowResponse)
def advance_approval_step(
    workflow_id: int,
    decision_data: StepDecisionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """Approve, reject or (admins only) skip the workflow's active step."""
    if not can_review(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only reviewers and admins can decide approval steps"
        )

    # Retries must not carry the decision on to the next step
    step_id = decision_data.step_id
    if step_id is None:
        step_id = service.workflows.active_step_id(workflow_id)

    def operation():
        workflow = service.advance_approval_step(
            workflow_id,
            decision_data.decision,
            current_user.user_id,
            comments=decision_data.comments,
            step_id=step_id,
            authorized=is_admin(current_user),
        )
        create_audit_log(db, "ApprovalWorkflow", workflow_id, decision_data.decision.value, current_user.user_id, {
            "step_id": step_id,
            "status": workflow.status,
            "current_stage": workflow.current_stage,
            "comments": decision_data.comments,
        })
        return workflow

    return run_with_retry(db, operation)


@router.post("/{workflow_id}/cancel", response_model=ApprovalWorkflowResponse)
def cancel_workflow(
    workflow_id: int,
    cancel_data: WorkflowCancelRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """Administrative override: cancel an open workflow."""
    def operation():
        workflow = service.cancel_workflow(
            workflow_id, current_user.user_id, is_admin(current_user), reason=cancel_data.reason
        )
        create_audit_log(db, "ApprovalWorkflow", workflow_id, "CANCEL", current_user.user_id, {
            "reason": cancel_data.reason,
        })
        return workflow

    return run_with_retry(db, operation)

"""Approval workflow schemas."""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from app.core.approval_workflow import StepDecision
from app.models.approval_workflow import (
    ApprovalStage,
    StepStatus,
    WorkflowPriority,
    WorkflowStatus,
)


class StepPlanIn(BaseModel):
    stage: ApprovalStage
    assigned_to_id: Optional[int] = None
    required_documents: List[str] = []
    review_criteria: List[str] = []
    due_in_days: Optional[int] = Field(None, ge=1, le=365)


class WorkflowSubmit(BaseModel):
    """Submit a draft version for approval."""
    steps: Optional[List[StepPlanIn]] = Field(
        None, description="Ordered review steps (defaults to the configured stage plan)"
    )
    name: Optional[str] = Field(None, max_length=200)
    priority: WorkflowPriority = WorkflowPriority.NORMAL
    notes: Optional[str] = None
    expected_completion_date: Optional[date] = None


class StepDecisionRequest(BaseModel):
    decision: StepDecision
    comments: Optional[str] = None
    step_id: Optional[int] = Field(
        None, description="Step being decided; rejected unless it is the active step"
    )


class WorkflowCancelRequest(BaseModel):
    reason: Optional[str] = None


class ApprovalStepResponse(BaseModel):
    step_id: int
    step_order: int
    stage: ApprovalStage
    assigned_to_id: Optional[int] = None
    status: StepStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    due_date: Optional[date] = None
    decided_by_id: Optional[int] = None
    comments: Optional[str] = None
    required_documents: List[str] = []
    review_criteria: List[str] = []

    model_config = ConfigDict(from_attributes=True)


class ApprovalWorkflowResponse(BaseModel):
    workflow_id: int
    catalog_id: int
    version_id: Optional[int] = None
    name: str
    initiated_by_id: int
    initiated_at: datetime
    status: WorkflowStatus
    current_stage: Optional[ApprovalStage] = None
    priority: WorkflowPriority
    completed_at: Optional[datetime] = None
    expected_completion_date: Optional[date] = None
    notes: Optional[str] = None
    row_version: int
    steps: List[ApprovalStepResponse] = []

    model_config = ConfigDict(from_attributes=True)


class CatalogApprovalResponse(BaseModel):
    approval_id: int
    catalog_id: int
    version_id: Optional[int] = None
    workflow_id: int
    stage: ApprovalStage
    status: StepStatus
    approved_by_id: int
    approval_date: datetime
    comments: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

"""Catalog version schemas."""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from app.models.approval_workflow import WorkflowPriority
from app.models.catalog_version import VersionApprovalStatus, VersionType
from app.schemas.approval_workflow import ApprovalWorkflowResponse, StepPlanIn


class CatalogVersionCreate(BaseModel):
    """New catalog content; routed to promotion or review by its changes."""
    content: Any = Field(..., description="Full catalog content snapshot")
    label: Optional[str] = Field(None, max_length=200)
    version_type: VersionType = VersionType.MINOR
    description: Optional[str] = None
    release_notes: Optional[str] = None
    tags: List[str] = []
    expected_revision: Optional[int] = Field(
        None, description="Catalog revision the client last saw; stale values fail with ConcurrentModification"
    )
    submit: bool = Field(True, description="Open an approval workflow when one is required")
    steps: Optional[List[StepPlanIn]] = None
    priority: WorkflowPriority = WorkflowPriority.NORMAL


class VersionRestore(BaseModel):
    label: Optional[str] = Field(None, max_length=200)


class VersionChangeResponse(BaseModel):
    change_id: int
    version_id: int
    entity_type: str
    entity_id: str
    property_name: Optional[str] = None
    change_type: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    description: Optional[str] = None
    impact_level: str
    requires_approval: bool
    changed_by_id: int
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CatalogVersionResponse(BaseModel):
    version_id: int
    catalog_id: int
    version_number: int
    version_type: VersionType
    label: str
    description: Optional[str] = None
    change_summary: Optional[str] = None
    release_notes: Optional[str] = None
    tags: List[str] = []
    is_current: bool
    is_published: bool
    published_at: Optional[datetime] = None
    published_by_id: Optional[int] = None
    approval_status: VersionApprovalStatus
    approved_at: Optional[datetime] = None
    approved_by_id: Optional[int] = None
    previous_version_id: Optional[int] = None
    requires_approval: bool
    snapshot_size: Optional[int] = None
    created_by_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DraftVersionResponse(BaseModel):
    version: CatalogVersionResponse
    workflow: Optional[ApprovalWorkflowResponse] = None
    promoted: bool = False

    model_config = ConfigDict(from_attributes=True)


class VersionContentResponse(BaseModel):
    version_id: int
    content: Any
    size_bytes: int
    checksum: str

    model_config = ConfigDict(from_attributes=True)

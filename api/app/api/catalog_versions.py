"""Catalog version routes."""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.api.catalogs import audit_draft_outcome, require_editor, to_step_plans
from app.core.audit import create_audit_log
from app.core.concurrency import run_with_retry
from app.core.database import get_db
from app.core.deps import get_current_user, get_versioning_service
from app.core.versioning_service import CatalogVersioningService
from app.models.catalog_snapshot import CatalogSnapshot
from app.models.user import User
from app.schemas.approval_workflow import ApprovalWorkflowResponse, WorkflowSubmit
from app.schemas.catalog_version import (
    CatalogVersionResponse,
    DraftVersionResponse,
    VersionChangeResponse,
    VersionContentResponse,
    VersionRestore,
)

router = APIRouter()


@router.get("/{version_id}", response_model=CatalogVersionResponse)
def get_version(
    version_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    return service.versions.get_version(version_id)


@router.get("/{version_id}/content", response_model=VersionContentResponse)
def get_version_content(
    version_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    service.versions.get_version(version_id)
    content = service.snapshots.get(version_id)
    snapshot = db.get(CatalogSnapshot, version_id)
    return VersionContentResponse(
        version_id=version_id,
        content=content,
        size_bytes=snapshot.size_bytes,
        checksum=snapshot.checksum,
    )


@router.get("/{version_id}/changes", response_model=List[VersionChangeResponse])
def list_version_changes(
    version_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """Field-level changes recorded against the version's predecessor."""
    return service.versions.get_version(version_id).changes


@router.get("/{version_id}/lineage", response_model=List[CatalogVersionResponse])
def get_version_lineage(
    version_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """The version followed by each predecessor back to version 1."""
    return service.versions.get_lineage(version_id)


@router.post("/{version_id}/submit", response_model=ApprovalWorkflowResponse,
             status_code=status.HTTP_201_CREATED)
def submit_for_approval(
    version_id: int,
    submission: WorkflowSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    require_editor(current_user)

    def operation():
        workflow = service.submit_for_approval(
            version_id,
            current_user.user_id,
            steps=to_step_plans(submission.steps),
            name=submission.name,
            priority=submission.priority,
            notes=submission.notes,
            expected_completion_date=submission.expected_completion_date,
        )
        create_audit_log(db, "ApprovalWorkflow", workflow.workflow_id, "SUBMIT", current_user.user_id, {
            "version_id": version_id,
            "stages": [step.stage for step in workflow.steps],
        })
        return workflow

    return run_with_retry(db, operation)


@router.post("/{version_id}/publish", response_model=CatalogVersionResponse)
def publish_version(
    version_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    require_editor(current_user)

    def operation():
        version = service.versions.publish(version_id, current_user.user_id)
        create_audit_log(db, "CatalogVersion", version_id, "PUBLISH", current_user.user_id)
        return version

    return run_with_retry(db, operation)


@router.post("/{version_id}/restore", response_model=DraftVersionResponse,
             status_code=status.HTTP_201_CREATED)
def restore_version(
    version_id: int,
    restore_data: VersionRestore,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """Create a new version of the same catalog with this version's content."""
    require_editor(current_user)
    source = service.versions.get_version(version_id)
    catalog_id = source.catalog_id

    def operation():
        outcome = service.restore_version(
            catalog_id, version_id, current_user.user_id, label=restore_data.label
        )
        audit_draft_outcome(db, outcome, current_user.user_id, "RESTORE")
        return outcome

    outcome = run_with_retry(db, operation)
    return DraftVersionResponse.model_validate(outcome)

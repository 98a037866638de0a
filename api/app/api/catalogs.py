"""Course catalog routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from app.core.approval_workflow import StepPlan
from app.core.audit import create_audit_log
from app.core.concurrency import run_with_retry
from app.core.database import get_db
from app.core.deps import get_current_user, get_versioning_service
from app.core.roles import can_edit_catalogs
from app.core.versioning_service import CatalogVersioningService
from app.models.approval_workflow import CatalogApproval
from app.models.catalog import CatalogStatus, CatalogType, CourseCatalog
from app.models.user import User
from app.schemas.approval_workflow import CatalogApprovalResponse, StepPlanIn
from app.schemas.catalog import CatalogClone, CatalogCreate, CatalogResponse, CatalogUpdate
from app.schemas.catalog_version import (
    CatalogVersionCreate,
    CatalogVersionResponse,
    DraftVersionResponse,
)

router = APIRouter()


def require_editor(user: User) -> None:
    if not can_edit_catalogs(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only catalog editors and admins can modify catalogs"
        )


def to_step_plans(steps: Optional[List[StepPlanIn]]) -> Optional[List[StepPlan]]:
    if not steps:
        return None
    return [StepPlan(**step.model_dump()) for step in steps]


def audit_draft_outcome(db: Session, outcome, user_id: int, action: str) -> None:
    version = outcome.version
    create_audit_log(db, "CatalogVersion", version.version_id, action, user_id, {
        "catalog_id": version.catalog_id,
        "version_number": version.version_number,
        "change_summary": version.change_summary,
        "promoted": outcome.promoted,
        "workflow_id": outcome.workflow.workflow_id if outcome.workflow else None,
    })


@router.post("/", response_model=CatalogResponse, status_code=status.HTTP_201_CREATED)
def create_catalog(
    catalog_data: CatalogCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """Create an empty catalog; content arrives through versions."""
    require_editor(current_user)

    def operation():
        catalog = service.versions.create_catalog(
            name=catalog_data.name,
            effective_date=catalog_data.effective_date,
            expiration_date=catalog_data.expiration_date,
            created_by_id=current_user.user_id,
            catalog_type=catalog_data.catalog_type,
            academic_year=catalog_data.academic_year,
            description=catalog_data.description,
            based_on_catalog_id=catalog_data.based_on_catalog_id,
        )
        create_audit_log(db, "CourseCatalog", catalog.catalog_id, "CREATE", current_user.user_id, {
            "name": catalog.name,
            "based_on_catalog_id": catalog.based_on_catalog_id,
        })
        return catalog

    catalog = run_with_retry(db, operation)
    db.refresh(catalog)
    return catalog


@router.get("/", response_model=List[CatalogResponse])
def list_catalogs(
    status_filter: Optional[CatalogStatus] = Query(None, alias="status"),
    catalog_type: Optional[CatalogType] = Query(None),
    academic_year: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(CourseCatalog)
    if status_filter:
        query = query.filter(CourseCatalog.status == status_filter.value)
    if catalog_type:
        query = query.filter(CourseCatalog.catalog_type == catalog_type.value)
    if academic_year is not None:
        query = query.filter(CourseCatalog.academic_year == academic_year)
    return query.order_by(CourseCatalog.effective_date.desc(), CourseCatalog.catalog_id).all()


@router.get("/{catalog_id}", response_model=CatalogResponse)
def get_catalog(
    catalog_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    return service.versions.get_catalog(catalog_id)


@router.patch("/{catalog_id}", response_model=CatalogResponse)
def update_catalog(
    catalog_id: int,
    catalog_data: CatalogUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    require_editor(current_user)
    update_data = catalog_data.model_dump(exclude_unset=True)

    def operation():
        catalog = service.versions.update_catalog(catalog_id, **update_data)
        create_audit_log(db, "CourseCatalog", catalog_id, "UPDATE", current_user.user_id,
                         {k: str(v) for k, v in update_data.items()})
        return catalog

    catalog = run_with_retry(db, operation)
    db.refresh(catalog)
    return catalog


@router.post("/{catalog_id}/clone", response_model=CatalogResponse, status_code=status.HTTP_201_CREATED)
def clone_catalog(
    catalog_id: int,
    clone_data: CatalogClone,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """New catalog based on this one, seeded with its current content."""
    require_editor(current_user)
    if clone_data.expiration_date < clone_data.effective_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="expiration_date must not precede effective_date"
        )

    def operation():
        clone = service.versions.clone_catalog(
            catalog_id,
            name=clone_data.name,
            effective_date=clone_data.effective_date,
            expiration_date=clone_data.expiration_date,
            created_by_id=current_user.user_id,
            academic_year=clone_data.academic_year,
        )
        create_audit_log(db, "CourseCatalog", clone.catalog_id, "CLONE", current_user.user_id, {
            "source_catalog_id": catalog_id,
        })
        return clone

    clone = run_with_retry(db, operation)
    db.refresh(clone)
    return clone


@router.post("/{catalog_id}/archive", response_model=CatalogResponse)
def archive_catalog(
    catalog_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    require_editor(current_user)

    def operation():
        catalog = service.versions.archive(catalog_id)
        create_audit_log(db, "CourseCatalog", catalog_id, "ARCHIVE", current_user.user_id)
        return catalog

    catalog = run_with_retry(db, operation)
    db.refresh(catalog)
    return catalog


@router.get("/{catalog_id}/versions", response_model=List[CatalogVersionResponse])
def list_catalog_versions(
    catalog_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    return service.versions.list_versions(catalog_id)


@router.post("/{catalog_id}/versions", response_model=DraftVersionResponse,
             status_code=status.HTTP_201_CREATED)
def create_draft_version(
    catalog_id: int,
    version_data: CatalogVersionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """Create a new version of the catalog's content.

    Versions whose changes need no review are promoted immediately;
    otherwise an approval workflow is opened (unless ``submit`` is false).
    """
    require_editor(current_user)

    def operation():
        outcome = service.create_draft_version(
            catalog_id,
            version_data.content,
            current_user.user_id,
            label=version_data.label,
            version_type=version_data.version_type,
            description=version_data.description,
            release_notes=version_data.release_notes,
            tags=version_data.tags,
            expected_revision=version_data.expected_revision,
            submit=version_data.submit,
            steps=to_step_plans(version_data.steps),
            priority=version_data.priority,
        )
        audit_draft_outcome(db, outcome, current_user.user_id, "CREATE")
        return outcome

    # A stale expected_revision would fail the same way on every attempt
    retries = 0 if version_data.expected_revision is not None else None
    outcome = run_with_retry(db, operation, retries=retries)
    return DraftVersionResponse.model_validate(outcome)


@router.get("/{catalog_id}/current-version", response_model=CatalogVersionResponse)
def get_current_version(
    catalog_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    version = service.get_current_version(catalog_id)
    if version is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Catalog {catalog_id} has no current version"
        )
    return version


@router.get("/{catalog_id}/approvals", response_model=List[CatalogApprovalResponse])
def list_catalog_approvals(
    catalog_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """Decided approval stages for every workflow of the catalog."""
    service.versions.get_catalog(catalog_id)
    return db.query(CatalogApproval).filter(
        CatalogApproval.catalog_id == catalog_id
    ).order_by(CatalogApproval.approval_date, CatalogApproval.approval_id).all()

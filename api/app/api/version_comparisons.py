"""Version comparison routes."""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.core.concurrency import run_with_retry
from app.core.database import get_db
from app.core.deps import get_current_user, get_versioning_service
from app.core.versioning_service import CatalogVersioningService
from app.models.user import User
from app.schemas.version_comparison import (
    ComparisonRequest,
    VersionComparisonResponse,
    VersionComparisonSummary,
)

router = APIRouter()


@router.post("/", response_model=VersionComparisonResponse)
def compare_versions(
    request: ComparisonRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    """Compare two versions, reusing the cached result unless recompute is forced."""
    def operation():
        return service.compare_versions(
            request.source_version_id,
            request.target_version_id,
            current_user.user_id,
            comparison_type=request.comparison_type,
            force_recompute=request.force_recompute,
        )

    return run_with_retry(db, operation)


@router.get("/versions/{version_id}", response_model=List[VersionComparisonSummary])
def list_version_comparisons(
    version_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    return service.comparator.list_comparisons(version_id)


@router.get("/{comparison_id}", response_model=VersionComparisonResponse)
def get_comparison(
    comparison_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogVersioningService = Depends(get_versioning_service),
):
    return service.comparator.get_comparison(comparison_id)

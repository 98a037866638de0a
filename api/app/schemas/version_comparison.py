"""Version comparison schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from app.core.impact_policy import Significance
from app.models.version_comparison import ComparisonType


class ComparisonRequest(BaseModel):
    source_version_id: int
    target_version_id: int
    comparison_type: ComparisonType = ComparisonType.DIFF
    force_recompute: bool = Field(False, description="Overwrite a cached result for the same triple")


class ComparisonDetailResponse(BaseModel):
    position: int
    entity_type: str
    entity_id: str
    property_name: Optional[str] = None
    change_type: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    description: Optional[str] = None
    significance: Significance

    model_config = ConfigDict(from_attributes=True)


class VersionComparisonSummary(BaseModel):
    comparison_id: int
    source_version_id: int
    target_version_id: int
    comparison_type: ComparisonType
    similarity_percentage: float
    is_cross_catalog: bool
    additions_count: int
    modifications_count: int
    deletions_count: int
    differences_summary: Optional[str] = None
    compared_by_id: int
    compared_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VersionComparisonResponse(VersionComparisonSummary):
    comparison_metrics: Dict[str, Any] = {}
    details: List[ComparisonDetailResponse] = []

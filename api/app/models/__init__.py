"""Models package."""
from app.models.user import User
from app.models.audit_log import AuditLog
from app.models.catalog import CourseCatalog, CatalogStatus, CatalogType
from app.models.catalog_version import (
    CatalogVersion,
    VersionChange,
    VersionApprovalStatus,
    VersionType,
)
from app.models.catalog_snapshot import CatalogSnapshot
from app.models.version_comparison import VersionComparison, ComparisonDetail, ComparisonType
from app.models.approval_workflow import (
    ApprovalWorkflow,
    ApprovalStep,
    CatalogApproval,
    ApprovalStage,
    StepStatus,
    WorkflowPriority,
    WorkflowStatus,
)

__all__ = [
    "User",
    "AuditLog",
    "CourseCatalog",
    "CatalogStatus",
    "CatalogType",
    "CatalogVersion",
    "VersionChange",
    "VersionApprovalStatus",
    "VersionType",
    "CatalogSnapshot",
    "VersionComparison",
    "ComparisonDetail",
    "ComparisonType",
    "ApprovalWorkflow",
    "ApprovalStep",
    "CatalogApproval",
    "ApprovalStage",
    "StepStatus",
    "WorkflowPriority",
    "WorkflowStatus",
]

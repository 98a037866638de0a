"""Approval workflow models for gating catalog version promotion."""
import enum
from datetime import datetime, date
from typing import Optional, List
from sqlalchemy import (
    String, Integer, Text, DateTime, Date, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base
from app.core.time import utc_now


class WorkflowStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TERMINAL_WORKFLOW_STATUSES = frozenset({
    WorkflowStatus.APPROVED.value,
    WorkflowStatus.REJECTED.value,
    WorkflowStatus.CANCELLED.value,
})


class StepStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


class ApprovalStage(str, enum.Enum):
    """Review stages in their required order."""
    DEPARTMENT_REVIEW = "DEPARTMENT_REVIEW"
    COMMITTEE_REVIEW = "COMMITTEE_REVIEW"
    ACADEMIC_SENATE_REVIEW = "ACADEMIC_SENATE_REVIEW"
    PROVOST_APPROVAL = "PROVOST_APPROVAL"
    BOARD_APPROVAL = "BOARD_APPROVAL"
    ACCREDITATION_REVIEW = "ACCREDITATION_REVIEW"
    FINAL_APPROVAL = "FINAL_APPROVAL"

    @property
    def rank(self) -> int:
        return list(ApprovalStage).index(self)


class WorkflowPriority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ApprovalWorkflow(Base):
    """Ordered review of a pending catalog version."""
    __tablename__ = "approval_workflows"

    workflow_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    catalog_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalogs.catalog_id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("catalog_versions.version_id", ondelete="CASCADE"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    initiated_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False
    )
    initiated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WorkflowStatus.NOT_STARTED.value, index=True
    )
    current_stage: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WorkflowPriority.NORMAL.value
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expected_completion_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Bumped on every transition; stale writers fail instead of interleaving
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    catalog = relationship("CourseCatalog", foreign_keys=[catalog_id])
    version = relationship("CatalogVersion", foreign_keys=[version_id])
    initiated_by = relationship("User", foreign_keys=[initiated_by_id])
    steps: Mapped[List["ApprovalStep"]] = relationship(
        "ApprovalStep", back_populates="workflow",
        cascade="all, delete-orphan", order_by="ApprovalStep.step_order"
    )

    __mapper_args__ = {"version_id_col": row_version}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_WORKFLOW_STATUSES

    @property
    def active_step(self) -> Optional["ApprovalStep"]:
        """Lowest-order step still pending, if the workflow is open."""
        if self.is_terminal:
            return None
        pending = [s for s in self.steps if s.status == StepStatus.PENDING.value]
        return min(pending, key=lambda s: s.step_order) if pending else None


class ApprovalStep(Base):
    """One stage of an approval workflow."""
    __tablename__ = "approval_steps"

    step_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    workflow_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("approval_workflows.workflow_id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    stage: Mapped[str] = mapped_column(String(40), nullable=False)
    assigned_to_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StepStatus.PENDING.value
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    decided_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    required_documents: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    review_criteria: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    workflow: Mapped["ApprovalWorkflow"] = relationship("ApprovalWorkflow", back_populates="steps")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    decided_by = relationship("User", foreign_keys=[decided_by_id])

    __table_args__ = (
        UniqueConstraint('workflow_id', 'step_order', name='uq_approval_step_order'),
    )


class CatalogApproval(Base):
    """Audit record of a decided stage, written when a workflow concludes."""
    __tablename__ = "catalog_approvals"

    approval_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    catalog_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalogs.catalog_id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("catalog_versions.version_id", ondelete="CASCADE"), nullable=True
    )
    workflow_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("approval_workflows.workflow_id", ondelete="CASCADE"), nullable=False, index=True
    )
    stage: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # APPROVED | REJECTED
    approved_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False
    )
    approval_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    approved_by = relationship("User", foreign_keys=[approved_by_id])

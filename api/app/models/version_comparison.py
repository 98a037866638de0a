"""Version comparison models."""
import enum
from datetime import datetime
from typing import Optional, List, Any, Dict
from sqlalchemy import (
    String, Integer, Text, DateTime, Boolean, Float, ForeignKey, JSON,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base
from app.core.time import utc_now


class ComparisonType(str, enum.Enum):
    """How two versions are being compared."""
    DIFF = "DIFF"
    SEQUENTIAL = "SEQUENTIAL"  # adjacent versions of one chain
    NON_SEQUENTIAL = "NON_SEQUENTIAL"
    BASELINE = "BASELINE"  # against a reference version


class VersionComparison(Base):
    """Cached structural diff between a source and a target version."""
    __tablename__ = "version_comparisons"

    comparison_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_version_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalog_versions.version_id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_version_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalog_versions.version_id", ondelete="CASCADE"), nullable=False, index=True
    )
    comparison_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ComparisonType.DIFF.value
    )
    similarity_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_cross_catalog: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    additions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    modifications_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deletions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    differences_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comparison_metrics: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    compared_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False
    )
    compared_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    source_version = relationship("CatalogVersion", foreign_keys=[source_version_id])
    target_version = relationship("CatalogVersion", foreign_keys=[target_version_id])
    compared_by = relationship("User", foreign_keys=[compared_by_id])
    details: Mapped[List["ComparisonDetail"]] = relationship(
        "ComparisonDetail", back_populates="comparison",
        cascade="all, delete-orphan", order_by="ComparisonDetail.position"
    )

    __table_args__ = (
        UniqueConstraint(
            'source_version_id', 'target_version_id', 'comparison_type',
            name='uq_version_comparison_triple'
        ),
        CheckConstraint('source_version_id != target_version_id', name='chk_comparison_distinct_versions'),
        CheckConstraint(
            'similarity_percentage >= 0 AND similarity_percentage <= 100',
            name='chk_similarity_range'
        ),
    )


class ComparisonDetail(Base):
    """One field-level difference found by a comparison."""
    __tablename__ = "comparison_details"

    detail_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    comparison_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("version_comparisons.comparison_id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # stable output order
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(200), nullable=False)
    property_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)
    old_value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    significance: Mapped[str] = mapped_column(String(20), nullable=False, default="COSMETIC")

    comparison: Mapped["VersionComparison"] = relationship("VersionComparison", back_populates="details")

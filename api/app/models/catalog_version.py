"""Catalog version and version change models."""
import enum
from datetime import datetime
from typing import Optional, List, Any
from sqlalchemy import (
    String, Integer, Text, DateTime, Boolean, ForeignKey, JSON,
    UniqueConstraint, CheckConstraint, Index, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base
from app.core.time import utc_now


class VersionApprovalStatus(str, enum.Enum):
    """Approval status of a catalog version."""
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class VersionType(str, enum.Enum):
    """Editor-declared size of a version bump."""
    MAJOR = "MAJOR"
    MINOR = "MINOR"
    PATCH = "PATCH"
    HOTFIX = "HOTFIX"


class CatalogVersion(Base):
    """Immutable snapshot of a catalog's content at a point in time.

    Only ``is_current``, ``is_published`` and the approval fields change
    after creation; new content always means a new version.
    """
    __tablename__ = "catalog_versions"

    version_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    catalog_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalogs.catalog_id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    version_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VersionType.MINOR.value
    )
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    change_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    release_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    published_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )

    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VersionApprovalStatus.DRAFT.value, index=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    approved_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )

    previous_version_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("catalog_versions.version_id", ondelete="RESTRICT"), nullable=True
    )

    created_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    # Relationships
    catalog = relationship("CourseCatalog", back_populates="versions", foreign_keys=[catalog_id])
    previous_version: Mapped[Optional["CatalogVersion"]] = relationship(
        "CatalogVersion", remote_side=[version_id], foreign_keys=[previous_version_id]
    )
    created_by = relationship("User", foreign_keys=[created_by_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])
    published_by = relationship("User", foreign_keys=[published_by_id])
    changes: Mapped[List["VersionChange"]] = relationship(
        "VersionChange", back_populates="version",
        cascade="all, delete-orphan", order_by="VersionChange.change_id"
    )
    snapshot = relationship(
        "CatalogSnapshot", uselist=False, back_populates="version", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint('catalog_id', 'version_number', name='uq_catalog_version_number'),
        CheckConstraint('version_number >= 1', name='chk_version_number_positive'),
        CheckConstraint(
            'previous_version_id IS NULL OR previous_version_id != version_id',
            name='chk_version_not_own_predecessor'
        ),
        # At most one current version per catalog
        Index(
            'uq_catalog_versions_current', 'catalog_id', unique=True,
            sqlite_where=text('is_current = 1'),
            postgresql_where=text('is_current = true'),
        ),
    )

    @property
    def snapshot_size(self) -> Optional[int]:
        return self.snapshot.size_bytes if self.snapshot else None

    @property
    def requires_approval(self) -> bool:
        return any(change.requires_approval for change in self.changes)


class VersionChange(Base):
    """One field-level delta recorded when a version was created."""
    __tablename__ = "version_changes"

    change_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    version_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalog_versions.version_id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(200), nullable=False)
    property_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)  # NULL for whole-entity add/remove
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)  # ADDED | MODIFIED | REMOVED
    old_value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    impact_level: Mapped[str] = mapped_column(String(20), nullable=False, default="LOW")
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    changed_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False
    )
    changed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    version: Mapped["CatalogVersion"] = relationship("CatalogVersion", back_populates="changes")
    changed_by = relationship("User", foreign_keys=[changed_by_id])

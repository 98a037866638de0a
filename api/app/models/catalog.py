"""Course catalog model."""
import enum
from datetime import datetime, date
from typing import Optional, List
from sqlalchemy import String, Integer, Text, DateTime, Date, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base
from app.core.time import utc_now


class CatalogStatus(str, enum.Enum):
    """Catalog lifecycle status."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class CatalogType(str, enum.Enum):
    """Kind of academic catalog."""
    UNDERGRADUATE = "UNDERGRADUATE"
    GRADUATE = "GRADUATE"
    PROFESSIONAL = "PROFESSIONAL"
    SUMMER = "SUMMER"
    ONLINE = "ONLINE"
    COMPREHENSIVE = "COMPREHENSIVE"


class CourseCatalog(Base):
    """A named, versionable catalog document."""
    __tablename__ = "catalogs"

    catalog_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    academic_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    catalog_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=CatalogType.UNDERGRADUATE.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CatalogStatus.DRAFT.value, index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiration_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Acyclic by construction: enforced by a lineage walk at write time
    based_on_catalog_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("catalogs.catalog_id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Optimistic concurrency token guarding version creation and promotion
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    based_on: Mapped[Optional["CourseCatalog"]] = relationship(
        "CourseCatalog", remote_side=[catalog_id], foreign_keys=[based_on_catalog_id]
    )
    created_by = relationship("User", foreign_keys=[created_by_id])
    versions: Mapped[List["CatalogVersion"]] = relationship(
        "CatalogVersion", back_populates="catalog",
        order_by="CatalogVersion.version_number",
        foreign_keys="CatalogVersion.catalog_id",
    )

    __table_args__ = (
        CheckConstraint('based_on_catalog_id IS NULL OR based_on_catalog_id != catalog_id',
                        name='chk_catalog_not_based_on_self'),
        CheckConstraint('expiration_date >= effective_date', name='chk_catalog_validity_window'),
    )

    @property
    def is_archived(self) -> bool:
        return self.status == CatalogStatus.ARCHIVED.value

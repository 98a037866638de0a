"""Serialized catalog content, keyed by version."""
from typing import Any
from sqlalchemy import String, Integer, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class CatalogSnapshot(Base):
    """Opaque content of one catalog version; written once, never updated."""
    __tablename__ = "catalog_snapshots"

    version_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("catalog_versions.version_id", ondelete="CASCADE"), primary_key=True
    )
    content: Mapped[Any] = mapped_column(JSON, nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)  # SHA-256 hex of canonical JSON

    version = relationship("CatalogVersion", back_populates="snapshot")

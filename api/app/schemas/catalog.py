"""Course catalog schemas."""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from app.models.catalog import CatalogStatus, CatalogType


class CatalogBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    academic_year: Optional[int] = Field(None, ge=1900, le=2200)
    catalog_type: CatalogType = CatalogType.UNDERGRADUATE
    description: Optional[str] = None
    effective_date: date
    expiration_date: date

    @model_validator(mode="after")
    def check_validity_window(self):
        if self.expiration_date < self.effective_date:
            raise ValueError("expiration_date must not precede effective_date")
        return self


class CatalogCreate(CatalogBase):
    based_on_catalog_id: Optional[int] = Field(None, description="Catalog this one is derived from")


class CatalogUpdate(BaseModel):
    """Metadata only; content changes go through new versions."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    academic_year: Optional[int] = Field(None, ge=1900, le=2200)
    catalog_type: Optional[CatalogType] = None
    description: Optional[str] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    based_on_catalog_id: Optional[int] = None


class CatalogClone(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    academic_year: Optional[int] = Field(None, ge=1900, le=2200)
    effective_date: date
    expiration_date: date


class CatalogResponse(BaseModel):
    catalog_id: int
    name: str
    academic_year: Optional[int] = None
    catalog_type: CatalogType
    status: CatalogStatus
    description: Optional[str] = None
    effective_date: date
    expiration_date: date
    based_on_catalog_id: Optional[int] = None
    revision: int
    created_by_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

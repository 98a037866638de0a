"""Catalog version management.

Owns the per-catalog invariants:
- at most one version has ``is_current`` set
- version numbers run 1, 2, 3, ... with no gaps
- ``previous_version`` links stay within one catalog and never cycle
- ``based_on`` references between catalogs never cycle

Writers that touch these invariants (version creation, promotion) claim
the catalog with a compare-and-set on ``CourseCatalog.revision``. A
mismatch means another writer got there first and surfaces as
``ConcurrentModification``; retrying is the caller's job.
"""
import logging
from datetime import date
from typing import Any, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.core.change_tracker import ChangeTracker
from app.core.config import settings
from app.core.errors import (
    ConcurrentModification,
    EntityNotFound,
    InvalidCatalogState,
    InvalidLineage,
    NotApproved,
)
from app.core.time import utc_now
from app.models.approval_workflow import ApprovalWorkflow, TERMINAL_WORKFLOW_STATUSES
from app.models.catalog import CatalogStatus, CatalogType, CourseCatalog
from app.models.catalog_version import CatalogVersion, VersionApprovalStatus, VersionType
from app.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class CatalogVersionManager:
    """Creates, links, promotes and archives catalog versions."""

    def __init__(self, db: Session, snapshot_store: SnapshotStore, change_tracker: ChangeTracker):
        self.db = db
        self.snapshots = snapshot_store
        self.change_tracker = change_tracker

    # --- Lookups ---

    def get_catalog(self, catalog_id: int) -> CourseCatalog:
        catalog = self.db.get(CourseCatalog, catalog_id)
        if catalog is None:
            raise InvalidCatalogState(f"Catalog {catalog_id} does not exist", catalog_id=catalog_id)
        return catalog

    def get_writable_catalog(self, catalog_id: int) -> CourseCatalog:
        catalog = self.get_catalog(catalog_id)
        if catalog.is_archived:
            raise InvalidCatalogState(
                f"Catalog {catalog_id} is archived", catalog_id=catalog_id
            )
        return catalog

    def get_version(self, version_id: int) -> CatalogVersion:
        version = self.db.get(CatalogVersion, version_id)
        if version is None:
            raise EntityNotFound("CatalogVersion", version_id)
        return version

    def get_current_version(self, catalog_id: int) -> Optional[CatalogVersion]:
        self.get_catalog(catalog_id)
        return self.db.query(CatalogVersion).filter(
            CatalogVersion.catalog_id == catalog_id,
            CatalogVersion.is_current.is_(True)
        ).one_or_none()

    def ensure_drafted_against_current(self, version: CatalogVersion) -> None:
        """Reject a version whose predecessor is no longer the catalog's current version."""
        current = self.get_current_version(version.catalog_id)
        current_id = current.version_id if current is not None else None
        if version.previous_version_id != current_id:
            raise InvalidLineage(
                f"Version {version.version_number} was drafted against version "
                f"{version.previous_version_id}, but version {current_id} is now current",
                version_id=version.version_id,
                previous_version_id=version.previous_version_id,
                current_version_id=current_id,
            )

    def list_versions(self, catalog_id: int) -> List[CatalogVersion]:
        self.get_catalog(catalog_id)
        return self.db.query(CatalogVersion).filter(
            CatalogVersion.catalog_id == catalog_id
        ).order_by(CatalogVersion.version_number).all()

    def get_lineage(self, version_id: int) -> List[CatalogVersion]:
        """Versions from ``version_id`` back to the first version of its catalog."""
        version = self.get_version(version_id)
        chain: List[CatalogVersion] = []
        seen = set()
        while version is not None:
            crossed = bool(chain) and version.catalog_id != chain[0].catalog_id
            if version.version_id in seen or crossed:
                raise InvalidLineage(
                    f"Version chain through {version.version_id} is corrupt",
                    version_id=version.version_id,
                )
            seen.add(version.version_id)
            chain.append(version)
            version = version.previous_version
        return chain

    # --- Catalog lifecycle ---

    def check_based_on(self, catalog_id: Optional[int], based_on_catalog_id: Optional[int]) -> None:
        """Reject a basedOn reference that would make the catalog its own ancestor."""
        if based_on_catalog_id is None:
            return
        if catalog_id is not None and based_on_catalog_id == catalog_id:
            raise InvalidLineage("A catalog cannot be based on itself", catalog_id=catalog_id)

        visited = set()
        ancestor = self.get_catalog(based_on_catalog_id)
        depth = 0
        while ancestor is not None:
            if catalog_id is not None and ancestor.catalog_id == catalog_id:
                raise InvalidLineage(
                    f"Catalog {based_on_catalog_id} is derived from catalog {catalog_id}",
                    catalog_id=catalog_id,
                    based_on_catalog_id=based_on_catalog_id,
                )
            if ancestor.catalog_id in visited or depth >= settings.MAX_LINEAGE_DEPTH:
                raise InvalidLineage(
                    f"basedOn lineage of catalog {based_on_catalog_id} is cyclic or too deep",
                    based_on_catalog_id=based_on_catalog_id,
                )
            visited.add(ancestor.catalog_id)
            depth += 1
            ancestor = ancestor.based_on

    def create_catalog(
        self,
        name: str,
        effective_date: date,
        expiration_date: date,
        created_by_id: int,
        catalog_type: CatalogType = CatalogType.UNDERGRADUATE,
        academic_year: Optional[int] = None,
        description: Optional[str] = None,
        based_on_catalog_id: Optional[int] = None,
    ) -> CourseCatalog:
        if expiration_date < effective_date:
            raise InvalidCatalogState("Expiration date must not precede effective date")
        self.check_based_on(None, based_on_catalog_id)
        catalog = CourseCatalog(
            name=name,
            academic_year=academic_year,
            catalog_type=catalog_type.value,
            status=CatalogStatus.DRAFT.value,
            description=description,
            effective_date=effective_date,
            expiration_date=expiration_date,
            based_on_catalog_id=based_on_catalog_id,
            revision=0,
            created_by_id=created_by_id,
        )
        self.db.add(catalog)
        self.db.flush()
        logger.info("Created catalog %s (%s)", catalog.catalog_id, name)
        return catalog

    def update_catalog(self, catalog_id: int, **fields: Any) -> CourseCatalog:
        """Update catalog metadata; content changes go through new versions."""
        catalog = self.get_writable_catalog(catalog_id)
        if "based_on_catalog_id" in fields:
            self.check_based_on(catalog_id, fields["based_on_catalog_id"])
        for name, value in fields.items():
            if isinstance(value, CatalogType):
                value = value.value
            setattr(catalog, name, value)
        if catalog.expiration_date < catalog.effective_date:
            raise InvalidCatalogState("Expiration date must not precede effective date")
        self.db.flush()
        return catalog

    def archive(self, catalog_id: int) -> CourseCatalog:
        """Mark a catalog archived unless one of its versions is under review."""
        catalog = self.get_writable_catalog(catalog_id)
        in_flight = self.db.query(ApprovalWorkflow).filter(
            ApprovalWorkflow.catalog_id == catalog_id,
            ApprovalWorkflow.status.notin_(TERMINAL_WORKFLOW_STATUSES)
        ).first()
        if in_flight:
            raise InvalidCatalogState(
                f"Catalog {catalog_id} has an approval workflow in progress",
                catalog_id=catalog_id,
                workflow_id=in_flight.workflow_id,
            )
        catalog.status = CatalogStatus.ARCHIVED.value
        catalog.archived_at = utc_now()
        self.db.flush()
        logger.info("Archived catalog %s", catalog_id)
        return catalog

    # --- Versions ---

    def _claim_catalog(self, catalog: CourseCatalog, expected_revision: Optional[int] = None) -> None:
        """Compare-and-set the catalog revision; single writer per catalog."""
        expected = catalog.revision if expected_revision is None else expected_revision
        result = self.db.execute(
            update(CourseCatalog)
            .where(
                CourseCatalog.catalog_id == catalog.catalog_id,
                CourseCatalog.revision == expected
            )
            .values(revision=expected + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModification(
                f"Catalog {catalog.catalog_id} was modified concurrently",
                catalog_id=catalog.catalog_id,
                expected_revision=expected,
            )
        set_committed_value(catalog, "revision", expected + 1)

    def _flush_guarded(self, catalog_id: int) -> None:
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConcurrentModification(
                f"Catalog {catalog_id} version invariants changed underneath this write",
                catalog_id=catalog_id,
            ) from exc

    def create_version(
        self,
        catalog_id: int,
        content: Any,
        author_id: int,
        label: Optional[str] = None,
        version_type: VersionType = VersionType.MINOR,
        description: Optional[str] = None,
        release_notes: Optional[str] = None,
        tags: Optional[List[str]] = None,
        expected_revision: Optional[int] = None,
    ) -> CatalogVersion:
        """Allocate the next version of a catalog as a Draft and record its changes."""
        catalog = self.get_writable_catalog(catalog_id)
        self._claim_catalog(catalog, expected_revision)

        last_number = self.db.query(func.max(CatalogVersion.version_number)).filter(
            CatalogVersion.catalog_id == catalog_id
        ).scalar() or 0
        previous = self.get_current_version(catalog_id)

        version_number = last_number + 1
        version = CatalogVersion(
            catalog_id=catalog_id,
            version_number=version_number,
            version_type=version_type.value,
            label=label or f"{catalog.name} v{version_number}",
            description=description,
            release_notes=release_notes,
            tags=list(tags or []),
            is_current=False,
            is_published=False,
            approval_status=VersionApprovalStatus.DRAFT.value,
            previous_version_id=previous.version_id if previous else None,
            created_by_id=author_id,
        )
        self.db.add(version)
        self._flush_guarded(catalog_id)

        self.snapshots.put(version.version_id, content)
        self.db.flush()
        self.change_tracker.record_changes(version.previous_version_id, version.version_id, author_id)

        logger.info(
            "Created version %s of catalog %s (previous: %s)",
            version_number, catalog_id, version.previous_version_id,
        )
        return version

    def restore_version(self, catalog_id: int, version_id: int, author_id: int,
                        label: Optional[str] = None) -> CatalogVersion:
        """New draft whose content equals an earlier version of the same catalog."""
        source = self.get_version(version_id)
        if source.catalog_id != catalog_id:
            raise InvalidLineage(
                f"Version {version_id} belongs to catalog {source.catalog_id}, not {catalog_id}",
                catalog_id=catalog_id,
                version_id=version_id,
            )
        return self.create_version(
            catalog_id,
            self.snapshots.get(version_id),
            author_id,
            label=label or f"Restore of v{source.version_number}",
            version_type=VersionType.PATCH,
            description=f"Content restored from version {source.version_number}",
        )

    def clone_catalog(self, source_catalog_id: int, name: str, effective_date: date,
                      expiration_date: date, created_by_id: int,
                      academic_year: Optional[int] = None) -> CourseCatalog:
        """New catalog based on an existing one, seeded with its current content."""
        source = self.get_catalog(source_catalog_id)
        clone = self.create_catalog(
            name=name,
            effective_date=effective_date,
            expiration_date=expiration_date,
            created_by_id=created_by_id,
            catalog_type=CatalogType(source.catalog_type),
            academic_year=academic_year,
            description=source.description,
            based_on_catalog_id=source_catalog_id,
        )
        current = self.get_current_version(source_catalog_id)
        if current is not None:
            seed = self.create_version(
                clone.catalog_id,
                self.snapshots.get(current.version_id),
                created_by_id,
                label=f"Cloned from {source.name} v{current.version_number}",
                version_type=VersionType.MAJOR,
            )
            # First version of a catalog: bootstrap changes never need review
            seed.approval_status = VersionApprovalStatus.APPROVED.value
            seed.approved_at = utc_now()
            seed.approved_by_id = created_by_id
            self.promote(seed.version_id)
        return clone

    def promote(self, version_id: int) -> CatalogVersion:
        """Make an approved version the catalog's single current version."""
        version = self.get_version(version_id)
        if version.approval_status != VersionApprovalStatus.APPROVED.value:
            raise NotApproved(
                f"Version {version_id} is {version.approval_status}, not APPROVED",
                version_id=version_id,
                approval_status=version.approval_status,
            )
        catalog = self.get_writable_catalog(version.catalog_id)
        if version.is_current:
            return version

        self._claim_catalog(catalog)
        self.ensure_drafted_against_current(version)
        previous_current = self.get_current_version(catalog.catalog_id)
        if previous_current is not None:
            previous_current.is_current = False
            self._flush_guarded(catalog.catalog_id)
        version.is_current = True
        if catalog.status == CatalogStatus.DRAFT.value:
            catalog.status = CatalogStatus.ACTIVE.value
        self._flush_guarded(catalog.catalog_id)

        logger.info(
            "Promoted version %s of catalog %s (replacing %s)",
            version.version_number, catalog.catalog_id,
            previous_current.version_number if previous_current else None,
        )
        return version

    def publish(self, version_id: int, actor_id: int) -> CatalogVersion:
        """Publish the catalog's current, approved version."""
        version = self.get_version(version_id)
        if version.approval_status != VersionApprovalStatus.APPROVED.value:
            raise NotApproved(
                f"Version {version_id} is {version.approval_status}, not APPROVED",
                version_id=version_id,
                approval_status=version.approval_status,
            )
        self.get_writable_catalog(version.catalog_id)
        if not version.is_current:
            raise InvalidCatalogState(
                f"Only the current version can be published; version {version_id} is not current",
                version_id=version_id,
            )
        if not version.is_published:
            version.is_published = True
            version.published_at = utc_now()
            version.published_by_id = actor_id
            self.db.flush()
        return version

"""Change tracking between a catalog's previous current version and a new draft."""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import EntityNotFound, InvalidLineage
from app.core.impact_policy import DEFAULT_IMPACT_POLICY, ImpactLevel, ImpactPolicy
from app.core.snapshot_diff import (
    DEFAULT_SNAPSHOT_SCHEMA,
    ChangeType,
    DiffResult,
    SnapshotSchema,
    bootstrap_snapshot,
    diff_snapshots,
)
from app.core.time import utc_now
from app.models.catalog_version import CatalogVersion, VersionChange
from app.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


def summarize_changes(result: DiffResult) -> str:
    return (
        f"{result.count(ChangeType.ADDED)} added, "
        f"{result.count(ChangeType.MODIFIED)} modified, "
        f"{result.count(ChangeType.REMOVED)} removed"
    )


class ChangeTracker:
    """Records field-level VersionChange rows for a newly created version."""

    def __init__(
        self,
        db: Session,
        snapshot_store: SnapshotStore,
        policy: ImpactPolicy = DEFAULT_IMPACT_POLICY,
        schema: SnapshotSchema = DEFAULT_SNAPSHOT_SCHEMA,
    ):
        self.db = db
        self.snapshots = snapshot_store
        self.policy = policy
        self.schema = schema

    def record_changes(
        self,
        previous_version_id: Optional[int],
        new_version_id: int,
        actor_id: int,
    ) -> List[VersionChange]:
        """Diff the new version against its predecessor and persist the deltas.

        With no predecessor (first version of a catalog) every field is
        recorded as ADDED with LOW impact and nothing requires approval.
        """
        new_version = self.db.get(CatalogVersion, new_version_id)
        if new_version is None:
            raise EntityNotFound("CatalogVersion", new_version_id)

        new_content = self.snapshots.get(new_version_id)
        bootstrap = previous_version_id is None
        if bootstrap:
            result = bootstrap_snapshot(new_content, self.schema)
        else:
            previous = self.db.get(CatalogVersion, previous_version_id)
            if previous is None:
                raise EntityNotFound("CatalogVersion", previous_version_id)
            if previous.catalog_id != new_version.catalog_id:
                raise InvalidLineage(
                    "Changes can only be tracked between versions of the same catalog",
                    previous_version_id=previous_version_id,
                    new_version_id=new_version_id,
                )
            result = diff_snapshots(self.snapshots.get(previous_version_id), new_content, self.schema)

        now = utc_now()
        changes: List[VersionChange] = []
        for delta in result.deltas:
            impact = ImpactLevel.LOW if bootstrap else self.policy.classify(delta)
            requires_approval = (
                False if bootstrap else self.policy.requires_approval(delta.change_type, impact)
            )
            change = VersionChange(
                entity_type=delta.entity_type,
                entity_id=delta.entity_id,
                property_name=delta.property_name,
                change_type=delta.change_type.value,
                old_value=delta.old_value,
                new_value=delta.new_value,
                description=delta.describe()[:500],
                impact_level=impact.value,
                requires_approval=requires_approval,
                changed_by_id=actor_id,
                changed_at=now,
            )
            new_version.changes.append(change)
            changes.append(change)

        new_version.change_summary = summarize_changes(result)
        self.db.flush()

        gated = sum(1 for c in changes if c.requires_approval)
        logger.info(
            "Recorded %d changes for version %s (%d requiring approval)",
            len(changes), new_version_id, gated,
        )
        return changes

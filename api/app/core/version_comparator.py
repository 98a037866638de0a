"""On-demand comparison of any two catalog versions, with a persistent cache.

Comparisons reuse the structural diff the change tracker records, so
``compare(A, B)`` and ``compare(B, A)`` produce inverse change types and
the same similarity. Results are cached per (source, target, type).
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConcurrentModification, EntityNotFound, IdenticalVersions, InvalidLineage
from app.core.impact_policy import DEFAULT_IMPACT_POLICY, ImpactPolicy, Significance
from app.core.snapshot_diff import (
    DEFAULT_SNAPSHOT_SCHEMA,
    ChangeType,
    DiffResult,
    SnapshotSchema,
    diff_snapshots,
)
from app.core.time import utc_now
from app.models.catalog_version import CatalogVersion
from app.models.version_comparison import ComparisonDetail, ComparisonType, VersionComparison
from app.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


def describe_comparison(result: DiffResult, is_cross_catalog: bool) -> str:
    if not result.deltas:
        summary = "Versions are identical in content"
    else:
        summary = (
            f"{len(result.deltas)} differences: "
            f"{result.count(ChangeType.ADDED)} added, "
            f"{result.count(ChangeType.MODIFIED)} modified, "
            f"{result.count(ChangeType.REMOVED)} removed"
        )
    if is_cross_catalog:
        summary += " (cross-catalog)"
    return summary


class VersionComparator:
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

    def _version(self, version_id: int) -> CatalogVersion:
        version = self.db.get(CatalogVersion, version_id)
        if version is None:
            raise EntityNotFound("CatalogVersion", version_id)
        return version

    def get_comparison(self, comparison_id: int) -> VersionComparison:
        comparison = self.db.get(VersionComparison, comparison_id)
        if comparison is None:
            raise EntityNotFound("VersionComparison", comparison_id)
        return comparison

    def list_comparisons(self, version_id: int) -> List[VersionComparison]:
        """Cached comparisons where the version is either side."""
        self._version(version_id)
        return self.db.query(VersionComparison).filter(
            (VersionComparison.source_version_id == version_id)
            | (VersionComparison.target_version_id == version_id)
        ).order_by(VersionComparison.compared_at.desc(), VersionComparison.comparison_id.desc()).all()

    def cached(self, source_id: int, target_id: int,
               comparison_type: ComparisonType) -> Optional[VersionComparison]:
        return self.db.query(VersionComparison).filter(
            VersionComparison.source_version_id == source_id,
            VersionComparison.target_version_id == target_id,
            VersionComparison.comparison_type == comparison_type.value
        ).one_or_none()

    def compare(
        self,
        source_id: int,
        target_id: int,
        actor_id: int,
        comparison_type: ComparisonType = ComparisonType.DIFF,
        force_recompute: bool = False,
    ) -> VersionComparison:
        """Return the cached comparison, computing (or recomputing) it as needed."""
        if source_id == target_id:
            raise IdenticalVersions(
                f"Cannot compare version {source_id} with itself", version_id=source_id
            )
        source = self._version(source_id)
        target = self._version(target_id)

        if comparison_type is ComparisonType.SEQUENTIAL and not (
            target.previous_version_id == source.version_id
            or source.previous_version_id == target.version_id
        ):
            raise InvalidLineage(
                f"Versions {source_id} and {target_id} are not adjacent in a version chain",
                source_version_id=source_id,
                target_version_id=target_id,
            )

        existing = self.cached(source_id, target_id, comparison_type)
        if existing is not None and not force_recompute:
            logger.debug("Comparison cache hit for %s -> %s (%s)", source_id, target_id,
                         comparison_type.value)
            return existing

        result = diff_snapshots(
            self.snapshots.get(source_id), self.snapshots.get(target_id), self.schema
        )
        is_cross_catalog = source.catalog_id != target.catalog_id

        comparison = existing
        if comparison is None:
            comparison = VersionComparison(
                source_version_id=source_id,
                target_version_id=target_id,
                comparison_type=comparison_type.value,
            )
            self.db.add(comparison)
        else:
            comparison.details.clear()
            # Old details must be gone before new positions are written
            self.db.flush()

        significance_counts = {s.value: 0 for s in Significance}
        for position, delta in enumerate(result.deltas):
            significance = self.policy.significance(self.policy.classify(delta))
            significance_counts[significance.value] += 1
            comparison.details.append(ComparisonDetail(
                position=position,
                entity_type=delta.entity_type,
                entity_id=delta.entity_id,
                property_name=delta.property_name,
                change_type=delta.change_type.value,
                old_value=delta.old_value,
                new_value=delta.new_value,
                description=delta.describe()[:500],
                significance=significance.value,
            ))

        comparison.similarity_percentage = result.similarity
        comparison.is_cross_catalog = is_cross_catalog
        comparison.additions_count = result.count(ChangeType.ADDED)
        comparison.modifications_count = result.count(ChangeType.MODIFIED)
        comparison.deletions_count = result.count(ChangeType.REMOVED)
        comparison.differences_summary = describe_comparison(result, is_cross_catalog)
        comparison.comparison_metrics = {
            "fields_considered": result.fields_considered,
            "fields_equal": result.fields_equal,
            "fields_different": result.fields_considered - result.fields_equal,
            "significance": significance_counts,
        }
        comparison.compared_by_id = actor_id
        comparison.compared_at = utc_now()

        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConcurrentModification(
                f"Comparison {source_id} -> {target_id} was written concurrently",
                source_version_id=source_id,
                target_version_id=target_id,
            ) from exc

        logger.info(
            "Compared version %s -> %s (%s): %.2f%% similar, %d differences",
            source_id, target_id, comparison_type.value,
            comparison.similarity_percentage, len(result.deltas),
        )
        return comparison

"""Tests for catalog version management and change tracking."""
import copy
from datetime import date

import pytest

from app.core.errors import (
    ConcurrentModification,
    EntityNotFound,
    InvalidCatalogState,
    InvalidLineage,
    NotApproved,
)
from app.models.catalog import CatalogStatus
from app.models.catalog_version import CatalogVersion, VersionApprovalStatus


def current_versions(db_session, catalog_id):
    return db_session.query(CatalogVersion).filter(
        CatalogVersion.catalog_id == catalog_id,
        CatalogVersion.is_current.is_(True)
    ).all()


def with_notes(content, notes):
    changed = copy.deepcopy(content)
    changed["notes"] = notes
    return changed


class TestCreateVersion:
    def test_first_version_is_promoted(self, service, catalog, catalog_content, editor_user, db_session):
        outcome = service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id)

        version = outcome.version
        assert outcome.promoted is True
        assert outcome.workflow is None
        assert version.version_number == 1
        assert version.previous_version_id is None
        assert version.is_current is True
        assert version.approval_status == VersionApprovalStatus.APPROVED.value
        assert db_session.get(type(catalog), catalog.catalog_id).status == CatalogStatus.ACTIVE.value

    def test_bootstrap_changes_are_low_impact(self, service, catalog, catalog_content, editor_user):
        version = service.create_draft_version(
            catalog.catalog_id, catalog_content, editor_user.user_id
        ).version

        assert version.changes
        assert all(c.change_type == "ADDED" for c in version.changes)
        assert all(c.impact_level == "LOW" for c in version.changes)
        assert not any(c.requires_approval for c in version.changes)
        assert version.change_summary == f"{len(version.changes)} added, 0 modified, 0 removed"

    def test_low_impact_change_promotes_immediately(self, service, catalog, catalog_content,
                                                    editor_user, db_session):
        first = service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id).version
        second = service.create_draft_version(
            catalog.catalog_id, with_notes(catalog_content, "Updated by the registrar"), editor_user.user_id
        )

        assert second.promoted is True
        assert second.version.previous_version_id == first.version_id
        assert second.version.is_current is True
        assert first.is_current is False
        assert [v.version_id for v in current_versions(db_session, catalog.catalog_id)] == [
            second.version.version_id
        ]

    def test_version_numbers_have_no_gaps(self, service, catalog, catalog_content, editor_user):
        for i in range(4):
            service.create_draft_version(
                catalog.catalog_id, with_notes(catalog_content, f"revision {i}"), editor_user.user_id
            )
        numbers = [v.version_number for v in service.versions.list_versions(catalog.catalog_id)]
        assert numbers == [1, 2, 3, 4]

    def test_archived_catalog_rejects_versions(self, service, catalog, catalog_content, editor_user):
        service.versions.archive(catalog.catalog_id)
        with pytest.raises(InvalidCatalogState):
            service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id)

    def test_unknown_catalog(self, service, catalog_content, editor_user):
        with pytest.raises(InvalidCatalogState):
            service.create_draft_version(9999, catalog_content, editor_user.user_id)

    def test_stale_revision_is_a_concurrent_modification(self, service, catalog, catalog_content,
                                                         editor_user):
        seen_revision = catalog.revision
        service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id)

        with pytest.raises(ConcurrentModification):
            service.create_draft_version(
                catalog.catalog_id, with_notes(catalog_content, "late"), editor_user.user_id,
                expected_revision=seen_revision,
            )

    def test_matching_revision_succeeds(self, service, catalog, catalog_content, editor_user):
        outcome = service.create_draft_version(
            catalog.catalog_id, catalog_content, editor_user.user_id, expected_revision=catalog.revision
        )
        assert outcome.version.version_number == 1

    def test_snapshot_content_is_stored_unchanged(self, service, catalog, catalog_content, editor_user):
        version = service.create_draft_version(
            catalog.catalog_id, catalog_content, editor_user.user_id
        ).version
        catalog_content["notes"] = "mutated after the fact"

        stored = service.snapshots.get(version.version_id)
        assert stored["notes"] == "Published by the registrar"
        assert len(service.snapshots.checksum(version.version_id)) == 64

    def test_snapshots_are_write_once(self, service, catalog, catalog_content, editor_user):
        version = service.create_draft_version(
            catalog.catalog_id, catalog_content, editor_user.user_id
        ).version
        with pytest.raises(InvalidCatalogState):
            service.snapshots.put(version.version_id, {"other": "content"})


class TestPromoteAndPublish:
    def test_promote_requires_approval(self, service, catalog, catalog_content, editor_user):
        service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id)
        changed = copy.deepcopy(catalog_content)
        changed["courses"][1]["credits"] = 4
        draft = service.create_draft_version(
            catalog.catalog_id, changed, editor_user.user_id, submit=False
        ).version

        with pytest.raises(NotApproved):
            service.versions.promote(draft.version_id)

    def test_publish_current_version(self, service, catalog, catalog_content, editor_user):
        version = service.create_draft_version(
            catalog.catalog_id, catalog_content, editor_user.user_id
        ).version
        published = service.versions.publish(version.version_id, editor_user.user_id)

        assert published.is_published is True
        assert published.published_by_id == editor_user.user_id
        assert published.published_at is not None

    def test_publish_rejects_superseded_version(self, service, catalog, catalog_content, editor_user):
        first = service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id).version
        service.create_draft_version(
            catalog.catalog_id, with_notes(catalog_content, "newer"), editor_user.user_id
        )
        with pytest.raises(InvalidCatalogState):
            service.versions.publish(first.version_id, editor_user.user_id)


class TestLineage:
    def test_lineage_walks_back_to_first_version(self, service, catalog, catalog_content, editor_user):
        ids = []
        for i in range(3):
            ids.append(service.create_draft_version(
                catalog.catalog_id, with_notes(catalog_content, f"v{i}"), editor_user.user_id
            ).version.version_id)

        lineage = service.versions.get_lineage(ids[-1])
        assert [v.version_id for v in lineage] == list(reversed(ids))

    def test_restore_from_another_catalog_is_rejected(self, service, catalog, catalog_content,
                                                      editor_user):
        version = service.create_draft_version(
            catalog.catalog_id, catalog_content, editor_user.user_id
        ).version
        other = service.versions.create_catalog(
            "2026 Spring", date(2026, 1, 10), date(2026, 5, 20), editor_user.user_id
        )
        with pytest.raises(InvalidLineage):
            service.restore_version(other.catalog_id, version.version_id, editor_user.user_id)

    def test_restore_creates_new_version_with_old_content(self, service, catalog, catalog_content,
                                                           editor_user):
        first = service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id).version
        service.create_draft_version(
            catalog.catalog_id, with_notes(catalog_content, "temporary"), editor_user.user_id
        )

        restored = service.restore_version(catalog.catalog_id, first.version_id, editor_user.user_id)
        assert restored.version.version_number == 3
        assert service.snapshots.get(restored.version.version_id) == catalog_content
        assert restored.promoted is True

    def test_change_tracker_rejects_cross_catalog_pairs(self, service, catalog, catalog_content,
                                                         editor_user):
        version = service.create_draft_version(
            catalog.catalog_id, catalog_content, editor_user.user_id
        ).version
        other = service.versions.create_catalog(
            "2026 Spring", date(2026, 1, 10), date(2026, 5, 20), editor_user.user_id
        )
        other_version = service.create_draft_version(
            other.catalog_id, catalog_content, editor_user.user_id
        ).version
        with pytest.raises(InvalidLineage):
            service.tracker.record_changes(version.version_id, other_version.version_id, editor_user.user_id)

    def test_change_tracker_unknown_version(self, service, editor_user):
        with pytest.raises(EntityNotFound):
            service.tracker.record_changes(None, 4242, editor_user.user_id)


class TestCatalogLineage:
    def test_catalog_cannot_be_based_on_itself(self, service, catalog):
        with pytest.raises(InvalidLineage):
            service.versions.update_catalog(catalog.catalog_id, based_on_catalog_id=catalog.catalog_id)

    def test_based_on_cycle_is_rejected(self, service, catalog, editor_user):
        child = service.versions.create_catalog(
            "2026 Spring", date(2026, 1, 10), date(2026, 5, 20), editor_user.user_id,
            based_on_catalog_id=catalog.catalog_id,
        )
        grandchild = service.versions.create_catalog(
            "2026 Fall", date(2026, 8, 15), date(2026, 12, 20), editor_user.user_id,
            based_on_catalog_id=child.catalog_id,
        )
        with pytest.raises(InvalidLineage):
            service.versions.update_catalog(catalog.catalog_id, based_on_catalog_id=grandchild.catalog_id)

    def test_clone_seeds_current_content(self, service, catalog, catalog_content, editor_user):
        service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id)
        clone = service.versions.clone_catalog(
            catalog.catalog_id, "2026 Fall", date(2026, 8, 15), date(2026, 12, 20), editor_user.user_id
        )

        assert clone.based_on_catalog_id == catalog.catalog_id
        versions = service.versions.list_versions(clone.catalog_id)
        assert len(versions) == 1
        assert versions[0].version_number == 1
        assert versions[0].is_current is True
        assert service.snapshots.get(versions[0].version_id) == catalog_content

    def test_invalid_validity_window(self, service, editor_user):
        with pytest.raises(InvalidCatalogState):
            service.versions.create_catalog(
                "Backwards", date(2026, 5, 1), date(2026, 1, 1), editor_user.user_id
            )


class TestPromotionLineage:
    def test_competing_promotion_is_a_concurrent_modification(self, service, catalog, catalog_content,
                                                              editor_user, db_session, monkeypatch):
        first = service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id).version
        changed = copy.deepcopy(catalog_content)
        changed["courses"][1]["credits"] = 4
        draft = service.create_draft_version(
            catalog.catalog_id, changed, editor_user.user_id, submit=False
        ).version
        draft.approval_status = VersionApprovalStatus.APPROVED.value
        db_session.commit()

        # Another writer's promotion of version 1 is not visible to this one yet
        monkeypatch.setattr(service.versions, "get_current_version", lambda catalog_id: None)
        monkeypatch.setattr(service.versions, "ensure_drafted_against_current", lambda version: None)
        with pytest.raises(ConcurrentModification):
            service.versions.promote(draft.version_id)
        db_session.rollback()

        assert [v.version_id for v in current_versions(db_session, catalog.catalog_id)] == [first.version_id]

    def test_superseded_draft_cannot_be_promoted(self, service, catalog, catalog_content, editor_user):
        service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id)
        changed = copy.deepcopy(catalog_content)
        changed["courses"][1]["credits"] = 4
        draft = service.create_draft_version(
            catalog.catalog_id, changed, editor_user.user_id, submit=False
        ).version
        newer = service.create_draft_version(
            catalog.catalog_id, with_notes(catalog_content, "Typo fixed"), editor_user.user_id
        )
        assert newer.promoted

        draft.approval_status = VersionApprovalStatus.APPROVED.value
        with pytest.raises(InvalidLineage) as exc_info:
            service.versions.promote(draft.version_id)
        assert exc_info.value.context["current_version_id"] == newer.version.version_id
        assert service.get_current_version(catalog.catalog_id).version_id == newer.version.version_id

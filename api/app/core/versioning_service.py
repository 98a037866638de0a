"""Entry points exposed to the administrative API layer.

``CatalogVersioningService`` wires the version manager, change tracker,
comparator and workflow engine over one session, and decides whether a
new draft can be promoted straight away or has to go through review.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.approval_workflow import ApprovalWorkflowEngine, StepDecision, StepPlan
from app.core.catalog_versions import CatalogVersionManager
from app.core.change_tracker import ChangeTracker
from app.core.errors import InvalidWorkflowState
from app.core.impact_policy import DEFAULT_IMPACT_POLICY, ImpactPolicy
from app.core.snapshot_diff import DEFAULT_SNAPSHOT_SCHEMA, SnapshotSchema
from app.core.time import utc_now
from app.core.version_comparator import VersionComparator
from app.models.approval_workflow import ApprovalWorkflow, WorkflowPriority
from app.models.catalog_version import CatalogVersion, VersionApprovalStatus, VersionType
from app.models.version_comparison import ComparisonType, VersionComparison
from app.services.notifications import LoggingNotifier, NotificationDispatcher
from app.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class DraftOutcome:
    """Result of CreateDraftVersion: the version plus the workflow gating it, if any."""
    version: CatalogVersion
    workflow: Optional[ApprovalWorkflow] = None
    promoted: bool = False


class CatalogVersioningService:
    def __init__(
        self,
        db: Session,
        notifications: Optional[NotificationDispatcher] = None,
        policy: ImpactPolicy = DEFAULT_IMPACT_POLICY,
        schema: SnapshotSchema = DEFAULT_SNAPSHOT_SCHEMA,
    ):
        self.db = db
        self.snapshots = SnapshotStore(db)
        self.tracker = ChangeTracker(db, self.snapshots, policy, schema)
        self.versions = CatalogVersionManager(db, self.snapshots, self.tracker)
        self.comparator = VersionComparator(db, self.snapshots, policy, schema)
        self.workflows = ApprovalWorkflowEngine(
            db, self.versions, notifications or NotificationDispatcher(LoggingNotifier())
        )

    def create_draft_version(
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
        submit: bool = True,
        steps: Optional[Sequence[StepPlan]] = None,
        priority: WorkflowPriority = WorkflowPriority.NORMAL,
    ) -> DraftOutcome:
        """Create a version and route it.

        Without approval-gated changes the version is approved on behalf of
        its author and promoted immediately. Otherwise, when ``submit`` is
        set, an approval workflow is opened; when it is not, the version
        stays a Draft until ``submit_for_approval``.
        """
        version = self.versions.create_version(
            catalog_id, content, author_id,
            label=label,
            version_type=version_type,
            description=description,
            release_notes=release_notes,
            tags=tags,
            expected_revision=expected_revision,
        )
        return self._route(version, author_id, submit, steps, priority)

    def restore_version(
        self,
        catalog_id: int,
        version_id: int,
        author_id: int,
        label: Optional[str] = None,
        submit: bool = True,
        steps: Optional[Sequence[StepPlan]] = None,
    ) -> DraftOutcome:
        """New version carrying an earlier version's content, routed like any draft."""
        version = self.versions.restore_version(catalog_id, version_id, author_id, label=label)
        return self._route(version, author_id, submit, steps, WorkflowPriority.NORMAL)

    def _route(
        self,
        version: CatalogVersion,
        author_id: int,
        submit: bool,
        steps: Optional[Sequence[StepPlan]],
        priority: WorkflowPriority,
    ) -> DraftOutcome:
        if not version.requires_approval:
            version.approval_status = VersionApprovalStatus.APPROVED.value
            version.approved_at = utc_now()
            version.approved_by_id = author_id
            self.versions.promote(version.version_id)
            logger.info("Version %s needs no review; promoted", version.version_id)
            return DraftOutcome(version=version, promoted=True)
        if not submit:
            return DraftOutcome(version=version)
        workflow = self.workflows.start(version, author_id, steps=steps, priority=priority)
        return DraftOutcome(version=version, workflow=workflow)

    def submit_for_approval(
        self,
        version_id: int,
        initiator_id: int,
        steps: Optional[Sequence[StepPlan]] = None,
        name: Optional[str] = None,
        priority: WorkflowPriority = WorkflowPriority.NORMAL,
        notes: Optional[str] = None,
        expected_completion_date: Optional[date] = None,
    ) -> ApprovalWorkflow:
        version = self.versions.get_version(version_id)
        if version.is_current:
            raise InvalidWorkflowState(
                f"Version {version_id} is already current", version_id=version_id
            )
        return self.workflows.start(
            version, initiator_id,
            steps=steps,
            name=name,
            priority=priority,
            notes=notes,
            expected_completion_date=expected_completion_date,
        )

    def advance_approval_step(
        self,
        workflow_id: int,
        decision: StepDecision,
        actor_id: int,
        comments: Optional[str] = None,
        step_id: Optional[int] = None,
        authorized: bool = False,
    ) -> ApprovalWorkflow:
        return self.workflows.decide(
            workflow_id, decision, actor_id,
            comments=comments, step_id=step_id, authorized=authorized,
        )

    def cancel_workflow(self, workflow_id: int, actor_id: int, authorized: bool,
                        reason: Optional[str] = None) -> ApprovalWorkflow:
        return self.workflows.cancel(workflow_id, actor_id, authorized, reason=reason)

    def compare_versions(
        self,
        source_id: int,
        target_id: int,
        actor_id: int,
        comparison_type: ComparisonType = ComparisonType.DIFF,
        force_recompute: bool = False,
    ) -> VersionComparison:
        return self.comparator.compare(
            source_id, target_id, actor_id,
            comparison_type=comparison_type, force_recompute=force_recompute,
        )

    def get_current_version(self, catalog_id: int) -> Optional[CatalogVersion]:
        return self.versions.get_current_version(catalog_id)

"""Approval workflow engine for pending catalog versions.

Workflow states: NOT_STARTED -> IN_PROGRESS -> APPROVED | REJECTED | CANCELLED
Step states:     PENDING -> APPROVED | REJECTED | SKIPPED

Rules:
- A workflow with at least one step starts IN_PROGRESS at its first stage.
- Only the lowest-order PENDING step (the active step) can be decided;
  deciding any other step fails with StepNotActive.
- Approving the last step approves the workflow and promotes the version.
- Rejecting any step rejects the workflow, skips the remaining steps and
  rejects the version; the catalog's current version is untouched.
- Cancel is an administrative override that skips every pending step.
- Terminal workflows are never reopened; resubmission means a new version.

Transitions bump ``ApprovalWorkflow.row_version``, so two reviewers
acting on the same workflow at once cannot both succeed.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.catalog_versions import CatalogVersionManager
from app.core.config import settings
from app.core.errors import (
    ConcurrentModification,
    EntityNotFound,
    InvalidWorkflowDefinition,
    InvalidWorkflowState,
    StepNotActive,
    Unauthorized,
)
from app.core.time import utc_now
from app.models.approval_workflow import (
    ApprovalStage,
    ApprovalStep,
    ApprovalWorkflow,
    CatalogApproval,
    StepStatus,
    WorkflowPriority,
    WorkflowStatus,
)
from app.models.catalog_version import CatalogVersion, VersionApprovalStatus
from app.services.notifications import NotificationDispatcher, NotificationEvent

logger = logging.getLogger(__name__)


class StepDecision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    SKIP = "SKIP"  # administrative override


@dataclass
class StepPlan:
    """Definition of one step when opening a workflow."""
    stage: ApprovalStage
    assigned_to_id: Optional[int] = None
    required_documents: List[str] = field(default_factory=list)
    review_criteria: List[str] = field(default_factory=list)
    due_in_days: Optional[int] = None


def default_step_plan() -> List[StepPlan]:
    return [StepPlan(stage=ApprovalStage(code)) for code in settings.DEFAULT_APPROVAL_STAGES]


def validate_step_plan(steps: Sequence[StepPlan]) -> None:
    """Steps must exist and their stages must be strictly ascending."""
    if not steps:
        raise InvalidWorkflowDefinition("An approval workflow needs at least one step")
    for earlier, later in zip(steps, steps[1:]):
        if later.stage.rank <= earlier.stage.rank:
            raise InvalidWorkflowDefinition(
                f"Stage {later.stage.value} cannot follow {earlier.stage.value}",
                stages=[s.stage.value for s in steps],
            )


class ApprovalWorkflowEngine:
    """Walks a workflow's ordered steps and applies the outcome to its version."""

    def __init__(self, db: Session, version_manager: CatalogVersionManager,
                 notifications: NotificationDispatcher):
        self.db = db
        self.versions = version_manager
        self.notifications = notifications

    def get_workflow(self, workflow_id: int) -> ApprovalWorkflow:
        workflow = self.db.get(ApprovalWorkflow, workflow_id)
        if workflow is None:
            raise EntityNotFound("ApprovalWorkflow", workflow_id)
        return workflow

    def active_step_id(self, workflow_id: int) -> Optional[int]:
        active = self.get_workflow(workflow_id).active_step
        return active.step_id if active is not None else None

    def open_workflow_for(self, version_id: int) -> Optional[ApprovalWorkflow]:
        return self.db.query(ApprovalWorkflow).filter(
            ApprovalWorkflow.version_id == version_id,
            ApprovalWorkflow.status.in_([
                WorkflowStatus.NOT_STARTED.value, WorkflowStatus.IN_PROGRESS.value
            ])
        ).first()

    def _flush(self, workflow: ApprovalWorkflow) -> None:
        # A failed flush rolls the session back and expires the workflow
        workflow_id = workflow.workflow_id
        try:
            self.db.flush()
        except StaleDataError as exc:
            raise ConcurrentModification(
                f"Workflow {workflow_id} was changed by another reviewer",
                workflow_id=workflow_id,
            ) from exc

    def start(
        self,
        version: CatalogVersion,
        initiator_id: int,
        steps: Optional[Sequence[StepPlan]] = None,
        name: Optional[str] = None,
        priority: WorkflowPriority = WorkflowPriority.NORMAL,
        notes: Optional[str] = None,
        expected_completion_date: Optional[date] = None,
    ) -> ApprovalWorkflow:
        """Create an IN_PROGRESS workflow gating promotion of ``version``."""
        plan = list(steps) if steps else default_step_plan()
        validate_step_plan(plan)
        catalog = self.versions.get_writable_catalog(version.catalog_id)

        if version.approval_status != VersionApprovalStatus.DRAFT.value:
            raise InvalidWorkflowState(
                f"Version {version.version_id} is {version.approval_status}; only drafts can be submitted",
                version_id=version.version_id,
            )
        if self.open_workflow_for(version.version_id) is not None:
            raise InvalidWorkflowState(
                f"Version {version.version_id} already has an open workflow",
                version_id=version.version_id,
            )
        self.versions.ensure_drafted_against_current(version)

        now = utc_now()
        workflow = ApprovalWorkflow(
            catalog_id=catalog.catalog_id,
            version_id=version.version_id,
            name=name or f"Approval of {version.label}",
            initiated_by_id=initiator_id,
            initiated_at=now,
            status=WorkflowStatus.NOT_STARTED.value,
            priority=priority.value,
            notes=notes,
            expected_completion_date=expected_completion_date,
            updated_at=now,
        )
        for order, step_plan in enumerate(plan, start=1):
            due_days = step_plan.due_in_days or settings.DEFAULT_STEP_DUE_DAYS
            workflow.steps.append(ApprovalStep(
                step_order=order,
                stage=step_plan.stage.value,
                assigned_to_id=step_plan.assigned_to_id,
                status=StepStatus.PENDING.value,
                required_documents=list(step_plan.required_documents),
                review_criteria=list(step_plan.review_criteria),
                due_date=(now + relativedelta(days=due_days * order)).date(),
            ))

        if workflow.expected_completion_date is None:
            workflow.expected_completion_date = workflow.steps[-1].due_date

        first = workflow.steps[0]
        first.started_at = now
        workflow.status = WorkflowStatus.IN_PROGRESS.value
        workflow.current_stage = first.stage
        version.approval_status = VersionApprovalStatus.PENDING_APPROVAL.value

        self.db.add(workflow)
        self.db.flush()
        logger.info(
            "Opened workflow %s for version %s with %d steps",
            workflow.workflow_id, version.version_id, len(workflow.steps),
        )
        self.notifications.send(first.assigned_to_id, NotificationEvent.STEP_ASSIGNED, {
            "workflow_id": workflow.workflow_id,
            "step_id": first.step_id,
            "stage": first.stage,
        })
        return workflow

    def decide(
        self,
        workflow_id: int,
        decision: StepDecision,
        actor_id: int,
        comments: Optional[str] = None,
        step_id: Optional[int] = None,
        authorized: bool = False,
    ) -> ApprovalWorkflow:
        """Apply a reviewer decision to the active step."""
        workflow = self.get_workflow(workflow_id)
        active = workflow.active_step

        if step_id is not None:
            step = next((s for s in workflow.steps if s.step_id == step_id), None)
            if step is None:
                raise EntityNotFound("ApprovalStep", step_id)
            if active is None or step.step_id != active.step_id:
                raise StepNotActive(
                    f"Step {step.step_order} ({step.stage}) is not the active step",
                    workflow_id=workflow_id,
                    step_id=step_id,
                    active_step_id=active.step_id if active else None,
                )
        if active is None:
            raise StepNotActive(
                f"Workflow {workflow_id} is {workflow.status} and has no active step",
                workflow_id=workflow_id,
            )

        if decision is StepDecision.SKIP and not authorized:
            raise Unauthorized("Skipping an approval step requires administrative privilege")
        if (active.assigned_to_id is not None and active.assigned_to_id != actor_id
                and not authorized):
            raise Unauthorized(
                f"Step {active.step_order} is assigned to another reviewer",
                step_id=active.step_id,
            )
        if decision is not StepDecision.REJECT and workflow.version is not None:
            self.versions.ensure_drafted_against_current(workflow.version)

        now = utc_now()
        active.decided_by_id = actor_id
        active.completed_at = now
        active.comments = comments
        workflow.updated_at = now

        if decision is StepDecision.REJECT:
            active.status = StepStatus.REJECTED.value
            self._reject(workflow, actor_id, now)
        else:
            active.status = (
                StepStatus.APPROVED.value if decision is StepDecision.APPROVE
                else StepStatus.SKIPPED.value
            )
            following = workflow.active_step
            if following is not None:
                following.started_at = now
                workflow.current_stage = following.stage
                self._flush(workflow)
                logger.info("Workflow %s advanced to %s", workflow_id, following.stage)
                self.notifications.send(following.assigned_to_id, NotificationEvent.STAGE_ADVANCED, {
                    "workflow_id": workflow_id,
                    "step_id": following.step_id,
                    "stage": following.stage,
                })
            else:
                self._approve(workflow, actor_id, now)
        return workflow

    def _approve(self, workflow: ApprovalWorkflow, actor_id: int, now) -> None:
        workflow.status = WorkflowStatus.APPROVED.value
        workflow.completed_at = now
        version = workflow.version
        if version is not None:
            version.approval_status = VersionApprovalStatus.APPROVED.value
            version.approved_at = now
            version.approved_by_id = actor_id
        self._record_approvals(workflow, now)
        self._flush(workflow)
        if version is not None:
            self.versions.promote(version.version_id)
        logger.info("Workflow %s approved", workflow.workflow_id)
        self.notifications.send(workflow.initiated_by_id, NotificationEvent.WORKFLOW_APPROVED, {
            "workflow_id": workflow.workflow_id,
            "version_id": workflow.version_id,
        })

    def _reject(self, workflow: ApprovalWorkflow, actor_id: int, now) -> None:
        workflow.status = WorkflowStatus.REJECTED.value
        workflow.completed_at = now
        self._skip_pending(workflow, now)
        if workflow.version is not None:
            workflow.version.approval_status = VersionApprovalStatus.REJECTED.value
        self._record_approvals(workflow, now)
        self._flush(workflow)
        logger.info("Workflow %s rejected at %s", workflow.workflow_id, workflow.current_stage)
        self.notifications.send(workflow.initiated_by_id, NotificationEvent.WORKFLOW_REJECTED, {
            "workflow_id": workflow.workflow_id,
            "version_id": workflow.version_id,
            "stage": workflow.current_stage,
        })

    def cancel(self, workflow_id: int, actor_id: int, authorized: bool,
               reason: Optional[str] = None) -> ApprovalWorkflow:
        """Administrative override: stop a non-terminal workflow."""
        if not authorized:
            raise Unauthorized("Cancelling a workflow requires administrative privilege")
        workflow = self.get_workflow(workflow_id)
        if workflow.is_terminal:
            raise InvalidWorkflowState(
                f"Workflow {workflow_id} is already {workflow.status}",
                workflow_id=workflow_id,
            )
        now = utc_now()
        workflow.status = WorkflowStatus.CANCELLED.value
        workflow.completed_at = now
        workflow.updated_at = now
        if reason:
            workflow.notes = f"{workflow.notes}\n{reason}" if workflow.notes else reason
        self._skip_pending(workflow, now)
        # The draft may be submitted again under a new workflow
        if workflow.version is not None:
            workflow.version.approval_status = VersionApprovalStatus.DRAFT.value
        self._record_approvals(workflow, now)
        self._flush(workflow)
        logger.info("Workflow %s cancelled by user %s", workflow_id, actor_id)
        self.notifications.send(workflow.initiated_by_id, NotificationEvent.WORKFLOW_CANCELLED, {
            "workflow_id": workflow_id,
            "version_id": workflow.version_id,
            "reason": reason,
        })
        return workflow

    def _skip_pending(self, workflow: ApprovalWorkflow, now) -> None:
        for step in workflow.steps:
            if step.status == StepStatus.PENDING.value:
                step.status = StepStatus.SKIPPED.value
                step.completed_at = now

    def _record_approvals(self, workflow: ApprovalWorkflow, now) -> None:
        """Leave one CatalogApproval per decided stage once the workflow concludes."""
        for step in workflow.steps:
            if step.status not in (StepStatus.APPROVED.value, StepStatus.REJECTED.value):
                continue
            self.db.add(CatalogApproval(
                catalog_id=workflow.catalog_id,
                version_id=workflow.version_id,
                workflow_id=workflow.workflow_id,
                stage=step.stage,
                status=step.status,
                approved_by_id=step.decided_by_id,
                approval_date=step.completed_at or now,
                comments=step.comments,
            ))

"""Tests for the approval workflow state machine."""
import copy

import pytest
from sqlalchemy import text

from app.core.approval_workflow import StepDecision, StepPlan, validate_step_plan
from app.core.concurrency import run_with_retry
from app.core.errors import (
    ConcurrentModification,
    InvalidCatalogState,
    InvalidLineage,
    InvalidWorkflowDefinition,
    InvalidWorkflowState,
    StepNotActive,
    Unauthorized,
)
from app.models.approval_workflow import (
    ApprovalStage,
    CatalogApproval,
    StepStatus,
    WorkflowStatus,
)
from app.models.catalog_version import VersionApprovalStatus


def with_credit_change(content, credits=4):
    changed = copy.deepcopy(content)
    changed["courses"][1]["credits"] = credits
    return changed


@pytest.fixture
def baseline(service, catalog, catalog_content, editor_user):
    """Current version 1 of the catalog."""
    return service.create_draft_version(catalog.catalog_id, catalog_content, editor_user.user_id).version


@pytest.fixture
def pending(service, catalog, catalog_content, editor_user, baseline):
    """Version 2 changes a credit-hour field and is awaiting review."""
    return service.create_draft_version(
        catalog.catalog_id, with_credit_change(catalog_content), editor_user.user_id
    )


class TestOpeningWorkflows:
    def test_high_impact_change_opens_default_workflow(self, pending):
        version, workflow = pending.version, pending.workflow

        assert pending.promoted is False
        assert len(version.changes) == 1
        change = version.changes[0]
        assert (change.entity_id, change.property_name, change.impact_level) == ("CS201", "credits", "HIGH")
        assert change.requires_approval is True

        assert workflow.status == WorkflowStatus.IN_PROGRESS.value
        assert workflow.current_stage == ApprovalStage.DEPARTMENT_REVIEW.value
        assert [s.stage for s in workflow.steps] == [
            "DEPARTMENT_REVIEW", "COMMITTEE_REVIEW", "FINAL_APPROVAL"
        ]
        assert all(s.status == StepStatus.PENDING.value for s in workflow.steps)
        assert workflow.steps[0].started_at is not None
        assert workflow.expected_completion_date == workflow.steps[-1].due_date
        assert version.approval_status == VersionApprovalStatus.PENDING_APPROVAL.value
        assert version.is_current is False

    def test_current_version_unchanged_while_pending(self, service, catalog, baseline, pending):
        assert service.get_current_version(catalog.catalog_id).version_id == baseline.version_id

    def test_medium_removal_requires_approval(self, service, catalog, catalog_content, editor_user, baseline):
        changed = copy.deepcopy(catalog_content)
        del changed["courses"][0]["sections"][0]["room"]
        outcome = service.create_draft_version(catalog.catalog_id, changed, editor_user.user_id)
        assert outcome.workflow is not None

    def test_medium_modification_does_not_require_approval(self, service, catalog, catalog_content,
                                                           editor_user, baseline):
        changed = copy.deepcopy(catalog_content)
        changed["courses"][0]["sections"][0]["room"] = "ENG 202"
        outcome = service.create_draft_version(catalog.catalog_id, changed, editor_user.user_id)
        assert outcome.promoted is True

    def test_explicit_submission_with_custom_steps(self, service, catalog, catalog_content, editor_user,
                                                   reviewer_user, notifier, baseline):
        draft = service.create_draft_version(
            catalog.catalog_id, with_credit_change(catalog_content), editor_user.user_id, submit=False
        )
        assert draft.workflow is None
        assert draft.version.approval_status == VersionApprovalStatus.DRAFT.value

        workflow = service.submit_for_approval(
            draft.version.version_id, editor_user.user_id,
            steps=[
                StepPlan(stage=ApprovalStage.DEPARTMENT_REVIEW, assigned_to_id=reviewer_user.user_id),
                StepPlan(stage=ApprovalStage.PROVOST_APPROVAL, due_in_days=14),
            ],
        )
        assert [s.stage for s in workflow.steps] == ["DEPARTMENT_REVIEW", "PROVOST_APPROVAL"]
        assert notifier.events[-1][0] == reviewer_user.user_id
        assert notifier.events[-1][1] == "STEP_ASSIGNED"

    def test_stages_must_ascend(self, service, catalog, catalog_content, editor_user, baseline):
        draft = service.create_draft_version(
            catalog.catalog_id, with_credit_change(catalog_content), editor_user.user_id, submit=False
        )
        with pytest.raises(InvalidWorkflowDefinition):
            service.submit_for_approval(
                draft.version.version_id, editor_user.user_id,
                steps=[StepPlan(stage=ApprovalStage.FINAL_APPROVAL),
                       StepPlan(stage=ApprovalStage.DEPARTMENT_REVIEW)],
            )

    def test_empty_plan_is_invalid(self):
        with pytest.raises(InvalidWorkflowDefinition):
            validate_step_plan([])

    def test_cannot_submit_twice(self, service, editor_user, pending):
        with pytest.raises(InvalidWorkflowState):
            service.submit_for_approval(pending.version.version_id, editor_user.user_id)

    def test_archive_blocked_while_in_review(self, service, catalog, pending):
        with pytest.raises(InvalidCatalogState):
            service.versions.archive(catalog.catalog_id)


class TestDecisions:
    def test_full_approval_promotes_version(self, service, catalog, baseline, pending, reviewer_user,
                                            editor_user, notifier, db_session):
        workflow_id = pending.workflow.workflow_id
        for _ in range(3):
            workflow = service.advance_approval_step(workflow_id, StepDecision.APPROVE, reviewer_user.user_id)

        assert workflow.status == WorkflowStatus.APPROVED.value
        assert workflow.completed_at is not None
        assert all(s.status == StepStatus.APPROVED.value for s in workflow.steps)

        version = pending.version
        assert version.approval_status == VersionApprovalStatus.APPROVED.value
        assert version.approved_by_id == reviewer_user.user_id
        assert service.get_current_version(catalog.catalog_id).version_id == version.version_id
        assert baseline.is_current is False

        approvals = db_session.query(CatalogApproval).filter_by(workflow_id=workflow_id).all()
        assert sorted(a.stage for a in approvals) == sorted(
            ["DEPARTMENT_REVIEW", "COMMITTEE_REVIEW", "FINAL_APPROVAL"]
        )
        assert (editor_user.user_id, "WORKFLOW_APPROVED") in [(a, k) for a, k, _ in notifier.events]

    def test_approval_advances_current_stage(self, service, pending, reviewer_user):
        workflow = service.advance_approval_step(
            pending.workflow.workflow_id, StepDecision.APPROVE, reviewer_user.user_id, comments="Looks right"
        )
        assert workflow.current_stage == ApprovalStage.COMMITTEE_REVIEW.value
        assert workflow.steps[0].decided_by_id == reviewer_user.user_id
        assert workflow.steps[0].comments == "Looks right"
        assert workflow.steps[1].started_at is not None

    def test_out_of_order_decision_is_rejected(self, service, pending, reviewer_user):
        workflow = pending.workflow
        committee = workflow.steps[1]

        with pytest.raises(StepNotActive):
            service.advance_approval_step(
                workflow.workflow_id, StepDecision.REJECT, reviewer_user.user_id, step_id=committee.step_id
            )
        assert committee.status == StepStatus.PENDING.value
        assert workflow.status == WorkflowStatus.IN_PROGRESS.value

    def test_rejection_keeps_current_version(self, service, catalog, baseline, pending, reviewer_user,
                                             editor_user, notifier):
        workflow_id = pending.workflow.workflow_id
        service.advance_approval_step(workflow_id, StepDecision.APPROVE, reviewer_user.user_id)
        workflow = service.advance_approval_step(workflow_id, StepDecision.REJECT, reviewer_user.user_id)

        assert workflow.status == WorkflowStatus.REJECTED.value
        assert [s.status for s in workflow.steps] == ["APPROVED", "REJECTED", "SKIPPED"]
        assert pending.version.approval_status == VersionApprovalStatus.REJECTED.value
        assert service.get_current_version(catalog.catalog_id).version_id == baseline.version_id
        assert notifier.events[-1][:2] == (editor_user.user_id, "WORKFLOW_REJECTED")

    def test_no_approval_after_rejection(self, service, pending, reviewer_user):
        workflow_id = pending.workflow.workflow_id
        service.advance_approval_step(workflow_id, StepDecision.REJECT, reviewer_user.user_id)
        with pytest.raises(StepNotActive):
            service.advance_approval_step(workflow_id, StepDecision.APPROVE, reviewer_user.user_id)

    def test_skip_requires_authorization(self, service, pending, reviewer_user, admin_user):
        workflow_id = pending.workflow.workflow_id
        with pytest.raises(Unauthorized):
            service.advance_approval_step(workflow_id, StepDecision.SKIP, reviewer_user.user_id)

        workflow = service.advance_approval_step(
            workflow_id, StepDecision.SKIP, admin_user.user_id, authorized=True
        )
        assert workflow.steps[0].status == StepStatus.SKIPPED.value
        assert workflow.current_stage == ApprovalStage.COMMITTEE_REVIEW.value

    def test_assigned_step_belongs_to_assignee(self, service, catalog, catalog_content, editor_user,
                                               reviewer_user, admin_user, baseline):
        draft = service.create_draft_version(
            catalog.catalog_id, with_credit_change(catalog_content), editor_user.user_id, submit=False
        )
        workflow = service.submit_for_approval(
            draft.version.version_id, editor_user.user_id,
            steps=[StepPlan(stage=ApprovalStage.DEPARTMENT_REVIEW, assigned_to_id=reviewer_user.user_id)],
        )
        with pytest.raises(Unauthorized):
            service.advance_approval_step(workflow.workflow_id, StepDecision.APPROVE, editor_user.user_id)

        approved = service.advance_approval_step(
            workflow.workflow_id, StepDecision.APPROVE, admin_user.user_id, authorized=True
        )
        assert approved.status == WorkflowStatus.APPROVED.value

    def test_stale_workflow_is_a_concurrent_modification(self, service, pending, reviewer_user, db_session):
        workflow = pending.workflow
        db_session.execute(
            text("UPDATE approval_workflows SET row_version = row_version + 1 WHERE workflow_id = :id"),
            {"id": workflow.workflow_id},
        )
        with pytest.raises(ConcurrentModification):
            service.advance_approval_step(workflow.workflow_id, StepDecision.APPROVE, reviewer_user.user_id)

    def test_lost_race_is_retried_on_fresh_state(self, service, pending, reviewer_user, db_session):
        db_session.commit()
        workflow_id = pending.workflow.workflow_id
        step_id = service.workflows.active_step_id(workflow_id)
        db_session.execute(
            text("UPDATE approval_workflows SET row_version = row_version + 1 WHERE workflow_id = :id"),
            {"id": workflow_id},
        )

        workflow = run_with_retry(db_session, lambda: service.advance_approval_step(
            workflow_id, StepDecision.APPROVE, reviewer_user.user_id, step_id=step_id
        ))

        assert workflow.current_stage == ApprovalStage.COMMITTEE_REVIEW.value
        assert [s.status for s in workflow.steps] == ["APPROVED", "PENDING", "PENDING"]

    def test_retried_decision_does_not_move_to_the_next_step(self, service, pending, reviewer_user,
                                                            admin_user, db_session):
        db_session.commit()
        workflow_id = pending.workflow.workflow_id
        step_id = service.workflows.active_step_id(workflow_id)
        attempts = []

        def reject():
            attempts.append(step_id)
            if len(attempts) == 1:
                # Another reviewer decides the same step first
                service.advance_approval_step(
                    workflow_id, StepDecision.APPROVE, admin_user.user_id, step_id=step_id
                )
                db_session.commit()
                raise ConcurrentModification("Workflow changed by another reviewer")
            return service.advance_approval_step(
                workflow_id, StepDecision.REJECT, reviewer_user.user_id, step_id=step_id
            )

        with pytest.raises(StepNotActive):
            run_with_retry(db_session, reject)

        workflow = service.workflows.get_workflow(workflow_id)
        assert len(attempts) == 2
        assert workflow.status == WorkflowStatus.IN_PROGRESS.value
        assert [s.status for s in workflow.steps] == ["APPROVED", "PENDING", "PENDING"]

    def test_superseded_version_cannot_be_approved(self, service, catalog, catalog_content, editor_user,
                                                   reviewer_user, pending):
        newer_content = copy.deepcopy(catalog_content)
        newer_content["notes"] = "Typo fixed"
        newer = service.create_draft_version(catalog.catalog_id, newer_content, editor_user.user_id)
        assert newer.promoted

        with pytest.raises(InvalidLineage):
            service.advance_approval_step(
                pending.workflow.workflow_id, StepDecision.APPROVE, reviewer_user.user_id
            )
        assert service.get_current_version(catalog.catalog_id).version_id == newer.version.version_id
        assert pending.workflow.steps[0].status == StepStatus.PENDING.value

        rejected = service.advance_approval_step(
            pending.workflow.workflow_id, StepDecision.REJECT, reviewer_user.user_id
        )
        assert rejected.status == WorkflowStatus.REJECTED.value

    def test_superseded_draft_cannot_be_submitted(self, service, catalog, catalog_content, editor_user,
                                                  baseline):
        draft = service.create_draft_version(
            catalog.catalog_id, with_credit_change(catalog_content), editor_user.user_id, submit=False
        )
        newer_content = copy.deepcopy(catalog_content)
        newer_content["notes"] = "Typo fixed"
        service.create_draft_version(catalog.catalog_id, newer_content, editor_user.user_id)

        with pytest.raises(InvalidLineage):
            service.submit_for_approval(draft.version.version_id, editor_user.user_id)

    def test_failing_notifier_does_not_fail_the_decision(self, db_session, pending, reviewer_user):
        from app.core.versioning_service import CatalogVersioningService
        from app.services.notifications import NotificationDispatcher

        class BrokenNotifier:
            def notify(self, actor_id, event_kind, payload):
                raise RuntimeError("mail server down")

        broken = CatalogVersioningService(db_session, notifications=NotificationDispatcher(BrokenNotifier()))
        workflow = broken.advance_approval_step(
            pending.workflow.workflow_id, StepDecision.REJECT, reviewer_user.user_id
        )
        assert workflow.status == WorkflowStatus.REJECTED.value


class TestCancel:
    def test_cancel_requires_authorization(self, service, pending, editor_user):
        with pytest.raises(Unauthorized):
            service.cancel_workflow(pending.workflow.workflow_id, editor_user.user_id, authorized=False)

    def test_cancel_skips_pending_steps(self, service, pending, admin_user, notifier):
        workflow = service.cancel_workflow(
            pending.workflow.workflow_id, admin_user.user_id, authorized=True, reason="Wrong term"
        )
        assert workflow.status == WorkflowStatus.CANCELLED.value
        assert all(s.status == StepStatus.SKIPPED.value for s in workflow.steps)
        assert "Wrong term" in workflow.notes
        assert pending.version.approval_status == VersionApprovalStatus.DRAFT.value
        assert notifier.kinds()[-1] == "WORKFLOW_CANCELLED"

    def test_cancelled_draft_can_be_resubmitted(self, service, pending, admin_user, editor_user):
        service.cancel_workflow(pending.workflow.workflow_id, admin_user.user_id, authorized=True)
        workflow = service.submit_for_approval(pending.version.version_id, editor_user.user_id)
        assert workflow.workflow_id != pending.workflow.workflow_id
        assert workflow.status == WorkflowStatus.IN_PROGRESS.value

    def test_terminal_workflow_cannot_be_cancelled(self, service, pending, reviewer_user, admin_user):
        service.advance_approval_step(pending.workflow.workflow_id, StepDecision.REJECT, reviewer_user.user_id)
        with pytest.raises(InvalidWorkflowState):
            service.cancel_workflow(pending.workflow.workflow_id, admin_user.user_id, authorized=True)

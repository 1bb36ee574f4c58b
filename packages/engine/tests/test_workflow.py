# This project was developed with assistance from AI tools.
"""Tests for the workflow engine: initialization, completion gates, and reporting."""

from datetime import timedelta

import pytest

from loanflow.errors import CriteriaNotMetError, NotFoundError, WorkflowAlreadyInitializedError
from loanflow.schemas.context import OperationContext
from loanflow.services.workflow import WORKFLOW_TEMPLATE, WorkflowEngine, is_overdue, register_criterion
from loanflow_db import AuditType, EntityType, LoanStatus, StepType, WorkflowRole

from .factories import APPLICATION_DATE, NOW, make_loan

STEP_NAMES = [t.name for t in WORKFLOW_TEMPLATE]


def _early(ctx_now=APPLICATION_DATE):
    """Context before any step is due."""
    return OperationContext(tenant_id=1, actor_id="user-7", now=ctx_now)


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


class TestInitializeWorkflow:
    async def test_creates_template_steps_in_order(self, workflow, ctx, loan):
        steps = await workflow.initialize_workflow(ctx, loan.id)
        assert [s.step_name for s in steps] == STEP_NAMES
        assert [s.step_order for s in steps] == list(range(1, 11))
        assert not any(s.is_completed for s in steps)

    async def test_due_dates_offset_from_application(self, workflow, ctx, loan):
        steps = await workflow.initialize_workflow(ctx, loan.id)
        assert steps[0].due_date == APPLICATION_DATE + timedelta(hours=1)
        assert steps[-1].due_date == APPLICATION_DATE + timedelta(days=26)

    async def test_due_dates_fall_back_to_now(self, workflow, store, ctx):
        loan = store.add_loan(make_loan(application_date=None))
        steps = await workflow.initialize_workflow(ctx, loan.id)
        assert steps[1].due_date == NOW + timedelta(days=3)

    async def test_assignment(self, workflow, ctx, loan, officer):
        steps = {s.step_name: s for s in await workflow.initialize_workflow(ctx, loan.id)}
        assert steps["Credit Check"].step_type == StepType.INTEGRATION
        assert steps["Credit Check"].assigned_role == WorkflowRole.LOAN_OFFICER
        assert steps["Credit Check"].assigned_to == str(officer.id)
        assert steps["Underwriting Review"].assigned_role == WorkflowRole.UNDERWRITER
        assert steps["Underwriting Review"].assigned_to is None
        assert steps["Application Received"].assigned_role is None

    async def test_audited_once(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        [entry] = store.audit_entries
        assert entry.audit_type == AuditType.WORKFLOW_INITIALIZED.value
        assert entry.new_values == {"steps": STEP_NAMES}
        assert entry.entry_metadata == {"total_steps": 10}

    async def test_second_initialize_rejected(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        with pytest.raises(WorkflowAlreadyInitializedError):
            await workflow.initialize_workflow(ctx, loan.id)
        assert len(store.steps) == 10

    async def test_missing_loan(self, workflow, ctx):
        with pytest.raises(NotFoundError):
            await workflow.initialize_workflow(ctx, 77)


# ---------------------------------------------------------------------------
# Status-driven advancement
# ---------------------------------------------------------------------------


class TestAdvanceForStatus:
    async def test_processing_completes_four_steps(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        completed = await workflow.advance_for_status(ctx, loan.id, LoanStatus.PROCESSING)
        assert [s.step_name for s in completed] == STEP_NAMES[1:5]
        assert all(s.completed_by == "user-7" and s.completed_at == NOW for s in completed)

    async def test_idempotent(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        await workflow.advance_for_status(ctx, loan.id, LoanStatus.CLOSED)
        audit_count = len(store.audit_entries)

        assert await workflow.advance_for_status(ctx, loan.id, LoanStatus.CLOSED) == []
        assert len(store.audit_entries) == audit_count

    async def test_denied_completes_nothing(self, workflow, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        assert await workflow.advance_for_status(ctx, loan.id, LoanStatus.DENIED) == []

    async def test_completion_audit_entry(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        [step] = await workflow.advance_for_status(ctx, loan.id, LoanStatus.FUNDED)
        entry = store.audit_entries[-1]
        assert entry.entity_type == EntityType.WORKFLOW_STEP
        assert entry.entity_id == step.id
        assert entry.new_values == {"step_name": "Funding", "loan_id": loan.id, "completed_by": "user-7"}
        assert entry.entry_metadata == {"trigger": "status_change", "status": "funded"}


# ---------------------------------------------------------------------------
# Manual completion
# ---------------------------------------------------------------------------


class TestCompleteStep:
    async def test_criteria_met(self, workflow, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        step = await workflow.complete_step(ctx, loan.id, "Application Received")
        assert step.is_completed

    async def test_unmet_flag_blocks(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        with pytest.raises(CriteriaNotMetError) as exc_info:
            await workflow.complete_step(ctx, loan.id, "Credit Check")
        assert exc_info.value.unmet == ["credit_report_obtained", "FCRA.credit_report_obtained"]
        assert len(store.audit_entries) == 1

    async def test_document_count(self, workflow, store, ctx, officer):
        loan = store.add_loan(make_loan(loan_officer_id=officer.id))
        await workflow.initialize_workflow(ctx, loan.id)
        for doc_type in ("application", "income_verification", "bank_statements", "tax_returns"):
            store.add_document(1, loan.id, doc_type)
        with pytest.raises(CriteriaNotMetError) as exc_info:
            await workflow.complete_step(ctx, loan.id, "Initial Document Collection")
        assert exc_info.value.unmet == ["documents_uploaded"]

        store.add_document(1, loan.id, "property_information")
        step = await workflow.complete_step(ctx, loan.id, "Initial Document Collection")
        assert step.is_completed

    async def test_false_requirement_needs_literal_false(self, workflow, store, ctx, loan):
        """Underwriting requires ECOA adverse_action_notice to be exactly False."""
        loan.loan_data = {**loan.loan_data, "underwriting_approved": True}
        await workflow.initialize_workflow(ctx, loan.id)
        with pytest.raises(CriteriaNotMetError) as exc_info:
            await workflow.complete_step(ctx, loan.id, "Underwriting Review")
        assert exc_info.value.unmet == ["ECOA.adverse_action_notice"]

        data = dict(loan.compliance_data)
        data["ECOA"] = {**data["ECOA"], "adverse_action_notice": False}
        loan.compliance_data = data
        assert (await workflow.complete_step(ctx, loan.id, "Underwriting Review")).is_completed

    async def test_unknown_criterion_is_unmet(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        store.steps[0].completion_criteria = {"application_submitted": True, "moon_phase": "full"}
        with pytest.raises(CriteriaNotMetError) as exc_info:
            await workflow.complete_step(ctx, loan.id, "Application Received")
        assert exc_info.value.unmet == ["moon_phase"]

    async def test_registered_criterion(self, workflow, store, ctx, loan):
        async def always(store, ctx, loan, expected):
            return True

        register_criterion("always_true_for_test", always)
        await workflow.initialize_workflow(ctx, loan.id)
        store.steps[0].completion_criteria = {"always_true_for_test": True}
        assert (await workflow.complete_step(ctx, loan.id, "Application Received")).is_completed

    async def test_compliance_verified_criterion(self, workflow, compliance, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        store.steps[0].completion_criteria = {"compliance_verified": True}
        with pytest.raises(CriteriaNotMetError):
            await workflow.complete_step(ctx, loan.id, "Application Received")

        await compliance.run_all(ctx, loan.id)
        assert (await workflow.complete_step(ctx, loan.id, "Application Received")).is_completed

    async def test_false_criterion_means_not_satisfied(self, workflow, store, ctx, loan):
        """``approval_received: false`` holds only while the loan is not approved."""
        await workflow.initialize_workflow(ctx, loan.id)
        store.steps[0].completion_criteria = {"approval_received": False}
        loan.status = LoanStatus.APPROVED
        with pytest.raises(CriteriaNotMetError) as exc_info:
            await workflow.complete_step(ctx, loan.id, "Application Received")
        assert exc_info.value.unmet == ["approval_received"]

        loan.status = LoanStatus.UNDERWRITING
        assert (await workflow.complete_step(ctx, loan.id, "Application Received")).is_completed

    async def test_compliance_verified_false_rejects_verified_loan(self, workflow, compliance, store, ctx, loan):
        await compliance.run_all(ctx, loan.id)
        await workflow.initialize_workflow(ctx, loan.id)
        store.steps[0].completion_criteria = {"compliance_verified": False}
        with pytest.raises(CriteriaNotMetError) as exc_info:
            await workflow.complete_step(ctx, loan.id, "Application Received")
        assert exc_info.value.unmet == ["compliance_verified"]

    async def test_already_completed_is_noop(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        await workflow.complete_step(ctx, loan.id, "Application Received")
        count = len(store.audit_entries)
        await workflow.complete_step(ctx, loan.id, "Application Received")
        assert len(store.audit_entries) == count

    async def test_unknown_step(self, workflow, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        with pytest.raises(NotFoundError):
            await workflow.complete_step(ctx, loan.id, "Teleportation")


class TestAssignStep:
    async def test_reassign_audited(self, workflow, store, ctx, loan, officer):
        await workflow.initialize_workflow(ctx, loan.id)
        step = await workflow.assign_step(ctx, loan.id, "Credit Check", "lo-99")
        assert step.assigned_to == "lo-99"
        entry = store.audit_entries[-1]
        assert entry.audit_type == AuditType.WORKFLOW_STEP_ASSIGNED.value
        assert entry.old_values == {"assigned_to": str(officer.id)}


# ---------------------------------------------------------------------------
# Navigation and reporting
# ---------------------------------------------------------------------------


class TestNavigation:
    async def test_current_next_previous(self, workflow, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        await workflow.advance_for_status(ctx, loan.id, LoanStatus.APPLICATION)

        assert (await workflow.get_current_step(ctx, loan.id)).step_name == "Initial Document Collection"
        assert (await workflow.get_next_step(ctx, loan.id, "Credit Check")).step_name == "Income Verification"
        assert (await workflow.get_previous_step(ctx, loan.id, "Credit Check")).step_name == (
            "Initial Document Collection"
        )
        assert await workflow.get_next_step(ctx, loan.id, "Funding") is None
        assert await workflow.get_previous_step(ctx, loan.id, "Application Received") is None

    async def test_unknown_step_navigation(self, workflow, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        with pytest.raises(NotFoundError):
            await workflow.get_next_step(ctx, loan.id, "Nope")

    async def test_current_step_none_when_done(self, workflow, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        for status in LoanStatus:
            await workflow.advance_for_status(ctx, loan.id, status)
        assert await workflow.get_current_step(ctx, loan.id) is None


class TestReporting:
    async def test_summary(self, workflow, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        await workflow.advance_for_status(ctx, loan.id, LoanStatus.APPLICATION)
        await workflow.advance_for_status(ctx, loan.id, LoanStatus.PROCESSING)

        # NOW is 8 days after application: Underwriting (14d) onwards is not yet due.
        summary = await workflow.get_workflow_summary(ctx, loan.id)
        assert summary.total_steps == 10
        assert summary.completed_steps == 5
        assert summary.pending_steps == 5
        assert summary.overdue_steps == 0
        assert summary.progress_percentage == 50.0
        assert summary.current_step == "Underwriting Review"
        assert summary.next_step == "Final Approval"

    async def test_summary_without_workflow(self, workflow, ctx, loan):
        summary = await workflow.get_workflow_summary(ctx, loan.id)
        assert summary.total_steps == 0
        assert summary.progress_percentage == 0.0
        assert summary.current_step is None

    async def test_overdue_steps(self, workflow, ctx, loan, officer):
        await workflow.initialize_workflow(ctx, loan.id)
        # At NOW (day 8): steps due at 1h, 3d, 5d, 7d are overdue.
        overdue = await workflow.get_overdue_steps(ctx)
        assert [s.step_name for s in overdue] == STEP_NAMES[:4]

        mine = await workflow.get_overdue_steps(ctx, assigned_to=str(officer.id))
        assert [s.step_name for s in mine] == STEP_NAMES[1:4]

        await workflow.advance_for_status(ctx, loan.id, LoanStatus.APPLICATION)
        assert len(await workflow.get_overdue_steps(ctx)) == 3

    async def test_is_overdue(self, workflow, ctx, loan):
        steps = await workflow.initialize_workflow(ctx, loan.id)
        assert is_overdue(steps[0], NOW)
        assert not is_overdue(steps[0], APPLICATION_DATE)
        steps[0].due_date = None
        assert not is_overdue(steps[0], NOW)

    async def test_statistics(self, workflow, store, ctx, loan):
        await workflow.initialize_workflow(ctx, loan.id)
        await workflow.advance_for_status(ctx, loan.id, LoanStatus.APPLICATION)
        stats = await workflow.get_workflow_statistics(ctx)
        assert stats.total_steps == 10
        assert stats.completed_steps == 1
        assert stats.overdue_steps == 3
        assert stats.completion_rate == 10.0

    async def test_statistics_empty_tenant(self, workflow):
        stats = await workflow.get_workflow_statistics(_early())
        assert stats.total_steps == 0
        assert stats.completion_rate == 0.0

# This project was developed with assistance from AI tools.
"""Loan workflow engine.

Materializes the fixed processing template into per-loan WorkflowStep rows,
completes steps as the loan's status advances, and gates manual completion
on completion criteria and compliance prerequisites.

A step is either pending or completed; completion is terminal.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from loanflow_db import AuditType, EntityType, Loan, LoanStatus, StepType, WorkflowRole, WorkflowStep

from ..errors import CriteriaNotMetError, NotFoundError, WorkflowAlreadyInitializedError
from ..schemas.context import OperationContext
from ..schemas.workflow import WorkflowStatistics, WorkflowSummary
from ..store.base import LoanStore
from .audit import AuditRecorder
from .compliance.service import compliance_verified
from .locking import LoanLocks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepTemplate:
    name: str
    step_type: StepType
    due_offset: timedelta
    criteria: dict[str, Any] = field(default_factory=dict)
    assigned_role: WorkflowRole | None = None
    compliance_requirements: dict[str, dict[str, Any]] = field(default_factory=dict)


WORKFLOW_TEMPLATE: tuple[StepTemplate, ...] = (
    StepTemplate(
        name="Application Received",
        step_type=StepType.SYSTEM,
        due_offset=timedelta(hours=1),
        criteria={"application_submitted": True},
    ),
    StepTemplate(
        name="Initial Document Collection",
        step_type=StepType.MANUAL,
        due_offset=timedelta(days=3),
        criteria={"documents_uploaded": 5},
        assigned_role=WorkflowRole.LOAN_OFFICER,
        compliance_requirements={"TRID": {"loan_estimate": True}},
    ),
    StepTemplate(
        name="Credit Check",
        step_type=StepType.INTEGRATION,
        due_offset=timedelta(days=5),
        criteria={"credit_report_obtained": True},
        assigned_role=WorkflowRole.LOAN_OFFICER,
        compliance_requirements={"FCRA": {"credit_report_obtained": True}},
    ),
    StepTemplate(
        name="Income Verification",
        step_type=StepType.MANUAL,
        due_offset=timedelta(days=7),
        criteria={"income_verified": True},
        assigned_role=WorkflowRole.LOAN_OFFICER,
        compliance_requirements={"ECOA": {"income_verification": True}},
    ),
    StepTemplate(
        name="Property Appraisal",
        step_type=StepType.INTEGRATION,
        due_offset=timedelta(days=10),
        criteria={"appraisal_completed": True},
        compliance_requirements={"RESPA": {"appraisal_ordered": True}},
    ),
    StepTemplate(
        name="Underwriting Review",
        step_type=StepType.MANUAL,
        due_offset=timedelta(days=14),
        criteria={"underwriting_approved": True},
        assigned_role=WorkflowRole.UNDERWRITER,
        compliance_requirements={
            "TRID": {"closing_disclosure": True},
            "ECOA": {"adverse_action_notice": False},
            "RESPA": {"hud1_settlement_statement": True},
        },
    ),
    StepTemplate(
        name="Final Approval",
        step_type=StepType.MANUAL,
        due_offset=timedelta(days=18),
        criteria={"final_approval": True},
        assigned_role=WorkflowRole.UNDERWRITER,
        compliance_requirements={
            "TRID": {"intent_to_proceed": True},
            "GLBA": {"privacy_notice_provided": True},
            "FCRA": {"risk_based_pricing_notice": True},
        },
    ),
    StepTemplate(
        name="Closing Preparation",
        step_type=StepType.MANUAL,
        due_offset=timedelta(days=21),
        criteria={"closing_documents_prepared": True},
        assigned_role=WorkflowRole.LOAN_OFFICER,
        compliance_requirements={
            "TRID": {"closing_disclosure": True},
            "RESPA": {"hud1_settlement_statement": True},
        },
    ),
    StepTemplate(
        name="Closing",
        step_type=StepType.MANUAL,
        due_offset=timedelta(days=25),
        criteria={"closing_completed": True},
        assigned_role=WorkflowRole.LOAN_OFFICER,
        compliance_requirements={
            "TRID": {"closing_disclosure": True},
            "RESPA": {"hud1_settlement_statement": True},
            "GLBA": {"privacy_notice_provided": True},
        },
    ),
    StepTemplate(
        name="Funding",
        step_type=StepType.SYSTEM,
        due_offset=timedelta(days=26),
        criteria={"funding_completed": True},
        compliance_requirements={
            "AML_BSA": {"suspicious_activity_reviewed": True},
            "SAFE_ACT": {"originator_licensed": True},
        },
    ),
)

STATUS_STEPS: dict[LoanStatus, tuple[str, ...]] = {
    LoanStatus.APPLICATION: ("Application Received",),
    LoanStatus.PROCESSING: (
        "Initial Document Collection",
        "Credit Check",
        "Income Verification",
        "Property Appraisal",
    ),
    LoanStatus.UNDERWRITING: ("Underwriting Review",),
    LoanStatus.APPROVED: ("Final Approval",),
    LoanStatus.CLOSED: ("Closing Preparation", "Closing"),
    LoanStatus.FUNDED: ("Funding",),
}


# ---------------------------------------------------------------------------
# Completion criteria registry
# ---------------------------------------------------------------------------

CriterionCheck = Callable[[LoanStore, OperationContext, Loan, Any], Awaitable[bool]]


async def _documents_uploaded(store: LoanStore, ctx: OperationContext, loan: Loan, expected: Any) -> bool:
    return await store.count_documents(ctx.tenant_id, loan.id) >= int(expected)


async def _compliance_verified(store: LoanStore, ctx: OperationContext, loan: Loan, expected: Any) -> bool:
    verified = await compliance_verified(store, ctx.tenant_id, loan.id)
    return verified == bool(expected)


async def _approval_received(store: LoanStore, ctx: OperationContext, loan: Loan, expected: Any) -> bool:
    approved = LoanStatus(loan.status) == LoanStatus.APPROVED
    return approved == bool(expected)


def _loan_data_flag(name: str) -> CriterionCheck:
    """Criterion satisfied by a flag recorded in the loan's loan_data."""

    async def check(store: LoanStore, ctx: OperationContext, loan: Loan, expected: Any) -> bool:
        return bool((loan.loan_data or {}).get(name)) == bool(expected)

    return check


CRITERIA: dict[str, CriterionCheck] = {
    "documents_uploaded": _documents_uploaded,
    "compliance_verified": _compliance_verified,
    "approval_received": _approval_received,
}
for _flag in (
    "application_submitted",
    "credit_report_obtained",
    "income_verified",
    "appraisal_completed",
    "underwriting_approved",
    "final_approval",
    "closing_documents_prepared",
    "closing_completed",
    "funding_completed",
):
    CRITERIA[_flag] = _loan_data_flag(_flag)


def register_criterion(name: str, check: CriterionCheck) -> None:
    CRITERIA[name] = check


def _requirement_met(actual: Any, expected: Any) -> bool:
    # Booleans compare by identity so 1/0 never stand in for True/False.
    if isinstance(expected, bool):
        return actual is expected
    return actual == expected


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def is_overdue(step: WorkflowStep, now: datetime) -> bool:
    """Pending step whose due date has passed."""
    if step.is_completed or step.due_date is None:
        return False
    return _as_utc(step.due_date) < _as_utc(now)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class WorkflowEngine:
    """Creates, advances, and reports on loan workflows."""

    def __init__(
        self,
        store: LoanStore,
        *,
        audit: AuditRecorder | None = None,
        locks: LoanLocks | None = None,
    ):
        self.store = store
        self.audit = audit or AuditRecorder(store)
        self.locks = locks or LoanLocks()

    async def _require_loan(self, ctx: OperationContext, loan_id: int) -> Loan:
        loan = await self.store.load_loan(ctx.tenant_id, loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found for tenant {ctx.tenant_id}")
        return loan

    async def _require_step(self, ctx: OperationContext, loan_id: int, step_name: str) -> WorkflowStep:
        for step in await self.store.load_workflow_steps(ctx.tenant_id, loan_id):
            if step.step_name == step_name:
                return step
        raise NotFoundError(f"Step '{step_name}' not found for loan {loan_id}")

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize_workflow(self, ctx: OperationContext, loan_id: int) -> list[WorkflowStep]:
        """Create the loan's steps in template order.

        Due dates are offsets from the application date (or ``ctx.now`` when
        the loan has none). Raises WorkflowAlreadyInitializedError if the loan
        already has steps.
        """
        async with self.locks.hold(ctx.tenant_id, loan_id):
            await self.store.lock_loan(ctx.tenant_id, loan_id)
            loan = await self._require_loan(ctx, loan_id)
            if await self.store.load_workflow_steps(ctx.tenant_id, loan_id):
                raise WorkflowAlreadyInitializedError(f"Workflow already initialized for loan {loan_id}")

            start = loan.application_date or ctx.now
            officer = str(loan.loan_officer_id) if loan.loan_officer_id is not None else None
            steps = [
                WorkflowStep(
                    tenant_id=ctx.tenant_id,
                    loan_id=loan.id,
                    step_name=template.name,
                    step_order=order,
                    step_type=template.step_type,
                    is_required=True,
                    is_completed=False,
                    completion_criteria=dict(template.criteria),
                    compliance_requirements={k: dict(v) for k, v in template.compliance_requirements.items()},
                    assigned_role=template.assigned_role,
                    assigned_to=officer if template.assigned_role == WorkflowRole.LOAN_OFFICER else None,
                    due_date=start + template.due_offset,
                )
                for order, template in enumerate(WORKFLOW_TEMPLATE, start=1)
            ]
            steps = await self.store.add_workflow_steps(steps)

            await self.audit.record(
                ctx,
                audit_type=AuditType.WORKFLOW_INITIALIZED,
                entity_type=EntityType.LOAN,
                entity_id=loan.id,
                action="workflow_initialized",
                new_values={"steps": [s.step_name for s in steps]},
                metadata={"total_steps": len(steps)},
            )
            await self.store.commit()

        logger.info("Initialized %d workflow steps for loan %s", len(steps), loan_id)
        return steps

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _mark_completed(
        self, ctx: OperationContext, step: WorkflowStep, metadata: dict,
    ) -> WorkflowStep:
        step.is_completed = True
        step.completed_at = ctx.now
        step.completed_by = ctx.actor_id
        await self.store.save_workflow_step(step)
        await self.audit.record(
            ctx,
            audit_type=AuditType.WORKFLOW_STEP_COMPLETED,
            entity_type=EntityType.WORKFLOW_STEP,
            entity_id=step.id,
            action="step_completed",
            new_values={
                "step_name": step.step_name,
                "loan_id": step.loan_id,
                "completed_by": step.completed_by,
            },
            metadata=metadata,
        )
        return step

    async def advance_for_status(
        self, ctx: OperationContext, loan_id: int, status: LoanStatus,
    ) -> list[WorkflowStep]:
        """Complete the steps a status implies. Already-completed steps are skipped.

        Returns only the steps completed by this call, so a repeat call
        returns an empty list and writes nothing.
        """
        status = LoanStatus(status)
        names = STATUS_STEPS.get(status, ())
        completed: list[WorkflowStep] = []
        if not names:
            return completed

        async with self.locks.hold(ctx.tenant_id, loan_id):
            await self.store.lock_loan(ctx.tenant_id, loan_id)
            for step in await self.store.load_workflow_steps(ctx.tenant_id, loan_id):
                if step.step_name in names and not step.is_completed:
                    completed.append(
                        await self._mark_completed(
                            ctx, step, {"trigger": "status_change", "status": status.value},
                        )
                    )
            await self.store.commit()

        if completed:
            logger.info(
                "Loan %s status %s completed steps: %s",
                loan_id, status.value, ", ".join(s.step_name for s in completed),
            )
        return completed

    async def meets_completion_criteria(
        self, ctx: OperationContext, loan: Loan, step: WorkflowStep,
    ) -> list[str]:
        """Names of unmet completion criteria (empty when all are met).

        Unknown criterion names are never met.
        """
        unmet: list[str] = []
        for name, expected in (step.completion_criteria or {}).items():
            check = CRITERIA.get(name)
            if check is None or not await check(self.store, ctx, loan, expected):
                unmet.append(name)
        return unmet

    @staticmethod
    def meets_compliance_requirements(loan: Loan, step: WorkflowStep) -> list[str]:
        """Unmet compliance prerequisites as ``REGULATION.field`` strings."""
        compliance_data = loan.compliance_data or {}
        unmet: list[str] = []
        for regulation, requirement in (step.compliance_requirements or {}).items():
            snapshot = compliance_data.get(regulation) or {}
            for key, expected in requirement.items():
                if not _requirement_met(snapshot.get(key), expected):
                    unmet.append(f"{regulation}.{key}")
        return unmet

    async def complete_step(self, ctx: OperationContext, loan_id: int, step_name: str) -> WorkflowStep:
        """Complete a step once its criteria and compliance prerequisites hold.

        Raises CriteriaNotMetError listing every unmet item; nothing is
        written in that case. Completing an already-completed step is a no-op.
        """
        async with self.locks.hold(ctx.tenant_id, loan_id):
            await self.store.lock_loan(ctx.tenant_id, loan_id)
            loan = await self._require_loan(ctx, loan_id)
            step = await self._require_step(ctx, loan_id, step_name)
            if step.is_completed:
                return step

            unmet = await self.meets_completion_criteria(ctx, loan, step)
            unmet += self.meets_compliance_requirements(loan, step)
            if unmet:
                logger.info("Step '%s' on loan %s blocked: %s", step_name, loan_id, unmet)
                raise CriteriaNotMetError(step_name, unmet)

            await self._mark_completed(ctx, step, {"trigger": "manual"})
            await self.store.commit()
        return step

    async def assign_step(
        self, ctx: OperationContext, loan_id: int, step_name: str, user_id: str,
    ) -> WorkflowStep:
        async with self.locks.hold(ctx.tenant_id, loan_id):
            step = await self._require_step(ctx, loan_id, step_name)
            previous = step.assigned_to
            step.assigned_to = user_id
            await self.store.save_workflow_step(step)
            await self.audit.record(
                ctx,
                audit_type=AuditType.WORKFLOW_STEP_ASSIGNED,
                entity_type=EntityType.WORKFLOW_STEP,
                entity_id=step.id,
                action="step_assigned",
                old_values={"assigned_to": previous},
                new_values={"assigned_to": user_id},
            )
            await self.store.commit()
        return step

    # ------------------------------------------------------------------
    # Navigation and reporting
    # ------------------------------------------------------------------

    async def get_current_step(self, ctx: OperationContext, loan_id: int) -> WorkflowStep | None:
        """First pending step in order, or None when every step is complete."""
        for step in await self.store.load_workflow_steps(ctx.tenant_id, loan_id):
            if not step.is_completed:
                return step
        return None

    async def get_next_step(
        self, ctx: OperationContext, loan_id: int, step_name: str,
    ) -> WorkflowStep | None:
        steps = await self.store.load_workflow_steps(ctx.tenant_id, loan_id)
        for index, step in enumerate(steps):
            if step.step_name == step_name:
                return steps[index + 1] if index + 1 < len(steps) else None
        raise NotFoundError(f"Step '{step_name}' not found for loan {loan_id}")

    async def get_previous_step(
        self, ctx: OperationContext, loan_id: int, step_name: str,
    ) -> WorkflowStep | None:
        steps = await self.store.load_workflow_steps(ctx.tenant_id, loan_id)
        for index, step in enumerate(steps):
            if step.step_name == step_name:
                return steps[index - 1] if index > 0 else None
        raise NotFoundError(f"Step '{step_name}' not found for loan {loan_id}")

    async def get_workflow_summary(self, ctx: OperationContext, loan_id: int) -> WorkflowSummary:
        steps = await self.store.load_workflow_steps(ctx.tenant_id, loan_id)
        completed = [s for s in steps if s.is_completed]
        pending = [s for s in steps if not s.is_completed]
        total = len(steps)
        return WorkflowSummary(
            loan_id=loan_id,
            total_steps=total,
            completed_steps=len(completed),
            pending_steps=len(pending),
            overdue_steps=sum(1 for s in pending if is_overdue(s, ctx.now)),
            progress_percentage=round(len(completed) / total * 100, 2) if total else 0.0,
            current_step=pending[0].step_name if pending else None,
            next_step=pending[1].step_name if len(pending) > 1 else None,
        )

    async def get_overdue_steps(
        self, ctx: OperationContext, assigned_to: str | None = None,
    ) -> list[WorkflowStep]:
        return await self.store.list_overdue_steps(ctx.tenant_id, ctx.now, assigned_to)

    async def get_workflow_statistics(self, ctx: OperationContext) -> WorkflowStatistics:
        counts = await self.store.workflow_step_counts(ctx.tenant_id, ctx.now)
        total = counts["total"]
        return WorkflowStatistics(
            total_steps=total,
            completed_steps=counts["completed"],
            overdue_steps=counts["overdue"],
            completion_rate=round(counts["completed"] / total * 100, 2) if total else 0.0,
        )

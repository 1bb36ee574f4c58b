# This project was developed with assistance from AI tools.
"""SQLAlchemy implementation of LoanStore.

Wraps one AsyncSession. Writes are flushed immediately so generated ids are
available to callers; services commit at the end of each operation.
Advisory locks are PostgreSQL-only and skipped on other dialects.
"""

from datetime import datetime

from loanflow_db import (
    ComplianceAuditEntry,
    EntityType,
    Loan,
    LoanDocument,
    LoanOfficer,
    ProcessingRun,
    WorkflowEvent,
    WorkflowStep,
)
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from .base import LoanStore

# Advisory lock namespace for the per-tenant audit hash chain (two-int form).
AUDIT_LOCK_KEY = 900_001


class SqlLoanStore(LoanStore):
    """LoanStore backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def _is_postgres(self) -> bool:
        return self.session.get_bind().dialect.name == "postgresql"

    # -- Loans --

    async def load_loan(self, tenant_id: int, loan_id: int) -> Loan | None:
        stmt = select(Loan).where(Loan.tenant_id == tenant_id, Loan.id == loan_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_loan(self, loan: Loan) -> Loan:
        self.session.add(loan)
        await self.session.flush()
        return loan

    async def find_officer(self, tenant_id: int, officer_id: int) -> LoanOfficer | None:
        stmt = select(LoanOfficer).where(
            LoanOfficer.tenant_id == tenant_id, LoanOfficer.id == officer_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_documents(self, tenant_id: int, loan_id: int) -> int:
        stmt = select(func.count(LoanDocument.id)).where(
            LoanDocument.tenant_id == tenant_id, LoanDocument.loan_id == loan_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_document_types(self, tenant_id: int, loan_id: int) -> list[str]:
        stmt = (
            select(LoanDocument.doc_type)
            .where(LoanDocument.tenant_id == tenant_id, LoanDocument.loan_id == loan_id)
            .distinct()
        )
        result = await self.session.execute(stmt)
        return sorted(result.scalars().all())

    # -- Workflow --

    async def load_workflow_steps(self, tenant_id: int, loan_id: int) -> list[WorkflowStep]:
        stmt = (
            select(WorkflowStep)
            .where(WorkflowStep.tenant_id == tenant_id, WorkflowStep.loan_id == loan_id)
            .order_by(WorkflowStep.step_order.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_workflow_steps(self, steps: list[WorkflowStep]) -> list[WorkflowStep]:
        self.session.add_all(steps)
        await self.session.flush()
        return steps

    async def save_workflow_step(self, step: WorkflowStep) -> WorkflowStep:
        self.session.add(step)
        await self.session.flush()
        return step

    async def list_overdue_steps(
        self,
        tenant_id: int,
        now: datetime,
        assigned_to: str | None = None,
    ) -> list[WorkflowStep]:
        stmt = select(WorkflowStep).where(
            WorkflowStep.tenant_id == tenant_id,
            WorkflowStep.is_completed.is_(False),
            WorkflowStep.due_date < now,
        )
        if assigned_to is not None:
            stmt = stmt.where(WorkflowStep.assigned_to == assigned_to)
        stmt = stmt.order_by(WorkflowStep.due_date.asc(), WorkflowStep.id.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def workflow_step_counts(self, tenant_id: int, now: datetime) -> dict[str, int]:
        base = select(func.count(WorkflowStep.id)).where(WorkflowStep.tenant_id == tenant_id)
        total = (await self.session.execute(base)).scalar_one()
        completed = (
            await self.session.execute(base.where(WorkflowStep.is_completed.is_(True)))
        ).scalar_one()
        overdue = (
            await self.session.execute(
                base.where(WorkflowStep.is_completed.is_(False), WorkflowStep.due_date < now)
            )
        ).scalar_one()
        return {"total": total, "completed": completed, "overdue": overdue}

    async def record_workflow_event(self, event: WorkflowEvent) -> WorkflowEvent:
        self.session.add(event)
        await self.session.flush()
        return event

    async def load_processing_run(self, tenant_id: int, loan_id: int) -> ProcessingRun | None:
        stmt = (
            select(ProcessingRun)
            .where(ProcessingRun.tenant_id == tenant_id, ProcessingRun.loan_id == loan_id)
            .order_by(ProcessingRun.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_processing_run(self, run: ProcessingRun) -> ProcessingRun:
        self.session.add(run)
        await self.session.flush()
        return run

    # -- Audit --

    async def append_audit_entry(self, entry: ComplianceAuditEntry) -> ComplianceAuditEntry:
        if entry.id is not None:
            raise ValueError("compliance audit entries are append-only")
        self.session.add(entry)
        await self.session.flush()
        return entry

    def _audit_query(
        self,
        tenant_id: int,
        entity_type: EntityType | None,
        entity_id: int | None,
        audit_type: str | None,
    ):
        stmt = select(ComplianceAuditEntry).where(ComplianceAuditEntry.tenant_id == tenant_id)
        if entity_type is not None:
            stmt = stmt.where(ComplianceAuditEntry.entity_type == entity_type)
        if entity_id is not None:
            stmt = stmt.where(ComplianceAuditEntry.entity_id == entity_id)
        if audit_type is not None:
            stmt = stmt.where(ComplianceAuditEntry.audit_type == audit_type)
        return stmt

    async def latest_audit_entry(
        self,
        tenant_id: int,
        *,
        entity_type: EntityType | None = None,
        entity_id: int | None = None,
        audit_type: str | None = None,
    ) -> ComplianceAuditEntry | None:
        stmt = (
            self._audit_query(tenant_id, entity_type, entity_id, audit_type)
            .order_by(ComplianceAuditEntry.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_audit_entries(
        self,
        tenant_id: int,
        *,
        entity_type: EntityType | None = None,
        entity_id: int | None = None,
        audit_type: str | None = None,
        since: datetime | None = None,
    ) -> list[ComplianceAuditEntry]:
        stmt = self._audit_query(tenant_id, entity_type, entity_id, audit_type)
        if since is not None:
            stmt = stmt.where(ComplianceAuditEntry.timestamp >= since)
        stmt = stmt.order_by(ComplianceAuditEntry.id.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # -- Locking / transactions --

    async def lock_loan(self, tenant_id: int, loan_id: int) -> None:
        if not self._is_postgres:
            return
        # Released automatically when the transaction commits or rolls back.
        key = (tenant_id << 32) | loan_id
        await self.session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})

    async def lock_audit_chain(self, tenant_id: int) -> None:
        if not self._is_postgres:
            return
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(:ns, :tenant)"),
            {"ns": AUDIT_LOCK_KEY, "tenant": tenant_id},
        )

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

# This project was developed with assistance from AI tools.
"""Persistence interface consumed by the compliance and workflow services.

Every read is scoped by an explicit ``tenant_id``; implementations never
rely on ambient tenant state. Audit entries are append-only: there is no
update or delete operation for them.
"""

import abc
from datetime import datetime

from loanflow_db import (
    ComplianceAuditEntry,
    EntityType,
    Loan,
    LoanOfficer,
    ProcessingRun,
    WorkflowEvent,
    WorkflowStep,
)


class LoanStore(abc.ABC):
    """Loan, workflow, and audit persistence."""

    # -- Loans --

    @abc.abstractmethod
    async def load_loan(self, tenant_id: int, loan_id: int) -> Loan | None: ...

    @abc.abstractmethod
    async def save_loan(self, loan: Loan) -> Loan: ...

    @abc.abstractmethod
    async def find_officer(self, tenant_id: int, officer_id: int) -> LoanOfficer | None: ...

    @abc.abstractmethod
    async def count_documents(self, tenant_id: int, loan_id: int) -> int: ...

    @abc.abstractmethod
    async def list_document_types(self, tenant_id: int, loan_id: int) -> list[str]: ...

    # -- Workflow --

    @abc.abstractmethod
    async def load_workflow_steps(self, tenant_id: int, loan_id: int) -> list[WorkflowStep]:
        """Return the loan's steps ordered by step_order."""

    @abc.abstractmethod
    async def add_workflow_steps(self, steps: list[WorkflowStep]) -> list[WorkflowStep]: ...

    @abc.abstractmethod
    async def save_workflow_step(self, step: WorkflowStep) -> WorkflowStep: ...

    @abc.abstractmethod
    async def list_overdue_steps(
        self,
        tenant_id: int,
        now: datetime,
        assigned_to: str | None = None,
    ) -> list[WorkflowStep]:
        """Incomplete steps whose due date is before ``now``, earliest first."""

    @abc.abstractmethod
    async def workflow_step_counts(self, tenant_id: int, now: datetime) -> dict[str, int]:
        """Return ``{"total", "completed", "overdue"}`` step counts for the tenant."""

    @abc.abstractmethod
    async def record_workflow_event(self, event: WorkflowEvent) -> WorkflowEvent: ...

    @abc.abstractmethod
    async def load_processing_run(self, tenant_id: int, loan_id: int) -> ProcessingRun | None:
        """Most recent processing run for the loan, if any."""

    @abc.abstractmethod
    async def save_processing_run(self, run: ProcessingRun) -> ProcessingRun: ...

    # -- Audit --

    @abc.abstractmethod
    async def append_audit_entry(self, entry: ComplianceAuditEntry) -> ComplianceAuditEntry: ...

    @abc.abstractmethod
    async def latest_audit_entry(
        self,
        tenant_id: int,
        *,
        entity_type: EntityType | None = None,
        entity_id: int | None = None,
        audit_type: str | None = None,
    ) -> ComplianceAuditEntry | None: ...

    @abc.abstractmethod
    async def list_audit_entries(
        self,
        tenant_id: int,
        *,
        entity_type: EntityType | None = None,
        entity_id: int | None = None,
        audit_type: str | None = None,
        since: datetime | None = None,
    ) -> list[ComplianceAuditEntry]:
        """Matching entries in insertion order."""

    # -- Locking / transactions --

    @abc.abstractmethod
    async def lock_loan(self, tenant_id: int, loan_id: int) -> None:
        """Serialize writers of one loan for the rest of the transaction."""

    @abc.abstractmethod
    async def lock_audit_chain(self, tenant_id: int) -> None:
        """Serialize audit hash-chain writers of one tenant for the rest of the transaction."""

    @abc.abstractmethod
    async def commit(self) -> None: ...

    @abc.abstractmethod
    async def rollback(self) -> None: ...

# This project was developed with assistance from AI tools.
"""
Loanflow -- domain models

Loans, loan officers, documents, workflow steps, processing runs,
workflow events, and the append-only compliance audit trail.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import (
    EntityType,
    LoanStatus,
    ProcessingRunStatus,
    StepType,
    WorkflowRole,
)


class LoanOfficer(Base):
    """Licensed originator. SAFE Act status lives in compliance_data."""

    __tablename__ = "loan_officers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    nmls_id = Column(String(50), nullable=True)
    compliance_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loans = relationship("Loan", back_populates="loan_officer")

    def __repr__(self):
        return f"<LoanOfficer(id={self.id}, name='{self.name}')>"


class Loan(Base):
    """Mortgage loan moving through the processing lifecycle."""

    __tablename__ = "loans"
    __table_args__ = (UniqueConstraint("tenant_id", "loan_number", name="uq_loans_tenant_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    loan_number = Column(String(50), nullable=False)
    status = Column(
        Enum(LoanStatus, name="loan_status", native_enum=False),
        nullable=False,
        default=LoanStatus.APPLICATION,
    )
    loan_officer_id = Column(Integer, ForeignKey("loan_officers.id"), nullable=True, index=True)
    borrower_id = Column(Integer, nullable=True, index=True)
    loan_type = Column(String(50), nullable=True)
    property_type = Column(String(50), nullable=True)
    loan_amount = Column(Numeric(12, 2), nullable=True)
    application_date = Column(DateTime(timezone=True), nullable=True)
    closing_date = Column(DateTime(timezone=True), nullable=True)
    funding_date = Column(DateTime(timezone=True), nullable=True)
    loan_data = Column(JSON, nullable=True)
    compliance_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    loan_officer = relationship("LoanOfficer", back_populates="loans")
    workflow_steps = relationship(
        "WorkflowStep", back_populates="loan", cascade="all, delete-orphan",
        order_by="WorkflowStep.step_order",
    )
    documents = relationship(
        "LoanDocument", back_populates="loan", cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Loan(id={self.id}, number='{self.loan_number}', status='{self.status}')>"


class LoanDocument(Base):
    """Document attached to a loan. Only type and count matter here."""

    __tablename__ = "loan_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    doc_type = Column(String(50), nullable=False)
    file_name = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loan = relationship("Loan", back_populates="documents")

    def __repr__(self):
        return f"<LoanDocument(id={self.id}, type='{self.doc_type}')>"


class WorkflowStep(Base):
    """One step of a loan's processing workflow. Pending until completed."""

    __tablename__ = "workflow_steps"
    __table_args__ = (UniqueConstraint("loan_id", "step_order", name="uq_workflow_steps_loan_order"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    step_name = Column(String(100), nullable=False)
    step_order = Column(Integer, nullable=False)
    step_type = Column(
        Enum(StepType, name="step_type", native_enum=False),
        nullable=False,
    )
    is_required = Column(Boolean, nullable=False, default=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    completion_criteria = Column(JSON, nullable=True)
    compliance_requirements = Column(JSON, nullable=True)
    assigned_role = Column(
        Enum(WorkflowRole, name="workflow_role", native_enum=False),
        nullable=True,
    )
    assigned_to = Column(String(255), nullable=True, index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loan = relationship("Loan", back_populates="workflow_steps")

    def __repr__(self):
        return f"<WorkflowStep(id={self.id}, order={self.step_order}, name='{self.step_name}')>"


class WorkflowEvent(Base):
    """Status-change event emitted by the processing orchestrator."""

    __tablename__ = "workflow_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    loan_id = Column(Integer, nullable=False, index=True)
    status = Column(String(50), nullable=False)
    event_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<WorkflowEvent(id={self.id}, loan_id={self.loan_id}, status='{self.status}')>"


class ProcessingRun(Base):
    """Durable cursor for one orchestrated pass over a loan."""

    __tablename__ = "processing_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    loan_id = Column(Integer, nullable=False, index=True)
    status = Column(
        Enum(ProcessingRunStatus, name="processing_run_status", native_enum=False),
        nullable=False,
        default=ProcessingRunStatus.RUNNING,
    )
    current_stage = Column(String(50), nullable=True)
    outcome = Column(String(50), nullable=True)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<ProcessingRun(id={self.id}, loan_id={self.loan_id}, stage='{self.current_stage}')>"


class ComplianceAuditEntry(Base):
    """Append-only compliance audit trail. INSERT + SELECT only -- no UPDATE or DELETE.

    References the audited entity by (entity_type, entity_id) rather than a
    foreign key so audit rows are never cascaded away with their subject.
    """

    __tablename__ = "compliance_audit_entries"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "entity_type", "entity_id", "sequence",
            name="uq_compliance_audit_entity_sequence",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    audit_type = Column(String(50), nullable=False, index=True)
    entity_type = Column(
        Enum(EntityType, name="audit_entity_type", native_enum=False),
        nullable=False,
    )
    entity_id = Column(Integer, nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    action = Column(String(100), nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    entry_metadata = Column("metadata", JSON, nullable=True)
    actor = Column(String(255), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    prev_hash = Column(String(64), nullable=True)

    def __repr__(self):
        return f"<ComplianceAuditEntry(id={self.id}, type='{self.audit_type}')>"


class AuditViolation(Base):
    """Records attempted UPDATE/DELETE on compliance_audit_entries (trigger-populated)."""

    __tablename__ = "audit_violations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    attempted_operation = Column(String(10), nullable=False)
    db_user = Column(String(255), nullable=False)
    audit_entry_id = Column(Integer, nullable=True)

# This project was developed with assistance from AI tools.
"""
Domain enums for loan processing and compliance auditing.

Shared domain types used by both SQLAlchemy models (db package)
and the engine package (services, schemas).
"""

import enum


class LoanStatus(str, enum.Enum):
    APPLICATION = "application"
    PROCESSING = "processing"
    UNDERWRITING = "underwriting"
    APPROVED = "approved"
    DENIED = "denied"
    CLOSED = "closed"
    FUNDED = "funded"

    @classmethod
    def terminal_statuses(cls) -> frozenset["LoanStatus"]:
        """Statuses a loan never leaves."""
        return frozenset({cls.DENIED, cls.FUNDED})

    @classmethod
    def valid_transitions(cls) -> dict["LoanStatus", frozenset["LoanStatus"]]:
        """Allowed status transitions in the processing lifecycle."""
        return {
            cls.APPLICATION: frozenset({cls.PROCESSING, cls.DENIED}),
            cls.PROCESSING: frozenset({cls.UNDERWRITING, cls.DENIED}),
            cls.UNDERWRITING: frozenset({cls.APPROVED, cls.DENIED}),
            cls.APPROVED: frozenset({cls.CLOSED, cls.DENIED}),
            cls.CLOSED: frozenset({cls.FUNDED}),
            cls.DENIED: frozenset(),
            cls.FUNDED: frozenset(),
        }

    def can_transition_to(self, target: "LoanStatus") -> bool:
        return target in self.valid_transitions()[self]


class Severity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class StepType(str, enum.Enum):
    SYSTEM = "system"
    MANUAL = "manual"
    INTEGRATION = "integration"


class WorkflowRole(str, enum.Enum):
    LOAN_OFFICER = "loan_officer"
    UNDERWRITER = "underwriter"


class EntityType(str, enum.Enum):
    LOAN = "loan"
    WORKFLOW_STEP = "workflow_step"


class AuditType(str, enum.Enum):
    COMPLIANCE_CHECK = "compliance_check"
    COMPLIANCE_VIOLATION = "compliance_violation"
    COMPLIANCE_REMEDIATION = "compliance_remediation"
    COMPLIANCE_DATA_UPDATED = "compliance_data_updated"
    WORKFLOW_INITIALIZED = "workflow_initialized"
    WORKFLOW_STEP_COMPLETED = "workflow_step_completed"
    WORKFLOW_STEP_ASSIGNED = "workflow_step_assigned"
    LOAN_STATUS_CHANGED = "loan_status_changed"


class ProcessingRunStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

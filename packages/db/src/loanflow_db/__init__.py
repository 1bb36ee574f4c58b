# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, get_db, get_engine, get_session_factory
from .enums import (
    AuditType,
    EntityType,
    LoanStatus,
    ProcessingRunStatus,
    Severity,
    StepType,
    WorkflowRole,
)
from .models import (
    AuditViolation,
    ComplianceAuditEntry,
    Loan,
    LoanDocument,
    LoanOfficer,
    ProcessingRun,
    WorkflowEvent,
    WorkflowStep,
)

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_factory",
    "__version__",
    # Enums
    "AuditType",
    "EntityType",
    "LoanStatus",
    "ProcessingRunStatus",
    "Severity",
    "StepType",
    "WorkflowRole",
    # Models
    "AuditViolation",
    "ComplianceAuditEntry",
    "Loan",
    "LoanDocument",
    "LoanOfficer",
    "ProcessingRun",
    "WorkflowEvent",
    "WorkflowStep",
]

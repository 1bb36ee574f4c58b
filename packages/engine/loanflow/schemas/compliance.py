# This project was developed with assistance from AI tools.
"""Compliance evaluation result schemas."""

from datetime import datetime

from loanflow_db.enums import Severity
from pydantic import BaseModel, ConfigDict, Field


class Violation(BaseModel):
    """A single rule failure detected for a loan.

    Produced fresh on every evaluation and persisted only as audit entries.
    """

    model_config = ConfigDict(frozen=True)

    regulation: str
    rule_id: str
    type: str
    message: str
    severity: Severity
    detected_at: datetime
    loan_id: int
    field: str | None = None


class ComplianceSummary(BaseModel):
    """Aggregate compliance posture for a loan."""

    loan_id: int
    is_compliant: bool
    status: str  # compliant | non_compliant | indeterminate
    total_violations: int
    critical_violations: int
    high_violations: int
    violations_by_regulation: dict[str, list[Violation]] = Field(default_factory=dict)
    regulations_checked: list[str] = Field(default_factory=list)
    catalog_loaded: bool = True


class ComplianceRequirement(BaseModel):
    """Catalog rule as exposed to callers asking what a regulation requires."""

    rule_id: str
    description: str
    field: str | None = None
    severity: Severity
    remediation: str | None = None

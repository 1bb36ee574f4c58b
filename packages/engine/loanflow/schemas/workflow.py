# This project was developed with assistance from AI tools.
"""Workflow progress schemas."""

from pydantic import BaseModel


class WorkflowSummary(BaseModel):
    """Progress snapshot of one loan's workflow."""

    loan_id: int
    total_steps: int
    completed_steps: int
    pending_steps: int
    overdue_steps: int
    progress_percentage: float
    current_step: str | None = None
    next_step: str | None = None


class WorkflowStatistics(BaseModel):
    """Tenant-wide workflow counters."""

    total_steps: int
    completed_steps: int
    overdue_steps: int
    completion_rate: float

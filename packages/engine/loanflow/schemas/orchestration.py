# This project was developed with assistance from AI tools.
"""Loan processing run result schema."""

from pydantic import BaseModel, Field


class ProcessingResult(BaseModel):
    """Outcome of one orchestrated pass over a loan.

    ``outcome`` is the loan's resulting status (funded, closed, denied) or
    ``cancelled`` when the run stopped at a checkpoint.
    """

    loan_id: int
    run_id: int | None = None
    outcome: str
    stages_completed: list[str] = Field(default_factory=list)
    reason: str | None = None

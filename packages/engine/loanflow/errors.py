# This project was developed with assistance from AI tools.
"""Exception hierarchy for the loanflow engine.

Non-compliance is never an exception: violations are returned as data.
"""


class LoanflowError(Exception):
    """Base class for engine errors."""


class ConfigurationError(LoanflowError):
    """Rule catalog or settings could not be loaded. Recorded, never fatal."""


class ValidationError(LoanflowError, ValueError):
    """Caller input rejected before any mutation."""


class NotFoundError(LoanflowError, LookupError):
    """Referenced loan, step, or officer does not exist for the tenant."""


class CriteriaNotMetError(LoanflowError):
    """Workflow step completion attempted before its gates are satisfied."""

    def __init__(self, step_name: str, unmet: list[str]):
        self.step_name = step_name
        self.unmet = list(unmet)
        super().__init__(f"Step '{step_name}' cannot be completed; unmet: {', '.join(self.unmet)}")


class WorkflowAlreadyInitializedError(LoanflowError):
    """Workflow steps already exist for the loan."""


class InvalidTransitionError(LoanflowError, ValueError):
    """Requested loan status transition is not allowed."""


class IntegrationError(LoanflowError):
    """External vendor call failed after all attempts."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        self.status = status
        self.body = body
        super().__init__(message)

    @property
    def context(self) -> dict:
        return {"status": self.status, "body": self.body}


class ProcessingCancelledError(LoanflowError):
    """Processing run stopped at a cancellation checkpoint."""

# This project was developed with assistance from AI tools.
"""Credit bureau client."""

from ..errors import IntegrationError
from .base import BaseIntegrationClient, IntegrationResult


class CreditBureauClient(BaseIntegrationClient):
    vendor = "credit_bureau"

    async def pull_credit(self, loan_id: int, borrower_id: int | None) -> IntegrationResult:
        """Request a tri-merge credit report; the result data carries ``credit_score``."""
        try:
            body = await self.request(
                "POST", "/credit-reports", {"loan_id": loan_id, "borrower_id": borrower_id},
            )
        except IntegrationError as exc:
            return IntegrationResult(success=False, error=str(exc), data=exc.context)

        body = body or {}
        if "credit_score" not in body:
            return IntegrationResult(success=False, error="Credit report missing credit_score", data=body)
        return IntegrationResult(success=True, data=body)

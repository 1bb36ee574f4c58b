# This project was developed with assistance from AI tools.
"""Appraisal management client."""

from decimal import Decimal

from ..errors import IntegrationError
from .base import BaseIntegrationClient, IntegrationResult


class AppraisalClient(BaseIntegrationClient):
    vendor = "appraisal"

    async def order_appraisal(
        self, loan_id: int, property_type: str | None, loan_amount: Decimal | None,
    ) -> IntegrationResult:
        try:
            body = await self.request(
                "POST",
                "/appraisal-orders",
                {
                    "loan_id": loan_id,
                    "property_type": property_type,
                    "loan_amount": str(loan_amount) if loan_amount is not None else None,
                },
            )
        except IntegrationError as exc:
            return IntegrationResult(success=False, error=str(exc), data=exc.context)
        return IntegrationResult(success=True, data=body or {})

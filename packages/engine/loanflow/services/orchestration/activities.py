# This project was developed with assistance from AI tools.
"""Loan processing activities.

Each activity inspects (and occasionally updates) one loan and reports an
ActivityResult. Activities never change loan status or send notifications;
the orchestrator decides what a result means.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any

from loanflow_db import Loan, Severity

from ...core.config import settings
from ...integrations.appraisal import AppraisalClient
from ...integrations.credit_bureau import CreditBureauClient
from ...schemas.context import OperationContext
from ...store.base import LoanStore
from ..compliance.service import ComplianceService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("loan_amount", "borrower_id", "loan_type", "property_type")
REQUIRED_DOCUMENTS = (
    "application",
    "income_verification",
    "bank_statements",
    "tax_returns",
    "property_information",
)
# Rough monthly payment as a fraction of principal.
PAYMENT_FACTOR = Decimal("0.006")
CLOSING_LEAD_DAYS = 3


@dataclass
class ActivityResult:
    success: bool
    reason: str = ""
    data: dict[str, Any] = field(default_factory=dict)


class LoanProcessingActivities:
    """Default activity implementations.

    Credit pulls and appraisal orders go through vendor clients when they
    are configured; otherwise they fall back to data already on the loan.
    """

    def __init__(
        self,
        store: LoanStore,
        compliance: ComplianceService,
        *,
        credit_client: CreditBureauClient | None = None,
        appraisal_client: AppraisalClient | None = None,
    ):
        self.store = store
        self.compliance = compliance
        self.credit_client = credit_client
        self.appraisal_client = appraisal_client

    async def validate_application(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        for name in REQUIRED_FIELDS:
            if not getattr(loan, name):
                return ActivityResult(False, f"Missing required field: {name}")
        if Decimal(str(loan.loan_amount)) <= 0:
            return ActivityResult(False, "Invalid loan amount")
        return ActivityResult(True, "Application is valid")

    async def collect_documents(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        uploaded = await self.store.list_document_types(ctx.tenant_id, loan.id)
        missing = [doc for doc in REQUIRED_DOCUMENTS if doc not in uploaded]
        return ActivityResult(
            not missing,
            "All required documents received" if not missing else "Missing documents",
            {"uploaded": len(uploaded), "required": len(REQUIRED_DOCUMENTS), "missing": missing},
        )

    async def run_credit_check(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        if self.credit_client is not None:
            report = await self.credit_client.pull_credit(loan.id, loan.borrower_id)
            if not report.success:
                return ActivityResult(False, f"Credit report unavailable: {report.error}", report.data or {})
            score = report.data.get("credit_score")
        else:
            score = (loan.loan_data or {}).get("credit_score")

        if score is None:
            return ActivityResult(False, "Credit score unavailable")
        approved = int(score) >= settings.MIN_CREDIT_SCORE
        return ActivityResult(
            approved,
            "Credit check passed" if approved else "Credit score too low",
            {"credit_score": int(score)},
        )

    async def verify_income(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        monthly_income = Decimal(str((loan.loan_data or {}).get("monthly_income") or 0))
        if monthly_income <= 0:
            return ActivityResult(False, "Monthly income not provided")

        monthly_payment = Decimal(str(loan.loan_amount)) * PAYMENT_FACTOR
        dti = float(monthly_payment / monthly_income)
        verified = dti <= settings.MAX_DTI_RATIO
        return ActivityResult(
            verified,
            "Income verified" if verified else "Debt-to-income ratio too high",
            {"monthly_income": float(monthly_income), "dti_ratio": round(dti, 4)},
        )

    async def order_appraisal(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        if self.appraisal_client is not None:
            order = await self.appraisal_client.order_appraisal(
                loan.id, loan.property_type, loan.loan_amount,
            )
            if not order.success:
                return ActivityResult(False, f"Appraisal order failed: {order.error}", order.data or {})
            return ActivityResult(True, "Appraisal ordered", order.data or {})

        return ActivityResult(
            True,
            "Appraisal ordered",
            {
                "appraisal_id": f"APP-{loan.id:06d}",
                "estimated_completion": (ctx.now + timedelta(days=7)).isoformat(),
            },
        )

    async def run_compliance_check(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        violations = await self.compliance.run_all(ctx, loan.id)
        return ActivityResult(
            not violations,
            "Compliant" if not violations else "Compliance issues detected",
            {"total_violations": len(violations)},
        )

    async def underwriting_review(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        if (loan.loan_data or {}).get("underwriting_decision") == "denied":
            return ActivityResult(False, "Underwriting conditions not met")

        violations = await self.compliance.evaluate(ctx, loan)
        critical = [v for v in violations if v.severity == Severity.CRITICAL]
        if critical:
            return ActivityResult(
                False,
                "Critical compliance violations outstanding",
                {"critical": [f"{v.regulation}.{v.rule_id}" for v in critical]},
            )
        return ActivityResult(True, "Underwriting approved")

    async def final_approval(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        if (loan.loan_data or {}).get("final_approval_decision") == "denied":
            return ActivityResult(False, "Final approval withheld")
        return ActivityResult(True, "Final approval granted")

    async def prepare_closing(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        closing_date = ctx.now + timedelta(days=CLOSING_LEAD_DAYS)
        loan.closing_date = closing_date
        await self.store.save_loan(loan)
        return ActivityResult(True, "Closing documents prepared", {"closing_date": closing_date.isoformat()})

    async def process_closing(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        if loan.closing_date is None:
            return ActivityResult(False, "No closing scheduled")
        return ActivityResult(True, "Closing completed successfully", {"closing_date": ctx.now.isoformat()})

    async def fund_loan(self, ctx: OperationContext, loan: Loan) -> ActivityResult:
        loan.funding_date = ctx.now
        await self.store.save_loan(loan)
        return ActivityResult(True, "Loan funded successfully", {"funding_date": ctx.now.isoformat()})

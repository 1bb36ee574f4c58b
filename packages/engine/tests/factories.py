# This project was developed with assistance from AI tools.
"""Shared test factory functions for loans, officers, and compliance data.

Dates are anchored on Monday 2026-03-02 so business-day arithmetic in
timing tests is easy to follow.
"""

from datetime import UTC, datetime
from decimal import Decimal

from loanflow_db import Loan, LoanOfficer, LoanStatus

APPLICATION_DATE = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)  # Monday
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)

REQUIRED_DOC_TYPES = (
    "application",
    "income_verification",
    "bank_statements",
    "tax_returns",
    "property_information",
)


def compliant_compliance_data() -> dict:
    """Snapshot that satisfies every rule in the default catalog."""
    return {
        "TRID": {
            "loan_estimate": True,
            "closing_disclosure": True,
            "intent_to_proceed": True,
            "loan_estimate_date": "2026-03-04",
        },
        "ECOA": {
            "adverse_action_notice": True,
            "equal_credit_opportunity_notice": True,
        },
        "RESPA": {
            "good_faith_estimate": True,
            "hud1_settlement_statement": True,
            "servicing_disclosure": True,
            "referral_fees": False,
        },
        "GLBA": {"privacy_notice_provided": True, "opt_out_mechanism": True},
        "FCRA": {"adverse_action_notice": True, "risk_based_pricing_notice": True},
        "AML_BSA": {"suspicious_activity_reviewed": True, "customer_due_diligence": True},
    }


def make_officer(tenant_id=1, licensed=True, name="Jordan Reyes") -> LoanOfficer:
    """Create a transient LoanOfficer with SAFE Act status set."""
    return LoanOfficer(
        tenant_id=tenant_id,
        name=name,
        nmls_id="123456",
        compliance_data={"safe_act_compliant": licensed},
    )


def make_loan(
    tenant_id=1,
    loan_number="LN-0001",
    status=LoanStatus.APPLICATION,
    loan_officer_id=None,
    borrower_id=42,
    loan_type="conventional",
    property_type="single_family",
    loan_amount=Decimal("300000.00"),
    application_date=APPLICATION_DATE,
    compliance_data=None,
    loan_data=None,
) -> Loan:
    """Create a transient Loan that passes every processing stage by default.

    Args:
        tenant_id: Owning tenant.
        loan_number: Tenant-unique loan number.
        status: Starting status.
        loan_officer_id: Originating officer id (None means no officer).
        borrower_id: Borrower id.
        loan_type: Loan product type.
        property_type: Property type.
        loan_amount: Principal.
        application_date: Application timestamp.
        compliance_data: Per-regulation snapshots; defaults to fully compliant.
        loan_data: Processing data; defaults to a qualifying borrower.

    Returns:
        Loan instance with no id (the store assigns one).
    """
    return Loan(
        tenant_id=tenant_id,
        loan_number=loan_number,
        status=status,
        loan_officer_id=loan_officer_id,
        borrower_id=borrower_id,
        loan_type=loan_type,
        property_type=property_type,
        loan_amount=loan_amount,
        application_date=application_date,
        compliance_data=compliant_compliance_data() if compliance_data is None else compliance_data,
        loan_data=(
            {"credit_score": 720, "monthly_income": 10000, "application_submitted": True}
            if loan_data is None
            else loan_data
        ),
    )

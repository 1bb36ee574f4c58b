# This project was developed with assistance from AI tools.
"""Tests for the individual processing activities."""

from datetime import timedelta
from decimal import Decimal

import httpx

from loanflow.integrations.appraisal import AppraisalClient
from loanflow.integrations.credit_bureau import CreditBureauClient
from loanflow.services.orchestration.activities import LoanProcessingActivities

from .factories import NOW, make_loan


async def _no_sleep(delay):
    return None


def _vendor(cls, response: httpx.Response):
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response))
    return cls("https://vendor.test", client=http, max_attempts=1, sleep=_no_sleep)


class TestValidation:
    async def test_valid(self, store, compliance, ctx, loan):
        result = await LoanProcessingActivities(store, compliance).validate_application(ctx, loan)
        assert result.success

    async def test_non_positive_amount(self, store, compliance, ctx):
        loan = store.add_loan(make_loan(loan_amount=Decimal("-5")))
        result = await LoanProcessingActivities(store, compliance).validate_application(ctx, loan)
        assert not result.success
        assert result.reason == "Invalid loan amount"


class TestDocuments:
    async def test_reports_missing_types(self, store, compliance, ctx):
        loan = store.add_loan(make_loan())
        store.add_document(1, loan.id, "application")
        store.add_document(1, loan.id, "application")
        result = await LoanProcessingActivities(store, compliance).collect_documents(ctx, loan)
        assert not result.success
        assert result.data["uploaded"] == 1
        assert result.data["missing"] == [
            "income_verification", "bank_statements", "tax_returns", "property_information",
        ]


class TestCredit:
    async def test_loan_data_score(self, store, compliance, ctx, loan):
        result = await LoanProcessingActivities(store, compliance).run_credit_check(ctx, loan)
        assert result.success
        assert result.data == {"credit_score": 720}

    async def test_missing_score(self, store, compliance, ctx, loan):
        loan.loan_data = {}
        result = await LoanProcessingActivities(store, compliance).run_credit_check(ctx, loan)
        assert not result.success
        assert result.reason == "Credit score unavailable"

    async def test_bureau_score_used(self, store, compliance, ctx, loan):
        bureau = _vendor(CreditBureauClient, httpx.Response(200, json={"credit_score": 600}))
        activities = LoanProcessingActivities(store, compliance, credit_client=bureau)
        result = await activities.run_credit_check(ctx, loan)
        assert not result.success
        assert result.reason == "Credit score too low"

    async def test_bureau_outage(self, store, compliance, ctx, loan):
        bureau = _vendor(CreditBureauClient, httpx.Response(503, text="maintenance"))
        activities = LoanProcessingActivities(store, compliance, credit_client=bureau)
        result = await activities.run_credit_check(ctx, loan)
        assert not result.success
        assert result.reason.startswith("Credit report unavailable")


class TestIncome:
    async def test_dti_reported(self, store, compliance, ctx, loan):
        result = await LoanProcessingActivities(store, compliance).verify_income(ctx, loan)
        assert result.success
        assert result.data["dti_ratio"] == 0.18

    async def test_no_income(self, store, compliance, ctx, loan):
        loan.loan_data = {"credit_score": 700}
        result = await LoanProcessingActivities(store, compliance).verify_income(ctx, loan)
        assert not result.success


class TestAppraisal:
    async def test_simulated_order(self, store, compliance, ctx, loan):
        result = await LoanProcessingActivities(store, compliance).order_appraisal(ctx, loan)
        assert result.data["appraisal_id"] == f"APP-{loan.id:06d}"

    async def test_vendor_order(self, store, compliance, ctx, loan):
        vendor = _vendor(AppraisalClient, httpx.Response(200, json={"appraisal_id": "AMC-9"}))
        activities = LoanProcessingActivities(store, compliance, appraisal_client=vendor)
        result = await activities.order_appraisal(ctx, loan)
        assert result.success
        assert result.data == {"appraisal_id": "AMC-9"}

    async def test_vendor_non_json_reply_is_failed_order(self, store, compliance, ctx, loan):
        vendor = _vendor(AppraisalClient, httpx.Response(200, content=b"<html>ok</html>"))
        activities = LoanProcessingActivities(store, compliance, appraisal_client=vendor)
        result = await activities.order_appraisal(ctx, loan)
        assert not result.success
        assert result.reason == "Appraisal order failed: Invalid JSON"
        assert result.data == {"status": 200, "body": "<html>ok</html>"}


class TestClosing:
    async def test_prepare_then_process(self, store, compliance, ctx, loan):
        activities = LoanProcessingActivities(store, compliance)
        assert not (await activities.process_closing(ctx, loan)).success

        await activities.prepare_closing(ctx, loan)
        assert loan.closing_date == NOW + timedelta(days=3)
        assert (await activities.process_closing(ctx, loan)).success

    async def test_fund(self, store, compliance, ctx, loan):
        result = await LoanProcessingActivities(store, compliance).fund_loan(ctx, loan)
        assert result.success
        assert loan.funding_date == NOW

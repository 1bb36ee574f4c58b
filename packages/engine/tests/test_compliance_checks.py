# This project was developed with assistance from AI tools.
"""Unit tests for compliance check primitives.

No store, no mocking -- pure function tests for date handling and the
per-rule predicates.
"""

from datetime import UTC, date, datetime

import pytest

from loanflow.services.compliance.checks import (
    business_days_between,
    flag_violated,
    originator_unlicensed,
    presence_violated,
    prohibited_violated,
    timing_violated,
    to_date,
)

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


class TestToDate:
    def test_accepts_date_datetime_and_iso_strings(self):
        """Every supported input collapses to a calendar date."""
        assert to_date(date(2026, 3, 2)) == date(2026, 3, 2)
        assert to_date(datetime(2026, 3, 2, 17, 30, tzinfo=UTC)) == date(2026, 3, 2)
        assert to_date("2026-03-02") == date(2026, 3, 2)
        assert to_date("2026-03-02T09:00:00+00:00") == date(2026, 3, 2)

    def test_empty_values_are_none(self):
        assert to_date(None) is None
        assert to_date("") is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            to_date("next tuesday")
        with pytest.raises(ValueError):
            to_date(20260302)


class TestBusinessDaysBetween:
    def test_same_day_is_zero(self):
        assert business_days_between(date(2026, 3, 2), date(2026, 3, 2)) == 0

    def test_monday_to_thursday(self):
        """Exclusive of start, inclusive of end: Tue, Wed, Thu."""
        assert business_days_between(date(2026, 3, 2), date(2026, 3, 5)) == 3

    def test_weekend_is_skipped(self):
        """Friday to the following Monday is one business day."""
        assert business_days_between(date(2026, 3, 6), date(2026, 3, 9)) == 1

    def test_order_insensitive(self):
        forward = business_days_between(date(2026, 3, 2), date(2026, 3, 12))
        backward = business_days_between(date(2026, 3, 12), date(2026, 3, 2))
        assert forward == backward == 8


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


class TestPredicates:
    def test_presence(self):
        assert presence_violated({}, "loan_estimate")
        assert presence_violated({"loan_estimate": False}, "loan_estimate")
        assert presence_violated({"loan_estimate": None}, "loan_estimate")
        assert not presence_violated({"loan_estimate": True}, "loan_estimate")

    def test_prohibited_only_absent_or_null_is_clean(self):
        """Any recorded value, even falsy, counts as use of a prohibited basis."""
        assert not prohibited_violated({}, "race")
        assert not prohibited_violated({"race": None}, "race")
        assert prohibited_violated({"race": ""}, "race")
        assert prohibited_violated({"marital_status": "married"}, "marital_status")

    def test_flag(self):
        assert flag_violated({"referral_fees": True}, "referral_fees")
        assert not flag_violated({"referral_fees": False}, "referral_fees")
        assert not flag_violated({}, "referral_fees")

    def test_originator(self):
        assert originator_unlicensed(None)
        assert originator_unlicensed({})
        assert originator_unlicensed({"safe_act_compliant": False})
        assert not originator_unlicensed({"safe_act_compliant": True})


class TestTimingViolated:
    def test_within_window(self):
        """Monday application, Thursday Loan Estimate -> 3 business days, OK."""
        assert not timing_violated("2026-03-02", "2026-03-05", 3)

    def test_one_day_late(self):
        """Monday application, Friday Loan Estimate -> 4 business days, violated."""
        assert timing_violated("2026-03-02", "2026-03-06", 3)

    def test_missing_date_is_not_evaluated(self):
        assert not timing_violated(None, "2026-03-06", 3)
        assert not timing_violated("2026-03-02", None, 3)

    def test_mixed_input_types(self):
        assert timing_violated(datetime(2026, 3, 2, 23, 0, tzinfo=UTC), date(2026, 3, 9), 3)

# This project was developed with assistance from AI tools.
"""Regulation evaluators and the registry that dispatches to them.

Evaluation is pure: an EvaluationContext snapshot of the loan goes in, a
list of Violation values comes out. Persistence and audit live in
``service.py``.
"""

import abc
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...core.config import settings
from ...schemas.compliance import Violation
from . import checks
from .catalog import Regulation, Rule, RuleCatalog

logger = logging.getLogger(__name__)

# Regulations shipped in the default catalog. Each gets the catalog-driven
# evaluator unless a specialized one is registered.
DEFAULT_REGULATIONS = ("TRID", "ECOA", "RESPA", "GLBA", "FCRA", "AML_BSA", "SAFE_ACT")


@dataclass(frozen=True)
class EvaluationContext:
    """Read-only view of a loan for rule evaluation."""

    loan_id: int
    now: datetime
    compliance_data: dict[str, dict[str, Any]] = field(default_factory=dict)
    loan_attributes: dict[str, Any] = field(default_factory=dict)
    officer_compliance_data: dict[str, Any] | None = None

    def snapshot(self, regulation: str) -> dict[str, Any]:
        return self.compliance_data.get(regulation) or {}

    @classmethod
    def from_loan(cls, loan, officer, now: datetime) -> "EvaluationContext":
        """Build a context from ORM objects (officer may be None)."""
        return cls(
            loan_id=loan.id,
            compliance_data=dict(loan.compliance_data or {}),
            loan_attributes={
                "application_date": loan.application_date,
                "closing_date": loan.closing_date,
                "funding_date": loan.funding_date,
            },
            officer_compliance_data=(officer.compliance_data or {}) if officer is not None else None,
            now=now,
        )


# ---------------------------------------------------------------------------
# Check handlers (rule, context, snapshot) -> violated
# ---------------------------------------------------------------------------

CheckHandler = Callable[[Rule, EvaluationContext, dict], bool]


def _check_presence(rule: Rule, context: EvaluationContext, snapshot: dict) -> bool:
    return checks.presence_violated(snapshot, rule.field)


def _check_prohibited(rule: Rule, context: EvaluationContext, snapshot: dict) -> bool:
    return checks.prohibited_violated(snapshot, rule.field)


def _check_timing(rule: Rule, context: EvaluationContext, snapshot: dict) -> bool:
    reference_field = rule.reference_field or "application_date"
    if reference_field in context.loan_attributes:
        reference = context.loan_attributes[reference_field]
    else:
        reference = snapshot.get(reference_field)
    threshold = rule.threshold_days
    if threshold is None:
        threshold = settings.TRID_DISCLOSURE_WINDOW_DAYS
    try:
        return checks.timing_violated(reference, snapshot.get(rule.field), threshold)
    except ValueError:
        logger.warning(
            "Unreadable date for rule %s on loan %s; timing not evaluated", rule.id, context.loan_id,
        )
        return False


def _condition_flag_set(rule: Rule, context: EvaluationContext, snapshot: dict) -> bool:
    return checks.flag_violated(snapshot, rule.field)


def _condition_originator_licensed(rule: Rule, context: EvaluationContext, snapshot: dict) -> bool:
    return checks.originator_unlicensed(context.officer_compliance_data)


COMPUTED_CONDITIONS: dict[str, CheckHandler] = {
    "flag_set": _condition_flag_set,
    "originator_licensed": _condition_originator_licensed,
}


def _check_computed(rule: Rule, context: EvaluationContext, snapshot: dict) -> bool:
    handler = COMPUTED_CONDITIONS.get(rule.condition)
    if handler is None:
        logger.warning("Unknown computed condition %r on rule %s; skipping", rule.condition, rule.id)
        return False
    return handler(rule, context, snapshot)


CHECK_HANDLERS: dict[str, CheckHandler] = {
    "presence": _check_presence,
    "prohibited": _check_prohibited,
    "timing": _check_timing,
    "computed": _check_computed,
}


# ---------------------------------------------------------------------------
# Evaluators
# ---------------------------------------------------------------------------


class RegulationEvaluator(abc.ABC):
    """Strategy that evaluates one regulation for a loan."""

    @abc.abstractmethod
    def evaluate(self, context: EvaluationContext, regulation: Regulation) -> list[Violation]: ...


class CatalogRegulationEvaluator(RegulationEvaluator):
    """Applies a regulation's catalog rules in declaration order."""

    def evaluate(self, context: EvaluationContext, regulation: Regulation) -> list[Violation]:
        snapshot = context.snapshot(regulation.code)
        violations: list[Violation] = []
        for rule in regulation.rules:
            if CHECK_HANDLERS[rule.check](rule, context, snapshot):
                violations.append(_make_violation(context, regulation.code, rule))
        return violations


def _make_violation(context: EvaluationContext, code: str, rule: Rule) -> Violation:
    return Violation(
        regulation=code,
        rule_id=rule.id,
        type=rule.violation_type,
        message=rule.message,
        severity=rule.severity,
        detected_at=context.now,
        loan_id=context.loan_id,
        field=rule.field,
    )


class ComplianceEvaluator:
    """
    Dispatches each regulation to its registered evaluator.

    Regulations without a registered evaluator use the catalog-driven one.
    """

    def __init__(self):
        self._default = CatalogRegulationEvaluator()
        self._evaluators: dict[str, RegulationEvaluator] = {}
        self._register_default_evaluators()

    def _register_default_evaluators(self) -> None:
        for code in DEFAULT_REGULATIONS:
            self._evaluators[code] = self._default

    def register_evaluator(self, code: str, evaluator: RegulationEvaluator) -> None:
        self._evaluators[code] = evaluator

    def get_evaluator(self, code: str) -> RegulationEvaluator:
        return self._evaluators.get(code, self._default)

    def evaluate(self, context: EvaluationContext, regulation: Regulation) -> list[Violation]:
        """Violations for one regulation, in rule order."""
        return self.get_evaluator(regulation.code).evaluate(context, regulation)

    def evaluate_all(self, context: EvaluationContext, catalog: RuleCatalog) -> list[Violation]:
        """Violations for every catalog regulation, in catalog then rule order."""
        violations: list[Violation] = []
        for regulation in catalog.list_regulations():
            violations.extend(self.evaluate(context, regulation))
        return violations

# This project was developed with assistance from AI tools.
"""Compliance service: runs the evaluator over a loan and audits the outcome.

Every full check writes, per violation, one violation entry followed by one
remediation entry, then exactly one check-completed entry. Non-compliance is
returned as data; exceptions are reserved for bad input and missing loans.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any

from loanflow_db import AuditType, ComplianceAuditEntry, EntityType, Loan, Severity

from ...errors import NotFoundError, ValidationError
from ...schemas.compliance import ComplianceRequirement, ComplianceSummary, Violation
from ...schemas.context import OperationContext
from ...store.base import LoanStore
from ..audit import AuditRecorder
from ..locking import LoanLocks
from .catalog import RuleCatalog, get_catalog
from .checks import to_date
from .evaluator import ComplianceEvaluator, EvaluationContext

logger = logging.getLogger(__name__)


def build_summary(loan_id: int, violations: list[Violation], catalog: RuleCatalog) -> ComplianceSummary:
    """Aggregate violations into a summary.

    An empty catalog cannot vouch for anything, so the result is reported
    compliant but ``indeterminate``.
    """
    by_regulation: dict[str, list[Violation]] = defaultdict(list)
    for violation in violations:
        by_regulation[violation.regulation].append(violation)

    if catalog.is_empty:
        status = "indeterminate"
    elif violations:
        status = "non_compliant"
    else:
        status = "compliant"

    return ComplianceSummary(
        loan_id=loan_id,
        is_compliant=not violations,
        status=status,
        total_violations=len(violations),
        critical_violations=sum(1 for v in violations if v.severity == Severity.CRITICAL),
        high_violations=sum(1 for v in violations if v.severity == Severity.HIGH),
        violations_by_regulation=dict(by_regulation),
        regulations_checked=[r.code for r in catalog.list_regulations()],
        catalog_loaded=not catalog.is_empty,
    )


async def compliance_verified(store: LoanStore, tenant_id: int, loan_id: int) -> bool:
    """True when the loan's most recent full check found no violations.

    A check run against an empty catalog does not count as verification.
    """
    entry = await store.latest_audit_entry(
        tenant_id,
        entity_type=EntityType.LOAN,
        entity_id=loan_id,
        audit_type=AuditType.COMPLIANCE_CHECK.value,
    )
    if entry is None:
        return False
    metadata = entry.entry_metadata or {}
    return metadata.get("total_violations") == 0 and metadata.get("catalog_loaded", False)


def _to_json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


class ComplianceService:
    """Runs compliance checks for loans and manages their compliance data."""

    def __init__(
        self,
        store: LoanStore,
        *,
        catalog: RuleCatalog | None = None,
        evaluator: ComplianceEvaluator | None = None,
        audit: AuditRecorder | None = None,
        locks: LoanLocks | None = None,
    ):
        self.store = store
        self._catalog = catalog
        self.evaluator = evaluator or ComplianceEvaluator()
        self.audit = audit or AuditRecorder(store)
        self.locks = locks or LoanLocks()

    @property
    def catalog(self) -> RuleCatalog:
        """Injected catalog, or the cached file-backed one."""
        return self._catalog if self._catalog is not None else get_catalog()

    async def _require_loan(self, ctx: OperationContext, loan_id: int) -> Loan:
        loan = await self.store.load_loan(ctx.tenant_id, loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found for tenant {ctx.tenant_id}")
        return loan

    async def evaluate(
        self, ctx: OperationContext, loan: Loan, catalog: RuleCatalog | None = None,
    ) -> list[Violation]:
        """Evaluate every catalog regulation for a loan without auditing."""
        catalog = catalog or self.catalog
        officer = None
        if loan.loan_officer_id is not None:
            officer = await self.store.find_officer(ctx.tenant_id, loan.loan_officer_id)
        context = EvaluationContext.from_loan(loan, officer, ctx.now)
        return self.evaluator.evaluate_all(context, catalog)

    # ------------------------------------------------------------------
    # Full check
    # ------------------------------------------------------------------

    async def run_all(self, ctx: OperationContext, loan_id: int) -> list[Violation]:
        """Run every regulation for a loan and record the audit trail."""
        return await self._run_all(ctx, loan_id, self.catalog)

    async def _run_all(
        self, ctx: OperationContext, loan_id: int, catalog: RuleCatalog,
    ) -> list[Violation]:
        async with self.locks.hold(ctx.tenant_id, loan_id):
            await self.store.lock_loan(ctx.tenant_id, loan_id)
            loan = await self._require_loan(ctx, loan_id)
            if catalog.is_empty:
                logger.warning("Compliance check for loan %s ran with an empty rule catalog", loan_id)

            violations = await self.evaluate(ctx, loan, catalog)
            for violation in violations:
                await self._record_violation(ctx, violation, catalog)

            await self.audit.record(
                ctx,
                audit_type=AuditType.COMPLIANCE_CHECK,
                entity_type=EntityType.LOAN,
                entity_id=loan.id,
                action="compliance_check_completed",
                new_values={"violations": [v.model_dump(mode="json") for v in violations]},
                metadata={
                    "total_violations": len(violations),
                    "regulations_checked": [r.code for r in catalog.list_regulations()],
                    "catalog_loaded": not catalog.is_empty,
                },
            )
            await self.store.commit()

        logger.info("Compliance check for loan %s: %d violation(s)", loan_id, len(violations))
        return violations

    async def _record_violation(
        self, ctx: OperationContext, violation: Violation, catalog: RuleCatalog,
    ) -> None:
        payload = violation.model_dump(mode="json")
        logger.warning(
            "Compliance violation detected: loan=%s regulation=%s rule=%s severity=%s",
            violation.loan_id, violation.regulation, violation.rule_id, violation.severity.value,
        )
        await self.audit.record(
            ctx,
            audit_type=AuditType.COMPLIANCE_VIOLATION,
            entity_type=EntityType.LOAN,
            entity_id=violation.loan_id,
            action="violation_detected",
            metadata=payload,
        )
        remediation = catalog.remediation_for(violation.regulation, violation.rule_id)
        await self.audit.record(
            ctx,
            audit_type=AuditType.COMPLIANCE_REMEDIATION,
            entity_type=EntityType.LOAN,
            entity_id=violation.loan_id,
            action="remediation_triggered",
            metadata={**payload, "remediation": remediation},
        )

    async def summarize(self, ctx: OperationContext, loan_id: int) -> ComplianceSummary:
        """Run a full (audited) check and aggregate the result."""
        catalog = self.catalog
        violations = await self._run_all(ctx, loan_id, catalog)
        return build_summary(loan_id, violations, catalog)

    # ------------------------------------------------------------------
    # Remediation and data maintenance
    # ------------------------------------------------------------------

    async def trigger_remediation(
        self,
        ctx: OperationContext,
        entity_type: EntityType,
        entity_id: int,
        regulation: str,
        rule_id: str,
    ) -> str | None:
        """Record a manually requested remediation and return its guidance."""
        remediation = self.catalog.remediation_for(regulation, rule_id)
        await self.audit.record(
            ctx,
            audit_type=AuditType.COMPLIANCE_REMEDIATION,
            entity_type=entity_type,
            entity_id=entity_id,
            action="remediation_triggered",
            new_values={"regulation": regulation, "rule_id": rule_id, "remediation": remediation},
            metadata={"manual": True},
        )
        await self.store.commit()
        logger.info(
            "Manual remediation triggered: %s %s regulation=%s rule=%s",
            EntityType(entity_type).value, entity_id, regulation, rule_id,
        )
        return remediation

    def _validate_snapshot(self, regulation: str, data: Any) -> dict[str, Any]:
        if not isinstance(regulation, str) or not regulation:
            raise ValidationError("Regulation code is required")
        if not isinstance(data, dict):
            raise ValidationError("Compliance data must be a mapping of field to value")

        catalog = self.catalog
        if not catalog.is_empty and catalog.get_regulation(regulation) is None:
            raise ValidationError(f"Unknown regulation {regulation}")

        date_fields = {
            rule.field for rule in catalog.rules_for(regulation) if rule.check == "timing"
        }
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            if key in date_fields and value is not None:
                try:
                    parsed = to_date(value)
                except (TypeError, ValueError) as exc:
                    raise ValidationError(f"{regulation}.{key} must be a date: {value!r}") from exc
                normalized[key] = parsed.isoformat() if parsed else None
            else:
                normalized[key] = _to_json_value(value)
        return normalized

    async def update_compliance_data(
        self,
        ctx: OperationContext,
        loan_id: int,
        regulation: str,
        data: dict[str, Any],
    ) -> Loan:
        """Replace one regulation's snapshot on a loan.

        Input is validated before anything is touched; the change is audited
        with old and new values.
        """
        snapshot = self._validate_snapshot(regulation, data)

        async with self.locks.hold(ctx.tenant_id, loan_id):
            await self.store.lock_loan(ctx.tenant_id, loan_id)
            loan = await self._require_loan(ctx, loan_id)

            current = dict(loan.compliance_data or {})
            previous = current.get(regulation)
            current[regulation] = snapshot
            # Reassign so the JSON column is flagged dirty.
            loan.compliance_data = current
            await self.store.save_loan(loan)

            await self.audit.record(
                ctx,
                audit_type=AuditType.COMPLIANCE_DATA_UPDATED,
                entity_type=EntityType.LOAN,
                entity_id=loan.id,
                action="compliance_data_updated",
                old_values={regulation: previous},
                new_values={regulation: snapshot},
                metadata={"regulation": regulation},
            )
            await self.store.commit()
        return loan

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_violations(self, ctx: OperationContext, days: int = 30) -> list[ComplianceAuditEntry]:
        """Violation entries recorded for the tenant in the last ``days`` days."""
        if days < 0:
            raise ValidationError("days must be non-negative")
        return await self.store.list_audit_entries(
            ctx.tenant_id,
            audit_type=AuditType.COMPLIANCE_VIOLATION.value,
            since=ctx.now - timedelta(days=days),
        )

    async def get_audit_trail(
        self, ctx: OperationContext, entity_type: EntityType, entity_id: int,
    ) -> list[ComplianceAuditEntry]:
        return await self.store.list_audit_entries(
            ctx.tenant_id, entity_type=entity_type, entity_id=entity_id,
        )

    def get_compliance_requirements(self, regulation: str) -> list[ComplianceRequirement]:
        return [
            ComplianceRequirement(
                rule_id=rule.id,
                description=rule.description,
                field=rule.field,
                severity=rule.severity,
                remediation=rule.remediation,
            )
            for rule in self.catalog.rules_for(regulation)
        ]

    async def verify_audit_chain(self, ctx: OperationContext) -> dict:
        return await self.audit.verify_chain(ctx.tenant_id)

# This project was developed with assistance from AI tools.
"""Operator command line for the loanflow engine.

Usage:
  loanflow catalog [--regulation TRID]
  loanflow check 42                 # audited compliance check + summary
  loanflow init-workflow 42
  loanflow workflow 42              # workflow progress summary
  loanflow process 42               # run the processing stages
  loanflow resume 42
  loanflow verify-audit

Global options --tenant and --actor set the operation context.
"""

import argparse
import asyncio
import json
import logging
import sys
from contextlib import AsyncExitStack

from loanflow_db import get_session_factory
from sqlalchemy.ext.asyncio import AsyncSession

from .core.config import settings
from .core.logging import configure_logging
from .errors import LoanflowError
from .integrations.appraisal import AppraisalClient
from .integrations.credit_bureau import CreditBureauClient
from .schemas.context import OperationContext
from .services.audit import AuditRecorder
from .services.compliance.catalog import get_catalog
from .services.compliance.service import ComplianceService
from .services.locking import LoanLocks
from .services.orchestration.activities import LoanProcessingActivities
from .services.orchestration.orchestrator import LoanProcessingOrchestrator
from .services.workflow import WorkflowEngine
from .store.sql import SqlLoanStore

logger = logging.getLogger(__name__)


class Services:
    """Services sharing one session, one audit chain, and one lock table."""

    def __init__(self, session: AsyncSession, *, credit_client=None, appraisal_client=None):
        self.store = SqlLoanStore(session)
        locks = LoanLocks()
        audit = AuditRecorder(self.store)
        self.compliance = ComplianceService(self.store, audit=audit, locks=locks)
        self.workflow = WorkflowEngine(self.store, audit=audit, locks=locks)
        self.orchestrator = LoanProcessingOrchestrator(
            self.store,
            activities=LoanProcessingActivities(
                self.store,
                self.compliance,
                credit_client=credit_client,
                appraisal_client=appraisal_client,
            ),
            compliance=self.compliance,
            workflow=self.workflow,
            locks=locks,
        )


def _print(payload) -> None:
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump(mode="json")
    print(json.dumps(payload, indent=2, default=str))


def _catalog(args) -> int:
    catalog = get_catalog()
    if catalog.load_error is not None:
        print(f"catalog unavailable: {catalog.load_error}", file=sys.stderr)
        return 1
    for regulation in catalog.list_regulations():
        if args.regulation and regulation.code != args.regulation:
            continue
        print(f"{regulation.code}  {regulation.name}")
        for rule in regulation.rules:
            print(f"  {rule.id:<36} {rule.check:<10} {rule.severity.value}")
    return 0


async def _run(args, session_factory) -> int:
    ctx = OperationContext(tenant_id=args.tenant, actor_id=args.actor)
    async with AsyncExitStack() as stack:
        credit_client = appraisal_client = None
        if settings.CREDIT_BUREAU_URL:
            credit_client = await stack.enter_async_context(CreditBureauClient(settings.CREDIT_BUREAU_URL))
        if settings.APPRAISAL_URL:
            appraisal_client = await stack.enter_async_context(AppraisalClient(settings.APPRAISAL_URL))

        session = await stack.enter_async_context(session_factory())
        services = Services(session, credit_client=credit_client, appraisal_client=appraisal_client)

        if args.command == "check":
            _print(await services.compliance.summarize(ctx, args.loan_id))
        elif args.command == "init-workflow":
            steps = await services.workflow.initialize_workflow(ctx, args.loan_id)
            _print([{"order": s.step_order, "name": s.step_name, "due": s.due_date} for s in steps])
        elif args.command == "workflow":
            _print(await services.workflow.get_workflow_summary(ctx, args.loan_id))
        elif args.command == "process":
            _print(await services.orchestrator.process_loan(ctx, args.loan_id))
        elif args.command == "resume":
            _print(await services.orchestrator.resume(ctx, args.loan_id))
        elif args.command == "verify-audit":
            result = await services.compliance.verify_audit_chain(ctx)
            _print(result)
            return 0 if result["status"] == "OK" else 2
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loanflow", description="Loan compliance and processing operations")
    parser.add_argument("--tenant", type=int, default=1, help="Tenant id (default: 1)")
    parser.add_argument("--actor", default=None, help="Acting user recorded on audit entries")
    parser.add_argument("--verbose", "-v", action="store_true")

    commands = parser.add_subparsers(dest="command", required=True)
    catalog = commands.add_parser("catalog", help="List the regulation catalog")
    catalog.add_argument("--regulation", default=None)
    for name, help_text in (
        ("check", "Run an audited compliance check"),
        ("init-workflow", "Create the workflow steps for a loan"),
        ("workflow", "Show workflow progress"),
        ("process", "Run loan processing"),
        ("resume", "Resume an interrupted processing run"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("loan_id", type=int)
    commands.add_parser("verify-audit", help="Verify the tenant's audit hash chain")
    return parser


def main(argv: list[str] | None = None, session_factory=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else None)

    if args.command == "catalog":
        return _catalog(args)
    try:
        return asyncio.run(_run(args, session_factory or get_session_factory()))
    except LoanflowError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

# This project was developed with assistance from AI tools.
"""Loan processing orchestrator.

Runs the processing stages for a loan strictly in order, translating each
activity result into status changes and notifications:

- gating stages deny the loan on failure and end the run;
- non-gating stages warn on failure and continue;
- a failed closing ends the run as ``closed`` without denying the loan;
- any unexpected exception denies the loan.

Progress is recorded on a ProcessingRun row after every stage so an
interrupted run can be resumed from the stage it was about to execute.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass

from loanflow_db import AuditType, EntityType, Loan, LoanStatus, ProcessingRun, ProcessingRunStatus, WorkflowEvent

from ...core.config import settings
from ...errors import InvalidTransitionError, NotFoundError, ProcessingCancelledError, ValidationError
from ...schemas.context import OperationContext
from ...schemas.orchestration import ProcessingResult
from ...store.base import LoanStore
from ..audit import AuditRecorder
from ..compliance.service import ComplianceService
from ..events import EventPublisher, LogEventPublisher
from ..locking import LoanLocks
from ..notifications import LogNotificationSink, NotificationSeverity, NotificationSink
from ..workflow import WorkflowEngine
from .activities import ActivityResult, LoanProcessingActivities

logger = logging.getLogger(__name__)


class OnFailure(str, enum.Enum):
    DENY = "deny"
    WARN = "warn"
    CLOSE = "close"


@dataclass(frozen=True)
class Stage:
    name: str
    activity: str
    on_failure: OnFailure
    failure_message: str
    status_before: LoanStatus | None = None
    status_after: LoanStatus | None = None
    success_severity: NotificationSeverity | None = None
    success_message: str | None = None


STAGES: tuple[Stage, ...] = (
    Stage(
        "validate", "validate_application", OnFailure.DENY, "Application validation failed",
        status_after=LoanStatus.PROCESSING,
        success_severity=NotificationSeverity.INFO,
        success_message="Application validated, processing started",
    ),
    Stage("collect_documents", "collect_documents", OnFailure.WARN, "Document collection incomplete"),
    Stage("credit_check", "run_credit_check", OnFailure.DENY, "Credit check failed"),
    Stage("verify_income", "verify_income", OnFailure.DENY, "Income verification failed"),
    Stage("order_appraisal", "order_appraisal", OnFailure.WARN, "Appraisal could not be ordered"),
    Stage("compliance_check", "run_compliance_check", OnFailure.WARN, "Compliance issues detected"),
    Stage(
        "underwriting", "underwriting_review", OnFailure.DENY, "Underwriting review failed",
        status_before=LoanStatus.UNDERWRITING,
    ),
    Stage(
        "final_approval", "final_approval", OnFailure.DENY, "Final approval failed",
        status_after=LoanStatus.APPROVED,
        success_severity=NotificationSeverity.SUCCESS,
        success_message="Loan approved",
    ),
    Stage("prepare_closing", "prepare_closing", OnFailure.WARN, "Closing preparation incomplete"),
    Stage(
        "process_closing", "process_closing", OnFailure.CLOSE, "Closing failed",
        status_after=LoanStatus.CLOSED,
        success_severity=NotificationSeverity.SUCCESS,
        success_message="Closing completed",
    ),
    Stage(
        "fund", "fund_loan", OnFailure.CLOSE, "",
        status_after=LoanStatus.FUNDED,
        success_severity=NotificationSeverity.SUCCESS,
        success_message="Loan funded successfully",
    ),
)

STAGE_NAMES = tuple(stage.name for stage in STAGES)


class CancellationToken:
    """Cooperative cancellation flag checked between stages."""

    def __init__(self):
        self._cancelled = False
        self.reason: str | None = None

    def cancel(self, reason: str = "Processing cancelled") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ProcessingCancelledError(self.reason or "Processing cancelled")


class LoanProcessingOrchestrator:
    """Drives a loan through the processing stages."""

    def __init__(
        self,
        store: LoanStore,
        *,
        activities: LoanProcessingActivities | None = None,
        compliance: ComplianceService | None = None,
        workflow: WorkflowEngine | None = None,
        notifier: NotificationSink | None = None,
        publisher: EventPublisher | None = None,
        locks: LoanLocks | None = None,
        activity_timeout: float | None = None,
    ):
        self.store = store
        self.locks = locks or LoanLocks()
        self.audit = AuditRecorder(store)
        self.compliance = compliance or ComplianceService(store, audit=self.audit, locks=self.locks)
        self.workflow = workflow or WorkflowEngine(store, audit=self.audit, locks=self.locks)
        self.activities = activities or LoanProcessingActivities(store, self.compliance)
        self.notifier = notifier or LogNotificationSink()
        self.publisher = publisher or LogEventPublisher()
        self.activity_timeout = (
            activity_timeout if activity_timeout is not None else settings.ACTIVITY_TIMEOUT_SECONDS
        )

    async def _require_loan(self, ctx: OperationContext, loan_id: int) -> Loan:
        loan = await self.store.load_loan(ctx.tenant_id, loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found for tenant {ctx.tenant_id}")
        return loan

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process_loan(
        self,
        ctx: OperationContext,
        loan_id: int,
        cancellation: CancellationToken | None = None,
    ) -> ProcessingResult:
        """Start a new processing run from the first stage."""
        await self._require_loan(ctx, loan_id)
        existing = await self.store.load_processing_run(ctx.tenant_id, loan_id)
        if existing is not None and ProcessingRunStatus(existing.status) == ProcessingRunStatus.RUNNING:
            raise ValidationError(f"Loan {loan_id} already has a running processing run; resume it instead")

        run = ProcessingRun(
            tenant_id=ctx.tenant_id,
            loan_id=loan_id,
            status=ProcessingRunStatus.RUNNING,
            current_stage=STAGE_NAMES[0],
            started_at=ctx.now,
        )
        await self.store.save_processing_run(run)
        await self.store.commit()
        logger.info("Processing run %s started for loan %s", run.id, loan_id)
        return await self._execute(ctx, run, cancellation or CancellationToken())

    async def resume(
        self,
        ctx: OperationContext,
        loan_id: int,
        cancellation: CancellationToken | None = None,
    ) -> ProcessingResult:
        """Continue the latest unfinished run from its recorded stage."""
        run = await self.store.load_processing_run(ctx.tenant_id, loan_id)
        if run is None:
            raise NotFoundError(f"No processing run for loan {loan_id}")
        status = ProcessingRunStatus(run.status)
        if status not in (ProcessingRunStatus.RUNNING, ProcessingRunStatus.CANCELLED):
            raise ValidationError(f"Processing run {run.id} is {status.value}; nothing to resume")
        if run.current_stage not in STAGE_NAMES:
            raise ValidationError(f"Processing run {run.id} has unknown stage {run.current_stage!r}")

        run.status = ProcessingRunStatus.RUNNING
        await self.store.save_processing_run(run)
        await self.store.commit()
        logger.info("Resuming processing run %s for loan %s at %s", run.id, loan_id, run.current_stage)
        return await self._execute(ctx, run, cancellation or CancellationToken())

    # ------------------------------------------------------------------
    # Stage loop
    # ------------------------------------------------------------------

    async def _execute(
        self, ctx: OperationContext, run: ProcessingRun, token: CancellationToken,
    ) -> ProcessingResult:
        loan_id, run_id = run.loan_id, run.id
        start = STAGE_NAMES.index(run.current_stage)
        completed: list[str] = []
        outcome = LoanStatus.CLOSED.value
        reason: str | None = None

        try:
            for index in range(start, len(STAGES)):
                stage = STAGES[index]
                await self._checkpoint(run, stage.name)
                token.raise_if_cancelled()

                async with self.locks.hold(ctx.tenant_id, loan_id):
                    result = await self._run_stage(ctx, loan_id, stage)
                    completed.append(stage.name)
                    stop, stage_outcome = await self._apply_result(ctx, loan_id, stage, result)

                if stop:
                    outcome, reason = stage_outcome, result.reason
                    break
        except ProcessingCancelledError as exc:
            run.status = ProcessingRunStatus.CANCELLED
            run.outcome = "cancelled"
            await self.store.save_processing_run(run)
            await self.store.commit()
            await self.notifier.notify(loan_id, NotificationSeverity.INFO, str(exc))
            logger.info("Processing run %s for loan %s cancelled before %s", run_id, loan_id, run.current_stage)
            return ProcessingResult(
                loan_id=loan_id, run_id=run_id, outcome="cancelled",
                stages_completed=completed, reason=str(exc),
            )
        except Exception as exc:  # noqa: BLE001 -- any failure denies the loan
            logger.exception("Processing failed for loan %s at stage %s", loan_id, run.current_stage)
            await self.store.rollback()
            status = await self._deny(ctx, loan_id, f"Processing failed: {exc}")
            outcome = status.value
            run.status = ProcessingRunStatus.FAILED
            run.outcome = outcome
            run.error = str(exc)
            run.finished_at = ctx.now
            await self.store.save_processing_run(run)
            await self.store.commit()
            return ProcessingResult(
                loan_id=loan_id, run_id=run_id, outcome=outcome,
                stages_completed=completed, reason=str(exc),
            )

        run.status = ProcessingRunStatus.COMPLETED
        run.outcome = outcome
        run.finished_at = ctx.now
        await self.store.save_processing_run(run)
        await self.store.commit()
        logger.info("Processing run %s for loan %s finished: %s", run_id, loan_id, outcome)
        return ProcessingResult(
            loan_id=loan_id, run_id=run_id, outcome=outcome,
            stages_completed=completed, reason=reason,
        )

    async def _checkpoint(self, run: ProcessingRun, stage_name: str) -> None:
        run.current_stage = stage_name
        await self.store.save_processing_run(run)
        await self.store.commit()

    async def _run_stage(self, ctx: OperationContext, loan_id: int, stage: Stage) -> ActivityResult:
        if stage.status_before is not None:
            await self.update_status(ctx, loan_id, stage.status_before, f"Entering {stage.name}")

        loan = await self._require_loan(ctx, loan_id)
        activity = getattr(self.activities, stage.activity)
        try:
            async with asyncio.timeout(self.activity_timeout):
                result = await activity(ctx, loan)
        except TimeoutError:
            logger.warning("Activity %s timed out for loan %s", stage.activity, loan_id)
            return ActivityResult(False, f"{stage.activity} timed out after {self.activity_timeout}s")
        await self.store.commit()
        return result

    async def _apply_result(
        self, ctx: OperationContext, loan_id: int, stage: Stage, result: ActivityResult,
    ) -> tuple[bool, str]:
        """Apply one stage result. Returns (stop, outcome)."""
        if result.success:
            if stage.status_after is not None:
                await self.update_status(ctx, loan_id, stage.status_after, result.reason or stage.name)
            if stage.success_message:
                await self.notifier.notify(loan_id, stage.success_severity, stage.success_message)
            if stage.status_after == LoanStatus.FUNDED:
                return True, LoanStatus.FUNDED.value
            return False, ""

        if stage.on_failure == OnFailure.DENY:
            logger.error("Gating stage %s failed for loan %s: %s", stage.name, loan_id, result.reason)
            status = await self._deny(ctx, loan_id, stage.failure_message)
            return True, status.value

        if stage.on_failure == OnFailure.WARN:
            logger.warning("Stage %s failed for loan %s: %s", stage.name, loan_id, result.reason)
            await self.notifier.notify(loan_id, NotificationSeverity.WARNING, stage.failure_message)
            return False, ""

        logger.warning("Stage %s failed for loan %s: %s", stage.name, loan_id, result.reason)
        if stage.failure_message:
            await self.notifier.notify(loan_id, NotificationSeverity.ERROR, stage.failure_message)
        return True, LoanStatus.CLOSED.value

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def update_status(
        self, ctx: OperationContext, loan_id: int, status: LoanStatus, reason: str,
    ) -> Loan:
        """Move a loan to ``status`` and fan the change out.

        Validates the transition, saves the loan, audits the change,
        completes the workflow steps the status implies, publishes the
        state-change event, and records a WorkflowEvent. Re-applying the
        current status is a no-op.
        """
        status = LoanStatus(status)
        async with self.locks.hold(ctx.tenant_id, loan_id):
            await self.store.lock_loan(ctx.tenant_id, loan_id)
            loan = await self._require_loan(ctx, loan_id)
            current = LoanStatus(loan.status)
            if current == status:
                return loan
            if not current.can_transition_to(status):
                raise InvalidTransitionError(
                    f"Cannot transition loan {loan_id} from '{current.value}' to '{status.value}'"
                )

            loan.status = status
            await self.store.save_loan(loan)
            await self.audit.record(
                ctx,
                audit_type=AuditType.LOAN_STATUS_CHANGED,
                entity_type=EntityType.LOAN,
                entity_id=loan.id,
                action="status_changed",
                old_values={"status": current.value},
                new_values={"status": status.value},
                metadata={"reason": reason, "source": "loan_workflow"},
            )
            await self.workflow.advance_for_status(ctx, loan_id, status)
            await self.store.record_workflow_event(
                WorkflowEvent(
                    tenant_id=ctx.tenant_id,
                    loan_id=loan_id,
                    status=status.value,
                    event_metadata={"source": "loan_workflow"},
                )
            )
            await self.store.commit()

        await self.publisher.publish(
            settings.LOAN_STATE_TOPIC,
            {"loan_id": loan_id, "status": status.value},
            key=str(loan_id),
        )
        logger.info("Loan %s status %s -> %s (%s)", loan_id, current.value, status.value, reason)
        return loan

    async def _deny(self, ctx: OperationContext, loan_id: int, message: str) -> LoanStatus:
        """Deny the loan and send an error notification.

        Returns the loan's status afterwards, which stays unchanged when the
        loan is already past the point where it can be denied.
        """
        try:
            loan = await self.update_status(ctx, loan_id, LoanStatus.DENIED, message)
        except InvalidTransitionError as exc:
            logger.error("Could not deny loan %s: %s", loan_id, exc)
            loan = await self._require_loan(ctx, loan_id)
        await self.notifier.notify(loan_id, NotificationSeverity.ERROR, message)
        return LoanStatus(loan.status)

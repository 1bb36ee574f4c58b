# This project was developed with assistance from AI tools.
"""Tests for the audit recorder hash chain and per-loan locking."""

import asyncio
from datetime import timedelta

from loanflow.schemas.context import OperationContext
from loanflow.services.audit import GENESIS_HASH, AuditRecorder, _compute_hash
from loanflow.services.locking import LoanLocks
from loanflow_db import AuditType, EntityType

from .factories import NOW

# ---------------------------------------------------------------------------
# Hash chain
# ---------------------------------------------------------------------------


async def _record(recorder, ctx, entity_id=1, entity_type=EntityType.LOAN, **kwargs):
    return await recorder.record(
        ctx,
        audit_type=AuditType.COMPLIANCE_CHECK,
        entity_type=entity_type,
        entity_id=entity_id,
        action="compliance_check_completed",
        **kwargs,
    )


class TestAuditRecorder:
    async def test_first_entry_links_to_genesis(self, store, ctx):
        entry = await _record(AuditRecorder(store), ctx)
        assert entry.prev_hash == GENESIS_HASH
        assert entry.sequence == 1
        assert entry.audit_type == "compliance_check"

    async def test_entries_chain_across_entities(self, store, ctx):
        recorder = AuditRecorder(store)
        first = await _record(recorder, ctx, entity_id=1)
        second = await _record(recorder, ctx, entity_id=2, entity_type=EntityType.WORKFLOW_STEP)
        assert second.prev_hash == _compute_hash(first)
        assert second.sequence == 1

    async def test_tenants_have_separate_chains(self, store, ctx):
        recorder = AuditRecorder(store)
        await _record(recorder, ctx)
        other = await _record(recorder, OperationContext(tenant_id=2, now=NOW))
        assert other.prev_hash == GENESIS_HASH

    async def test_hash_covers_payload(self, store, ctx):
        entry = await _record(AuditRecorder(store), ctx, new_values={"a": 1})
        original = _compute_hash(entry)
        entry.new_values = {"a": 2}
        assert _compute_hash(entry) != original

    async def test_naive_timestamp_hashes_as_utc(self, store, ctx):
        entry = await _record(AuditRecorder(store), ctx)
        aware = _compute_hash(entry)
        entry.timestamp = entry.timestamp.replace(tzinfo=None)
        assert _compute_hash(entry) == aware

    async def test_verify_empty_chain(self, store):
        assert await AuditRecorder(store).verify_chain(1) == {"status": "OK", "entries_checked": 0}

    async def test_verify_detects_reordered_timestamp(self, store, ctx):
        recorder = AuditRecorder(store)
        for entity_id in (1, 2, 3):
            await _record(recorder, ctx, entity_id=entity_id)
        store.audit_entries[0].timestamp = NOW - timedelta(days=1)
        result = await recorder.verify_chain(1)
        assert result == {
            "status": "TAMPERED",
            "first_break_id": store.audit_entries[1].id,
            "entries_checked": 2,
        }


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------


class TestLoanLocks:
    async def test_reentrant_within_task(self):
        locks = LoanLocks()
        async with locks.hold(1, 5):
            async with locks.hold(1, 5):
                assert locks.is_locked(1, 5)
        assert not locks.is_locked(1, 5)

    async def test_serializes_tasks_on_same_loan(self):
        locks = LoanLocks()
        order: list[str] = []

        async def worker(name):
            async with locks.hold(1, 5):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-start", "a-end", "b-start", "b-end"]

    async def test_different_loans_do_not_block(self):
        locks = LoanLocks()
        async with locks.hold(1, 5):
            assert not locks.is_locked(1, 6)
            async with locks.hold(1, 6):
                assert locks.is_locked(1, 6)

    async def test_idle_locks_are_released(self):
        locks = LoanLocks()
        for loan_id in range(50):
            async with locks.hold(1, loan_id):
                pass
        assert locks._locks == {}

    async def test_lock_kept_while_tasks_wait(self):
        locks = LoanLocks()
        entered = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with locks.hold(1, 5):
                entered.set()
                await release.wait()

        async def waiter():
            async with locks.hold(1, 5):
                assert locks.is_locked(1, 5)

        first = asyncio.create_task(holder())
        await entered.wait()
        second = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        assert (1, 5) in locks._locks
        release.set()
        await asyncio.gather(first, second)
        assert locks._locks == {}

# This project was developed with assistance from AI tools.
"""Compliance audit recorder.

Writes append-only audit entries linked by a per-tenant SHA-256 hash chain
for tamper evidence. Each entry also carries a per-entity sequence number;
``(tenant_id, entity_type, entity_id, sequence)`` is unique.
"""

import hashlib
import json
import logging
from datetime import UTC, datetime

from loanflow_db import AuditType, ComplianceAuditEntry, EntityType

from ..schemas.context import OperationContext
from ..store.base import LoanStore

logger = logging.getLogger(__name__)

GENESIS_HASH = "genesis"


def _normalize_timestamp(value: datetime) -> str:
    # SQLite drops tzinfo on read; treat naive values as UTC so hashes are stable.
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _compute_hash(entry: ComplianceAuditEntry) -> str:
    """Compute SHA-256 hash of an audit entry's key fields."""
    payload = "|".join(
        [
            str(entry.id),
            _normalize_timestamp(entry.timestamp),
            str(entry.audit_type),
            EntityType(entry.entity_type).value,
            str(entry.entity_id),
            str(entry.sequence),
            str(entry.action),
            json.dumps(entry.old_values, sort_keys=True, default=str),
            json.dumps(entry.new_values, sort_keys=True, default=str),
            json.dumps(entry.entry_metadata, sort_keys=True, default=str),
            str(entry.prev_hash),
        ]
    )
    return hashlib.sha256(payload.encode()).hexdigest()


class AuditRecorder:
    """Appends audit entries through a LoanStore."""

    def __init__(self, store: LoanStore):
        self.store = store

    async def record(
        self,
        ctx: OperationContext,
        *,
        audit_type: AuditType,
        entity_type: EntityType,
        entity_id: int,
        action: str,
        old_values: dict | None = None,
        new_values: dict | None = None,
        metadata: dict | None = None,
    ) -> ComplianceAuditEntry:
        """Write a single audit entry with hash chain linkage.

        Takes the tenant's audit-chain lock, links to the tenant's most recent
        entry, and numbers the entry after the entity's latest one.

        Args:
            ctx: Tenant, actor, and timestamp for the entry.
            audit_type: Category (e.g. 'compliance_violation').
            entity_type: Kind of audited subject.
            entity_id: Id of the audited subject.
            action: What happened (e.g. 'violation_detected').
            old_values: State before the change, if any.
            new_values: State after the change or the recorded finding.
            metadata: Supplementary JSON payload.

        Returns:
            The appended ComplianceAuditEntry (prev_hash and sequence set).
        """
        await self.store.lock_audit_chain(ctx.tenant_id)

        prev_entry = await self.store.latest_audit_entry(ctx.tenant_id)
        prev_hash = _compute_hash(prev_entry) if prev_entry is not None else GENESIS_HASH

        last_for_entity = await self.store.latest_audit_entry(
            ctx.tenant_id, entity_type=entity_type, entity_id=entity_id,
        )
        sequence = last_for_entity.sequence + 1 if last_for_entity is not None else 1

        entry = ComplianceAuditEntry(
            tenant_id=ctx.tenant_id,
            audit_type=AuditType(audit_type).value,
            entity_type=entity_type,
            entity_id=entity_id,
            sequence=sequence,
            action=action,
            old_values=old_values,
            new_values=new_values,
            entry_metadata=metadata,
            actor=ctx.actor_id,
            timestamp=ctx.now,
            prev_hash=prev_hash,
        )
        return await self.store.append_audit_entry(entry)

    async def verify_chain(self, tenant_id: int) -> dict:
        """Verify the integrity of a tenant's audit hash chain.

        Walks all entries in insertion order, recomputes each expected
        prev_hash, and compares against the stored value.

        Returns:
            {"status": "OK", "entries_checked": N} on success, or
            {"status": "TAMPERED", "first_break_id": id, "entries_checked": N}
            if a mismatch is found.
        """
        entries = await self.store.list_audit_entries(tenant_id)

        for i, entry in enumerate(entries):
            expected = GENESIS_HASH if i == 0 else _compute_hash(entries[i - 1])
            if entry.prev_hash != expected:
                logger.warning(
                    "Audit chain break for tenant %s at entry %s", tenant_id, entry.id,
                )
                return {
                    "status": "TAMPERED",
                    "first_break_id": entry.id,
                    "entries_checked": i + 1,
                }

        return {"status": "OK", "entries_checked": len(entries)}

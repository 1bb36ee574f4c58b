# This project was developed with assistance from AI tools.
"""Per-call operation context passed explicitly into every service."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OperationContext(BaseModel):
    """Tenant, acting user, and clock for a single service call.

    ``now`` is fixed for the duration of the call so every violation and
    audit entry produced by it carries the same timestamp.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: int
    actor_id: str | None = None
    now: datetime = Field(default_factory=_utcnow)

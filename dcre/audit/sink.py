"""Audit emitter port and its database-backed sink."""

import logging
from datetime import datetime
from typing import Any, Protocol
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dcre.engine.rules import utcnow
from dcre.models import AuditLog
from dcre.utils.canonical import canonical_json, canonical_value

logger = logging.getLogger(__name__)


class AuditRecord(BaseModel):
    """One audit record per mutating attempt, successful or not."""

    actor_id: str | None = None
    actor_role: str | None = None  # None for system-triggered auto transitions
    action: str
    resource_type: str
    resource_id: str | None = None
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    success: bool
    error_message: str | None = None


class AuditSink(Protocol):
    """Outbound, fire-and-forget port. emit() must never raise."""

    async def emit(self, record: AuditRecord) -> None: ...


class DatabaseAuditSink:
    """
    Writes audit records to audit_logs through a session of its own.

    A separate session keeps failure records even when the request's unit of
    work is rolled back. Write errors are logged and swallowed: the business
    mutation has already succeeded or failed on its own terms.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def emit(self, record: AuditRecord) -> None:
        try:
            async with self._session_maker() as session:
                session.add(_to_row(record, utcnow()))
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to log audit event %s for %s %s: %s",
                record.action,
                record.resource_type,
                record.resource_id,
                canonical_json(record.model_dump()),
            )


def _to_row(record: AuditRecord, now: datetime) -> AuditLog:
    return AuditLog(
        audit_id=str(uuid4()),
        actor_id=record.actor_id,
        actor_role=record.actor_role,
        action=record.action,
        resource_type=record.resource_type,
        resource_id=record.resource_id,
        previous_state=canonical_value(record.previous_state),
        new_state=canonical_value(record.new_state),
        details=canonical_value(record.details) or {},
        notes=record.notes,
        ip_address=record.ip_address,
        user_agent=record.user_agent,
        success=record.success,
        error_message=record.error_message,
        created_at=now,
    )

"""Decision ledger - append-only resolution records."""

from collections.abc import Sequence
from datetime import datetime
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dcre.models import CaseDecision


async def record_decision(
    db: AsyncSession,
    *,
    case_id: str,
    decided_by: str,
    decided_by_role: str,
    decision: str,
    is_override: bool,
    from_status: str,
    to_status: str,
    notes: str,
    now: datetime,
) -> CaseDecision:
    """Insert an immutable decision row. Caller owns the transaction."""
    row = CaseDecision(
        decision_id=str(uuid4()),
        case_id=case_id,
        decided_by=decided_by,
        decided_by_role=decided_by_role,
        decision=decision,
        is_override=is_override,
        from_status=from_status,
        to_status=to_status,
        notes=notes,
        created_at=now,
    )
    db.add(row)
    await db.flush()
    return row


async def list_decisions(db: AsyncSession, case_ids: Sequence[str]) -> list[CaseDecision]:
    """Decision history for the given cases, oldest first."""
    if not case_ids:
        return []
    result = await db.execute(
        select(CaseDecision)
        .where(CaseDecision.case_id.in_(list(case_ids)))
        .order_by(CaseDecision.created_at.asc())
    )
    return list(result.scalars().all())

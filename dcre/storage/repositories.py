"""Repository functions for cases, messages, evidence and collaborator tables."""

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dcre.models import (
    AuditLog,
    Booking,
    Case,
    CaseEvidence,
    CaseMessage,
    PolicyAcceptance,
    Profile,
)


def is_uuid(value: str) -> bool:
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


async def get_profile_by_token_hash(db: AsyncSession, token_hash: str) -> Profile | None:
    """Resolve a hashed bearer token to its profile."""
    result = await db.execute(select(Profile).where(Profile.token_hash == token_hash))
    return result.scalar_one_or_none()


async def get_booking(db: AsyncSession, booking_id: str) -> Booking | None:
    """Booking directory lookup."""
    if not is_uuid(booking_id):
        return None
    result = await db.execute(select(Booking).where(Booking.booking_id == booking_id))
    return result.scalar_one_or_none()


async def has_policy_acceptance(
    db: AsyncSession,
    profile_id: str,
    policy_key: str,
    policy_version: str,
    resource_type: str,
    resource_id: str,
) -> bool:
    """True if the profile accepted the policy for this resource (or globally)."""
    result = await db.execute(
        select(PolicyAcceptance.acceptance_id)
        .where(
            PolicyAcceptance.profile_id == profile_id,
            PolicyAcceptance.policy_key == policy_key,
            PolicyAcceptance.policy_version == policy_version,
        )
        .where(
            (PolicyAcceptance.resource_id.is_(None))
            | (
                (PolicyAcceptance.resource_type == resource_type)
                & (PolicyAcceptance.resource_id == resource_id)
            )
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def find_policy_acceptance(
    db: AsyncSession,
    profile_id: str,
    policy_key: str,
    policy_version: str,
    resource_type: str | None = None,
    resource_id: str | None = None,
) -> PolicyAcceptance | None:
    """Exact-scope lookup: a global acceptance does not match a scoped one."""
    query = select(PolicyAcceptance).where(
        PolicyAcceptance.profile_id == profile_id,
        PolicyAcceptance.policy_key == policy_key,
        PolicyAcceptance.policy_version == policy_version,
    )
    if resource_id is None:
        query = query.where(PolicyAcceptance.resource_id.is_(None))
    else:
        query = query.where(
            PolicyAcceptance.resource_type == resource_type,
            PolicyAcceptance.resource_id == resource_id,
        )
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


async def record_policy_acceptance(
    db: AsyncSession,
    *,
    profile_id: str,
    policy_key: str,
    policy_version: str,
    resource_type: str | None,
    resource_id: str | None,
    now: datetime,
) -> PolicyAcceptance:
    """Record that a profile accepted a policy version."""
    acceptance = PolicyAcceptance(
        acceptance_id=str(uuid4()),
        profile_id=profile_id,
        policy_key=policy_key,
        policy_version=policy_version,
        resource_type=resource_type,
        resource_id=resource_id,
        accepted_at=now,
    )
    db.add(acceptance)
    await db.flush()
    return acceptance


async def create_case(
    db: AsyncSession,
    *,
    kind: str,
    booking_id: str,
    opened_by: str,
    opened_by_role: str,
    renter_id: str,
    dealer_id: str,
    category: str,
    summary: str,
    status: str,
    now: datetime,
) -> Case:
    """Insert a new case in its initial status."""
    case = Case(
        case_id=str(uuid4()),
        kind=kind,
        booking_id=booking_id,
        opened_by=opened_by,
        opened_by_role=opened_by_role,
        renter_id=renter_id,
        dealer_id=dealer_id,
        category=category,
        summary=summary,
        status=status,
        created_at=now,
        updated_at=now,
    )
    db.add(case)
    await db.flush()
    return case


async def get_case(db: AsyncSession, case_id: str, kind: str | None = None) -> Case | None:
    """Get case by ID, optionally restricted to one workflow kind."""
    if not is_uuid(case_id):
        return None
    query = select(Case).where(Case.case_id == case_id)
    if kind is not None:
        query = query.where(Case.kind == kind)
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def update_case_status_if(
    db: AsyncSession,
    case_id: str,
    expected_status: str,
    new_status: str,
    now: datetime,
) -> bool:
    """
    Single-row conditional update.

    Only applies when the stored status still equals expected_status, so a
    concurrent writer that got there first makes this return False instead of
    being overwritten.
    """
    result = await db.execute(
        update(Case)
        .where(Case.case_id == case_id, Case.status == expected_status)
        .values(status=new_status, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def list_cases(
    db: AsyncSession,
    *,
    kind: str | None = None,
    opened_by: str | None = None,
    renter_id: str | None = None,
    dealer_id: str | None = None,
    booking_id: str | None = None,
    category: str | None = None,
) -> list[Case]:
    """List cases newest first. A malformed id filter matches nothing."""
    query = select(Case)
    if kind is not None:
        query = query.where(Case.kind == kind)
    for column, value in (
        (Case.opened_by, opened_by),
        (Case.renter_id, renter_id),
        (Case.dealer_id, dealer_id),
        (Case.booking_id, booking_id),
    ):
        if value is None:
            continue
        if not is_uuid(value):
            return []
        query = query.where(column == value)
    if category is not None:
        query = query.where(Case.category == category)
    query = query.order_by(Case.created_at.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def add_message(
    db: AsyncSession,
    *,
    case_id: str,
    sender_id: str,
    sender_role: str,
    body: str,
    now: datetime,
) -> CaseMessage:
    """Append a message. Messages are never updated or deleted."""
    message = CaseMessage(
        message_id=str(uuid4()),
        case_id=case_id,
        sender_id=sender_id,
        sender_role=sender_role,
        body=body,
        created_at=now,
    )
    db.add(message)
    await db.flush()
    return message


async def list_messages(db: AsyncSession, case_ids: Sequence[str]) -> list[CaseMessage]:
    """Messages for the given cases, oldest first."""
    if not case_ids:
        return []
    result = await db.execute(
        select(CaseMessage)
        .where(CaseMessage.case_id.in_(list(case_ids)))
        .order_by(CaseMessage.created_at.asc())
    )
    return list(result.scalars().all())


async def has_message_from(db: AsyncSession, case_id: str, sender_role: str) -> bool:
    """True if any message on the case was sent under the given role."""
    result = await db.execute(
        select(CaseMessage.message_id)
        .where(CaseMessage.case_id == case_id, CaseMessage.sender_role == sender_role)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def add_evidence(
    db: AsyncSession,
    *,
    case_id: str,
    uploaded_by: str,
    uploaded_by_role: str,
    bucket: str,
    storage_path: str,
    file_name: str,
    content_type: str | None,
    position: int = 0,
    now: datetime,
) -> CaseEvidence:
    """Append an evidence pointer."""
    evidence = CaseEvidence(
        evidence_id=str(uuid4()),
        case_id=case_id,
        uploaded_by=uploaded_by,
        uploaded_by_role=uploaded_by_role,
        bucket=bucket,
        storage_path=storage_path,
        file_name=file_name,
        content_type=content_type,
        position=position,
        created_at=now,
    )
    db.add(evidence)
    await db.flush()
    return evidence


async def list_evidence(db: AsyncSession, case_ids: Sequence[str]) -> list[CaseEvidence]:
    """Evidence for the given cases, oldest first."""
    if not case_ids:
        return []
    result = await db.execute(
        select(CaseEvidence)
        .where(CaseEvidence.case_id.in_(list(case_ids)))
        .order_by(CaseEvidence.created_at.asc(), CaseEvidence.position.asc())
    )
    return list(result.scalars().all())


async def list_audit_logs(
    db: AsyncSession, resource_type: str, resource_id: str, limit: int = 100
) -> list[AuditLog]:
    """Audit trail for one resource, newest first."""
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
        .order_by(AuditLog.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())

"""Shared fixtures: a throwaway SQLite database, a fixed clock and demo parties."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dcre.audit.sink import AuditRecord
from dcre.auth.middleware import hash_token
from dcre.auth.roles import Actor, normalize_role
from dcre.database import Base
from dcre.engine.orchestrator import CaseOrchestrator
from dcre.engine.workflows import COMPLAINT_WORKFLOW, DISPUTE_WORKFLOW
from dcre.models import Booking, CaseDecision, PolicyAcceptance, Profile
from dcre.storage.object_store import ObjectStore

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingAuditSink:
    def __init__(self):
        self.records: list[AuditRecord] = []

    async def emit(self, record: AuditRecord) -> None:
        self.records.append(record)

    def actions(self) -> list[str]:
        return [r.action for r in self.records]

    def last(self) -> AuditRecord:
        return self.records[-1]


@dataclass
class Parties:
    renter: Actor
    dealer: Actor
    admin: Actor
    prime_admin: Actor
    super_admin: Actor
    tokens: dict[str, str] = field(default_factory=dict)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dcre.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit():
    return RecordingAuditSink()


async def make_profile(db: AsyncSession, role: str, token: str | None = None) -> Profile:
    token = token or f"tok_{role}_{uuid4().hex[:8]}"
    profile = Profile(
        profile_id=str(uuid4()),
        full_name=f"Test {role}",
        role=role,
        token_hash=hash_token(token),
        created_at=T0,
    )
    db.add(profile)
    await db.commit()
    return profile


def actor_for(profile: Profile) -> Actor:
    return Actor(actor_id=profile.profile_id, role=normalize_role(profile.role))


async def make_booking(
    db: AsyncSession,
    renter_id: str,
    dealer_id: str,
    status: str = "completed",
    start_date: datetime | None = None,
) -> Booking:
    start = start_date or T0 - timedelta(days=10)
    booking = Booking(
        booking_id=str(uuid4()),
        renter_id=renter_id,
        dealer_id=dealer_id,
        status=status,
        start_date=start,
        end_date=start + timedelta(days=3),
    )
    db.add(booking)
    await db.commit()
    return booking


async def accept_policy(
    db: AsyncSession, profile_id: str, key: str, version: str, resource_id: str | None = None
) -> None:
    db.add(
        PolicyAcceptance(
            acceptance_id=str(uuid4()),
            profile_id=profile_id,
            policy_key=key,
            policy_version=version,
            resource_type="complaint" if resource_id else None,
            resource_id=resource_id,
            accepted_at=T0,
        )
    )
    await db.commit()


async def decisions_for(db: AsyncSession, case_id: str) -> list[CaseDecision]:
    result = await db.execute(
        select(CaseDecision)
        .where(CaseDecision.case_id == case_id)
        .order_by(CaseDecision.created_at.asc())
    )
    return list(result.scalars().all())


@pytest_asyncio.fixture
async def parties(db) -> Parties:
    tokens = {}
    actors = {}
    for role in ("renter", "dealer", "admin", "prime_admin", "super_admin"):
        token = f"tok_{role}"
        actors[role] = actor_for(await make_profile(db, role, token))
        tokens[role] = token
    return Parties(tokens=tokens, **actors)


@pytest_asyncio.fixture
async def booking(db, parties) -> Booking:
    return await make_booking(db, parties.renter.actor_id, parties.dealer.actor_id)


@pytest.fixture
def disputes(db, audit, clock) -> CaseOrchestrator:
    return CaseOrchestrator(
        db, DISPUTE_WORKFLOW, audit, object_store=ObjectStore("dispute-evidence"), clock=clock
    )


@pytest.fixture
def complaints(db, audit, clock) -> CaseOrchestrator:
    return CaseOrchestrator(
        db, COMPLAINT_WORKFLOW, audit, object_store=ObjectStore("complaint-evidence"), clock=clock
    )

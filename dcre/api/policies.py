"""Policy acceptance endpoint."""

from collections.abc import Callable
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dcre.api.deps import get_audit_sink, get_clock
from dcre.audit.sink import AuditSink
from dcre.auth.middleware import ActorDep
from dcre.database import get_db
from dcre.engine.policies import accept_policy
from dcre.schemas.policies import PolicyAcceptanceOut, PolicyAcceptRequest

router = APIRouter()


@router.post("/policies/accept", response_model=PolicyAcceptanceOut)
async def accept(
    body: PolicyAcceptRequest,
    actor: ActorDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    audit_sink: Annotated[AuditSink, Depends(get_audit_sink)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
):
    """Record the caller's acceptance of a policy version, globally or for one case."""
    acceptance = await accept_policy(
        db,
        audit_sink,
        actor,
        body.policy_key,
        body.policy_version,
        resource_type=body.resource_type,
        resource_id=body.resource_id,
        clock=clock,
    )
    return PolicyAcceptanceOut.model_validate(acceptance)

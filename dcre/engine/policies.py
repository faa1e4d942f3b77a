"""Recording policy acceptances (the complaint terms, for one)."""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from dcre.audit.sink import AuditRecord, AuditSink
from dcre.auth.roles import Actor
from dcre.engine.errors import CaseWorkflowError, InvalidRequestError
from dcre.engine.rules import utcnow
from dcre.engine.workflows import WORKFLOWS
from dcre.models import PolicyAcceptance
from dcre.storage import repositories

logger = logging.getLogger(__name__)

POLICY_ACCEPTED = "POLICY_ACCEPTED"


def _validate(
    policy_key: str,
    policy_version: str,
    resource_type: str | None,
    resource_id: str | None,
) -> None:
    if not policy_key or not policy_key.strip() or not policy_version or not policy_version.strip():
        raise InvalidRequestError("policy_key and policy_version are required")
    if resource_id is None:
        if resource_type is not None:
            raise InvalidRequestError("resource_id is required when resource_type is given")
        return
    kinds = sorted(workflow.resource_type for workflow in WORKFLOWS.values())
    if resource_type not in kinds:
        raise InvalidRequestError(f"Invalid resource_type. Must be one of: {', '.join(kinds)}")
    if not repositories.is_uuid(resource_id):
        raise InvalidRequestError("resource_id must be a UUID")


async def accept_policy(
    db: AsyncSession,
    audit_sink: AuditSink,
    actor: Actor,
    policy_key: str,
    policy_version: str,
    resource_type: str | None = None,
    resource_id: str | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> PolicyAcceptance:
    """
    Record that the actor accepted a policy version.

    Without a resource the acceptance is global; with one it covers only that
    case. Accepting the same scope twice returns the existing row.
    """
    details = {
        "policy_key": policy_key,
        "policy_version": policy_version,
        "resource_type": resource_type,
        "resource_id": resource_id,
    }
    try:
        _validate(policy_key, policy_version, resource_type, resource_id)
        policy_key, policy_version = policy_key.strip(), policy_version.strip()
        acceptance = await repositories.find_policy_acceptance(
            db, actor.actor_id, policy_key, policy_version, resource_type, resource_id
        )
        details["already_accepted"] = acceptance is not None
        if acceptance is None:
            acceptance = await repositories.record_policy_acceptance(
                db,
                profile_id=actor.actor_id,
                policy_key=policy_key,
                policy_version=policy_version,
                resource_type=resource_type,
                resource_id=resource_id,
                now=clock(),
            )
            await db.commit()
    except Exception as exc:
        await db.rollback()
        if isinstance(exc, CaseWorkflowError):
            reason = exc.reason
            logger.info("%s rejected for %s: %s", POLICY_ACCEPTED, actor.actor_id, reason)
        else:
            reason = "Internal error"
            logger.exception("%s failed for %s", POLICY_ACCEPTED, actor.actor_id)
        await audit_sink.emit(_record(actor, None, details, success=False, error_message=reason))
        raise

    await audit_sink.emit(_record(actor, acceptance.acceptance_id, details, success=True))
    return acceptance


def _record(
    actor: Actor,
    acceptance_id: str | None,
    details: dict,
    *,
    success: bool,
    error_message: str | None = None,
) -> AuditRecord:
    return AuditRecord(
        actor_id=actor.actor_id,
        actor_role=actor.role.value,
        action=POLICY_ACCEPTED,
        resource_type="policy",
        resource_id=acceptance_id,
        details=details,
        ip_address=actor.ip_address,
        user_agent=actor.user_agent,
        success=success,
        error_message=error_message,
    )

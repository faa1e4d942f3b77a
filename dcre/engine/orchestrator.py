"""Workflow orchestrator - every mutating case operation goes through here.

Each call reconciles the case first (lazy response-window escalation), asks
the transition validator whether the move is legal, writes the case store and
decision ledger, commits, and emits exactly one audit record describing the
attempt, successful or not.
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dcre.audit.sink import AuditRecord, AuditSink
from dcre.auth.roles import Actor, Role, is_admin, is_prime_admin_or_higher
from dcre.config import settings
from dcre.engine.errors import (
    AlreadySubmittedError,
    CaseWorkflowError,
    ClosedCaseError,
    ForbiddenError,
    IneligibleError,
    InvalidRequestError,
    InvalidTransitionError,
    LedgerInconsistencyError,
    NotFoundError,
    PolicyNotAcceptedError,
)
from dcre.engine.rules import (
    RESPONSE_WINDOW_EXPIRED,
    booking_ineligibility_reason,
    reconcile_status,
    utcnow,
)
from dcre.engine.transitions import (
    can_append,
    check_edge,
    message_side_effect,
    require_notes,
    resolve_decision,
    resolve_override,
    validate_override,
    validate_status_change,
)
from dcre.engine.workflows import CaseCategory, CaseStatus, Workflow
from dcre.models import Case, CaseDecision, CaseEvidence, CaseMessage
from dcre.storage import ledger, repositories
from dcre.storage.object_store import FileDescriptor, ObjectStore, UploadDescriptor

logger = logging.getLogger(__name__)


@dataclass
class TransitionOutcome:
    """Result of a decision, override or direct status change."""

    case: Case
    from_status: CaseStatus
    to_status: CaseStatus
    decision: CaseDecision | None = None


@dataclass
class AuditContext:
    """Mutable bits of the audit record filled in while an operation runs."""

    resource_id: str | None = None
    previous_state: dict | None = None
    details: dict | None = None
    notes: str | None = None


class CaseOrchestrator:
    """Runs one workflow (dispute or complaint) against one unit of work.

    A rejected call rolls the session back, which expires every instance it
    holds. Callers keep ids, not ``Case`` objects, across a failed call and
    reload through ``fetch`` afterwards.
    """

    def __init__(
        self,
        db: AsyncSession,
        workflow: Workflow,
        audit_sink: AuditSink,
        object_store: ObjectStore | None = None,
        clock: Callable[[], datetime] = utcnow,
        response_window: timedelta | None = None,
    ):
        self.db = db
        self.workflow = workflow
        self.audit_sink = audit_sink
        self.object_store = object_store
        self.clock = clock
        self.response_window = response_window or timedelta(
            hours=settings.response_window_hours
        )

    def status_of(self, case: Case) -> CaseStatus:
        return CaseStatus(case.status)

    async def fetch(self, case_id: str) -> Case:
        """Load the case without reconciling it."""
        case = await repositories.get_case(self.db, case_id, self.workflow.kind.value)
        if case is None:
            raise NotFoundError(f"{self.workflow.kind.value.capitalize()} not found")
        return case

    async def load(self, case_id: str) -> Case:
        """Load and reconcile; the entry point of every read and write path."""
        return await self.reconcile(await self.fetch(case_id))

    async def reconcile(self, case: Case) -> Case:
        """Apply the lazy response-window escalation. Idempotent."""
        workflow = self.workflow
        now = self.clock()
        status = self.status_of(case)
        # Cheap pure check first; only hit the message table for candidates
        if reconcile_status(
            workflow, status, case.created_at, now, False, self.response_window
        ) is None:
            return case
        replied = await repositories.has_message_from(
            self.db, case.case_id, workflow.counterparty_role.value
        )
        target = reconcile_status(
            workflow, status, case.created_at, now, replied, self.response_window
        )
        if target is None:
            return case

        applied = await repositories.update_case_status_if(
            self.db, case.case_id, status.value, target.value, now
        )
        if not applied:
            # Someone moved it first; their status stands
            return await self.fetch(case.case_id)
        await self.db.commit()
        logger.info(
            "Auto-transitioned %s %s from %s to %s (%s)",
            workflow.kind.value,
            case.case_id,
            status.value,
            target.value,
            RESPONSE_WINDOW_EXPIRED,
        )
        await self.audit_sink.emit(
            AuditRecord(
                action=f"{workflow.action_prefix}_AUTO_TRANSITION",
                resource_type=workflow.resource_type,
                resource_id=case.case_id,
                previous_state={"status": status.value},
                new_state={"status": target.value},
                details={
                    "from_status": status.value,
                    "to_status": target.value,
                    "reason": RESPONSE_WINDOW_EXPIRED,
                },
                notes="auto transition, reason: response window expired",
                success=True,
            )
        )
        return await self.fetch(case.case_id)

    def is_party(self, case: Case, actor: Actor) -> bool:
        if is_admin(actor.role):
            return True
        if actor.role == Role.RENTER:
            return case.renter_id == actor.actor_id
        if actor.role == Role.DEALER:
            return case.dealer_id == actor.actor_id
        return False

    def _action(self, suffix: str) -> str:
        return f"{self.workflow.action_prefix}_{suffix}"

    async def _emit(
        self,
        action: str,
        actor: Actor,
        ctx: AuditContext,
        *,
        success: bool,
        new_state: dict | None = None,
        error_message: str | None = None,
    ) -> None:
        await self.audit_sink.emit(
            AuditRecord(
                actor_id=actor.actor_id,
                actor_role=actor.role.value,
                action=action,
                resource_type=self.workflow.resource_type,
                resource_id=ctx.resource_id,
                previous_state=ctx.previous_state,
                new_state=new_state,
                details=ctx.details or {},
                notes=ctx.notes,
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
                success=success,
                error_message=error_message,
            )
        )

    @asynccontextmanager
    async def _audited(
        self, action: str, actor: Actor, resource_id: str | None = None
    ) -> AsyncIterator[AuditContext]:
        """Emit a failure record (and roll back) when the wrapped operation fails."""
        ctx = AuditContext(resource_id=resource_id)
        try:
            yield ctx
        except Exception as exc:
            await self.db.rollback()
            if isinstance(exc, CaseWorkflowError):
                reason = exc.reason
                logger.info("%s rejected for %s: %s", action, ctx.resource_id, reason)
            else:
                reason = "Internal error"
                logger.exception("%s failed for %s", action, ctx.resource_id)
            await self._emit(action, actor, ctx, success=False, error_message=reason)
            raise

    async def open_case(
        self, booking_id: str, category: str, summary: str, actor: Actor
    ) -> Case:
        """Open a new case on a booking owned by the actor."""
        workflow = self.workflow
        noun = workflow.kind.value
        async with self._audited(self._action("CREATED"), actor) as ctx:
            ctx.details = {"booking_id": booking_id, "category": category}
            if actor.role != workflow.opener_role:
                raise ForbiddenError(
                    f"Only {workflow.opener_role.value}s can create {noun}s"
                )
            if not booking_id or not summary or not summary.strip():
                raise InvalidRequestError("booking_id, category, and summary are required")
            try:
                category_value = CaseCategory(category)
            except ValueError:
                raise InvalidRequestError(
                    f"Invalid category. Must be one of: {', '.join(c.value for c in CaseCategory)}"
                ) from None

            now = self.clock()
            booking = await repositories.get_booking(self.db, booking_id)
            reason = booking_ineligibility_reason(workflow, booking, actor.actor_id, now)
            if reason is not None:
                raise IneligibleError(reason)

            case = await repositories.create_case(
                self.db,
                kind=workflow.kind.value,
                booking_id=booking_id,
                opened_by=actor.actor_id,
                opened_by_role=actor.role.value,
                renter_id=booking.renter_id,
                dealer_id=booking.dealer_id,
                category=category_value.value,
                summary=summary.strip(),
                status=workflow.initial_status.value,
                now=now,
            )
            await self.db.commit()
            ctx.resource_id = case.case_id
            ctx.details["status"] = case.status

        await self._emit(
            self._action("CREATED"), actor, ctx, success=True, new_state={"status": case.status}
        )
        return case

    async def add_message(
        self, case_id: str, body: str, actor: Actor
    ) -> tuple[CaseMessage, Case]:
        """Append a message; may auto-advance the case (dispute: open -> awaiting_response)."""
        noun = self.workflow.kind.value
        async with self._audited(self._action("MESSAGE_ADDED"), actor, case_id) as ctx:
            case = await self.load(case_id)
            status = self.status_of(case)
            ctx.previous_state = {"status": status.value}
            if not can_append(self.workflow, status):
                raise ClosedCaseError(f"Cannot add messages to closed {noun}s")
            if not self.is_party(case, actor):
                raise ForbiddenError(f"Not authorized to add messages to this {noun}")
            if not body or not body.strip():
                raise InvalidRequestError("Message is required")

            now = self.clock()
            message = await repositories.add_message(
                self.db,
                case_id=case.case_id,
                sender_id=actor.actor_id,
                sender_role=actor.role.value,
                body=body.strip(),
                now=now,
            )
            ctx.details = {"message_id": message.message_id}

            target = message_side_effect(self.workflow, status, actor.role)
            if target is not None:
                check_edge(self.workflow, status, target)
                if await repositories.update_case_status_if(
                    self.db, case.case_id, status.value, target.value, now
                ):
                    ctx.details["status_changed"] = True
            await self.db.commit()
            case = await self.fetch(case.case_id)

        await self._emit(
            self._action("MESSAGE_ADDED"),
            actor,
            ctx,
            success=True,
            new_state={"status": case.status},
        )
        return message, case

    async def add_evidence(
        self, case_id: str, files: list[FileDescriptor], actor: Actor
    ) -> tuple[list[UploadDescriptor], list[CaseEvidence]]:
        """Issue upload locations and record them as evidence pointers."""
        noun = self.workflow.kind.value
        async with self._audited(self._action("EVIDENCE_ADDED"), actor, case_id) as ctx:
            case = await self.load(case_id)
            status = self.status_of(case)
            ctx.previous_state = {"status": status.value}
            if not can_append(self.workflow, status):
                raise ClosedCaseError(f"Cannot add evidence to closed {noun}s")
            if not self.is_party(case, actor):
                raise ForbiddenError(f"Not authorized to add evidence to this {noun}")
            if not files:
                raise InvalidRequestError("files array is required")
            if self.object_store is None:
                raise InvalidRequestError(f"Evidence uploads are not configured for {noun}s")

            now = self.clock()
            uploads = self.object_store.sign_uploads(
                actor.actor_id, noun, case.case_id, files, now
            )
            rows = []
            for position, upload in enumerate(uploads):
                rows.append(
                    await repositories.add_evidence(
                        self.db,
                        case_id=case.case_id,
                        position=position,
                        uploaded_by=actor.actor_id,
                        uploaded_by_role=actor.role.value,
                        bucket=upload.bucket,
                        storage_path=upload.path,
                        file_name=upload.name,
                        content_type=upload.content_type,
                        now=now,
                    )
                )
            await self.db.commit()
            ctx.details = {
                "evidence_ids": [row.evidence_id for row in rows],
                "bucket": self.object_store.bucket,
            }

        await self._emit(
            self._action("EVIDENCE_ADDED"),
            actor,
            ctx,
            success=True,
            new_state={"status": status.value},
        )
        return uploads, rows

    async def submit_draft(
        self, case_id: str, actor: Actor, policy_key: str, policy_version: str
    ) -> Case:
        """Opening party moves its draft into the workflow proper."""
        workflow = self.workflow
        noun = workflow.kind.value
        async with self._audited(self._action("SUBMITTED"), actor, case_id) as ctx:
            if workflow.draft_status is None or workflow.submitted_status is None:
                raise InvalidRequestError(f"{noun.capitalize()}s have no draft stage")
            if actor.role != workflow.opener_role:
                raise ForbiddenError(
                    f"Only {workflow.opener_role.value}s can submit {noun}s"
                )
            case = await self.load(case_id)
            if case.opened_by != actor.actor_id:
                raise NotFoundError(f"{noun.capitalize()} not found")
            status = self.status_of(case)
            ctx.previous_state = {"status": status.value}
            if status != workflow.draft_status:
                raise AlreadySubmittedError(f"{noun.capitalize()} has already been submitted")
            accepted = await repositories.has_policy_acceptance(
                self.db,
                actor.actor_id,
                policy_key,
                policy_version,
                workflow.resource_type,
                case.case_id,
            )
            if not accepted:
                raise PolicyNotAcceptedError(policy_key, policy_version)

            target = workflow.submitted_status
            check_edge(workflow, status, target)
            if not await repositories.update_case_status_if(
                self.db, case.case_id, status.value, target.value, self.clock()
            ):
                raise AlreadySubmittedError(f"{noun.capitalize()} has already been submitted")
            await self.db.commit()
            ctx.details = {"previous_status": status.value, "new_status": target.value}
            case = await self.fetch(case.case_id)

        await self._emit(
            self._action("SUBMITTED"), actor, ctx, success=True, new_state={"status": case.status}
        )
        return case

    async def decide(
        self, case_id: str, decision: str, notes: str | None, actor: Actor
    ) -> TransitionOutcome:
        """Record an admin resolution decision and apply the status it implies."""
        async with self._audited(self._action("DECISION"), actor, case_id) as ctx:
            ctx.details = {"decision": decision}
            if not is_admin(actor.role):
                raise ForbiddenError("Forbidden - Admin access required")
            value, target = resolve_decision(self.workflow, decision)
            ctx.notes = require_notes(notes)
            case = await self.load(case_id)
            outcome = await self._transition(
                case,
                target,
                lambda from_status: validate_status_change(
                    self.workflow, actor.role, from_status, target
                ),
                ctx,
                actor,
                decision=value.value,
                is_override=False,
            )

        await self._emit(
            self._action("DECISION"),
            actor,
            ctx,
            success=True,
            new_state={"status": outcome.to_status.value},
        )
        return outcome

    async def override(
        self, case_id: str, decision: str, notes: str | None, actor: Actor
    ) -> TransitionOutcome:
        """Prime-admin override: the only way out of a closed case."""
        async with self._audited(self._action("PRIME_ADMIN_OVERRIDE"), actor, case_id) as ctx:
            ctx.details = {"decision": decision, "override": True}
            if not is_prime_admin_or_higher(actor.role):
                raise ForbiddenError("Forbidden - Prime Admin or Super Admin access required")
            value, target = resolve_override(self.workflow, decision)
            ctx.notes = require_notes(notes, "Notes are required for override decisions")
            case = await self.load(case_id)
            outcome = await self._transition(
                case,
                target,
                lambda from_status: validate_override(
                    self.workflow, actor.role, from_status, target, notes
                ),
                ctx,
                actor,
                decision=value.value,
                is_override=True,
            )

        await self._emit(
            self._action("PRIME_ADMIN_OVERRIDE"),
            actor,
            ctx,
            success=True,
            new_state={"status": outcome.to_status.value},
        )
        return outcome

    async def change_status(
        self, case_id: str, status: str, notes: str | None, actor: Actor
    ) -> TransitionOutcome:
        """Direct admin status change through the validator, no ledger entry."""
        workflow = self.workflow
        async with self._audited(self._action("STATUS_UPDATED"), actor, case_id) as ctx:
            if not is_admin(actor.role):
                raise ForbiddenError("Forbidden - Admin access required")
            target = workflow.parse_status(status)
            if target is None:
                allowed = sorted(s.value for s in workflow.states)
                raise InvalidRequestError(f"Invalid status. Must be one of: {', '.join(allowed)}")
            if target in (CaseStatus.RESOLVED, CaseStatus.CLOSED):
                ctx.notes = require_notes(
                    notes, "Notes are required for resolved or closed status"
                )
            elif notes and notes.strip():
                ctx.notes = notes.strip()
            case = await self.load(case_id)
            outcome = await self._transition(
                case,
                target,
                lambda from_status: validate_status_change(
                    workflow, actor.role, from_status, target
                ),
                ctx,
                actor,
            )

        await self._emit(
            self._action("STATUS_UPDATED"),
            actor,
            ctx,
            success=True,
            new_state={"status": outcome.to_status.value},
        )
        return outcome

    async def _transition(
        self,
        case: Case,
        target: CaseStatus,
        validate: Callable[[CaseStatus], object],
        ctx: AuditContext,
        actor: Actor,
        decision: str | None = None,
        is_override: bool = False,
    ) -> TransitionOutcome:
        """
        Validate, write the ledger row and the conditional status update in one
        transaction, then commit.

        When the stored status moved underneath us the transaction is rolled
        back and the case is re-validated against the winner's status.
        """
        case_id = case.case_id
        for _ in range(max(1, settings.decision_retry_limit)):
            from_status = self.status_of(case)
            ctx.previous_state = {"status": from_status.value}
            validate(from_status)
            now = self.clock()
            row = None
            try:
                if decision is not None:
                    row = await ledger.record_decision(
                        self.db,
                        case_id=case_id,
                        decided_by=actor.actor_id,
                        decided_by_role=actor.role.value,
                        decision=decision,
                        is_override=is_override,
                        from_status=from_status.value,
                        to_status=target.value,
                        notes=ctx.notes or "",
                        now=now,
                    )
                applied = await repositories.update_case_status_if(
                    self.db, case_id, from_status.value, target.value, now
                )
            except SQLAlchemyError as exc:
                await self.db.rollback()
                logger.exception("Decision write failed for %s %s", self.workflow.kind.value, case_id)
                raise LedgerInconsistencyError(
                    "Decision could not be recorded together with its status change"
                ) from exc

            if applied:
                await self.db.commit()
                if row is not None:
                    ctx.details = {**(ctx.details or {}), "decision_id": row.decision_id}
                return TransitionOutcome(
                    case=await self.fetch(case_id),
                    from_status=from_status,
                    to_status=target,
                    decision=row,
                )

            await self.db.rollback()
            logger.warning(
                "Status of %s %s changed concurrently; revalidating",
                self.workflow.kind.value,
                case_id,
            )
            case = await self.fetch(case_id)

        raise InvalidTransitionError(
            self.status_of(case).value,
            target.value,
            reason="Status changed concurrently; reload and try again",
        )

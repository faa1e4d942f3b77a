"""Read-side assembly of cases for display.

Nothing here writes to the case store directly; the only state change a read
can cause is the orchestrator's reconcile step, which runs before assembly.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from dcre.auth.roles import Actor, Role, is_admin, is_prime_admin_or_higher
from dcre.engine.errors import ForbiddenError, InvalidRequestError
from dcre.engine.orchestrator import CaseOrchestrator
from dcre.models import AuditLog, Case, CaseDecision, CaseEvidence, CaseMessage
from dcre.storage import ledger, repositories


@dataclass
class CaseDetail:
    case: Case
    messages: list[CaseMessage] = field(default_factory=list)
    evidence: list[CaseEvidence] = field(default_factory=list)
    decisions: list[CaseDecision] = field(default_factory=list)


@dataclass
class CaseFilters:
    booking_id: str | None = None
    status: str | None = None
    category: str | None = None
    opened_by: str | None = None
    counterparty_id: str | None = None


class CaseQueryService:
    def __init__(self, db: AsyncSession, orchestrator: CaseOrchestrator):
        self.db = db
        self.orchestrator = orchestrator
        self.workflow = orchestrator.workflow

    async def get_case(self, case_id: str, actor: Actor) -> CaseDetail:
        """Case with its messages, evidence and decisions, reconciled first."""
        case = await self.orchestrator.fetch(case_id)
        if not self.orchestrator.is_party(case, actor):
            raise ForbiddenError(f"Not authorized to view this {self.workflow.kind.value}")
        case = await self.orchestrator.reconcile(case)
        details = await self._assemble([case])
        return details[0]

    async def list_cases(self, actor: Actor, filters: CaseFilters | None = None) -> list[Case]:
        """Cases visible to the actor, newest first."""
        filters = filters or CaseFilters()
        scope: dict[str, str | None] = {"renter_id": None, "dealer_id": None}
        if actor.role == Role.RENTER:
            scope["renter_id"] = actor.actor_id
        elif actor.role == Role.DEALER:
            scope["dealer_id"] = actor.actor_id
        elif not is_admin(actor.role):
            raise ForbiddenError("Not authorized to list cases")

        if filters.counterparty_id is not None:
            key = "dealer_id" if self.workflow.counterparty_role == Role.DEALER else "renter_id"
            if scope[key] is not None and scope[key] != filters.counterparty_id:
                return []
            scope[key] = filters.counterparty_id

        cases = await repositories.list_cases(
            self.db,
            kind=self.workflow.kind.value,
            opened_by=filters.opened_by,
            booking_id=filters.booking_id,
            category=filters.category,
            **scope,
        )
        # Filter on status only after reconcile
        reconciled = [await self.orchestrator.reconcile(case) for case in cases]
        if filters.status is not None:
            reconciled = [case for case in reconciled if case.status == filters.status]
        return reconciled

    async def monitoring(
        self,
        actor: Actor,
        status: str | None = None,
        category: str | None = None,
        limit: int = 100,
    ) -> list[CaseDetail]:
        """Super-admin view: latest cases with their full workflow data."""
        if actor.role != Role.SUPER_ADMIN:
            raise ForbiddenError("Unauthorized - Super Admin only")
        cases = await repositories.list_cases(
            self.db,
            kind=self.workflow.kind.value,
            category=None if category in (None, "all") else category,
        )
        reconciled = [await self.orchestrator.reconcile(case) for case in cases]
        if status not in (None, "all"):
            reconciled = [case for case in reconciled if case.status == status]
        return await self._assemble(reconciled[:limit])

    async def _assemble(self, cases: list[Case]) -> list[CaseDetail]:
        case_ids = [case.case_id for case in cases]
        messages = await repositories.list_messages(self.db, case_ids)
        evidence = await repositories.list_evidence(self.db, case_ids)
        decisions = await ledger.list_decisions(self.db, case_ids)

        grouped = {case.case_id: CaseDetail(case=case) for case in cases}
        for message in messages:
            grouped[message.case_id].messages.append(message)
        for item in evidence:
            grouped[item.case_id].evidence.append(item)
        for decision in decisions:
            grouped[decision.case_id].decisions.append(decision)
        return [grouped[case_id] for case_id in case_ids]


async def audit_trail(
    db: AsyncSession, actor: Actor, resource_type: str, resource_id: str, limit: int = 100
) -> list[AuditLog]:
    """Audit records for one resource. Prime admin or above."""
    if not is_prime_admin_or_higher(actor.role):
        raise ForbiddenError("Forbidden - Prime Admin or Super Admin access required")
    if not resource_type or not resource_id:
        raise InvalidRequestError("resource_type and resource_id are required")
    return await repositories.list_audit_logs(db, resource_type, resource_id, limit)

"""Admin and prime-admin endpoints - decisions, status changes, overrides, audits."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dcre.api.cases import case_detail_out
from dcre.api.deps import orchestrator_dependency, query_dependency
from dcre.auth.middleware import ActorDep
from dcre.config import settings
from dcre.database import get_db
from dcre.engine.orchestrator import CaseOrchestrator, TransitionOutcome
from dcre.engine.queries import CaseQueryService, audit_trail
from dcre.engine.workflows import Workflow
from dcre.schemas.admin import (
    AuditLogOut,
    AuditTrailResponse,
    DecisionRequest,
    MonitoringResponse,
    StatusUpdateRequest,
    TransitionResponse,
)
from dcre.schemas.cases import CaseStatusOut, DecisionOut


def transition_response(outcome: TransitionOutcome) -> TransitionResponse:
    return TransitionResponse(
        case=CaseStatusOut(case_id=outcome.case.case_id, status=outcome.case.status),
        decision=DecisionOut.model_validate(outcome.decision) if outcome.decision else None,
        previous_state={"status": outcome.from_status.value},
        new_state={"status": outcome.to_status.value},
    )


def build_admin_router(workflow: Workflow) -> APIRouter:
    """Decision, status and monitoring endpoints for admin-tier actors."""
    router = APIRouter()
    OrchestratorDep = Annotated[CaseOrchestrator, Depends(orchestrator_dependency(workflow))]
    QueriesDep = Annotated[CaseQueryService, Depends(query_dependency(workflow))]

    @router.get("/monitoring", response_model=MonitoringResponse)
    async def monitoring(
        actor: ActorDep,
        queries: QueriesDep,
        status: str | None = None,
        category: str | None = None,
    ):
        """Latest cases with full workflow data. Super admin only."""
        details = await queries.monitoring(
            actor, status=status, category=category, limit=settings.monitoring_limit
        )
        return MonitoringResponse(cases=[case_detail_out(d) for d in details])

    @router.post("/{case_id}/decision", response_model=TransitionResponse)
    async def decide(
        case_id: str,
        body: DecisionRequest,
        actor: ActorDep,
        orchestrator: OrchestratorDep,
    ):
        """Record a resolution decision; the case moves to the status it implies."""
        outcome = await orchestrator.decide(case_id, body.decision, body.notes, actor)
        return transition_response(outcome)

    @router.post("/{case_id}/status", response_model=TransitionResponse)
    async def change_status(
        case_id: str,
        body: StatusUpdateRequest,
        actor: ActorDep,
        orchestrator: OrchestratorDep,
    ):
        outcome = await orchestrator.change_status(case_id, body.status, body.notes, actor)
        return transition_response(outcome)

    return router


def build_override_router(workflow: Workflow) -> APIRouter:
    """Prime admin override endpoint for closed cases."""
    router = APIRouter()
    OrchestratorDep = Annotated[CaseOrchestrator, Depends(orchestrator_dependency(workflow))]

    @router.post("/{case_id}/override", response_model=TransitionResponse)
    async def override(
        case_id: str,
        body: DecisionRequest,
        actor: ActorDep,
        orchestrator: OrchestratorDep,
    ):
        outcome = await orchestrator.override(case_id, body.decision, body.notes, actor)
        return transition_response(outcome)

    return router


audit_router = APIRouter()


@audit_router.get("/audits/{resource_type}/{resource_id}", response_model=AuditTrailResponse)
async def get_audit_trail(
    resource_type: str,
    resource_id: str,
    actor: ActorDep,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Audit records for a resource, newest first. Prime admin or above."""
    logs = await audit_trail(db, actor, resource_type, resource_id)
    return AuditTrailResponse(audit_logs=[AuditLogOut.model_validate(log) for log in logs])

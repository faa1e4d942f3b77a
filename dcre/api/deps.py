"""Shared FastAPI dependencies for the case routers."""

from collections.abc import Callable
from datetime import datetime
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dcre.audit.sink import AuditSink, DatabaseAuditSink
from dcre.config import settings
from dcre.database import async_session_maker, get_db
from dcre.engine.orchestrator import CaseOrchestrator
from dcre.engine.queries import CaseQueryService
from dcre.engine.rules import utcnow
from dcre.engine.workflows import CaseKind, Workflow
from dcre.storage.object_store import ObjectStore

_audit_sink = DatabaseAuditSink(async_session_maker)


def get_audit_sink() -> AuditSink:
    return _audit_sink


def get_clock() -> Callable[[], datetime]:
    return utcnow


def evidence_bucket(workflow: Workflow) -> str:
    if workflow.kind == CaseKind.DISPUTE:
        return settings.dispute_evidence_bucket
    return settings.complaint_evidence_bucket


def orchestrator_dependency(workflow: Workflow):
    """Build a per-request orchestrator bound to one workflow."""

    async def _get_orchestrator(
        db: Annotated[AsyncSession, Depends(get_db)],
        audit_sink: Annotated[AuditSink, Depends(get_audit_sink)],
        clock: Annotated[Callable[[], datetime], Depends(get_clock)],
    ) -> CaseOrchestrator:
        return CaseOrchestrator(
            db,
            workflow,
            audit_sink,
            object_store=ObjectStore(evidence_bucket(workflow)),
            clock=clock,
        )

    return _get_orchestrator


def query_dependency(workflow: Workflow):
    get_orchestrator = orchestrator_dependency(workflow)

    async def _get_queries(
        db: Annotated[AsyncSession, Depends(get_db)],
        orchestrator: Annotated[CaseOrchestrator, Depends(get_orchestrator)],
    ) -> CaseQueryService:
        return CaseQueryService(db, orchestrator)

    return _get_queries

"""Party-facing case endpoints, built once per workflow."""

from typing import Annotated

from fastapi import APIRouter, Depends

from dcre.api.deps import orchestrator_dependency, query_dependency
from dcre.auth.middleware import ActorDep
from dcre.config import settings
from dcre.engine.orchestrator import CaseOrchestrator
from dcre.engine.queries import CaseDetail, CaseFilters, CaseQueryService
from dcre.engine.workflows import Workflow
from dcre.schemas.cases import (
    AddMessageRequest,
    CaseDetailOut,
    CaseListResponse,
    CaseOut,
    CaseStatusOut,
    DecisionOut,
    EvidenceOut,
    EvidenceSignRequest,
    EvidenceSignResponse,
    MessageOut,
    MessageResponse,
    OpenCaseRequest,
    UploadOut,
)
from dcre.storage.object_store import FileDescriptor


def case_detail_out(detail: CaseDetail) -> CaseDetailOut:
    return CaseDetailOut(
        **CaseOut.model_validate(detail.case).model_dump(),
        messages=[MessageOut.model_validate(m) for m in detail.messages],
        evidence=[EvidenceOut.model_validate(e) for e in detail.evidence],
        decisions=[DecisionOut.model_validate(d) for d in detail.decisions],
    )


def build_case_router(workflow: Workflow) -> APIRouter:
    """Create, list, read, message and evidence endpoints for one workflow."""
    router = APIRouter()
    OrchestratorDep = Annotated[CaseOrchestrator, Depends(orchestrator_dependency(workflow))]
    QueriesDep = Annotated[CaseQueryService, Depends(query_dependency(workflow))]

    @router.post("", response_model=CaseOut)
    async def open_case(
        body: OpenCaseRequest,
        actor: ActorDep,
        orchestrator: OrchestratorDep,
    ):
        """Open a case on one of the caller's bookings."""
        case = await orchestrator.open_case(body.booking_id, body.category, body.summary, actor)
        return CaseOut.model_validate(case)

    @router.get("", response_model=CaseListResponse)
    async def list_cases(
        actor: ActorDep,
        queries: QueriesDep,
        booking_id: str | None = None,
        status: str | None = None,
        category: str | None = None,
        opened_by: str | None = None,
        counterparty_id: str | None = None,
    ):
        """Cases visible to the caller, newest first."""
        cases = await queries.list_cases(
            actor,
            CaseFilters(
                booking_id=booking_id,
                status=status,
                category=category,
                opened_by=opened_by,
                counterparty_id=counterparty_id,
            ),
        )
        return CaseListResponse(cases=[CaseOut.model_validate(c) for c in cases])

    @router.get("/{case_id}", response_model=CaseDetailOut)
    async def get_case(case_id: str, actor: ActorDep, queries: QueriesDep):
        """Case with messages, evidence and decisions (response window checked first)."""
        return case_detail_out(await queries.get_case(case_id, actor))

    @router.post("/{case_id}/messages", response_model=MessageResponse)
    async def add_message(
        case_id: str,
        body: AddMessageRequest,
        actor: ActorDep,
        orchestrator: OrchestratorDep,
    ):
        message, case = await orchestrator.add_message(case_id, body.message, actor)
        return MessageResponse(
            message=MessageOut.model_validate(message),
            case=CaseStatusOut(case_id=case.case_id, status=case.status),
        )

    @router.post("/{case_id}/evidence/sign", response_model=EvidenceSignResponse)
    async def sign_evidence(
        case_id: str,
        body: EvidenceSignRequest,
        actor: ActorDep,
        orchestrator: OrchestratorDep,
    ):
        """
        Upload paths for client-side uploads.
        The client uploads bytes straight to the bucket using these paths.
        """
        files = [FileDescriptor(name=f.name, content_type=f.content_type) for f in body.files]
        uploads, rows = await orchestrator.add_evidence(case_id, files, actor)
        return EvidenceSignResponse(
            bucket=orchestrator.object_store.bucket,
            uploads=[
                UploadOut(path=u.path, name=u.name, content_type=u.content_type)
                for u in uploads
            ],
            evidence_ids=[row.evidence_id for row in rows],
            metadata={
                "case_id": case_id,
                "uploaded_by": actor.actor_id,
                "uploaded_by_role": actor.role.value,
            },
        )

    if workflow.draft_status is not None:

        @router.post("/{case_id}/submit", response_model=CaseStatusOut)
        async def submit_case(case_id: str, actor: ActorDep, orchestrator: OrchestratorDep):
            """Submit a draft once the opener has accepted the terms."""
            case = await orchestrator.submit_draft(
                case_id,
                actor,
                settings.complaint_policy_key,
                settings.complaint_policy_version,
            )
            return CaseStatusOut(case_id=case.case_id, status=case.status)

    return router

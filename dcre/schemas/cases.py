"""Case request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class OpenCaseRequest(BaseModel):
    """POST /v1/{disputes|complaints} request."""

    booking_id: str
    category: str
    summary: str


class AddMessageRequest(BaseModel):
    """POST /v1/{kind}/{id}/messages request."""

    message: str


class FileIn(BaseModel):
    """File the client intends to upload."""

    name: str
    content_type: str | None = None


class EvidenceSignRequest(BaseModel):
    """POST /v1/{kind}/{id}/evidence/sign request."""

    files: list[FileIn] = Field(default_factory=list)


class CaseOut(BaseModel):
    """Case summary."""

    model_config = ConfigDict(from_attributes=True)

    case_id: str
    kind: str
    booking_id: str
    category: str
    status: str
    summary: str
    opened_by: str
    opened_by_role: str
    renter_id: str
    dealer_id: str
    created_at: datetime
    updated_at: datetime


class CaseStatusOut(BaseModel):
    case_id: str
    status: str


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: str
    case_id: str
    sender_id: str
    sender_role: str
    body: str
    created_at: datetime


class EvidenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    evidence_id: str
    case_id: str
    uploaded_by: str
    uploaded_by_role: str
    bucket: str
    storage_path: str
    file_name: str
    content_type: str | None = None
    created_at: datetime


class DecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    decision_id: str
    case_id: str
    decided_by: str
    decided_by_role: str
    decision: str
    is_override: bool
    from_status: str
    to_status: str
    notes: str
    created_at: datetime


class CaseDetailOut(CaseOut):
    """Case with its workflow data, each list oldest first."""

    messages: list[MessageOut] = Field(default_factory=list)
    evidence: list[EvidenceOut] = Field(default_factory=list)
    decisions: list[DecisionOut] = Field(default_factory=list)


class CaseListResponse(BaseModel):
    cases: list[CaseOut] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: MessageOut
    case: CaseStatusOut


class UploadOut(BaseModel):
    path: str
    name: str
    content_type: str | None = None


class EvidenceSignResponse(BaseModel):
    """Upload locations; the client uploads bytes straight to the bucket."""

    bucket: str
    uploads: list[UploadOut]
    evidence_ids: list[str]
    metadata: dict[str, str]

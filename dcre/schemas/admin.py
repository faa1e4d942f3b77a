"""Admin API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dcre.schemas.cases import CaseDetailOut, CaseStatusOut, DecisionOut


class DecisionRequest(BaseModel):
    """POST /v1/admin/{kind}/{id}/decision and /v1/prime-admin/{kind}/{id}/override."""

    decision: str
    notes: str | None = None


class StatusUpdateRequest(BaseModel):
    """POST /v1/admin/{kind}/{id}/status request."""

    status: str
    notes: str | None = None


class TransitionResponse(BaseModel):
    case: CaseStatusOut
    decision: DecisionOut | None = None
    previous_state: dict[str, str]
    new_state: dict[str, str]


class MonitoringResponse(BaseModel):
    cases: list[CaseDetailOut] = Field(default_factory=list)


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    audit_id: str
    actor_id: str | None = None
    actor_role: str | None = None
    action: str
    resource_type: str
    resource_id: str | None = None
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None
    details: dict[str, Any] | None = None
    notes: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    success: bool
    error_message: str | None = None
    created_at: datetime


class AuditTrailResponse(BaseModel):
    audit_logs: list[AuditLogOut] = Field(default_factory=list)

"""Policy acceptance schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class PolicyAcceptRequest(BaseModel):
    """POST /v1/policies/accept request. Omit the resource for a global acceptance."""

    policy_key: str
    policy_version: str
    resource_type: str | None = None
    resource_id: str | None = None


class PolicyAcceptanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    acceptance_id: str
    profile_id: str
    policy_key: str
    policy_version: str
    resource_type: str | None = None
    resource_id: str | None = None
    accepted_at: datetime

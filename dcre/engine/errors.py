"""Workflow error taxonomy.

Every rejection carries a specific, user-facing reason so API consumers can
explain the policy to the end user. None of these are retried internally.
"""

from typing import Any


class CaseWorkflowError(Exception):
    """Base class for structured workflow rejections."""

    code = "workflow_error"
    status_code = 400

    def __init__(self, reason: str, **extra: Any):
        super().__init__(reason)
        self.reason = reason
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.reason, **self.extra}


class UnauthorizedError(CaseWorkflowError):
    code = "unauthorized"
    status_code = 401


class ForbiddenError(CaseWorkflowError):
    code = "forbidden"
    status_code = 403


class NotFoundError(CaseWorkflowError):
    code = "not_found"
    status_code = 404


class IneligibleError(CaseWorkflowError):
    """Booking does not qualify for a new case."""

    code = "ineligible"


class InvalidTransitionError(CaseWorkflowError):
    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        super().__init__(
            reason or f"Invalid status transition from {from_status} to {to_status}",
            from_status=from_status,
            to_status=to_status,
        )
        self.from_status = from_status
        self.to_status = to_status


class ClosedCaseError(CaseWorkflowError):
    code = "case_closed"


class EmptyNotesError(CaseWorkflowError):
    code = "notes_required"


class InvalidRequestError(CaseWorkflowError):
    code = "invalid_request"


class AlreadyExistsError(CaseWorkflowError):
    code = "already_exists"
    status_code = 409


class AlreadySubmittedError(AlreadyExistsError):
    code = "already_submitted"


class PolicyNotAcceptedError(CaseWorkflowError):
    code = "policy_not_accepted"
    status_code = 403

    def __init__(self, policy_key: str, policy_version: str):
        super().__init__(
            "Policy acceptance required",
            policy_key=policy_key,
            policy_version=policy_version,
        )


class LedgerInconsistencyError(CaseWorkflowError):
    """Decision insert and status update could not be applied together."""

    code = "ledger_inconsistency"
    status_code = 500

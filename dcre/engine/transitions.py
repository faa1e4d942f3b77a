"""Case status transition validator - pure functions over a Workflow."""

from dcre.auth.roles import Role, is_admin, is_prime_admin_or_higher
from dcre.engine.errors import (
    EmptyNotesError,
    ForbiddenError,
    InvalidRequestError,
    InvalidTransitionError,
)
from dcre.engine.workflows import (
    CaseStatus,
    OverrideDecision,
    ResolutionDecision,
    Workflow,
)


def check_edge(workflow: Workflow, from_status: CaseStatus, to_status: CaseStatus) -> None:
    """Raise InvalidTransitionError unless from -> to is in the workflow's table."""
    if to_status not in workflow.allowed_targets(from_status):
        if from_status == workflow.terminal_status and to_status != from_status:
            raise InvalidTransitionError(
                from_status.value,
                to_status.value,
                reason=(
                    f"Closed {workflow.kind.value}s cannot be reopened "
                    "except by a prime admin override"
                ),
            )
        raise InvalidTransitionError(from_status.value, to_status.value)


def validate_status_change(
    workflow: Workflow,
    role: Role | None,
    from_status: CaseStatus,
    to_status: CaseStatus,
) -> None:
    """Ordinary (non-override) status change by an admin-tier actor."""
    if not is_admin(role):
        raise ForbiddenError(f"Only admins can change {workflow.kind.value} status")
    check_edge(workflow, from_status, to_status)


def validate_override(
    workflow: Workflow,
    role: Role | None,
    from_status: CaseStatus,
    to_status: CaseStatus,
    notes: str | None,
) -> str:
    """Prime-admin override on a closed case. Returns the stripped notes."""
    if not is_prime_admin_or_higher(role):
        raise ForbiddenError(
            "Forbidden - Prime Admin or Super Admin access required"
        )
    cleaned = require_notes(notes, "Notes are required for override decisions")
    if from_status != workflow.terminal_status:
        raise InvalidTransitionError(
            from_status.value,
            to_status.value,
            reason=f"Overrides apply only to closed {workflow.kind.value}s",
        )
    if to_status not in workflow.states:
        raise InvalidTransitionError(from_status.value, to_status.value)
    return cleaned


def require_notes(notes: str | None, message: str = "Notes are required for decisions") -> str:
    if notes is None or not notes.strip():
        raise EmptyNotesError(message)
    return notes.strip()


def resolve_decision(workflow: Workflow, value: str) -> tuple[ResolutionDecision, CaseStatus]:
    """Map a resolution decision onto the status it implies."""
    allowed = [d.value for d in workflow.decision_map]
    try:
        decision = ResolutionDecision(value)
    except ValueError:
        decision = None
    if decision is None or decision not in workflow.decision_map:
        raise InvalidRequestError(
            f"Invalid decision. Must be one of: {', '.join(allowed)}"
        )
    return decision, workflow.decision_map[decision]


def resolve_override(workflow: Workflow, value: str) -> tuple[OverrideDecision, CaseStatus]:
    """Map an override decision onto the status it implies."""
    allowed = [d.value for d in workflow.override_map]
    try:
        decision = OverrideDecision(value)
    except ValueError:
        raise InvalidRequestError(
            f"Invalid decision. Must be one of: {', '.join(allowed)}"
        ) from None
    return decision, workflow.override_map[decision]


def can_append(workflow: Workflow, status: CaseStatus) -> bool:
    """Messages and evidence are accepted in every state but the terminal one."""
    return status != workflow.terminal_status


def message_side_effect(
    workflow: Workflow, status: CaseStatus, sender_role: Role
) -> CaseStatus | None:
    """Status a new message moves the case to, if any."""
    if workflow.message_advance_from is None or status != workflow.message_advance_from:
        return None
    if sender_role not in workflow.message_advance_roles:
        return None
    return workflow.message_advance_to

"""Workflow definitions for disputes and complaints.

Both workflows share one shape: a state set, a transition table, a
decision -> status mapping for ordinary resolutions, a separate mapping for
prime-admin overrides on closed cases, and optional time/message side effects.
The orchestrator and validator only ever read these tables.
"""

from dataclasses import dataclass
from enum import Enum

from dcre.auth.roles import Role


class CaseKind(str, Enum):
    DISPUTE = "dispute"
    COMPLAINT = "complaint"


class CaseCategory(str, Enum):
    DAMAGE = "damage"
    NO_SHOW = "no_show"
    BILLING = "billing"
    LATE_RETURN = "late_return"
    CLEANING_FEE = "cleaning_fee"
    MECHANICAL_ISSUE = "mechanical_issue"
    SAFETY_CONCERN = "safety_concern"
    OTHER = "other"


class CaseStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    OPEN = "open"
    AWAITING_RESPONSE = "awaiting_response"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    CLOSED = "closed"


class ResolutionDecision(str, Enum):
    """Decisions any admin-tier actor may record on a live case."""

    NO_ACTION = "no_action"
    PARTIAL_REFUND = "partial_refund"
    FULL_REFUND = "full_refund"
    FEE_WAIVED = "fee_waived"
    ESCALATE_TO_COVERAGE = "escalate_to_coverage"
    CLOSE = "close"


class OverrideDecision(str, Enum):
    """Prime-admin decisions on a closed case."""

    REVERSE = "reverse"
    FLAG = "flag"
    LOCK = "lock"
    CLOSE = "close"


@dataclass(frozen=True)
class Workflow:
    kind: CaseKind
    states: frozenset[CaseStatus]
    initial_status: CaseStatus
    terminal_status: CaseStatus
    transitions: dict[CaseStatus, frozenset[CaseStatus]]
    decision_map: dict[ResolutionDecision, CaseStatus]
    override_map: dict[OverrideDecision, CaseStatus]
    opener_role: Role
    counterparty_role: Role
    # Opening party submits the draft before the workflow proper begins
    draft_status: CaseStatus | None = None
    submitted_status: CaseStatus | None = None
    # A message from one of these roles while in message_advance_from moves
    # the case to message_advance_to
    message_advance_from: CaseStatus | None = None
    message_advance_to: CaseStatus | None = None
    message_advance_roles: frozenset[Role] = frozenset()
    # Counterparty silence while in one of these states escalates the case
    response_window_states: frozenset[CaseStatus] = frozenset()
    response_window_target: CaseStatus | None = None
    # Verb used in ineligibility reasons ("Cannot dispute bookings ...")
    ineligible_verb: str = ""

    @property
    def resource_type(self) -> str:
        return self.kind.value

    @property
    def action_prefix(self) -> str:
        return self.kind.value.upper()

    def allowed_targets(self, status: CaseStatus) -> frozenset[CaseStatus]:
        return self.transitions.get(status, frozenset())

    def parse_status(self, value: str) -> CaseStatus | None:
        try:
            status = CaseStatus(value)
        except ValueError:
            return None
        return status if status in self.states else None


_DISPUTE_STATES = frozenset({
    CaseStatus.OPEN,
    CaseStatus.AWAITING_RESPONSE,
    CaseStatus.UNDER_REVIEW,
    CaseStatus.RESOLVED,
    CaseStatus.ESCALATED,
    CaseStatus.CLOSED,
})

DISPUTE_WORKFLOW = Workflow(
    kind=CaseKind.DISPUTE,
    states=_DISPUTE_STATES,
    initial_status=CaseStatus.OPEN,
    terminal_status=CaseStatus.CLOSED,
    transitions={
        CaseStatus.OPEN: frozenset({
            CaseStatus.AWAITING_RESPONSE,
            CaseStatus.UNDER_REVIEW,
            CaseStatus.RESOLVED,
            CaseStatus.ESCALATED,
            CaseStatus.CLOSED,
        }),
        CaseStatus.AWAITING_RESPONSE: frozenset({
            CaseStatus.UNDER_REVIEW,
            CaseStatus.RESOLVED,
            CaseStatus.ESCALATED,
            CaseStatus.CLOSED,
        }),
        CaseStatus.UNDER_REVIEW: frozenset({
            CaseStatus.RESOLVED,
            CaseStatus.ESCALATED,
            CaseStatus.CLOSED,
        }),
        CaseStatus.RESOLVED: frozenset({CaseStatus.CLOSED}),
        CaseStatus.ESCALATED: frozenset({CaseStatus.RESOLVED, CaseStatus.CLOSED}),
        CaseStatus.CLOSED: frozenset({CaseStatus.CLOSED}),
    },
    decision_map={
        ResolutionDecision.NO_ACTION: CaseStatus.RESOLVED,
        ResolutionDecision.PARTIAL_REFUND: CaseStatus.RESOLVED,
        ResolutionDecision.FULL_REFUND: CaseStatus.RESOLVED,
        ResolutionDecision.FEE_WAIVED: CaseStatus.RESOLVED,
        ResolutionDecision.ESCALATE_TO_COVERAGE: CaseStatus.ESCALATED,
        ResolutionDecision.CLOSE: CaseStatus.CLOSED,
    },
    override_map={
        OverrideDecision.REVERSE: CaseStatus.RESOLVED,
        OverrideDecision.FLAG: CaseStatus.UNDER_REVIEW,
        OverrideDecision.LOCK: CaseStatus.CLOSED,
        OverrideDecision.CLOSE: CaseStatus.CLOSED,
    },
    opener_role=Role.RENTER,
    counterparty_role=Role.DEALER,
    message_advance_from=CaseStatus.OPEN,
    message_advance_to=CaseStatus.AWAITING_RESPONSE,
    message_advance_roles=frozenset({
        Role.DEALER, Role.ADMIN, Role.PRIME_ADMIN, Role.SUPER_ADMIN,
    }),
    response_window_states=frozenset({CaseStatus.OPEN, CaseStatus.AWAITING_RESPONSE}),
    response_window_target=CaseStatus.UNDER_REVIEW,
    ineligible_verb="dispute",
)


COMPLAINT_WORKFLOW = Workflow(
    kind=CaseKind.COMPLAINT,
    states=frozenset({
        CaseStatus.DRAFT,
        CaseStatus.SUBMITTED,
        CaseStatus.UNDER_REVIEW,
        CaseStatus.RESOLVED,
        CaseStatus.CLOSED,
    }),
    initial_status=CaseStatus.DRAFT,
    terminal_status=CaseStatus.CLOSED,
    transitions={
        CaseStatus.DRAFT: frozenset({CaseStatus.SUBMITTED, CaseStatus.CLOSED}),
        CaseStatus.SUBMITTED: frozenset({
            CaseStatus.UNDER_REVIEW,
            CaseStatus.RESOLVED,
            CaseStatus.CLOSED,
        }),
        CaseStatus.UNDER_REVIEW: frozenset({CaseStatus.RESOLVED, CaseStatus.CLOSED}),
        CaseStatus.RESOLVED: frozenset({CaseStatus.CLOSED}),
        CaseStatus.CLOSED: frozenset({CaseStatus.CLOSED}),
    },
    decision_map={
        ResolutionDecision.NO_ACTION: CaseStatus.RESOLVED,
        ResolutionDecision.PARTIAL_REFUND: CaseStatus.RESOLVED,
        ResolutionDecision.FULL_REFUND: CaseStatus.RESOLVED,
        ResolutionDecision.FEE_WAIVED: CaseStatus.RESOLVED,
        ResolutionDecision.CLOSE: CaseStatus.CLOSED,
    },
    override_map={
        OverrideDecision.REVERSE: CaseStatus.SUBMITTED,
        OverrideDecision.FLAG: CaseStatus.UNDER_REVIEW,
        OverrideDecision.LOCK: CaseStatus.CLOSED,
        OverrideDecision.CLOSE: CaseStatus.CLOSED,
    },
    opener_role=Role.DEALER,
    counterparty_role=Role.RENTER,
    draft_status=CaseStatus.DRAFT,
    submitted_status=CaseStatus.SUBMITTED,
    ineligible_verb="file complaints on",
)


WORKFLOWS: dict[CaseKind, Workflow] = {
    CaseKind.DISPUTE: DISPUTE_WORKFLOW,
    CaseKind.COMPLAINT: COMPLAINT_WORKFLOW,
}

"""Time-based reconcile and booking eligibility rules - pure, no I/O."""

from datetime import datetime, timedelta, timezone
from typing import Protocol

from dcre.auth.roles import Role
from dcre.engine.workflows import CaseStatus, Workflow

RESPONSE_WINDOW_EXPIRED = "dealer_response_window_expired"

ELIGIBLE_BOOKING_STATUSES = frozenset({"confirmed", "completed"})


class BookingLike(Protocol):
    renter_id: str
    dealer_id: str
    status: str
    start_date: datetime
    end_date: datetime


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def reconcile_status(
    workflow: Workflow,
    status: CaseStatus,
    created_at: datetime,
    now: datetime,
    counterparty_replied: bool,
    window: timedelta,
) -> CaseStatus | None:
    """
    Status the case should lazily move to, or None.

    Fires when the workflow has a response window, the case still sits in one
    of the awaiting states, more than `window` has passed since creation and
    the counterparty has not posted a single message. Already-escalated cases
    are outside the awaiting states, so re-checking is a no-op.
    """
    if workflow.response_window_target is None:
        return None
    if status not in workflow.response_window_states:
        return None
    if as_utc(now) - as_utc(created_at) <= window:
        return None
    if counterparty_replied:
        return None
    return workflow.response_window_target


def booking_owner_id(workflow: Workflow, booking: BookingLike) -> str:
    return booking.renter_id if workflow.opener_role == Role.RENTER else booking.dealer_id


def booking_ineligibility_reason(
    workflow: Workflow,
    booking: BookingLike | None,
    actor_id: str,
    now: datetime,
) -> str | None:
    """Reason a new case cannot be opened on this booking, or None if eligible."""
    if booking is None:
        return "Booking not found"
    if booking_owner_id(workflow, booking) != actor_id:
        return f"Booking does not belong to {workflow.opener_role.value}"
    verb = workflow.ineligible_verb
    if booking.status == "canceled":
        # Canceled after the rental started still counts
        if as_utc(now) >= as_utc(booking.start_date):
            return None
        return f"Cannot {verb} bookings canceled before start date"
    if booking.status not in ELIGIBLE_BOOKING_STATUSES:
        return f"Cannot {verb} bookings with status: {booking.status}"
    return None

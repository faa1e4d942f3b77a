"""Workflow orchestrator tests against a SQLite database."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from conftest import T0, accept_policy, actor_for, decisions_for, make_booking, make_profile
from dcre.engine.errors import (
    AlreadySubmittedError,
    ClosedCaseError,
    EmptyNotesError,
    ForbiddenError,
    IneligibleError,
    InvalidRequestError,
    InvalidTransitionError,
    LedgerInconsistencyError,
    NotFoundError,
    PolicyNotAcceptedError,
)
from dcre.engine.queries import CaseQueryService
from dcre.engine.workflows import DISPUTE_WORKFLOW, CaseStatus, ResolutionDecision
from dcre.storage import repositories
from dcre.storage.object_store import FileDescriptor


async def _open_dispute(disputes, booking, parties, category="damage"):
    return await disputes.open_case(
        booking.booking_id, category, "Scratch on the rear bumper", parties.renter
    )


async def _closed_dispute(disputes, booking, parties, clock):
    case = await _open_dispute(disputes, booking, parties)
    clock.advance(minutes=5)
    await disputes.decide(case.case_id, "close", "Nothing further to do", parties.admin)
    clock.advance(minutes=5)
    return case


async def test_renter_opens_dispute(disputes, booking, parties, audit):
    case = await _open_dispute(disputes, booking, parties)
    assert case.status == "open"
    assert case.kind == "dispute"
    assert case.renter_id == parties.renter.actor_id
    assert case.dealer_id == parties.dealer.actor_id
    assert audit.actions() == ["DISPUTE_CREATED"]
    assert audit.last().resource_id == case.case_id
    assert audit.last().new_state == {"status": "open"}


async def test_dealer_cannot_open_dispute(disputes, booking, parties, audit):
    with pytest.raises(ForbiddenError):
        await disputes.open_case(booking.booking_id, "damage", "x", parties.dealer)
    assert audit.last().success is False
    assert audit.last().error_message == "Only renters can create disputes"


async def test_invalid_category(disputes, booking, parties):
    with pytest.raises(InvalidRequestError) as exc:
        await disputes.open_case(booking.booking_id, "vibes", "x", parties.renter)
    assert "damage" in exc.value.reason


async def test_missing_booking_is_ineligible(disputes, parties):
    with pytest.raises(IneligibleError) as exc:
        await disputes.open_case(
            "00000000-0000-0000-0000-000000000000", "damage", "x", parties.renter
        )
    assert exc.value.reason == "Booking not found"


async def test_canceled_before_start_is_ineligible(db, disputes, parties):
    booking = await make_booking(
        db,
        parties.renter.actor_id,
        parties.dealer.actor_id,
        status="canceled",
        start_date=T0 + timedelta(days=2),
    )
    with pytest.raises(IneligibleError) as exc:
        await _open_dispute(disputes, booking, parties)
    assert exc.value.reason == "Cannot dispute bookings canceled before start date"


async def test_other_renters_booking_is_ineligible(db, disputes, booking):
    stranger = actor_for(await make_profile(db, "renter"))
    with pytest.raises(IneligibleError) as exc:
        await disputes.open_case(booking.booking_id, "damage", "x", stranger)
    assert exc.value.reason == "Booking does not belong to renter"


async def test_dealer_message_moves_open_to_awaiting_response(disputes, booking, parties, audit):
    case = await _open_dispute(disputes, booking, parties)
    message, case = await disputes.add_message(case.case_id, "Looking into it", parties.dealer)
    assert message.sender_role == "dealer"
    assert case.status == "awaiting_response"
    record = audit.last()
    assert record.action == "DISPUTE_MESSAGE_ADDED"
    assert record.previous_state == {"status": "open"}
    assert record.new_state == {"status": "awaiting_response"}


async def test_admin_message_moves_open_to_awaiting_response(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    _, case = await disputes.add_message(case.case_id, "Please respond", parties.admin)
    assert case.status == "awaiting_response"


async def test_renter_message_leaves_dispute_open(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    _, case = await disputes.add_message(case.case_id, "More photos coming", parties.renter)
    assert case.status == "open"


async def test_blank_message_rejected(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(InvalidRequestError):
        await disputes.add_message(case.case_id, "   ", parties.renter)


async def test_outsider_cannot_message(db, disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    stranger = actor_for(await make_profile(db, "dealer"))
    with pytest.raises(ForbiddenError):
        await disputes.add_message(case.case_id, "hello", stranger)


async def test_closed_case_rejects_messages_and_evidence_for_everyone(
    disputes, booking, parties, clock, audit
):
    case_id = (await _closed_dispute(disputes, booking, parties, clock)).case_id
    for actor in (
        parties.renter,
        parties.dealer,
        parties.admin,
        parties.prime_admin,
        parties.super_admin,
    ):
        with pytest.raises(ClosedCaseError):
            await disputes.add_message(case_id, "anything", actor)
        with pytest.raises(ClosedCaseError):
            await disputes.add_evidence(case_id, [FileDescriptor("a.jpg")], actor)
    assert audit.last().success is False
    assert audit.last().error_message == "Cannot add evidence to closed disputes"


async def test_evidence_sign_records_pointers(disputes, booking, parties, clock, audit):
    case = await _open_dispute(disputes, booking, parties)
    uploads, rows = await disputes.add_evidence(
        case.case_id,
        [FileDescriptor("bumper.PNG", "image/png"), FileDescriptor("receipt")],
        parties.renter,
    )
    millis = int(clock.now.timestamp() * 1000)
    prefix = f"{parties.renter.actor_id}/disputes/{case.case_id}/{millis}"
    assert [u.path for u in uploads] == [f"{prefix}-0.png", f"{prefix}-1.jpg"]
    assert all(u.bucket == "dispute-evidence" for u in uploads)
    assert [r.storage_path for r in rows] == [u.path for u in uploads]
    assert audit.last().action == "DISPUTE_EVIDENCE_ADDED"
    assert audit.last().details["evidence_ids"] == [r.evidence_id for r in rows]


async def test_evidence_requires_files(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(InvalidRequestError):
        await disputes.add_evidence(case.case_id, [], parties.renter)


async def test_full_dispute_scenario(db, disputes, booking, parties, clock, audit):
    case = await _open_dispute(disputes, booking, parties)
    assert case.status == "open"

    clock.advance(hours=1)
    _, case = await disputes.add_message(case.case_id, "We will check", parties.dealer)
    assert case.status == "awaiting_response"

    clock.advance(hours=1)
    outcome = await disputes.decide(case.case_id, "partial_refund", "Refund 30%", parties.admin)
    assert outcome.from_status == CaseStatus.AWAITING_RESPONSE
    assert outcome.case.status == "resolved"

    clock.advance(hours=1)
    outcome = await disputes.decide(case.case_id, "close", "Refund paid", parties.admin)
    assert outcome.case.status == "closed"

    clock.advance(hours=1)
    outcome = await disputes.override(
        case.case_id, "reverse", "Appeal upheld", parties.prime_admin
    )
    assert outcome.case.status == "resolved"
    assert outcome.decision.is_override is True

    decisions = await decisions_for(db, case.case_id)
    assert [d.decision for d in decisions] == ["partial_refund", "close", "reverse"]
    assert [d.to_status for d in decisions] == ["resolved", "closed", "resolved"]
    assert [d.is_override for d in decisions] == [False, False, True]
    assert audit.actions() == [
        "DISPUTE_CREATED",
        "DISPUTE_MESSAGE_ADDED",
        "DISPUTE_DECISION",
        "DISPUTE_DECISION",
        "DISPUTE_PRIME_ADMIN_OVERRIDE",
    ]
    assert all(r.success for r in audit.records)
    assert audit.last().details["decision_id"] == decisions[-1].decision_id


@pytest.mark.parametrize("decision", [d.value for d in DISPUTE_WORKFLOW.decision_map])
async def test_each_decision_writes_one_row_and_one_status_change(
    db, disputes, booking, parties, decision
):
    case = await _open_dispute(disputes, booking, parties)
    outcome = await disputes.decide(case.case_id, decision, "Reviewed", parties.admin)
    rows = await decisions_for(db, case.case_id)
    assert len(rows) == 1
    expected = DISPUTE_WORKFLOW.decision_map[ResolutionDecision(decision)]
    assert outcome.case.status == expected.value
    assert rows[0].from_status == "open"
    assert rows[0].to_status == expected.value


async def test_blank_notes_rejected_for_every_decision(db, disputes, booking, parties, audit):
    case_id = (await _open_dispute(disputes, booking, parties)).case_id
    for decision in DISPUTE_WORKFLOW.decision_map:
        with pytest.raises(EmptyNotesError):
            await disputes.decide(case_id, decision.value, "   ", parties.admin)
    assert await decisions_for(db, case_id) == []
    assert (await disputes.fetch(case_id)).status == "open"
    failures = [r for r in audit.records if r.action == "DISPUTE_DECISION"]
    assert len(failures) == len(DISPUTE_WORKFLOW.decision_map)
    assert not any(r.success for r in failures)


async def test_unknown_decision_rejected(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(InvalidRequestError):
        await disputes.decide(case.case_id, "reverse", "n", parties.admin)


@pytest.mark.parametrize("role", ["renter", "dealer"])
async def test_parties_cannot_decide(disputes, booking, parties, role):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(ForbiddenError):
        await disputes.decide(case.case_id, "no_action", "n", getattr(parties, role))


async def test_admin_cannot_override_closed_case(disputes, booking, parties, clock):
    case = await _closed_dispute(disputes, booking, parties, clock)
    with pytest.raises(ForbiddenError):
        await disputes.override(case.case_id, "reverse", "please", parties.admin)


async def test_admin_cannot_reopen_through_status_change(disputes, booking, parties, clock):
    case = await _closed_dispute(disputes, booking, parties, clock)
    with pytest.raises(InvalidTransitionError) as exc:
        await disputes.change_status(case.case_id, "open", "reopen", parties.super_admin)
    assert exc.value.from_status == "closed"
    assert exc.value.to_status == "open"


async def test_super_admin_override_flags_closed_case(db, disputes, booking, parties, clock):
    case = await _closed_dispute(disputes, booking, parties, clock)
    outcome = await disputes.override(case.case_id, "flag", "Fraud check", parties.super_admin)
    assert outcome.case.status == "under_review"
    assert len(await decisions_for(db, case.case_id)) == 2


async def test_override_requires_notes(disputes, booking, parties, clock):
    case = await _closed_dispute(disputes, booking, parties, clock)
    with pytest.raises(EmptyNotesError):
        await disputes.override(case.case_id, "reverse", "", parties.prime_admin)


async def test_override_only_applies_to_closed_cases(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(InvalidTransitionError):
        await disputes.override(case.case_id, "lock", "n", parties.prime_admin)


async def test_change_status_without_ledger_row(db, disputes, booking, parties, audit):
    case = await _open_dispute(disputes, booking, parties)
    outcome = await disputes.change_status(case.case_id, "under_review", None, parties.admin)
    assert outcome.case.status == "under_review"
    assert outcome.decision is None
    assert await decisions_for(db, case.case_id) == []
    assert audit.last().action == "DISPUTE_STATUS_UPDATED"


async def test_change_status_to_closed_needs_notes(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(EmptyNotesError):
        await disputes.change_status(case.case_id, "closed", " ", parties.admin)


async def test_change_status_rejects_foreign_states(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(InvalidRequestError):
        await disputes.change_status(case.case_id, "draft", None, parties.admin)


async def test_stale_conditional_update_is_not_applied(db, disputes, booking, parties, clock):
    case = await _open_dispute(disputes, booking, parties)
    applied = await repositories.update_case_status_if(
        db, case.case_id, "awaiting_response", "closed", clock()
    )
    assert applied is False
    assert (await disputes.fetch(case.case_id)).status == "open"


async def test_lost_race_is_revalidated(db, disputes, booking, parties, monkeypatch):
    case = await _open_dispute(disputes, booking, parties)
    real = repositories.update_case_status_if
    calls = []

    async def lose_once(session, case_id, expected, new, now):
        calls.append(expected)
        if len(calls) == 1:
            return False
        return await real(session, case_id, expected, new, now)

    monkeypatch.setattr(repositories, "update_case_status_if", lose_once)
    outcome = await disputes.decide(case.case_id, "full_refund", "Refund", parties.admin)
    assert outcome.case.status == "resolved"
    assert len(calls) == 2
    # The first attempt's ledger row was rolled back with its transaction
    assert len(await decisions_for(db, case.case_id)) == 1


async def test_always_losing_race_gives_up(db, disputes, booking, parties, monkeypatch, audit):
    opened_id = (await _open_dispute(disputes, booking, parties)).case_id

    async def always_lose(session, case_id, expected, new, now):
        return False

    monkeypatch.setattr(repositories, "update_case_status_if", always_lose)
    with pytest.raises(InvalidTransitionError) as exc:
        await disputes.decide(opened_id, "full_refund", "Refund", parties.admin)
    assert "concurrently" in exc.value.reason
    assert await decisions_for(db, opened_id) == []
    assert audit.last().success is False


async def test_storage_failure_rolls_back_decision(db, disputes, booking, parties, monkeypatch):
    opened_id = (await _open_dispute(disputes, booking, parties)).case_id

    async def broken(session, case_id, expected, new, now):
        raise OperationalError("UPDATE cases", {}, Exception("disk I/O error"))

    monkeypatch.setattr(repositories, "update_case_status_if", broken)
    with pytest.raises(LedgerInconsistencyError):
        await disputes.decide(opened_id, "no_action", "n", parties.admin)
    assert await decisions_for(db, opened_id) == []
    monkeypatch.undo()
    assert (await disputes.fetch(opened_id)).status == "open"


async def test_silent_dealer_escalates_on_read(db, disputes, booking, parties, clock, audit):
    case = await _open_dispute(disputes, booking, parties)
    queries = CaseQueryService(db, disputes)

    clock.advance(hours=49)
    detail = await queries.get_case(case.case_id, parties.renter)
    assert detail.case.status == "under_review"
    auto = [r for r in audit.records if r.action == "DISPUTE_AUTO_TRANSITION"]
    assert len(auto) == 1
    assert auto[0].actor_id is None
    assert auto[0].actor_role is None
    assert auto[0].details["reason"] == "dealer_response_window_expired"

    detail = await queries.get_case(case.case_id, parties.renter)
    assert detail.case.status == "under_review"
    assert audit.actions().count("DISPUTE_AUTO_TRANSITION") == 1


async def test_inside_window_nothing_happens(db, disputes, booking, parties, clock, audit):
    case = await _open_dispute(disputes, booking, parties)
    clock.advance(hours=47)
    detail = await CaseQueryService(db, disputes).get_case(case.case_id, parties.renter)
    assert detail.case.status == "open"
    assert "DISPUTE_AUTO_TRANSITION" not in audit.actions()


async def test_dealer_reply_stops_escalation(db, disputes, booking, parties, clock):
    case = await _open_dispute(disputes, booking, parties)
    clock.advance(hours=1)
    await disputes.add_message(case.case_id, "On it", parties.dealer)
    clock.advance(hours=72)
    detail = await CaseQueryService(db, disputes).get_case(case.case_id, parties.dealer)
    assert detail.case.status == "awaiting_response"


async def test_write_path_reconciles_first(disputes, booking, parties, clock, audit):
    case = await _open_dispute(disputes, booking, parties)
    clock.advance(hours=49)
    _, case = await disputes.add_message(case.case_id, "Any news?", parties.renter)
    assert case.status == "under_review"
    assert audit.actions()[-2:] == ["DISPUTE_AUTO_TRANSITION", "DISPUTE_MESSAGE_ADDED"]


async def _open_complaint(complaints, booking, parties):
    return await complaints.open_case(
        booking.booking_id, "cleaning_fee", "Car returned full of sand", parties.dealer
    )


async def test_dealer_opens_complaint_as_draft(complaints, booking, parties, audit):
    case = await _open_complaint(complaints, booking, parties)
    assert case.status == "draft"
    assert case.kind == "complaint"
    assert audit.actions() == ["COMPLAINT_CREATED"]


async def test_renter_cannot_open_complaint(complaints, booking, parties):
    with pytest.raises(ForbiddenError):
        await complaints.open_case(booking.booking_id, "other", "x", parties.renter)


async def test_private_host_opens_complaint(db, complaints, parties):
    host = actor_for(await make_profile(db, "private_host"))
    booking = await make_booking(db, parties.renter.actor_id, host.actor_id)
    case = await complaints.open_case(booking.booking_id, "late_return", "Two hours late", host)
    assert case.opened_by_role == "dealer"


async def test_submit_requires_policy_acceptance(db, complaints, booking, parties):
    case_id = (await _open_complaint(complaints, booking, parties)).case_id
    with pytest.raises(PolicyNotAcceptedError) as exc:
        await complaints.submit_draft(case_id, parties.dealer, "dealer_complaint_terms", "1.0")
    assert exc.value.to_dict()["policy_key"] == "dealer_complaint_terms"
    assert exc.value.to_dict()["policy_version"] == "1.0"
    assert (await complaints.fetch(case_id)).status == "draft"


async def test_submit_with_scoped_acceptance(db, complaints, booking, parties, audit):
    case = await _open_complaint(complaints, booking, parties)
    await accept_policy(
        db, parties.dealer.actor_id, "dealer_complaint_terms", "1.0", resource_id=case.case_id
    )
    case = await complaints.submit_draft(
        case.case_id, parties.dealer, "dealer_complaint_terms", "1.0"
    )
    assert case.status == "submitted"
    assert audit.last().action == "COMPLAINT_SUBMITTED"

    with pytest.raises(AlreadySubmittedError):
        await complaints.submit_draft(case.case_id, parties.dealer, "dealer_complaint_terms", "1.0")


async def test_acceptance_of_other_version_does_not_count(db, complaints, booking, parties):
    case = await _open_complaint(complaints, booking, parties)
    await accept_policy(db, parties.dealer.actor_id, "dealer_complaint_terms", "0.9")
    with pytest.raises(PolicyNotAcceptedError):
        await complaints.submit_draft(case.case_id, parties.dealer, "dealer_complaint_terms", "1.0")


async def test_only_opener_submits(db, complaints, booking, parties):
    case_id = (await _open_complaint(complaints, booking, parties)).case_id
    other_dealer = actor_for(await make_profile(db, "dealer"))
    with pytest.raises(NotFoundError):
        await complaints.submit_draft(case_id, other_dealer, "dealer_complaint_terms", "1.0")
    with pytest.raises(ForbiddenError):
        await complaints.submit_draft(case_id, parties.renter, "dealer_complaint_terms", "1.0")


async def test_disputes_have_no_draft_stage(disputes, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(InvalidRequestError):
        await disputes.submit_draft(case.case_id, parties.renter, "terms", "1.0")


async def test_complaint_override_reverse_returns_to_submitted(
    db, complaints, booking, parties, clock
):
    case = await _open_complaint(complaints, booking, parties)
    await accept_policy(db, parties.dealer.actor_id, "dealer_complaint_terms", "1.0")
    await complaints.submit_draft(case.case_id, parties.dealer, "dealer_complaint_terms", "1.0")
    clock.advance(minutes=1)
    await complaints.decide(case.case_id, "close", "Duplicate", parties.admin)
    clock.advance(minutes=1)
    outcome = await complaints.override(case.case_id, "reverse", "Not a duplicate", parties.prime_admin)
    assert outcome.case.status == "submitted"


async def test_complaints_never_auto_escalate(db, complaints, booking, parties, clock, audit):
    case = await _open_complaint(complaints, booking, parties)
    clock.advance(days=30)
    detail = await CaseQueryService(db, complaints).get_case(case.case_id, parties.dealer)
    assert detail.case.status == "draft"
    assert "COMPLAINT_AUTO_TRANSITION" not in audit.actions()


async def test_dispute_id_is_not_a_complaint(disputes, complaints, booking, parties):
    case = await _open_dispute(disputes, booking, parties)
    with pytest.raises(NotFoundError) as exc:
        await complaints.fetch(case.case_id)
    assert exc.value.reason == "Complaint not found"

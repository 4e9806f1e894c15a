import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from rider_service.core.errors import (
    IllegalTransitionError,
    IncompleteAcknowledgmentError,
    InvalidActorError,
    MissingNotesError,
    NegotiationInvariantError,
    NotFoundError,
    ValidationError,
)
from rider_service.core.rider_fields import validate_fields
from rider_service.core.types import Acknowledgment, RiderDocument
from rider_service.models.enums import AcknowledgmentStatus, ModificationStatus, PartyRole
from rider_service.policies.checklist_policy import derive_from_document, mark_acknowledged, toggle_can_meet
from rider_service.services.negotiation_state_machine import (
    Acknowledge,
    ApproveModifications,
    Finalize,
    ProposeModification,
    RejectModifications,
    apply,
    derive_status,
)

ARTIST = PartyRole.ARTIST
VENUE = PartyRole.VENUE
T0 = datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc)


def make_doc():
    return RiderDocument(
        document_id=uuid.uuid4(),
        owner_id="artist-1",
        version=1,
        fields=validate_fields(
            {
                "performanceDuration": 90,
                "performanceFee": "2500.00",
                "paSystemRequired": True,
                "dressingRoomRequired": True,
                "parkingRequired": True,
            }
        ),
        published_at=T0,
    )


def make_ack(doc):
    return Acknowledgment(
        acknowledgment_id=uuid.uuid4(),
        booking_id="booking-1",
        rider_document_id=doc.document_id,
        rider_version=doc.version,
        artist_user_id="artist-1",
        venue_user_id="venue-1",
        event_date=date(2026, 6, 1),
        status=AcknowledgmentStatus.pending,
        checklist=derive_from_document(doc),
    )


class Negotiation:
    """Tiny driver that advances the clock per action."""

    def __init__(self):
        self.doc = make_doc()
        self.ack = make_ack(self.doc)
        self.now = T0

    def do(self, action):
        self.now += timedelta(minutes=1)
        self.ack = apply(self.ack, action, document=self.doc, now=self.now)
        return self.ack

    def propose(self, actor, field_name, value, reason="needs change"):
        return self.do(ProposeModification(actor=actor, field_name=field_name, proposed_value=value, reason=reason))


def all_acknowledged(checklist):
    for e in checklist:
        checklist = mark_acknowledged(checklist, e.field_name)
    return checklist


# ─────────────────────────────────────────────
# SCENARIOS
# ─────────────────────────────────────────────

def test_scenario_a_venue_proposes_on_pending():
    n = Negotiation()
    ack = n.propose(VENUE, "dressingRoomRequired", False, "no space")

    assert ack.status == AcknowledgmentStatus.modifications_proposed
    assert len(ack.ledger) == 1
    entry = ack.ledger[0]
    assert entry.entry_id == 1
    assert entry.status == ModificationStatus.proposed
    assert entry.original_value is True
    assert entry.proposed_value is False
    assert entry.proposed_by == VENUE
    assert ack.revision == 2


def test_scenario_b_artist_approves_everything():
    n = Negotiation()
    n.propose(VENUE, "dressingRoomRequired", False, "no space")
    ack = n.do(ApproveModifications(actor=ARTIST, entry_ids=(1,)))

    assert ack.ledger[0].status == ModificationStatus.approved
    assert ack.ledger[0].resolved_by == ARTIST
    assert ack.status == AcknowledgmentStatus.accepted


def test_scenario_c_counter_proposal_supersedes():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False, "no lot")
    ack = n.propose(ARTIST, "parkingRequired", True, "van needs a spot")

    assert len(ack.ledger) == 2
    first, second = ack.ledger
    assert first.status == ModificationStatus.rejected
    assert first.superseded_by == 2
    assert second.status == ModificationStatus.counter_proposed
    assert sum(1 for e in ack.ledger if e.is_open) == 1
    assert ack.status == AcknowledgmentStatus.modifications_proposed


def test_scenario_d_self_approval_fails():
    n = Negotiation()
    n.propose(VENUE, "dressingRoomRequired", False)
    before = n.propose(ARTIST, "paSystemRequired", False, "bringing own PA")

    with pytest.raises(InvalidActorError):
        n.do(ApproveModifications(actor=ARTIST, entry_ids=(2,)))

    assert n.ack == before
    assert before.status == AcknowledgmentStatus.modifications_proposed
    assert [e.status for e in before.ledger] == [ModificationStatus.proposed, ModificationStatus.proposed]


def test_invalid_actor_is_an_illegal_transition():
    assert issubclass(InvalidActorError, IllegalTransitionError)


# ─────────────────────────────────────────────
# ACKNOWLEDGE
# ─────────────────────────────────────────────

def test_acknowledge_as_is():
    n = Negotiation()
    ack = n.do(Acknowledge(actor=VENUE, checklist=all_acknowledged(n.ack.checklist)))

    assert ack.status == AcknowledgmentStatus.acknowledged
    assert ack.acknowledged_at == n.now
    assert ack.ledger == ()


def test_acknowledge_incomplete_checklist():
    n = Negotiation()
    with pytest.raises(IncompleteAcknowledgmentError):
        n.do(Acknowledge(actor=VENUE, checklist=n.ack.checklist))
    assert n.ack.status == AcknowledgmentStatus.pending


def test_acknowledge_cannot_meet_needs_notes():
    n = Negotiation()
    checklist = all_acknowledged(toggle_can_meet(n.ack.checklist, "parkingRequired", False))

    with pytest.raises(MissingNotesError):
        n.do(Acknowledge(actor=VENUE, checklist=checklist, notes=""))

    ack = n.do(Acknowledge(actor=VENUE, checklist=checklist, notes="  Street parking only.  "))
    assert ack.notes == "Street parking only."


def test_only_venue_acknowledges():
    n = Negotiation()
    with pytest.raises(InvalidActorError):
        n.do(Acknowledge(actor=ARTIST, checklist=all_acknowledged(n.ack.checklist)))


def test_acknowledge_twice_is_illegal():
    n = Negotiation()
    n.do(Acknowledge(actor=VENUE, checklist=all_acknowledged(n.ack.checklist)))
    with pytest.raises(IllegalTransitionError):
        n.do(Acknowledge(actor=VENUE, checklist=n.ack.checklist))


def test_acknowledge_rejects_tampered_rows():
    n = Negotiation()
    checklist = all_acknowledged(n.ack.checklist)
    tampered = (replace(checklist[0], requirement_text="Something else"),) + checklist[1:]
    with pytest.raises(ValidationError):
        n.do(Acknowledge(actor=VENUE, checklist=tampered))


def test_proposal_after_acknowledgment_keeps_timestamp():
    n = Negotiation()
    acked = n.do(Acknowledge(actor=VENUE, checklist=all_acknowledged(n.ack.checklist)))
    ack = n.propose(VENUE, "parkingRequired", False)

    assert ack.status == AcknowledgmentStatus.modifications_proposed
    assert ack.acknowledged_at == acked.acknowledged_at


# ─────────────────────────────────────────────
# PROPOSE
# ─────────────────────────────────────────────

def test_artist_cannot_open_first_proposal():
    n = Negotiation()
    with pytest.raises(InvalidActorError):
        n.propose(ARTIST, "parkingRequired", False)


def test_same_party_cannot_repropose_open_field():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    with pytest.raises(IllegalTransitionError):
        n.propose(VENUE, "parkingRequired", False, "again")


def test_same_party_new_field():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    ack = n.propose(VENUE, "dressingRoomRequired", False)
    assert [e.entry_id for e in ack.ledger] == [1, 2]
    assert ack.status == AcknowledgmentStatus.modifications_proposed


def test_propose_validates_value_and_reason():
    n = Negotiation()
    with pytest.raises(ValidationError):
        n.propose(VENUE, "parkingRequired", "no")
    with pytest.raises(ValidationError):
        n.propose(VENUE, "unknownField", True)
    with pytest.raises(ValidationError):
        n.propose(VENUE, "parkingRequired", False, reason="   ")


def test_original_value_absent_field_is_none():
    n = Negotiation()
    ack = n.propose(VENUE, "numberOfRooms", 2, "two rooms booked")
    assert ack.ledger[0].original_value is None


# ─────────────────────────────────────────────
# APPROVE / REJECT
# ─────────────────────────────────────────────

def test_partial_approval_stays_open():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    n.propose(VENUE, "dressingRoomRequired", False)
    ack = n.do(ApproveModifications(actor=ARTIST, entry_ids=(1,)))

    assert ack.status == AcknowledgmentStatus.modifications_proposed
    ack = n.do(ApproveModifications(actor=ARTIST, entry_ids=(2,)))
    assert ack.status == AcknowledgmentStatus.accepted


def test_reapproval_is_explicit_error():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    n.propose(VENUE, "dressingRoomRequired", False)
    n.do(ApproveModifications(actor=ARTIST, entry_ids=(1,)))

    with pytest.raises(IllegalTransitionError) as exc:
        n.do(ApproveModifications(actor=ARTIST, entry_ids=(1,)))
    assert exc.value.action == "approveModifications"
    assert exc.value.status == "modifications_proposed"


def test_approve_after_accepted_is_illegal():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    n.do(ApproveModifications(actor=ARTIST, entry_ids=(1,)))
    with pytest.raises(IllegalTransitionError):
        n.do(ApproveModifications(actor=ARTIST, entry_ids=(1,)))


def test_entry_id_validation():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    with pytest.raises(ValidationError):
        n.do(ApproveModifications(actor=ARTIST, entry_ids=()))
    with pytest.raises(ValidationError):
        n.do(ApproveModifications(actor=ARTIST, entry_ids=(1, 1)))
    with pytest.raises(NotFoundError):
        n.do(ApproveModifications(actor=ARTIST, entry_ids=(7,)))


def test_reject_requires_reason():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    with pytest.raises(ValidationError):
        n.do(RejectModifications(actor=ARTIST, entry_ids=(1,), reason=""))


def test_rejecting_last_open_entry_ends_rejected():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    ack = n.do(RejectModifications(actor=ARTIST, entry_ids=(1,), reason="van needs parking"))

    assert ack.status == AcknowledgmentStatus.rejected
    assert ack.ledger[0].resolution_reason == "van needs parking"

    with pytest.raises(IllegalTransitionError):
        n.propose(VENUE, "dressingRoomRequired", False)
    with pytest.raises(IllegalTransitionError):
        n.do(Finalize(actor=VENUE))


def test_partial_rejection_keeps_negotiating():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    n.propose(VENUE, "dressingRoomRequired", False)
    ack = n.do(RejectModifications(actor=ARTIST, entry_ids=(1,), reason="need parking"))
    assert ack.status == AcknowledgmentStatus.modifications_proposed

    # last resolution decides the outcome
    ack = n.do(ApproveModifications(actor=ARTIST, entry_ids=(2,)))
    assert ack.status == AcknowledgmentStatus.accepted


def test_counter_proposal_answered_by_original_author():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    n.propose(ARTIST, "parkingRequired", True, "van")

    with pytest.raises(InvalidActorError):
        n.do(ApproveModifications(actor=ARTIST, entry_ids=(2,)))

    ack = n.do(ApproveModifications(actor=VENUE, entry_ids=(2,)))
    assert ack.status == AcknowledgmentStatus.accepted


# ─────────────────────────────────────────────
# FINALIZE / ARCHIVE
# ─────────────────────────────────────────────

def test_finalize_accepted():
    n = Negotiation()
    n.propose(VENUE, "parkingRequired", False)
    n.do(ApproveModifications(actor=ARTIST, entry_ids=(1,)))
    ack = n.do(Finalize(actor=ARTIST))

    assert ack.status == AcknowledgmentStatus.accepted
    assert ack.finalized_at == n.now

    with pytest.raises(IllegalTransitionError):
        n.do(Finalize(actor=VENUE))


def test_finalize_requires_accepted():
    n = Negotiation()
    with pytest.raises(IllegalTransitionError):
        n.do(Finalize(actor=VENUE))

    n.do(Acknowledge(actor=VENUE, checklist=all_acknowledged(n.ack.checklist)))
    with pytest.raises(IllegalTransitionError):
        n.do(Finalize(actor=VENUE))


def test_archived_refuses_every_action():
    n = Negotiation()
    n.ack = replace(n.ack, archived_at=T0)
    with pytest.raises(IllegalTransitionError):
        n.propose(VENUE, "parkingRequired", False)


# ─────────────────────────────────────────────
# PROPERTIES
# ─────────────────────────────────────────────

def test_apply_never_mutates_input():
    n = Negotiation()
    original = n.ack
    n.propose(VENUE, "parkingRequired", False)
    assert original.ledger == ()
    assert original.status == AcknowledgmentStatus.pending
    assert original.revision == 1


def test_status_always_matches_ledger_and_timeline_is_ordered():
    n = Negotiation()
    history = [n.ack]
    history.append(n.propose(VENUE, "parkingRequired", False))
    history.append(n.propose(VENUE, "dressingRoomRequired", False))
    history.append(n.propose(ARTIST, "parkingRequired", True, "van"))
    history.append(n.do(RejectModifications(actor=ARTIST, entry_ids=(2,), reason="need a room")))
    history.append(n.do(ApproveModifications(actor=VENUE, entry_ids=(3,))))

    for ack in history:
        assert ack.status == derive_status(ack.ledger, ack.acknowledged_at is not None)
        ids = [e.entry_id for e in ack.ledger]
        assert ids == list(range(1, len(ids) + 1))
        open_fields = [e.field_name for e in ack.ledger if e.is_open]
        assert len(open_fields) == len(set(open_fields))

    for before, after in zip(history, history[1:]):
        assert after.revision == before.revision + 1
        for old, new in zip(before.ledger, after.ledger):
            assert (old.entry_id, old.field_name, old.proposed_value) == (new.entry_id, new.field_name, new.proposed_value)
            if not old.is_open:
                assert new == old

    assert history[-1].status == AcknowledgmentStatus.accepted


def test_inconsistent_status_fails_loudly():
    n = Negotiation()
    broken = replace(n.ack, status=AcknowledgmentStatus.accepted)
    with pytest.raises(NegotiationInvariantError):
        apply(broken, Finalize(actor=VENUE), document=n.doc, now=T0)


def test_wrong_document_version_fails_loudly():
    n = Negotiation()
    other = replace(n.doc, version=2)
    with pytest.raises(NegotiationInvariantError):
        apply(n.ack, Finalize(actor=VENUE), document=other, now=T0)

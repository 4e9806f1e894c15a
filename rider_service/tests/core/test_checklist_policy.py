import uuid
from datetime import datetime, timezone

import pytest

from rider_service.core.errors import (
    IncompleteAcknowledgmentError,
    MissingNotesError,
    ValidationError,
)
from rider_service.core.rider_fields import validate_fields
from rider_service.core.types import RiderDocument
from rider_service.policies.checklist_policy import (
    derive_from_document,
    ensure_matches_snapshot,
    mark_acknowledged,
    toggle_can_meet,
    validate_for_acknowledge,
)


def make_doc(**fields):
    base = {"performanceDuration": 60, "performanceFee": "500"}
    base.update(fields)
    return RiderDocument(
        document_id=uuid.uuid4(),
        owner_id="artist-1",
        version=1,
        fields=validate_fields(base),
        published_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def test_derive_keeps_true_booleans_and_present_enums():
    doc = make_doc(
        paSystemRequired=True,
        cateringProvided=False,
        microphoneType="headset",
        specialRequests="not a checklist field",
    )
    checklist = derive_from_document(doc)

    assert [e.field_name for e in checklist] == ["paSystemRequired", "microphoneType"]
    assert checklist[0].category == "Technical"
    assert checklist[1].requirement_text == "Microphones: headset"
    assert all(e.can_meet and not e.acknowledged_by_user for e in checklist)


def test_derive_with_nothing_to_acknowledge():
    assert derive_from_document(make_doc()) == ()


def test_custom_policy_table():
    doc = make_doc(parkingRequired=True)
    checklist = derive_from_document(doc, {"parkingRequired": ("Logistics", "Parking bay")})
    assert checklist[0].category == "Logistics"
    assert checklist[0].requirement_text == "Parking bay"


def test_toggle_is_pure():
    checklist = derive_from_document(make_doc(paSystemRequired=True))
    toggled = toggle_can_meet(checklist, "paSystemRequired", False)

    assert checklist[0].can_meet is True
    assert toggled[0].can_meet is False

    with pytest.raises(ValidationError):
        toggle_can_meet(checklist, "lightingRequired", False)


def test_validate_requires_every_row_acknowledged():
    checklist = derive_from_document(make_doc(paSystemRequired=True, dressingRoomRequired=True))
    checklist = mark_acknowledged(checklist, "paSystemRequired")

    with pytest.raises(IncompleteAcknowledgmentError):
        validate_for_acknowledge(checklist, None)


def test_validate_requires_notes_when_cannot_meet():
    checklist = derive_from_document(make_doc(paSystemRequired=True))
    checklist = mark_acknowledged(toggle_can_meet(checklist, "paSystemRequired", False), "paSystemRequired")

    with pytest.raises(MissingNotesError):
        validate_for_acknowledge(checklist, "   ")

    validate_for_acknowledge(checklist, "We can rent a PA for the night.")


def test_missing_notes_is_a_validation_error():
    assert issubclass(MissingNotesError, ValidationError)
    assert issubclass(IncompleteAcknowledgmentError, ValidationError)


def test_submitted_rows_must_match_snapshot():
    snapshot = derive_from_document(make_doc(paSystemRequired=True, parkingRequired=True))
    assert ensure_matches_snapshot(list(snapshot), snapshot) == snapshot

    with pytest.raises(ValidationError):
        ensure_matches_snapshot(snapshot[:1], snapshot)

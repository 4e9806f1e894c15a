import uuid
import pytest
from decimal import Decimal

from rider_service.core.errors import NotFoundError, ValidationError
from rider_service.services.rider_document_service import RiderDocumentService


def test_create_first_version(db, base_rider):
    svc = RiderDocumentService()
    doc = svc.create_version(db, owner_id="artist-1", fields=base_rider)

    assert doc.version == 1
    assert doc.owner_id == "artist-1"
    assert doc.fields["performanceFee"] == Decimal("2500.00")
    assert doc.fields["performanceDuration"] == 90
    assert doc.published_at.tzinfo is not None


def test_edit_creates_new_version_and_keeps_old(db, base_rider):
    svc = RiderDocumentService()
    v1 = svc.create_version(db, owner_id="artist-1", fields=base_rider)

    v2 = svc.create_version(
        db,
        owner_id="artist-1",
        fields={**base_rider, "performanceFee": "3000.50", "parkingRequired": False},
        document_id=v1.document_id,
    )

    assert v2.document_id == v1.document_id
    assert v2.version == 2

    old = svc.get_version(db, v1.document_id, 1)
    assert old.fields["performanceFee"] == Decimal("2500.00")
    assert old.fields["parkingRequired"] is True

    latest = svc.get_latest(db, v1.document_id)
    assert latest.version == 2
    assert latest.fields["performanceFee"] == Decimal("3000.50")

    assert [d.version for d in svc.list_versions(db, v1.document_id)] == [1, 2]


def test_only_owner_publishes_new_version(db, base_rider):
    svc = RiderDocumentService()
    v1 = svc.create_version(db, owner_id="artist-1", fields=base_rider)

    with pytest.raises(ValidationError):
        svc.create_version(db, owner_id="artist-2", fields=base_rider, document_id=v1.document_id)


def test_invalid_fields_rejected(db, base_rider):
    svc = RiderDocumentService()

    with pytest.raises(ValidationError):
        svc.create_version(db, owner_id="artist-1", fields={"performanceDuration": 90})

    with pytest.raises(ValidationError):
        svc.create_version(db, owner_id="artist-1", fields={**base_rider, "microphoneType": "tin can"})


def test_missing_document(db, base_rider):
    svc = RiderDocumentService()
    missing = uuid.uuid4()

    with pytest.raises(NotFoundError):
        svc.get_version(db, missing, 1)
    with pytest.raises(NotFoundError):
        svc.get_latest(db, missing)
    with pytest.raises(NotFoundError):
        svc.create_version(db, owner_id="artist-1", fields=base_rider, document_id=missing)

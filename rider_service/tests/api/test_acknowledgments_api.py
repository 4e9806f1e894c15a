import pytest
from fastapi.testclient import TestClient

from rider_service.core.deps import get_negotiation_service
from rider_service.core.security import create_access_token
from rider_service.db.session import get_db
from rider_service.main import create_app
from rider_service.models.enums import PartyRole

API = "/api/v1"


def auth(user_id: str, role: str) -> dict:
    token = create_access_token(user_id, PartyRole(role))
    return {"Authorization": f"Bearer {token}"}


ARTIST = auth("artist-1", "artist")
VENUE = auth("venue-1", "venue")
OTHER_VENUE = auth("venue-2", "venue")


@pytest.fixture
def client(session_factory, service):
    app = create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_negotiation_service] = lambda: service
    return TestClient(app)


def publish(client, fields):
    r = client.post(f"{API}/riders", json={"fields": fields}, headers=ARTIST)
    assert r.status_code == 201, r.text
    return r.json()


def open_ack(client, rider, booking_id="booking-1"):
    r = client.post(
        f"{API}/acknowledgments",
        json={
            "bookingId": booking_id,
            "riderDocumentId": rider["documentId"],
            "riderVersion": rider["version"],
            "artistUserId": "artist-1",
            "venueUserId": "venue-1",
            "eventDate": "2030-06-01",
        },
        headers=VENUE,
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get(f"{API}/health", headers={"X-Request-Id": "req-1"})
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["request_id"] == "req-1"
    assert body["service"] == "Rider Negotiation Service"
    assert r.headers["X-Request-Id"] == "req-1"


def test_publish_and_version_rider(client, base_rider):
    rider = publish(client, base_rider)
    assert rider["version"] == 1
    assert rider["ownerId"] == "artist-1"
    assert rider["fields"]["performanceFee"] == "2500.00"

    r = client.post(
        f"{API}/riders/{rider['documentId']}/versions",
        json={"fields": {**base_rider, "performanceFee": 3100}},
        headers=ARTIST,
    )
    assert r.status_code == 201, r.text
    assert r.json()["version"] == 2

    history = client.get(f"{API}/riders/{rider['documentId']}", headers=VENUE).json()
    assert history["latestVersion"] == 2
    assert [v["fields"]["performanceFee"] for v in history["versions"]] == ["2500.00", "3100"]


def test_venue_cannot_publish_rider(client, base_rider):
    r = client.post(f"{API}/riders", json={"fields": base_rider}, headers=VENUE)
    assert r.status_code == 403


def test_invalid_rider_fields(client):
    r = client.post(f"{API}/riders", json={"fields": {"performanceDuration": 60}}, headers=ARTIST)
    assert r.status_code == 422


def test_bad_token_rejected(client):
    r = client.get(f"{API}/riders/not-a-uuid", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


def test_negotiate_over_http(client, base_rider):
    ack = open_ack(client, publish(client, base_rider))
    ack_id = ack["acknowledgmentId"]
    assert ack["status"] == "pending"
    assert ack["revision"] == 1

    r = client.post(
        f"{API}/acknowledgments/{ack_id}/modifications",
        json={"fieldName": "parkingRequired", "proposedValue": False, "reason": "no lot"},
        headers=VENUE,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "modifications_proposed"
    assert body["modifications"][0]["entryId"] == 1
    assert body["modifications"][0]["proposedBy"] == "venue"

    # the proposer cannot approve its own change
    r = client.post(f"{API}/acknowledgments/{ack_id}/modifications/approve", json={"entryIds": [1]}, headers=VENUE)
    assert r.status_code == 403

    r = client.post(f"{API}/acknowledgments/{ack_id}/modifications/approve", json={"entryIds": [1]}, headers=ARTIST)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "accepted"

    terms = client.get(f"{API}/acknowledgments/{ack_id}/terms", headers=ARTIST).json()
    assert terms["terms"]["parkingRequired"] is False

    r = client.post(f"{API}/acknowledgments/{ack_id}/finalize", headers=ARTIST)
    assert r.status_code == 200, r.text
    result = r.json()
    assert result["acknowledgment"]["finalizedAtIso"] is not None
    assert result["contractUrl"] == f"https://bookings.test/contracts/{result['contractId']}"

    r = client.post(f"{API}/acknowledgments/{ack_id}/finalize", headers=VENUE)
    assert r.status_code == 409

    timeline = client.get(f"{API}/acknowledgments/{ack_id}/timeline", headers=VENUE).json()
    assert [(e["entryId"], e["status"]) for e in timeline["entries"]] == [(1, "approved")]


def test_acknowledge_as_is_over_http(client, base_rider):
    ack = open_ack(client, publish(client, base_rider))
    ack_id = ack["acknowledgmentId"]

    checklist = [{**c, "acknowledgedByUser": True} for c in ack["checklist"]]

    r = client.post(f"{API}/acknowledgments/{ack_id}/acknowledge", json={"checklist": checklist}, headers=ARTIST)
    assert r.status_code == 403

    r = client.post(
        f"{API}/acknowledgments/{ack_id}/acknowledge",
        json={"checklist": ack["checklist"]},
        headers=VENUE,
    )
    assert r.status_code == 422

    r = client.post(f"{API}/acknowledgments/{ack_id}/acknowledge", json={"checklist": checklist}, headers=VENUE)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "acknowledged"

    r = client.post(f"{API}/acknowledgments/{ack_id}/finalize", headers=VENUE)
    assert r.status_code == 409


def test_non_party_is_refused(client, base_rider):
    ack = open_ack(client, publish(client, base_rider))
    ack_id = ack["acknowledgmentId"]

    r = client.get(f"{API}/acknowledgments/{ack_id}", headers=OTHER_VENUE)
    assert r.status_code == 403

    r = client.post(
        f"{API}/acknowledgments/{ack_id}/modifications",
        json={"fieldName": "parkingRequired", "proposedValue": False, "reason": "no lot"},
        headers=OTHER_VENUE,
    )
    assert r.status_code == 403


def test_unknown_and_malformed_ids(client):
    r = client.get(f"{API}/acknowledgments/not-a-uuid", headers=VENUE)
    assert r.status_code == 400

    r = client.get(f"{API}/acknowledgments/00000000-0000-0000-0000-000000000000", headers=VENUE)
    assert r.status_code == 404


def test_idempotent_replay(client, base_rider):
    ack = open_ack(client, publish(client, base_rider))
    ack_id = ack["acknowledgmentId"]
    url = f"{API}/acknowledgments/{ack_id}/modifications"
    payload = {"fieldName": "parkingRequired", "proposedValue": False, "reason": "no lot"}
    headers = {**VENUE, "Idempotency-Key": "k-1"}

    first = client.post(url, json=payload, headers=headers)
    assert first.status_code == 200, first.text

    again = client.post(url, json=payload, headers=headers)
    assert again.status_code == 200
    assert again.json() == first.json()
    assert again.json()["revision"] == 2

    other = client.post(url, json={**payload, "reason": "different"}, headers=headers)
    assert other.status_code == 409

    current = client.get(f"{API}/acknowledgments/{ack_id}", headers=VENUE).json()
    assert current["revision"] == 2
    assert len(current["modifications"]) == 1


def test_archive_over_http(client, base_rider):
    ack = open_ack(client, publish(client, base_rider))
    ack_id = ack["acknowledgmentId"]

    r = client.post(f"{API}/acknowledgments/{ack_id}/archive", json={"reason": "cancelled"}, headers=ARTIST)
    assert r.status_code == 200, r.text
    assert r.json()["archivedAtIso"] is not None

    r = client.patch(
        f"{API}/acknowledgments/{ack_id}/checklist",
        json={"changes": [{"fieldName": "parkingRequired", "acknowledged": True}]},
        headers=VENUE,
    )
    assert r.status_code == 409

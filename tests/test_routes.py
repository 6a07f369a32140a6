"""HTTP surface tests: status codes, error bodies and camelCase payloads.

Run with:  pytest tests/test_routes.py -v
"""
import pytest
from fastapi.testclient import TestClient

from lastmile.database import get_db
from lastmile.dependencies.session_auth import require_session_user
from lastmile.main import app
from lastmile.models.account import User

F_LAT = 24.746764673
F_LNG = 46.6


@pytest.fixture
def client(db):
    def _override_db():
        yield db

    app.dependency_overrides[get_db] = _override_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def login(db):
    def _login(user):
        app.dependency_overrides[require_session_user] = lambda: user

    return _login


def _lookup_body(digital_id, **kwargs):
    body = {"shipmentNumber": "SHP-1001", "driverId": "D1", "companyName": "Acme", "digitalId": digital_id}
    body.update(kwargs)
    return body


# ── Owner endpoints ────────────────────────────────────────────────────────────

def test_address_endpoints_require_session(client):
    response = client.get("/api/addresses")
    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "auth_required"


def test_create_address_and_fallback_contact(client, login, owner):
    login(owner)

    created = client.post(
        "/api/addresses",
        json={"textAddress": "King Fahd Rd, Riyadh", "lat": 24.7, "lng": 46.6, "preferredTime": "evening"},
    )
    assert created.status_code == 201
    address = created.json()
    assert address["isPrimary"] is True
    assert address["preferredTime"] == "evening"

    rejected = client.post(
        "/api/fallback-contacts",
        json={"addressId": address["id"], "name": "Khalid", "phone": "+966500000004", "lat": F_LAT, "lng": F_LNG},
    )
    assert rejected.status_code == 400
    body = rejected.json()
    assert body["status"] == "error"
    assert body["message"] == "scheduling_required"
    assert body["distanceKm"] == pytest.approx(5.2, abs=0.001)

    accepted = client.post(
        "/api/fallback-contacts",
        json={
            "addressId": address["id"],
            "name": "Khalid",
            "phone": "+966500000004",
            "lat": F_LAT,
            "lng": F_LNG,
            "distanceKm": 0.1,
            "scheduledDate": "2025-01-01",
            "scheduledTimeSlot": "morning-8-10",
            "extraFeeAcknowledged": True,
        },
    )
    assert accepted.status_code == 201
    contact = accepted.json()
    assert contact["requiresExtraFee"] is True
    assert contact["distanceKm"] == pytest.approx(5.2, abs=0.001)

    listed = client.get(f"/api/fallback-contacts/{address['id']}")
    assert [c["id"] for c in listed.json()] == [contact["id"]]


@pytest.mark.parametrize("lat", [91, -91])
def test_malformed_coordinates_rejected(client, login, owner, lat):
    login(owner)
    response = client.post("/api/addresses", json={"textAddress": "Somewhere", "lat": lat, "lng": 46.6})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "validation_error"
    assert body["errors"][0]["field"] == "lat"


def test_contact_on_missing_primary_location(client, login, owner):
    login(owner)
    address = client.post("/api/addresses", json={"textAddress": "No pin"}).json()
    response = client.post(
        "/api/fallback-contacts",
        json={"addressId": address["id"], "name": "Khalid", "phone": "+966500000004", "lat": 24.7, "lng": 46.6},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "primary_address_missing_location"


def test_foreign_address_forbidden(client, login, other_user, address_a):
    login(other_user)
    response = client.delete(f"/api/addresses/{address_a.id}")
    assert response.status_code == 403
    assert response.json()["message"] == "not_authorized"


def test_public_address_view(client, owner, address_a):
    response = client.get(f"/api/address/{address_a.digital_id.lower()}")
    assert response.status_code == 200
    body = response.json()
    assert body["user"] == {"name": owner.name, "phone": owner.phone, "email": owner.email}
    assert "passwordHash" not in body["user"]


# ── Driver endpoints ───────────────────────────────────────────────────────────

def test_lookup_then_feedback_lock(client, company, address_a, address_b, contact_f):
    first = client.post("/driver/lookup-address", json=_lookup_body(address_a.digital_id))
    assert first.status_code == 200
    lookup_id = first.json()["lookupId"]
    assert first.json()["hasAlternateLocations"] is True

    blocked = client.post("/driver/lookup-address", json=_lookup_body(address_b.digital_id, shipmentNumber="SHP-2"))
    assert blocked.status_code == 403
    assert blocked.json()["requiresFeedback"] is True
    assert blocked.json()["pendingLookupId"] == lookup_id

    pending = client.post("/driver/check-pending-feedback", json={"driverId": "D1", "companyName": "Acme"})
    assert pending.json()["hasPendingFeedback"] is True

    details = client.get(f"/driver/pending-lookup/{lookup_id}")
    assert details.json()["shipmentNumber"] == "SHP-1001"

    missing_reason = client.post(
        "/driver/feedback",
        json={"lookupId": lookup_id, "deliveryStatus": "failed", "locationScore": 3, "customerBehavior": "neutral"},
    )
    assert missing_reason.status_code == 400
    assert missing_reason.json()["message"] == "validation_error"

    done = client.post(
        "/driver/feedback",
        json={
            "lookupId": lookup_id,
            "deliveryStatus": "failed",
            "locationScore": 3,
            "customerBehavior": "neutral",
            "failureReason": "customer_unavailable",
        },
    )
    assert done.status_code == 200

    again = client.post(
        "/driver/feedback",
        json={"lookupId": lookup_id, "deliveryStatus": "delivered", "locationScore": 5, "customerBehavior": "cooperative"},
    )
    assert again.status_code == 409
    assert again.json()["message"] == "already_completed"

    assert client.post("/driver/lookup-address", json=_lookup_body(address_b.digital_id)).status_code == 200


def test_company_hint_from_query_and_referer(client, company, address_a, address_b):
    body = _lookup_body(address_a.digital_id, companyName=None)
    assert client.post("/driver/lookup-address?company=Acme", json=body).status_code == 200

    response = client.post(
        "/driver/check-pending-feedback",
        json={"driverId": "D1"},
        headers={"Referer": "https://lastmile.example/driver?company=ACME"},
    )
    assert response.json()["hasPendingFeedback"] is True


def test_unknown_driver_unauthorized(client, company, address_a):
    response = client.post("/driver/lookup-address", json=_lookup_body(address_a.digital_id, driverId="D404"))
    assert response.status_code == 401
    assert response.json()["message"] == "access_denied"


def test_unknown_address_not_found(client, company):
    response = client.post("/driver/lookup-address", json=_lookup_body("ZZZZZZZZ"))
    assert response.status_code == 404


def test_alternate_flow_over_http(client, company, address_a, contact_f):
    lookup_id = client.post("/driver/lookup-address", json=_lookup_body(address_a.digital_id)).json()["lookupId"]

    alternates = client.get(f"/driver/lookup/{lookup_id}/alternates").json()
    assert [c["id"] for c in alternates["alternateLocations"]] == [contact_f.id]

    requested = client.post(
        "/driver/request-alternate",
        json={
            "lookupId": lookup_id,
            "failureReason": "customer_unavailable",
            "locationScore": 3,
            "customerBehavior": "unavailable",
        },
    )
    assert requested.status_code == 200
    attempt_id = requested.json()["attempt"]["id"]

    in_progress = client.post(
        "/driver/feedback",
        json={
            "lookupId": lookup_id,
            "deliveryStatus": "failed",
            "locationScore": 3,
            "customerBehavior": "neutral",
            "failureReason": "other",
        },
    )
    assert in_progress.status_code == 409
    assert in_progress.json()["message"] == "alternate_in_progress"

    completed = client.post(
        "/driver/complete-alternate",
        json={"attemptId": attempt_id, "deliveryStatus": "delivered", "locationScore": 4, "customerBehavior": "cooperative"},
    )
    assert completed.status_code == 200
    assert completed.json()["lookupId"] == lookup_id


def test_request_alternate_without_contacts(client, company, address_b):
    lookup_id = client.post("/driver/lookup-address", json=_lookup_body(address_b.digital_id)).json()["lookupId"]
    response = client.post(
        "/driver/request-alternate",
        json={"lookupId": lookup_id, "failureReason": "wrong_address", "locationScore": 2, "customerBehavior": "neutral"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "no_alternate_locations"


# ── Company endpoints ──────────────────────────────────────────────────────────

def test_company_endpoints_need_company_profile(client, login, owner):
    login(owner)
    response = client.get("/company/delivery-hotspots")
    assert response.status_code == 403
    assert response.json()["detail"]["message"] == "company_profile_required"


def test_company_driver_registry_and_views(db, client, login, company, address_a):
    login(db.query(User).filter(User.id == company.user_id).one())

    created = client.post("/company/drivers", json={"driverId": "Drv-77", "name": "Faisal"})
    assert created.status_code == 201
    duplicate = client.post("/company/drivers", json={"driverId": " drv-77 ", "name": "Someone"})
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "duplicate_driver_id"

    suspended = client.patch(f"/company/drivers/{created.json()['id']}", json={"status": "suspended"})
    assert suspended.json()["status"] == "suspended"
    assert {d["driverId"] for d in client.get("/company/drivers").json()} == {"D1", "Drv-77"}

    denied = client.post(
        "/driver/lookup-address",
        json=_lookup_body(address_a.digital_id, driverId="drv-77"),
    )
    assert denied.status_code == 401

    assert client.post("/driver/lookup-address", json=_lookup_body(address_a.digital_id)).status_code == 200

    hotspots = client.get("/company/delivery-hotspots").json()
    assert hotspots["summary"]["totalLookups"] == 1
    assert hotspots["points"][0]["intensity"] == 1.0
    assert client.get("/company/delivery-stats").json()["totalDeliveries"] == 0
    assert client.get("/company/address-delivery-stats").json() == []

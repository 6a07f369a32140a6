"""Tests for lastmile/services/lookup_gate.py

Run with:  pytest tests/test_lookup_gate.py -v
"""
import pytest

from lastmile.models.account import CompanyDriver
from lastmile.models.delivery import ShipmentLookup
from lastmile.services import lookup_gate
from lastmile.services.errors import AccessDenied, FeedbackRequired, NotFound
from lastmile.services.lookup_gate import check_pending_feedback, lookup_address


def _lookup(db, digital_id, shipment_number="SHP-1001", driver_id="D1", company_name="Acme"):
    return lookup_address(
        db,
        shipment_number=shipment_number,
        driver_id=driver_id,
        company_name=company_name,
        digital_id=digital_id,
    )


def test_successful_lookup_creates_pending_row(db, company, owner, address_a, contact_f):
    result = _lookup(db, address_a.digital_id)

    lookup = db.query(ShipmentLookup).one()
    assert result["lookupId"] == lookup.id
    assert lookup.status == "pending_feedback"
    assert lookup.company_profile_id == company.id
    assert lookup.address_digital_id == address_a.digital_id

    assert result["address"]["digitalId"] == address_a.digital_id
    assert result["user"] == {"name": owner.name, "phone": owner.phone, "email": owner.email}
    assert [c["id"] for c in result["fallbackContacts"]] == [contact_f.id]
    assert result["hasAlternateLocations"] is True


def test_second_lookup_blocked_by_pending_feedback(db, company, address_a, address_b):
    first = _lookup(db, address_a.digital_id)

    for digital_id, shipment in [(address_b.digital_id, "SHP-2002"), ("NOSUCHID", "SHP-3003")]:
        with pytest.raises(FeedbackRequired) as exc_info:
            _lookup(db, digital_id, shipment_number=shipment)
        assert exc_info.value.pending_lookup_id == first["lookupId"]
        assert exc_info.value.payload()["requiresFeedback"] is True

    assert db.query(ShipmentLookup).count() == 1


def test_lock_matches_driver_and_company_case_insensitively(db, company, address_a, address_b):
    _lookup(db, address_a.digital_id, driver_id="D1", company_name="Acme")

    with pytest.raises(FeedbackRequired):
        _lookup(db, address_b.digital_id, driver_id=" d1 ", company_name="  ACME ")


def test_lookup_accepts_case_variants_of_registered_driver(db, company, address_a):
    result = _lookup(db, address_a.digital_id.lower(), driver_id="d1", company_name="acme")
    lookup = db.query(ShipmentLookup).filter(ShipmentLookup.id == result["lookupId"]).one()
    assert lookup.company_name == "Acme"
    assert lookup.driver_key == "d1"


def test_unknown_driver_denied(db, company, address_a):
    with pytest.raises(AccessDenied):
        _lookup(db, address_a.digital_id, driver_id="D404")
    assert db.query(ShipmentLookup).count() == 0


def test_driver_of_other_company_denied(db, company, rival, address_a):
    with pytest.raises(AccessDenied):
        _lookup(db, address_a.digital_id, company_name="Rival Express")


@pytest.mark.parametrize("status", ["inactive", "suspended"])
def test_non_active_driver_denied(db, company, address_a, status):
    driver = db.query(CompanyDriver).filter(CompanyDriver.driver_key == "d1").one()
    driver.status = status
    db.commit()

    with pytest.raises(AccessDenied):
        _lookup(db, address_a.digital_id)


def test_unknown_address_not_found_without_lookup_row(db, company):
    with pytest.raises(NotFound):
        _lookup(db, "ZZZZZZZZ")
    assert db.query(ShipmentLookup).count() == 0


def test_empty_company_resolved_from_registry(db, company, address_a):
    result = _lookup(db, address_a.digital_id, company_name="")
    lookup = db.query(ShipmentLookup).filter(ShipmentLookup.id == result["lookupId"]).one()
    assert lookup.company_name == "Acme"


def test_address_without_contacts_has_no_alternates(db, company, address_b):
    result = _lookup(db, address_b.digital_id)
    assert result["fallbackContacts"] == []
    assert result["hasAlternateLocations"] is False


def test_concurrent_insert_reported_as_feedback_required(db, company, address_a, address_b, monkeypatch):
    """The partial unique index catches a lookup that slipped past the pending check."""
    first = _lookup(db, address_a.digital_id)

    real_find = lookup_gate.find_pending_lookup
    calls = {"count": 0}

    def racing_find(session, driver_id, company_name):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return real_find(session, driver_id, company_name)

    monkeypatch.setattr(lookup_gate, "find_pending_lookup", racing_find)

    with pytest.raises(FeedbackRequired) as exc_info:
        _lookup(db, address_b.digital_id, shipment_number="SHP-RACE")

    assert exc_info.value.pending_lookup_id == first["lookupId"]
    assert db.query(ShipmentLookup).count() == 1


# ── check_pending_feedback ─────────────────────────────────────────────────────

class TestCheckPendingFeedback:
    def test_no_pending(self, db, company):
        result = check_pending_feedback(db, "D1", "Acme")
        assert result == {
            "hasPendingFeedback": False,
            "pendingLookup": None,
            "companyName": "Acme",
            "driverNotFound": False,
        }

    def test_pending_reported(self, db, company, address_a):
        first = _lookup(db, address_a.digital_id, shipment_number="SHP-77")
        result = check_pending_feedback(db, "d1", "ACME")
        assert result["hasPendingFeedback"] is True
        assert result["pendingLookup"] == {
            "id": first["lookupId"],
            "shipmentNumber": "SHP-77",
            "addressDigitalId": address_a.digital_id,
        }

    def test_unknown_driver_flagged(self, db, company):
        result = check_pending_feedback(db, "D404", "Acme")
        assert result["hasPendingFeedback"] is False
        assert result["driverNotFound"] is True

    def test_company_resolved_when_missing(self, db, company):
        result = check_pending_feedback(db, "D1", None)
        assert result["companyName"] == "Acme"
        assert result["driverNotFound"] is False

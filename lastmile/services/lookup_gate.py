"""lookup_gate.py

Entry point of the driver workflow. A driver supplies a shipment number, a
driver ID, a company hint and the Digital ID printed on the parcel.

  1. A pending lookup for (driver, company) blocks everything else and is
     reported back so the client can send the driver to the feedback form.
  2. The company hint is untrusted. The driver must be an active entry in
     that company's driver registry.
  3. The address must exist.
  4. A new pending lookup is written. The partial unique index on
     shipment_lookups is the last line for concurrent requests.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lastmile.models.account import User
from lastmile.models.delivery import LOOKUP_PENDING_FEEDBACK, ShipmentLookup
from lastmile.services.address_registry import (
    address_payload,
    contact_payload,
    get_address_by_digital_id,
    normalize_digital_id,
    ordered_fallback_contacts,
    user_public_payload,
)
from lastmile.services.driver_registry import find_active_driver, normalize_key, resolve_driver_company
from lastmile.services.errors import AccessDenied, FeedbackRequired, NotFound

logger = logging.getLogger(__name__)


def resolve_company_name(db: Session, driver_id: str, company_name: str | None) -> str:
    hint = (company_name or "").strip()
    if hint:
        return hint
    profile = resolve_driver_company(db, driver_id)
    return profile.company_name if profile else ""


def find_pending_lookup(db: Session, driver_id: str, company_name: str) -> ShipmentLookup | None:
    return (
        db.query(ShipmentLookup)
        .filter(
            ShipmentLookup.driver_key == normalize_key(driver_id),
            ShipmentLookup.company_key == normalize_key(company_name),
            ShipmentLookup.status == LOOKUP_PENDING_FEEDBACK,
        )
        .order_by(ShipmentLookup.id.desc())
        .first()
    )


def check_pending_feedback(db: Session, driver_id: str, company_name: str | None) -> dict[str, Any]:
    company = resolve_company_name(db, driver_id, company_name)
    result: dict[str, Any] = {
        "hasPendingFeedback": False,
        "pendingLookup": None,
        "companyName": company or None,
        "driverNotFound": False,
    }

    pending = find_pending_lookup(db, driver_id, company) if company else None
    if pending:
        result["hasPendingFeedback"] = True
        result["pendingLookup"] = {
            "id": pending.id,
            "shipmentNumber": pending.shipment_number,
            "addressDigitalId": pending.address_digital_id,
        }
        return result

    if not company or find_active_driver(db, driver_id, company) is None:
        result["driverNotFound"] = True
    return result


def lookup_address(
    db: Session,
    *,
    shipment_number: str,
    driver_id: str,
    company_name: str | None,
    digital_id: str,
) -> dict[str, Any]:
    driver_id = driver_id.strip()
    company = resolve_company_name(db, driver_id, company_name)

    pending = find_pending_lookup(db, driver_id, company) if company else None
    if pending:
        logger.info(
            "lookup_gate: feedback lock hit driver=%s company=%s pending=%s",
            driver_id,
            company,
            pending.id,
        )
        raise FeedbackRequired(pending.id)

    registered = find_active_driver(db, driver_id, company) if company else None
    if registered is None:
        logger.warning("lookup_gate: access denied driver=%s company=%s", driver_id, company or "-")
        raise AccessDenied()
    _, profile = registered

    address = get_address_by_digital_id(db, digital_id)
    if not address:
        raise NotFound(f"Address {normalize_digital_id(digital_id)} not found.")
    owner = db.query(User).filter(User.id == address.user_id).first()
    if not owner:
        raise NotFound("Address owner not found.")

    lookup = ShipmentLookup(
        shipment_number=shipment_number.strip(),
        driver_id=driver_id,
        driver_key=normalize_key(driver_id),
        company_name=profile.company_name,
        company_key=normalize_key(profile.company_name),
        company_profile_id=profile.id,
        address_digital_id=address.digital_id,
        status=LOOKUP_PENDING_FEEDBACK,
    )
    db.add(lookup)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = find_pending_lookup(db, driver_id, profile.company_name)
        if winner is None:
            raise
        logger.info("lookup_gate: concurrent lookup lost driver=%s pending=%s", driver_id, winner.id)
        raise FeedbackRequired(winner.id) from None
    db.refresh(lookup)

    contacts = ordered_fallback_contacts(db, address.id)
    logger.info(
        "lookup_gate: lookup=%s driver=%s company=%s address=%s contacts=%d",
        lookup.id,
        driver_id,
        profile.company_name,
        address.digital_id,
        len(contacts),
    )
    return {
        "lookupId": lookup.id,
        "address": address_payload(address),
        "user": user_public_payload(owner),
        "fallbackContacts": [contact_payload(c) for c in contacts],
        "hasAlternateLocations": bool(contacts),
    }

"""Addresses and fallback contacts owned by registered users."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from lastmile.core.config import settings
from lastmile.models.account import User
from lastmile.models.address import Address, FallbackContact
from lastmile.services.errors import (
    FeedbackValidationError,
    NotAuthorized,
    NotFound,
    PrimaryAddressMissingLocation,
    SchedulingRequired,
)
from lastmile.services.fee_gate import assess_fallback_location

logger = logging.getLogger(__name__)

# no 0/O, 1/I
DIGITAL_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

ADDRESS_FIELDS = (
    "text_address",
    "lat",
    "lng",
    "photo_building",
    "photo_gate",
    "photo_door",
    "preferred_time",
    "preferred_time_slot",
    "special_note",
    "fallback_option",
)

CONTACT_FIELDS = (
    "name",
    "phone",
    "relationship",
    "text_address",
    "lat",
    "lng",
    "photo_building",
    "photo_gate",
    "photo_door",
    "special_note",
)

SCHEDULING_FIELDS = ("scheduled_date", "scheduled_time_slot", "extra_fee_acknowledged")


# ── Payloads ──────────────────────────────────────────────────────────────────

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def address_payload(address: Address) -> dict[str, Any]:
    return {
        "id": address.id,
        "digitalId": address.digital_id,
        "userId": address.user_id,
        "textAddress": address.text_address,
        "lat": address.lat,
        "lng": address.lng,
        "photoBuilding": address.photo_building,
        "photoGate": address.photo_gate,
        "photoDoor": address.photo_door,
        "preferredTime": address.preferred_time,
        "preferredTimeSlot": address.preferred_time_slot,
        "specialNote": address.special_note,
        "fallbackOption": address.fallback_option,
        "isPrimary": bool(address.is_primary),
        "createdAt": _iso(address.created_at),
    }


def contact_payload(contact: FallbackContact) -> dict[str, Any]:
    return {
        "id": contact.id,
        "addressId": contact.address_id,
        "name": contact.name,
        "phone": contact.phone,
        "relationship": contact.relationship,
        "textAddress": contact.text_address,
        "lat": contact.lat,
        "lng": contact.lng,
        "distanceKm": contact.distance_km,
        "requiresExtraFee": bool(contact.requires_extra_fee),
        "extraFeeAcknowledged": bool(contact.extra_fee_acknowledged),
        "scheduledDate": contact.scheduled_date,
        "scheduledTimeSlot": contact.scheduled_time_slot,
        "photoBuilding": contact.photo_building,
        "photoGate": contact.photo_gate,
        "photoDoor": contact.photo_door,
        "specialNote": contact.special_note,
        "isDefault": bool(contact.is_default),
        "createdAt": _iso(contact.created_at),
    }


def user_public_payload(user: User) -> dict[str, Any]:
    # never password_hash or iqama_id
    return {"name": user.name, "phone": user.phone, "email": user.email}


# ── Digital IDs ───────────────────────────────────────────────────────────────

def generate_digital_id(length: int | None = None) -> str:
    size = length or settings.DIGITAL_ID_LENGTH
    return "".join(secrets.choice(DIGITAL_ID_ALPHABET) for _ in range(size))


def normalize_digital_id(raw: str | None) -> str:
    return (raw or "").strip().upper()


def _unique_digital_id(db: Session) -> str:
    for _ in range(settings.DIGITAL_ID_MAX_ATTEMPTS):
        candidate = generate_digital_id()
        exists = db.query(Address.id).filter(Address.digital_id == candidate).first()
        if not exists:
            return candidate
        logger.warning("address_registry: digital id collision candidate=%s", candidate)
    raise RuntimeError("Could not allocate a unique digital id")


# ── Lookups ───────────────────────────────────────────────────────────────────

def get_address_by_digital_id(db: Session, digital_id: str) -> Address | None:
    normalized = normalize_digital_id(digital_id)
    if not normalized:
        return None
    return db.query(Address).filter(Address.digital_id == normalized).first()


def get_owned_address(db: Session, user_id: int, address_id: int) -> Address:
    address = db.query(Address).filter(Address.id == address_id).first()
    if not address:
        raise NotFound("Address not found.")
    if address.user_id != user_id:
        raise NotAuthorized("Not authorized to manage this address.")
    return address


def get_owned_contact(db: Session, user_id: int, contact_id: int) -> tuple[FallbackContact, Address]:
    contact = db.query(FallbackContact).filter(FallbackContact.id == contact_id).first()
    if not contact:
        raise NotFound("Fallback contact not found.")
    address = get_owned_address(db, user_id, contact.address_id)
    return contact, address


def ordered_fallback_contacts(db: Session, address_id: int) -> list[FallbackContact]:
    """Contacts for an address, default first, then in creation order."""
    return (
        db.query(FallbackContact)
        .filter(FallbackContact.address_id == address_id)
        .order_by(FallbackContact.is_default.desc(), FallbackContact.id.asc())
        .all()
    )


def get_public_address(db: Session, digital_id: str) -> dict[str, Any]:
    address = get_address_by_digital_id(db, digital_id)
    if not address:
        raise NotFound("Address not found.")
    user = db.query(User).filter(User.id == address.user_id).first()
    if not user:
        raise NotFound("User not found.")
    return {"address": address_payload(address), "user": user_public_payload(user)}


# ── Addresses ─────────────────────────────────────────────────────────────────

def list_addresses(db: Session, user_id: int) -> list[Address]:
    return (
        db.query(Address)
        .filter(Address.user_id == user_id)
        .order_by(Address.is_primary.desc(), Address.id.asc())
        .all()
    )


def create_address(db: Session, *, user_id: int, data: dict[str, Any]) -> Address:
    has_addresses = db.query(Address.id).filter(Address.user_id == user_id).first() is not None

    address = Address(
        user_id=user_id,
        digital_id=_unique_digital_id(db),
        is_primary=not has_addresses,
        **{field: data.get(field) for field in ADDRESS_FIELDS if field in data},
    )
    db.add(address)
    db.commit()
    db.refresh(address)
    logger.info(
        "address_registry: created address=%s user=%s primary=%s",
        address.digital_id,
        user_id,
        address.is_primary,
    )
    return address


def set_primary_address(db: Session, *, user_id: int, address_id: int) -> Address:
    address = get_owned_address(db, user_id, address_id)

    db.query(Address).filter(Address.user_id == user_id).update(
        {Address.is_primary: False}, synchronize_session="fetch"
    )
    address.is_primary = True
    db.commit()
    db.refresh(address)
    return address


def _revalidate_contacts(db: Session, address: Address) -> None:
    """Re-run the fee gate for every contact after the primary moved.

    Raises PrimaryAddressMissingLocation or SchedulingRequired; the caller
    rolls the whole edit back.
    """
    contacts = ordered_fallback_contacts(db, address.id)
    if contacts and (address.lat is None or address.lng is None):
        raise PrimaryAddressMissingLocation(
            "Cannot clear the location of an address that has fallback contacts."
        )
    for contact in contacts:
        if contact.lat is None or contact.lng is None:
            continue
        assessment = assess_fallback_location(
            address,
            contact.lat,
            contact.lng,
            scheduled_date=contact.scheduled_date,
            scheduled_time_slot=contact.scheduled_time_slot,
            extra_fee_acknowledged=contact.extra_fee_acknowledged,
        )
        contact.distance_km = assessment.distance_km
        contact.requires_extra_fee = assessment.requires_extra_fee
        contact.scheduled_date = assessment.scheduled_date
        contact.scheduled_time_slot = assessment.scheduled_time_slot
        contact.extra_fee_acknowledged = assessment.extra_fee_acknowledged


def update_address(db: Session, *, user_id: int, address_id: int, changes: dict[str, Any]) -> Address:
    address = get_owned_address(db, user_id, address_id)

    moved = False
    for field in ADDRESS_FIELDS:
        if field not in changes:
            continue
        if field in ("lat", "lng") and changes[field] != getattr(address, field):
            moved = True
        setattr(address, field, changes[field])

    if moved:
        try:
            _revalidate_contacts(db, address)
        except (PrimaryAddressMissingLocation, SchedulingRequired):
            db.rollback()
            logger.info("address_registry: move rejected address=%s", address.digital_id)
            raise

    db.commit()
    db.refresh(address)
    return address


def delete_address(db: Session, *, user_id: int, address_id: int) -> None:
    address = get_owned_address(db, user_id, address_id)
    digital_id = address.digital_id

    removed = (
        db.query(FallbackContact)
        .filter(FallbackContact.address_id == address.id)
        .delete(synchronize_session=False)
    )
    db.delete(address)
    db.commit()
    logger.info(
        "address_registry: deleted address=%s with %d fallback contact(s)", digital_id, removed
    )


# ── Fallback contacts ─────────────────────────────────────────────────────────

def list_fallback_contacts(db: Session, *, user_id: int, address_id: int) -> list[FallbackContact]:
    address = get_owned_address(db, user_id, address_id)
    return ordered_fallback_contacts(db, address.id)


def create_fallback_contact(db: Session, *, user_id: int, data: dict[str, Any]) -> FallbackContact:
    address = get_owned_address(db, user_id, data["address_id"])

    assessment = assess_fallback_location(
        address,
        data["lat"],
        data["lng"],
        scheduled_date=data.get("scheduled_date"),
        scheduled_time_slot=data.get("scheduled_time_slot"),
        extra_fee_acknowledged=data.get("extra_fee_acknowledged"),
    )

    contact = FallbackContact(
        address_id=address.id,
        **{field: data.get(field) for field in CONTACT_FIELDS},
        distance_km=assessment.distance_km,
        requires_extra_fee=assessment.requires_extra_fee,
        scheduled_date=assessment.scheduled_date,
        scheduled_time_slot=assessment.scheduled_time_slot,
        extra_fee_acknowledged=assessment.extra_fee_acknowledged,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    logger.info(
        "address_registry: fallback contact=%s address=%s distance_km=%.3f extra_fee=%s",
        contact.id,
        address.digital_id,
        contact.distance_km,
        contact.requires_extra_fee,
    )
    return contact


def update_fallback_contact(
    db: Session, *, user_id: int, contact_id: int, changes: dict[str, Any]
) -> FallbackContact:
    contact, address = get_owned_contact(db, user_id, contact_id)

    merged = {field: changes.get(field, getattr(contact, field)) for field in CONTACT_FIELDS}
    scheduling = {field: changes.get(field, getattr(contact, field)) for field in SCHEDULING_FIELDS}
    if merged["lat"] is None or merged["lng"] is None:
        raise FeedbackValidationError("Please select a location on the map for the fallback contact.")

    assessment = assess_fallback_location(address, merged["lat"], merged["lng"], **scheduling)

    for field, value in merged.items():
        setattr(contact, field, value)
    contact.distance_km = assessment.distance_km
    contact.requires_extra_fee = assessment.requires_extra_fee
    contact.scheduled_date = assessment.scheduled_date
    contact.scheduled_time_slot = assessment.scheduled_time_slot
    contact.extra_fee_acknowledged = assessment.extra_fee_acknowledged

    db.commit()
    db.refresh(contact)
    return contact


def get_fallback_contact(db: Session, *, user_id: int, contact_id: int) -> FallbackContact:
    contact, _ = get_owned_contact(db, user_id, contact_id)
    return contact


def delete_fallback_contact(db: Session, *, user_id: int, contact_id: int) -> None:
    contact, _ = get_owned_contact(db, user_id, contact_id)
    db.delete(contact)
    db.commit()


def set_default_fallback_contact(db: Session, *, user_id: int, contact_id: int) -> FallbackContact:
    contact, address = get_owned_contact(db, user_id, contact_id)

    db.query(FallbackContact).filter(FallbackContact.address_id == address.id).update(
        {FallbackContact.is_default: False}, synchronize_session="fetch"
    )
    contact.is_default = True
    db.commit()
    db.refresh(contact)
    return contact

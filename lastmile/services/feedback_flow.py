"""Feedback state machine for driver lookups.

A lookup stays pending_feedback until it reaches a terminal outcome, either
ordinary feedback or a completed alternate delivery. Requesting an alternate
does not release the lock. Terminal transitions are compare-and-set updates
on the status column so a double submission can never overwrite an outcome.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Literal, get_args

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lastmile.models.address import FallbackContact
from lastmile.models.delivery import (
    ATTEMPT_COMPLETED,
    ATTEMPT_IN_PROGRESS,
    DELIVERED,
    FAILED,
    LOOKUP_COMPLETED,
    LOOKUP_PENDING_FEEDBACK,
    PARTIAL,
    AlternateAttempt,
    DeliveryOutcome,
    DriverFeedback,
    ShipmentLookup,
)
from lastmile.services.address_registry import (
    contact_payload,
    get_address_by_digital_id,
    ordered_fallback_contacts,
)
from lastmile.services.errors import (
    AlreadyCompleted,
    AlternateInProgress,
    FeedbackValidationError,
    NoAlternateLocations,
    NotFound,
)

logger = logging.getLogger(__name__)

FailureReason = Literal[
    "wrong_address",
    "customer_unavailable",
    "access_denied",
    "dangerous_area",
    "address_not_found",
    "weather_conditions",
    "vehicle_issue",
    "other",
]
CustomerBehavior = Literal["cooperative", "neutral", "difficult", "unavailable", "aggressive"]

FAILURE_REASONS: tuple[str, ...] = get_args(FailureReason)
CUSTOMER_BEHAVIORS: tuple[str, ...] = get_args(CustomerBehavior)

FEEDBACK_STATUSES = (DELIVERED, FAILED, PARTIAL)
ALTERNATE_STATUSES = (DELIVERED, FAILED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def attempt_payload(attempt: AlternateAttempt) -> dict[str, Any]:
    return {
        "id": attempt.id,
        "lookupId": attempt.shipment_lookup_id,
        "fallbackContactId": attempt.fallback_contact_id,
        "status": attempt.status,
        "deliveryStatus": attempt.delivery_status,
        "distanceKm": attempt.distance_km,
        "primaryFailureReason": attempt.primary_failure_reason,
        "primaryFailureDetails": attempt.primary_failure_details,
        "createdAt": _iso(attempt.created_at),
        "completedAt": _iso(attempt.completed_at),
    }


def _validate_feedback(
    delivery_status: str,
    location_score: int | None,
    customer_behavior: str | None,
    failure_reason: str | None,
    allowed_statuses: tuple[str, ...],
) -> None:
    if delivery_status not in allowed_statuses:
        raise FeedbackValidationError(f"Unsupported delivery status '{delivery_status}'.")
    if delivery_status == FAILED and not failure_reason:
        raise FeedbackValidationError("A failure reason is required when the delivery failed.")
    if failure_reason and failure_reason not in FAILURE_REASONS:
        raise FeedbackValidationError(f"Unknown failure reason '{failure_reason}'.")
    if location_score is not None and not 1 <= location_score <= 5:
        raise FeedbackValidationError("Location score must be between 1 and 5.")
    if customer_behavior and customer_behavior not in CUSTOMER_BEHAVIORS:
        raise FeedbackValidationError(f"Unknown customer behavior '{customer_behavior}'.")


def _get_lookup(db: Session, lookup_id: int) -> ShipmentLookup:
    lookup = db.query(ShipmentLookup).filter(ShipmentLookup.id == lookup_id).first()
    if not lookup:
        raise NotFound("Shipment lookup not found.")
    return lookup


def active_attempt(db: Session, lookup_id: int) -> AlternateAttempt | None:
    return (
        db.query(AlternateAttempt)
        .filter(
            AlternateAttempt.shipment_lookup_id == lookup_id,
            AlternateAttempt.status == ATTEMPT_IN_PROGRESS,
        )
        .order_by(AlternateAttempt.id.desc())
        .first()
    )


def _alternate_contacts(db: Session, lookup: ShipmentLookup):
    address = get_address_by_digital_id(db, lookup.address_digital_id)
    if not address:
        return []
    return ordered_fallback_contacts(db, address.id)


def _close_lookup(db: Session, lookup_id: int, delivery_status: str, now: datetime) -> bool:
    updated = (
        db.query(ShipmentLookup)
        .filter(
            ShipmentLookup.id == lookup_id,
            ShipmentLookup.status == LOOKUP_PENDING_FEEDBACK,
        )
        .update(
            {
                ShipmentLookup.status: LOOKUP_COMPLETED,
                ShipmentLookup.delivery_status: delivery_status,
                ShipmentLookup.delivery_completed_at: now,
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def _feedback_row(lookup: ShipmentLookup, **values: Any) -> DriverFeedback:
    return DriverFeedback(
        shipment_lookup_id=lookup.id,
        driver_id=lookup.driver_id,
        company_name=lookup.company_name,
        company_profile_id=lookup.company_profile_id,
        address_digital_id=lookup.address_digital_id,
        **values,
    )


def _outcome_row(lookup: ShipmentLookup, delivery_status: str, fallback_contact_id: int | None = None):
    return DeliveryOutcome(
        shipment_lookup_id=lookup.id,
        address_digital_id=lookup.address_digital_id,
        driver_id=lookup.driver_id,
        company_name=lookup.company_name,
        company_profile_id=lookup.company_profile_id,
        delivery_status=delivery_status,
        fallback_contact_id=fallback_contact_id,
    )


# ── Read side ─────────────────────────────────────────────────────────────────

def lookup_details(db: Session, lookup_id: int) -> dict[str, Any]:
    lookup = _get_lookup(db, lookup_id)
    address = get_address_by_digital_id(db, lookup.address_digital_id)
    contacts = ordered_fallback_contacts(db, address.id) if address else []
    attempt = active_attempt(db, lookup.id)
    return {
        "id": lookup.id,
        "shipmentNumber": lookup.shipment_number,
        "driverId": lookup.driver_id,
        "companyName": lookup.company_name,
        "addressDigitalId": lookup.address_digital_id,
        "textAddress": address.text_address if address else None,
        "status": lookup.status,
        "deliveryStatus": lookup.delivery_status,
        "createdAt": _iso(lookup.created_at),
        "hasAlternateLocations": bool(contacts),
        "activeAttempt": attempt_payload(attempt) if attempt else None,
    }


def list_alternates(db: Session, lookup_id: int) -> dict[str, Any]:
    lookup = _get_lookup(db, lookup_id)
    contacts = _alternate_contacts(db, lookup)
    attempt = active_attempt(db, lookup.id)
    return {
        "alternateLocations": [contact_payload(c) for c in contacts],
        "activeAttempt": attempt_payload(attempt) if attempt else None,
        "hasAlternateLocations": bool(contacts),
    }


# ── Transitions ───────────────────────────────────────────────────────────────

def submit_feedback(
    db: Session,
    *,
    lookup_id: int,
    delivery_status: str,
    location_score: int | None = None,
    customer_behavior: str | None = None,
    failure_reason: str | None = None,
    additional_notes: str | None = None,
) -> dict[str, Any]:
    lookup = _get_lookup(db, lookup_id)
    if lookup.status != LOOKUP_PENDING_FEEDBACK:
        logger.info("feedback_flow: duplicate feedback lookup=%s", lookup.id)
        raise AlreadyCompleted()
    if active_attempt(db, lookup.id) is not None:
        raise AlternateInProgress()
    _validate_feedback(delivery_status, location_score, customer_behavior, failure_reason, FEEDBACK_STATUSES)

    if not _close_lookup(db, lookup.id, delivery_status, _utcnow()):
        db.rollback()
        logger.info("feedback_flow: lookup=%s closed concurrently", lookup.id)
        raise AlreadyCompleted()

    feedback = _feedback_row(
        lookup,
        delivery_status=delivery_status,
        location_score=location_score,
        customer_behavior=customer_behavior,
        failure_reason=failure_reason if delivery_status == FAILED else None,
        additional_notes=additional_notes,
    )
    db.add(feedback)
    db.add(_outcome_row(lookup, delivery_status))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadyCompleted() from exc
    db.refresh(feedback)

    logger.info(
        "feedback_flow: lookup=%s driver=%s status=%s reason=%s",
        lookup.id,
        lookup.driver_id,
        delivery_status,
        failure_reason or "-",
    )
    return {
        "status": "success",
        "lookupId": lookup.id,
        "feedbackId": feedback.id,
        "deliveryStatus": delivery_status,
    }


def request_alternate(
    db: Session,
    *,
    lookup_id: int,
    failure_reason: str,
    location_score: int | None = None,
    customer_behavior: str | None = None,
    additional_notes: str | None = None,
) -> dict[str, Any]:
    lookup = _get_lookup(db, lookup_id)
    if lookup.status != LOOKUP_PENDING_FEEDBACK:
        raise AlreadyCompleted()

    existing = active_attempt(db, lookup.id)
    if existing is not None:
        return _alternate_response(db, existing)

    _validate_feedback(FAILED, location_score, customer_behavior, failure_reason, ALTERNATE_STATUSES)

    contacts = _alternate_contacts(db, lookup)
    if not contacts:
        raise NoAlternateLocations()
    chosen = contacts[0]

    attempt = AlternateAttempt(
        shipment_lookup_id=lookup.id,
        fallback_contact_id=chosen.id,
        status=ATTEMPT_IN_PROGRESS,
        distance_km=chosen.distance_km,
        primary_failure_reason=failure_reason,
        primary_failure_details=additional_notes,
        primary_location_score=location_score,
        primary_customer_behavior=customer_behavior,
    )
    db.add(attempt)
    db.add(
        _feedback_row(
            lookup,
            delivery_status=FAILED,
            location_score=location_score,
            customer_behavior=customer_behavior,
            failure_reason=failure_reason,
            additional_notes=additional_notes,
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = active_attempt(db, lookup.id)
        if existing is None:
            raise
        return _alternate_response(db, existing)
    db.refresh(attempt)

    logger.info(
        "feedback_flow: alternate requested lookup=%s attempt=%s contact=%s distance_km=%s",
        lookup.id,
        attempt.id,
        chosen.id,
        chosen.distance_km,
    )
    return {"alternateLocation": contact_payload(chosen), "attempt": attempt_payload(attempt)}


def _alternate_response(db: Session, attempt: AlternateAttempt) -> dict[str, Any]:
    contact = None
    if attempt.fallback_contact_id is not None:
        contact = db.query(FallbackContact).filter(FallbackContact.id == attempt.fallback_contact_id).first()
    return {
        "alternateLocation": contact_payload(contact) if contact else None,
        "attempt": attempt_payload(attempt),
    }


def complete_alternate(
    db: Session,
    *,
    attempt_id: int,
    delivery_status: str,
    location_score: int | None = None,
    customer_behavior: str | None = None,
    failure_reason: str | None = None,
    additional_notes: str | None = None,
) -> dict[str, Any]:
    attempt = db.query(AlternateAttempt).filter(AlternateAttempt.id == attempt_id).first()
    if not attempt:
        raise NotFound("Alternate attempt not found.")
    if attempt.status != ATTEMPT_IN_PROGRESS:
        raise AlreadyCompleted("This alternate delivery has already been completed.")
    _validate_feedback(delivery_status, location_score, customer_behavior, failure_reason, ALTERNATE_STATUSES)

    lookup = _get_lookup(db, attempt.shipment_lookup_id)
    now = _utcnow()

    attempt_closed = (
        db.query(AlternateAttempt)
        .filter(
            AlternateAttempt.id == attempt.id,
            AlternateAttempt.status == ATTEMPT_IN_PROGRESS,
        )
        .update(
            {
                AlternateAttempt.status: ATTEMPT_COMPLETED,
                AlternateAttempt.delivery_status: delivery_status,
                AlternateAttempt.completed_at: now,
            },
            synchronize_session=False,
        )
    )
    if attempt_closed != 1 or not _close_lookup(db, lookup.id, delivery_status, now):
        db.rollback()
        raise AlreadyCompleted("This alternate delivery has already been completed.")

    feedback = _feedback_row(
        lookup,
        alternate_attempt_id=attempt.id,
        delivery_status=delivery_status,
        location_score=location_score,
        customer_behavior=customer_behavior,
        failure_reason=failure_reason if delivery_status == FAILED else None,
        additional_notes=additional_notes,
    )
    db.add(feedback)
    db.add(_outcome_row(lookup, delivery_status, fallback_contact_id=attempt.fallback_contact_id))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AlreadyCompleted() from exc
    db.refresh(feedback)

    logger.info(
        "feedback_flow: alternate completed lookup=%s attempt=%s status=%s",
        lookup.id,
        attempt.id,
        delivery_status,
    )
    return {
        "status": "success",
        "lookupId": lookup.id,
        "attemptId": attempt.id,
        "feedbackId": feedback.id,
        "deliveryStatus": delivery_status,
    }

"""Public driver endpoints: pending-feedback check, address lookup and the
feedback / alternate-delivery transitions.

No session here. Access is gated by the company driver registry and the
pending-feedback lock.
"""
from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import Field, model_validator
from sqlalchemy.orm import Session

from lastmile.core.config import company_hint_from_request
from lastmile.core.schemas import CamelModel
from lastmile.database import get_db
from lastmile.services import feedback_flow, lookup_gate
from lastmile.services.feedback_flow import CustomerBehavior, FailureReason

router = APIRouter(prefix="/driver", tags=["driver"])


class _DeliveryReport(CamelModel):
    location_score: int = Field(ge=1, le=5)
    customer_behavior: CustomerBehavior
    failure_reason: FailureReason | None = None
    additional_notes: str | None = None

    @model_validator(mode="after")
    def failure_reason_when_failed(self):
        if getattr(self, "delivery_status", None) == "failed" and not self.failure_reason:
            raise ValueError("failureReason is required when deliveryStatus is 'failed'")
        return self


class PendingFeedbackCheckIn(CamelModel):
    driver_id: str = Field(min_length=1)
    company_name: str | None = None


class LookupAddressIn(CamelModel):
    shipment_number: str = Field(min_length=1)
    driver_id: str = Field(min_length=1)
    company_name: str | None = None
    digital_id: str = Field(min_length=1)


class FeedbackIn(_DeliveryReport):
    lookup_id: int
    delivery_status: Literal["delivered", "failed", "partial"]


class RequestAlternateIn(CamelModel):
    lookup_id: int
    failure_reason: FailureReason
    location_score: int = Field(ge=1, le=5)
    customer_behavior: CustomerBehavior
    additional_notes: str | None = None


class CompleteAlternateIn(_DeliveryReport):
    attempt_id: int
    delivery_status: Literal["delivered", "failed"]


@router.post("/check-pending-feedback")
def check_pending_feedback(
    payload: PendingFeedbackCheckIn,
    request: Request,
    db: Session = Depends(get_db),
) -> dict:
    company = company_hint_from_request(request, payload.company_name)
    return lookup_gate.check_pending_feedback(db, payload.driver_id, company)


@router.post("/lookup-address")
def lookup_address(
    payload: LookupAddressIn,
    request: Request,
    db: Session = Depends(get_db),
) -> dict:
    return lookup_gate.lookup_address(
        db,
        shipment_number=payload.shipment_number,
        driver_id=payload.driver_id,
        company_name=company_hint_from_request(request, payload.company_name),
        digital_id=payload.digital_id,
    )


@router.get("/pending-lookup/{lookup_id}")
def pending_lookup(lookup_id: int, db: Session = Depends(get_db)) -> dict:
    return feedback_flow.lookup_details(db, lookup_id)


@router.get("/lookup/{lookup_id}/alternates")
def lookup_alternates(lookup_id: int, db: Session = Depends(get_db)) -> dict:
    return feedback_flow.list_alternates(db, lookup_id)


@router.post("/feedback")
def submit_feedback(payload: FeedbackIn, db: Session = Depends(get_db)) -> dict:
    return feedback_flow.submit_feedback(db, **payload.model_dump())


@router.post("/request-alternate")
def request_alternate(payload: RequestAlternateIn, db: Session = Depends(get_db)) -> dict:
    return feedback_flow.request_alternate(db, **payload.model_dump())


@router.post("/complete-alternate")
def complete_alternate(payload: CompleteAlternateIn, db: Session = Depends(get_db)) -> dict:
    return feedback_flow.complete_alternate(db, **payload.model_dump())

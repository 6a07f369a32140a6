from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.orm import Session

from lastmile.core.schemas import CamelModel
from lastmile.database import get_db
from lastmile.dependencies.session_auth import require_session_user
from lastmile.models.account import User
from lastmile.services import address_registry
from lastmile.services.address_registry import address_payload, contact_payload

router = APIRouter(prefix="/api", tags=["addresses"])


class AddressIn(CamelModel):
    text_address: str = Field(min_length=1)
    lat: float | None = Field(default=None, ge=-90, le=90, allow_inf_nan=False)
    lng: float | None = Field(default=None, ge=-180, le=180, allow_inf_nan=False)
    photo_building: str | None = None
    photo_gate: str | None = None
    photo_door: str | None = None
    preferred_time: str | None = None
    preferred_time_slot: str | None = None
    special_note: str | None = None
    fallback_option: str | None = None


class AddressPatch(CamelModel):
    text_address: str | None = Field(default=None, min_length=1)
    lat: float | None = Field(default=None, ge=-90, le=90, allow_inf_nan=False)
    lng: float | None = Field(default=None, ge=-180, le=180, allow_inf_nan=False)
    photo_building: str | None = None
    photo_gate: str | None = None
    photo_door: str | None = None
    preferred_time: str | None = None
    preferred_time_slot: str | None = None
    special_note: str | None = None
    fallback_option: str | None = None


class FallbackContactIn(CamelModel):
    address_id: int
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    relationship: str | None = None
    text_address: str | None = None
    # client-computed distanceKm/requiresExtraFee are not accepted
    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(ge=-180, le=180, allow_inf_nan=False)
    scheduled_date: str | None = None
    scheduled_time_slot: str | None = None
    extra_fee_acknowledged: bool | None = None
    photo_building: str | None = None
    photo_gate: str | None = None
    photo_door: str | None = None
    special_note: str | None = None


class FallbackContactPatch(CamelModel):
    name: str | None = Field(default=None, min_length=1)
    phone: str | None = Field(default=None, min_length=1)
    relationship: str | None = None
    text_address: str | None = None
    lat: float | None = Field(default=None, ge=-90, le=90, allow_inf_nan=False)
    lng: float | None = Field(default=None, ge=-180, le=180, allow_inf_nan=False)
    scheduled_date: str | None = None
    scheduled_time_slot: str | None = None
    extra_fee_acknowledged: bool | None = None
    photo_building: str | None = None
    photo_gate: str | None = None
    photo_door: str | None = None
    special_note: str | None = None


# ── Addresses ─────────────────────────────────────────────────────────────────

@router.get("/addresses")
def list_addresses(
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> list[dict]:
    return [address_payload(a) for a in address_registry.list_addresses(db, user.id)]


@router.post("/addresses", status_code=status.HTTP_201_CREATED)
def create_address(
    payload: AddressIn,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    address = address_registry.create_address(db, user_id=user.id, data=payload.model_dump(exclude_unset=True))
    return address_payload(address)


@router.patch("/addresses/{address_id}")
def update_address(
    address_id: int,
    payload: AddressPatch,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    address = address_registry.update_address(
        db, user_id=user.id, address_id=address_id, changes=payload.model_dump(exclude_unset=True)
    )
    return address_payload(address)


@router.delete("/addresses/{address_id}")
def delete_address(
    address_id: int,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    address_registry.delete_address(db, user_id=user.id, address_id=address_id)
    return {"status": "success"}


@router.post("/addresses/{address_id}/set-primary")
def set_primary_address(
    address_id: int,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    address = address_registry.set_primary_address(db, user_id=user.id, address_id=address_id)
    return address_payload(address)


@router.get("/address/{digital_id}")
def public_address(digital_id: str, db: Session = Depends(get_db)) -> dict:
    return address_registry.get_public_address(db, digital_id)


# ── Fallback contacts ─────────────────────────────────────────────────────────

@router.post("/fallback-contacts", status_code=status.HTTP_201_CREATED)
def create_fallback_contact(
    payload: FallbackContactIn,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    contact = address_registry.create_fallback_contact(db, user_id=user.id, data=payload.model_dump())
    return contact_payload(contact)


@router.get("/fallback-contacts/{address_id}")
def list_fallback_contacts(
    address_id: int,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> list[dict]:
    contacts = address_registry.list_fallback_contacts(db, user_id=user.id, address_id=address_id)
    return [contact_payload(c) for c in contacts]


@router.get("/fallback-contact/{contact_id}")
def get_fallback_contact(
    contact_id: int,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    return contact_payload(address_registry.get_fallback_contact(db, user_id=user.id, contact_id=contact_id))


@router.patch("/fallback-contact/{contact_id}")
def update_fallback_contact(
    contact_id: int,
    payload: FallbackContactPatch,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    contact = address_registry.update_fallback_contact(
        db, user_id=user.id, contact_id=contact_id, changes=payload.model_dump(exclude_unset=True)
    )
    return contact_payload(contact)


@router.delete("/fallback-contact/{contact_id}")
def delete_fallback_contact(
    contact_id: int,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    address_registry.delete_fallback_contact(db, user_id=user.id, contact_id=contact_id)
    return {"status": "success"}


@router.post("/fallback-contact/{contact_id}/set-default")
def set_default_fallback_contact(
    contact_id: int,
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> dict:
    contact = address_registry.set_default_fallback_contact(db, user_id=user.id, contact_id=contact_id)
    return contact_payload(contact)

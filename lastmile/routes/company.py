from typing import Literal

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.orm import Session

from lastmile.core.schemas import CamelModel
from lastmile.database import get_db
from lastmile.dependencies.session_auth import require_company_profile
from lastmile.models.account import CompanyProfile
from lastmile.services import driver_registry, reputation
from lastmile.services.driver_registry import driver_payload

router = APIRouter(prefix="/company", tags=["company"])

DriverStatus = Literal["active", "inactive", "suspended"]


class CompanyDriverIn(CamelModel):
    driver_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1)
    phone: str | None = None
    status: DriverStatus = "active"


class CompanyDriverPatch(CamelModel):
    driver_id: str | None = Field(default=None, min_length=1, max_length=64)
    name: str | None = Field(default=None, min_length=1)
    phone: str | None = None
    status: DriverStatus | None = None


# ── Driver registry ───────────────────────────────────────────────────────────

@router.get("/drivers")
def list_drivers(
    profile: CompanyProfile = Depends(require_company_profile),
    db: Session = Depends(get_db),
) -> list[dict]:
    return [driver_payload(d) for d in driver_registry.list_company_drivers(db, profile.id)]


@router.post("/drivers", status_code=status.HTTP_201_CREATED)
def create_driver(
    payload: CompanyDriverIn,
    profile: CompanyProfile = Depends(require_company_profile),
    db: Session = Depends(get_db),
) -> dict:
    driver = driver_registry.create_company_driver(db, company_profile_id=profile.id, **payload.model_dump())
    return driver_payload(driver)


@router.patch("/drivers/{record_id}")
def update_driver(
    record_id: int,
    payload: CompanyDriverPatch,
    profile: CompanyProfile = Depends(require_company_profile),
    db: Session = Depends(get_db),
) -> dict:
    driver = driver_registry.update_company_driver(
        db,
        company_profile_id=profile.id,
        record_id=record_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return driver_payload(driver)


@router.delete("/drivers/{record_id}")
def delete_driver(
    record_id: int,
    profile: CompanyProfile = Depends(require_company_profile),
    db: Session = Depends(get_db),
) -> dict:
    driver_registry.delete_company_driver(db, company_profile_id=profile.id, record_id=record_id)
    return {"status": "success"}


# ── Reputation views ──────────────────────────────────────────────────────────

@router.get("/delivery-stats")
def delivery_stats(
    profile: CompanyProfile = Depends(require_company_profile),
    db: Session = Depends(get_db),
) -> dict:
    return reputation.company_delivery_stats(db, profile)


@router.get("/address-delivery-stats")
def address_delivery_stats(
    profile: CompanyProfile = Depends(require_company_profile),
    db: Session = Depends(get_db),
) -> list[dict]:
    return reputation.address_credit_scores(db, profile)


@router.get("/delivery-hotspots")
def delivery_hotspots(
    profile: CompanyProfile = Depends(require_company_profile),
    db: Session = Depends(get_db),
) -> dict:
    return reputation.delivery_hotspots(db, profile)

"""Company driver registry.

Driver IDs are company-scoped and compared case-insensitively through the
stored driver_key. Only active drivers pass the lookup gate.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lastmile.models.account import DRIVER_STATUS_ACTIVE, CompanyDriver, CompanyProfile
from lastmile.services.errors import DuplicateDriverId, NotFound

logger = logging.getLogger(__name__)


def normalize_key(value: str | None) -> str:
    return (value or "").strip().lower()


def driver_payload(driver: CompanyDriver) -> dict[str, Any]:
    return {
        "id": driver.id,
        "companyProfileId": driver.company_profile_id,
        "driverId": driver.driver_id,
        "name": driver.name,
        "phone": driver.phone,
        "status": driver.status,
        "createdAt": driver.created_at.isoformat() if driver.created_at else None,
    }


def find_company_profile(db: Session, company_name: str | None) -> CompanyProfile | None:
    company_key = normalize_key(company_name)
    if not company_key:
        return None
    return (
        db.query(CompanyProfile)
        .filter(func.lower(func.trim(CompanyProfile.company_name)) == company_key)
        .order_by(CompanyProfile.id.asc())
        .first()
    )


def find_active_driver(
    db: Session, driver_id: str, company_name: str
) -> tuple[CompanyDriver, CompanyProfile] | None:
    driver_key = normalize_key(driver_id)
    company_key = normalize_key(company_name)
    if not driver_key or not company_key:
        return None

    row = (
        db.query(CompanyDriver, CompanyProfile)
        .join(CompanyProfile, CompanyProfile.id == CompanyDriver.company_profile_id)
        .filter(
            CompanyDriver.driver_key == driver_key,
            CompanyDriver.status == DRIVER_STATUS_ACTIVE,
            func.lower(func.trim(CompanyProfile.company_name)) == company_key,
        )
        .order_by(CompanyDriver.id.asc())
        .first()
    )
    if not row:
        return None
    return row[0], row[1]


def resolve_driver_company(db: Session, driver_id: str) -> CompanyProfile | None:
    """First company that lists driver_id as an active driver."""
    driver_key = normalize_key(driver_id)
    if not driver_key:
        return None
    return (
        db.query(CompanyProfile)
        .join(CompanyDriver, CompanyDriver.company_profile_id == CompanyProfile.id)
        .filter(
            CompanyDriver.driver_key == driver_key,
            CompanyDriver.status == DRIVER_STATUS_ACTIVE,
        )
        .order_by(CompanyDriver.id.asc())
        .first()
    )


def list_company_drivers(db: Session, company_profile_id: int) -> list[CompanyDriver]:
    return (
        db.query(CompanyDriver)
        .filter(CompanyDriver.company_profile_id == company_profile_id)
        .order_by(CompanyDriver.id.asc())
        .all()
    )


def _get_company_driver(db: Session, company_profile_id: int, record_id: int) -> CompanyDriver:
    driver = (
        db.query(CompanyDriver)
        .filter(
            CompanyDriver.id == record_id,
            CompanyDriver.company_profile_id == company_profile_id,
        )
        .first()
    )
    if not driver:
        raise NotFound("Driver not found.")
    return driver


def _ensure_driver_id_free(
    db: Session, company_profile_id: int, driver_key: str, exclude_id: int | None = None
) -> None:
    query = db.query(CompanyDriver.id).filter(
        CompanyDriver.company_profile_id == company_profile_id,
        CompanyDriver.driver_key == driver_key,
    )
    if exclude_id is not None:
        query = query.filter(CompanyDriver.id != exclude_id)
    if query.first():
        raise DuplicateDriverId()


def create_company_driver(
    db: Session,
    *,
    company_profile_id: int,
    driver_id: str,
    name: str,
    phone: str | None = None,
    status: str = DRIVER_STATUS_ACTIVE,
) -> CompanyDriver:
    clean_id = driver_id.strip()
    driver_key = normalize_key(clean_id)
    _ensure_driver_id_free(db, company_profile_id, driver_key)

    driver = CompanyDriver(
        company_profile_id=company_profile_id,
        driver_id=clean_id,
        driver_key=driver_key,
        name=name.strip(),
        phone=phone,
        status=status,
    )
    db.add(driver)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateDriverId() from exc
    db.refresh(driver)
    logger.info("driver_registry: company=%s added driver=%s", company_profile_id, driver_key)
    return driver


def update_company_driver(
    db: Session, *, company_profile_id: int, record_id: int, changes: dict[str, Any]
) -> CompanyDriver:
    driver = _get_company_driver(db, company_profile_id, record_id)

    if changes.get("driver_id") is not None:
        clean_id = changes["driver_id"].strip()
        driver_key = normalize_key(clean_id)
        _ensure_driver_id_free(db, company_profile_id, driver_key, exclude_id=driver.id)
        driver.driver_id = clean_id
        driver.driver_key = driver_key
    if changes.get("name") is not None:
        driver.name = changes["name"].strip()
    if "phone" in changes:
        driver.phone = changes["phone"]
    if changes.get("status") is not None and changes["status"] != driver.status:
        logger.info(
            "driver_registry: company=%s driver=%s status %s -> %s",
            company_profile_id,
            driver.driver_key,
            driver.status,
            changes["status"],
        )
        driver.status = changes["status"]

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateDriverId() from exc
    db.refresh(driver)
    return driver


def delete_company_driver(db: Session, *, company_profile_id: int, record_id: int) -> None:
    driver = _get_company_driver(db, company_profile_id, record_id)
    db.delete(driver)
    db.commit()

"""
Delivery stats repository: grouped reads behind the company reputation views.
Uses SQLAlchemy text() + Session. Every query is scoped to one company: rows
carrying its profile id, plus legacy rows with no profile id whose company
name matches case-insensitively.
"""
import logging
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_COMPANY_SCOPE = """
    (company_profile_id = :profile_id
     OR (company_profile_id IS NULL AND LOWER(TRIM(company_name)) = :company_key))
"""


def _scope_params(profile_id: int, company_key: str) -> dict[str, Any]:
    return {"profile_id": profile_id, "company_key": (company_key or "").strip().lower()}


def _as_float(value: Any) -> float | None:
    # AVG comes back as Decimal on Postgres
    return float(value) if value is not None else None


def _as_iso(value: Any) -> str | None:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


# ---------------------------------------------------------------------------
# Driver feedback
# ---------------------------------------------------------------------------

def feedback_totals(db: Session, profile_id: int, company_key: str) -> dict[str, Any]:
    row = db.execute(
        text(f"""
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(CASE WHEN delivery_status = 'delivered' THEN 1 ELSE 0 END), 0) AS successful,
                COALESCE(SUM(CASE WHEN delivery_status = 'failed' THEN 1 ELSE 0 END), 0) AS failed,
                AVG(location_score) AS avg_location_score
            FROM driver_feedback
            WHERE {_COMPANY_SCOPE}
        """),
        _scope_params(profile_id, company_key),
    ).mappings().first()

    return {
        "total": int(row["total"] or 0),
        "successful": int(row["successful"] or 0),
        "failed": int(row["failed"] or 0),
        "avg_location_score": _as_float(row["avg_location_score"]),
    }


def feedback_by_address(db: Session, profile_id: int, company_key: str) -> list[dict[str, Any]]:
    """
    One row per address_digital_id. AVG ignores NULL location scores.
    """
    rows = db.execute(
        text(f"""
            SELECT
                address_digital_id,
                COUNT(*) AS total,
                COALESCE(SUM(CASE WHEN delivery_status = 'delivered' THEN 1 ELSE 0 END), 0) AS successful,
                COALESCE(SUM(CASE WHEN delivery_status = 'failed' THEN 1 ELSE 0 END), 0) AS failed,
                AVG(location_score) AS avg_location_score,
                MAX(created_at) AS last_delivery_at
            FROM driver_feedback
            WHERE {_COMPANY_SCOPE}
            GROUP BY address_digital_id
        """),
        _scope_params(profile_id, company_key),
    ).mappings().all()

    return [
        {
            "address_digital_id": r["address_digital_id"],
            "total": int(r["total"] or 0),
            "successful": int(r["successful"] or 0),
            "failed": int(r["failed"] or 0),
            "avg_location_score": _as_float(r["avg_location_score"]),
            "last_delivery_at": _as_iso(r["last_delivery_at"]),
        }
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Lookups and outcomes
# ---------------------------------------------------------------------------

def lookup_counts_by_address(db: Session, profile_id: int, company_key: str) -> dict[str, dict[str, Any]]:
    rows = db.execute(
        text(f"""
            SELECT address_digital_id, COUNT(*) AS lookup_count, MAX(created_at) AS last_event_at
            FROM shipment_lookups
            WHERE {_COMPANY_SCOPE}
            GROUP BY address_digital_id
        """),
        _scope_params(profile_id, company_key),
    ).mappings().all()
    return {
        r["address_digital_id"]: {
            "lookup_count": int(r["lookup_count"]),
            "last_event_at": _as_iso(r["last_event_at"]),
        }
        for r in rows
    }


def outcome_counts_by_address(db: Session, profile_id: int, company_key: str) -> dict[str, dict[str, Any]]:
    rows = db.execute(
        text(f"""
            SELECT
                address_digital_id,
                COALESCE(SUM(CASE WHEN delivery_status = 'delivered' THEN 1 ELSE 0 END), 0) AS completed,
                COALESCE(SUM(CASE WHEN delivery_status = 'failed' THEN 1 ELSE 0 END), 0) AS failed,
                MAX(created_at) AS last_event_at
            FROM delivery_outcomes
            WHERE {_COMPANY_SCOPE}
            GROUP BY address_digital_id
        """),
        _scope_params(profile_id, company_key),
    ).mappings().all()
    return {
        r["address_digital_id"]: {
            "completed": int(r["completed"]),
            "failed": int(r["failed"]),
            "last_event_at": _as_iso(r["last_event_at"]),
        }
        for r in rows
    }


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

def addresses_by_digital_ids(db: Session, digital_ids: list[str]) -> dict[str, dict[str, Any]]:
    if not digital_ids:
        return {}
    stmt = text("""
        SELECT digital_id, lat, lng, text_address
        FROM addresses
        WHERE digital_id IN :digital_ids
    """).bindparams(bindparam("digital_ids", expanding=True))
    rows = db.execute(stmt, {"digital_ids": list(digital_ids)}).mappings().all()
    return {r["digital_id"]: dict(r) for r in rows}

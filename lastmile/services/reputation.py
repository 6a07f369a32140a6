"""Company reputation views: delivery totals, per-address credit scores and
delivery hotspots.

Grouping runs in SQL (see delivery_stats_repo); the scores below are derived
from the grouped rows on every read.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.orm import Session

from lastmile.models.account import CompanyProfile
from lastmile.repositories import delivery_stats_repo

logger = logging.getLogger(__name__)

SUCCESS_WEIGHT = 0.6
LOCATION_WEIGHT = 8


def _round_half_up(value: float, places: int = 1) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def success_rate(successful: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return successful / total * 100


def credit_score(rate: float, avg_location_score: float | None) -> int:
    """0..100 blend of success rate (percent) and mean location score (1..5)."""
    raw = rate * SUCCESS_WEIGHT + (avg_location_score or 0.0) * LOCATION_WEIGHT
    score = int(_round_half_up(raw, 0))
    return min(100, max(0, score))


def _company_key(profile: CompanyProfile) -> str:
    return (profile.company_name or "").strip().lower()


def company_delivery_stats(db: Session, profile: CompanyProfile) -> dict[str, Any]:
    totals = delivery_stats_repo.feedback_totals(db, profile.id, _company_key(profile))
    return {
        "totalDeliveries": totals["total"],
        "successfulDeliveries": totals["successful"],
        "failedDeliveries": totals["failed"],
        "successRate": _round_half_up(success_rate(totals["successful"], totals["total"])),
        "avgLocationScore": _round_half_up(totals["avg_location_score"] or 0.0),
    }


def address_credit_scores(db: Session, profile: CompanyProfile) -> list[dict[str, Any]]:
    grouped = delivery_stats_repo.feedback_by_address(db, profile.id, _company_key(profile))
    addresses = delivery_stats_repo.addresses_by_digital_ids(
        db, [row["address_digital_id"] for row in grouped]
    )

    results = []
    for row in grouped:
        rate = success_rate(row["successful"], row["total"])
        avg_score = row["avg_location_score"] or 0.0
        address = addresses.get(row["address_digital_id"]) or {}
        results.append(
            {
                "addressDigitalId": row["address_digital_id"],
                "totalDeliveries": row["total"],
                "successfulDeliveries": row["successful"],
                "failedDeliveries": row["failed"],
                "successRate": _round_half_up(rate),
                "avgLocationScore": _round_half_up(avg_score),
                "creditScore": credit_score(rate, avg_score),
                "lastDeliveryDate": row["last_delivery_at"],
                "lat": address.get("lat"),
                "lng": address.get("lng"),
                "textAddress": address.get("text_address"),
            }
        )

    results.sort(key=lambda r: (-r["totalDeliveries"], r["addressDigitalId"]))
    return results


def build_hotspots(
    lookups: dict[str, dict[str, Any]],
    outcomes: dict[str, dict[str, Any]],
    location_scores: dict[str, float | None],
    addresses: dict[str, dict[str, Any]],
    feedback_at: dict[str, str | None] | None = None,
) -> dict[str, Any]:
    """Merge lookups, outcomes and feedback into map points plus a summary.

    Addresses without coordinates are left out of the points and counted in
    unplottedAddresses. Summary totals are sums over the points.
    """
    digital_ids = set(lookups) | set(outcomes) | set(location_scores)

    plotted = []
    unplotted = 0
    for digital_id in digital_ids:
        address = addresses.get(digital_id)
        if not address or address.get("lat") is None or address.get("lng") is None:
            unplotted += 1
            continue
        plotted.append((digital_id, address))

    max_lookups = max(
        [lookups.get(digital_id, {}).get("lookup_count", 0) for digital_id, _ in plotted] + [1]
    )

    points = []
    for digital_id, address in plotted:
        lookup = lookups.get(digital_id, {})
        outcome = outcomes.get(digital_id, {})
        lookup_count = lookup.get("lookup_count", 0)
        completed = outcome.get("completed", 0)
        failed = outcome.get("failed", 0)
        feedback_last = (feedback_at or {}).get(digital_id)
        last_events = [v for v in (lookup.get("last_event_at"), outcome.get("last_event_at"), feedback_last) if v]
        points.append(
            {
                "lat": address["lat"],
                "lng": address["lng"],
                "addressDigitalId": digital_id,
                "textAddress": address.get("text_address"),
                "lookupCount": lookup_count,
                "completedCount": completed,
                "failedCount": failed,
                "avgLocationScore": _round_half_up(location_scores.get(digital_id) or 0.0),
                "successRate": _round_half_up(success_rate(completed, completed + failed)),
                "lastEventAt": max(last_events) if last_events else None,
                "intensity": _round_half_up(lookup_count / max_lookups, 2),
            }
        )

    points.sort(key=lambda p: (-p["lookupCount"], p["addressDigitalId"]))

    total_completed = sum(p["completedCount"] for p in points)
    total_failed = sum(p["failedCount"] for p in points)
    scored = [p["avgLocationScore"] for p in points if p["avgLocationScore"] > 0]
    summary = {
        "totalLookups": sum(p["lookupCount"] for p in points),
        "totalCompleted": total_completed,
        "totalFailed": total_failed,
        "avgSuccessRate": _round_half_up(success_rate(total_completed, total_completed + total_failed)),
        "avgLocationScore": _round_half_up(sum(scored) / len(scored)) if scored else 0.0,
        "uniqueAddresses": len(points),
        "unplottedAddresses": unplotted,
    }
    return {"points": points, "summary": summary}


def delivery_hotspots(db: Session, profile: CompanyProfile) -> dict[str, Any]:
    company_key = _company_key(profile)
    lookups = delivery_stats_repo.lookup_counts_by_address(db, profile.id, company_key)
    outcomes = delivery_stats_repo.outcome_counts_by_address(db, profile.id, company_key)
    feedback_rows = delivery_stats_repo.feedback_by_address(db, profile.id, company_key)
    location_scores = {row["address_digital_id"]: row["avg_location_score"] for row in feedback_rows}
    feedback_at = {row["address_digital_id"]: row["last_delivery_at"] for row in feedback_rows}
    digital_ids = sorted(set(lookups) | set(outcomes) | set(location_scores))
    addresses = delivery_stats_repo.addresses_by_digital_ids(db, digital_ids)

    result = build_hotspots(lookups, outcomes, location_scores, addresses, feedback_at)
    logger.info(
        "reputation: hotspots company=%s points=%d unplotted=%d",
        profile.id,
        result["summary"]["uniqueAddresses"],
        result["summary"]["unplottedAddresses"],
    )
    return result

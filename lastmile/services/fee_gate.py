"""fee_gate.py

Distance gate for fallback contacts, run on every create and edit.

  1. The primary address must have coordinates.
  2. Distance is computed from the primary address's stored coordinates and
     the submitted contact coordinates. Client-sent distances are discarded.
  3. Beyond MAX_FREE_DISTANCE_KM (strictly greater) the contact needs a
     scheduled date, a slot from TIME_SLOTS and an acknowledged extra fee.
  4. Within the free radius the scheduling fields are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from lastmile.core.config import settings
from lastmile.logic.distance import distance_km
from lastmile.services.errors import PrimaryAddressMissingLocation, SchedulingRequired

if TYPE_CHECKING:
    from lastmile.models.address import Address

logger = logging.getLogger(__name__)

TIME_SLOTS: tuple[str, ...] = (
    "morning-8-10",
    "morning-10-12",
    "afternoon-12-2",
    "afternoon-2-4",
    "afternoon-4-6",
    "evening-6-8",
    "evening-8-9",
)


@dataclass
class FeeAssessment:
    distance_km: float
    requires_extra_fee: bool
    scheduled_date: str | None = None
    scheduled_time_slot: str | None = None
    extra_fee_acknowledged: bool = False


def free_distance_threshold() -> float:
    return float(settings.MAX_FREE_DISTANCE_KM)


def requires_extra_fee(distance: float, threshold: float | None = None) -> bool:
    limit = free_distance_threshold() if threshold is None else threshold
    return distance > limit


def assess_fallback_location(
    address: "Address",
    lat: float,
    lng: float,
    *,
    scheduled_date: str | None = None,
    scheduled_time_slot: str | None = None,
    extra_fee_acknowledged: bool | None = None,
    threshold: float | None = None,
) -> FeeAssessment:
    """Validate a fallback location against its primary address.

    Raises PrimaryAddressMissingLocation or SchedulingRequired; otherwise
    returns the values that must be persisted on the contact.
    """
    if address.lat is None or address.lng is None:
        raise PrimaryAddressMissingLocation()

    distance = distance_km(address.lat, address.lng, lat, lng)
    if not requires_extra_fee(distance, threshold):
        return FeeAssessment(distance_km=distance, requires_extra_fee=False)

    date_value = (scheduled_date or "").strip()
    slot_value = (scheduled_time_slot or "").strip()
    if not date_value or not slot_value:
        logger.info(
            "fee_gate: scheduling missing address=%s distance_km=%.3f", address.digital_id, distance
        )
        raise SchedulingRequired(
            "Fallback locations beyond the free radius require a scheduled delivery date and time slot.",
            distanceKm=round(distance, 3),
        )
    if slot_value not in TIME_SLOTS:
        raise SchedulingRequired(
            f"Unknown time slot '{slot_value}'.",
            distanceKm=round(distance, 3),
            allowedTimeSlots=list(TIME_SLOTS),
        )
    if extra_fee_acknowledged is not True:
        raise SchedulingRequired(
            "Please acknowledge the extra delivery fee for locations beyond the free radius.",
            distanceKm=round(distance, 3),
        )

    return FeeAssessment(
        distance_km=distance,
        requires_extra_fee=True,
        scheduled_date=date_value,
        scheduled_time_slot=slot_value,
        extra_fee_acknowledged=True,
    )

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, SmallInteger, String, Text, text
from sqlalchemy.sql import func

from lastmile.database import Base


LOOKUP_PENDING_FEEDBACK = "pending_feedback"
LOOKUP_COMPLETED = "completed"

ATTEMPT_IN_PROGRESS = "in_progress"
ATTEMPT_COMPLETED = "completed"

DELIVERED = "delivered"
FAILED = "failed"
PARTIAL = "partial"

_PENDING_ONLY = text("status = 'pending_feedback'")
_IN_PROGRESS_ONLY = text("status = 'in_progress'")


class ShipmentLookup(Base):
    __tablename__ = "shipment_lookups"
    __table_args__ = (
        # the feedback lock: one pending lookup per driver and company
        Index(
            "uq_shipment_lookups_pending_driver",
            "driver_key",
            "company_key",
            unique=True,
            postgresql_where=_PENDING_ONLY,
            sqlite_where=_PENDING_ONLY,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    shipment_number = Column(String(100), nullable=False)
    driver_id = Column(String(64), nullable=False)
    driver_key = Column(String(64), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    company_key = Column(String(255), nullable=False, index=True)
    company_profile_id = Column(
        Integer, ForeignKey("company_profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    address_digital_id = Column(String(16), nullable=False, index=True)
    status = Column(String(30), nullable=False, default=LOOKUP_PENDING_FEEDBACK, index=True)
    delivery_status = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    delivery_completed_at = Column(DateTime(timezone=True), nullable=True)


class AlternateAttempt(Base):
    __tablename__ = "alternate_attempts"
    __table_args__ = (
        Index(
            "uq_alternate_attempts_active_lookup",
            "shipment_lookup_id",
            unique=True,
            postgresql_where=_IN_PROGRESS_ONLY,
            sqlite_where=_IN_PROGRESS_ONLY,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    shipment_lookup_id = Column(
        Integer, ForeignKey("shipment_lookups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fallback_contact_id = Column(Integer, ForeignKey("fallback_contacts.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default=ATTEMPT_IN_PROGRESS, index=True)
    delivery_status = Column(String(20), nullable=True)
    distance_km = Column(Float, nullable=True)
    primary_failure_reason = Column(String(50), nullable=False)
    primary_failure_details = Column(Text, nullable=True)
    primary_location_score = Column(SmallInteger, nullable=True)
    primary_customer_behavior = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)


class DriverFeedback(Base):
    __tablename__ = "driver_feedback"

    id = Column(Integer, primary_key=True, index=True)
    shipment_lookup_id = Column(
        Integer, ForeignKey("shipment_lookups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    alternate_attempt_id = Column(
        Integer, ForeignKey("alternate_attempts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    driver_id = Column(String(64), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    company_profile_id = Column(
        Integer, ForeignKey("company_profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # always the primary address, also for alternate deliveries
    address_digital_id = Column(String(16), nullable=False, index=True)
    delivery_status = Column(String(20), nullable=False)
    location_score = Column(SmallInteger, nullable=True)
    customer_behavior = Column(String(30), nullable=True)
    failure_reason = Column(String(50), nullable=True)
    additional_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class DeliveryOutcome(Base):
    __tablename__ = "delivery_outcomes"

    id = Column(Integer, primary_key=True, index=True)
    shipment_lookup_id = Column(
        Integer, ForeignKey("shipment_lookups.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    address_digital_id = Column(String(16), nullable=False, index=True)
    driver_id = Column(String(64), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    company_profile_id = Column(
        Integer, ForeignKey("company_profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    delivery_status = Column(String(20), nullable=False)
    fallback_contact_id = Column(Integer, ForeignKey("fallback_contacts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

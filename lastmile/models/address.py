from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from lastmile.database import Base


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    digital_id = Column(String(16), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    text_address = Column(Text, nullable=False)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    # inline data URIs from the image pipeline, stored opaquely
    photo_building = Column(Text, nullable=True)
    photo_gate = Column(Text, nullable=True)
    photo_door = Column(Text, nullable=True)
    preferred_time = Column(String(20), nullable=True, default="morning")
    preferred_time_slot = Column(String(30), nullable=True)
    special_note = Column(Text, nullable=True)
    fallback_option = Column(String(20), nullable=True, default="door")
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class FallbackContact(Base):
    __tablename__ = "fallback_contacts"

    id = Column(Integer, primary_key=True, index=True)
    address_id = Column(Integer, ForeignKey("addresses.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=False)
    relationship = Column(String(50), nullable=True)
    text_address = Column(Text, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    distance_km = Column(Float, nullable=True)
    requires_extra_fee = Column(Boolean, nullable=False, default=False)
    extra_fee_acknowledged = Column(Boolean, nullable=False, default=False)
    scheduled_date = Column(String(20), nullable=True)
    scheduled_time_slot = Column(String(30), nullable=True)
    photo_building = Column(Text, nullable=True)
    photo_gate = Column(Text, nullable=True)
    photo_door = Column(Text, nullable=True)
    special_note = Column(Text, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

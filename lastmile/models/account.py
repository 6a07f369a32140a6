from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from lastmile.database import Base


DRIVER_STATUS_ACTIVE = "active"
DRIVER_STATUSES = ("active", "inactive", "suspended")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    account_type = Column(String(20), nullable=False, default="individual")
    iqama_id = Column(String(20), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(30), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CompanyProfile(Base):
    __tablename__ = "company_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    company_name = Column(String(255), nullable=False, index=True)
    unified_number = Column(String(50), unique=True, nullable=False)
    company_type = Column(String(40), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CompanyDriver(Base):
    __tablename__ = "company_drivers"
    __table_args__ = (
        UniqueConstraint("company_profile_id", "driver_key", name="uq_company_drivers_company_driver_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_profile_id = Column(
        Integer, ForeignKey("company_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    driver_id = Column(String(64), nullable=False)
    # trimmed, lower-cased driver_id for case-insensitive matching
    driver_key = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True)
    status = Column(String(20), nullable=False, default=DRIVER_STATUS_ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

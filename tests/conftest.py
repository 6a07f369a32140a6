import os

# module-level engine in lastmile.database must not need a Postgres server
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lastmile.database import Base
from lastmile.models import address as _address_models  # noqa: F401
from lastmile.models import delivery as _delivery_models  # noqa: F401
from lastmile.models.account import CompanyDriver, CompanyProfile, User
from lastmile.services.address_registry import create_address, create_fallback_contact

# ~5.2 km due north of (24.7, 46.6)
F_LAT = 24.746764673
F_LNG = 46.6


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _user(db, **kwargs) -> User:
    user = User(password_hash="pbkdf2$not-a-real-hash", **kwargs)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _company(db, name: str, unified_number: str, email: str, phone: str) -> CompanyProfile:
    company_user = _user(db, account_type="company", name=f"{name} Ops", email=email, phone=phone)
    profile = CompanyProfile(
        user_id=company_user.id,
        company_name=name,
        unified_number=unified_number,
        company_type="logistics",
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def owner(db) -> User:
    return _user(
        db,
        name="Sara Alharbi",
        email="sara@example.com",
        phone="+966500000001",
        iqama_id="2345678901",
    )


@pytest.fixture
def other_user(db) -> User:
    return _user(db, name="Omar Fahad", email="omar@example.com", phone="+966500000009")


@pytest.fixture
def company(db) -> CompanyProfile:
    """Acme with one active driver, D1."""
    profile = _company(db, "Acme", "7001234567", "ops@acme.test", "+966500000002")
    db.add(
        CompanyDriver(
            company_profile_id=profile.id,
            driver_id="D1",
            driver_key="d1",
            name="Driver One",
            status="active",
        )
    )
    db.commit()
    return profile


@pytest.fixture
def rival(db) -> CompanyProfile:
    return _company(db, "Rival Express", "7009999999", "ops@rival.test", "+966500000003")


@pytest.fixture
def address_a(db, owner):
    return create_address(
        db,
        user_id=owner.id,
        data={"text_address": "King Fahd Rd, Al Olaya, Riyadh", "lat": 24.7, "lng": 46.6},
    )


@pytest.fixture
def address_b(db, owner):
    return create_address(
        db,
        user_id=owner.id,
        data={"text_address": "Tahlia St, Riyadh", "lat": 24.69, "lng": 46.68},
    )


@pytest.fixture
def contact_f(db, owner, address_a):
    return create_fallback_contact(
        db,
        user_id=owner.id,
        data={
            "address_id": address_a.id,
            "name": "Neighbour Khalid",
            "phone": "+966500000004",
            "lat": F_LAT,
            "lng": F_LNG,
            "scheduled_date": "2025-01-01",
            "scheduled_time_slot": "morning-8-10",
            "extra_fee_acknowledged": True,
        },
    )

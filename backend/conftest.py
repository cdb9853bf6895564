"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, get_session, make_engine
from errors import DeliveryError
from main import app
from models import Building, Tenant, Vendor
from schemas.common import CoverageSnapshot
from schemas.requirements import RequirementFields
from services.requirements import activate_template

NOW = datetime(2025, 6, 1, 12, 0, 0)

STANDARD_REQUIREMENT = RequirementFields(
    gl_occurrence_min=1_000_000,
    gl_aggregate_min=2_000_000,
    auto_combined_min=500_000,
    umbrella_min=1_000_000,
    workers_comp_required=True,
    additional_insured_required=True,
    waiver_of_subrogation_required=True,
    notice_of_cancellation_min_days=30,
    certificate_holder_text="Sunset Towers HOA, 123 Ocean Ave, Miami, FL 33139",
)


def make_snapshot(**overrides) -> CoverageSnapshot:
    """A certificate that satisfies STANDARD_REQUIREMENT as of NOW"""
    data = {
        "insured_name": "John Doe Plumbing, Inc.",
        "gl_each_occurrence": 1_000_000,
        "gl_aggregate": 2_000_000,
        "auto_combined_single": 500_000,
        "umbrella_limit": 1_000_000,
        "wc_each_accident": 500_000,
        "additional_insured": True,
        "waiver_of_subrogation": True,
        "primary_non_contributory": True,
        "notice_of_cancellation_days": 30,
        "effective_date": NOW - timedelta(days=100),
        "expiration_date": NOW + timedelta(days=265),
        "coverage_types": ["GL", "AUTO", "UMBRELLA", "WC"],
    }
    data.update(overrides)
    return CoverageSnapshot(**data)


class RecordingNotifier:
    """Collects delivered events; fails the first `failures` sends"""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0
        self.sent = []

    def send(self, event):
        self.calls += 1
        if self.calls <= self.failures:
            raise DeliveryError(f"gateway unavailable (call {self.calls})")
        self.sent.append(event)


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """Separate connections per session, for interleaved-writer tests"""
    engine = make_engine(f"sqlite:///{tmp_path / 'coi.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def seed_building(session, name="Sunset Towers HOA", address="123 Ocean Ave, Miami, FL 33139"):
    building = Building(name=name, address=address)
    session.add(building)
    session.commit()
    return building


def seed_vendor(session, legal_name="John Doe Plumbing, Inc.", contact_email="vendor1@example.com"):
    vendor = Vendor(legal_name=legal_name, contact_email=contact_email)
    session.add(vendor)
    session.commit()
    return vendor


def seed_tenant(session, name="Corner Bakery LLC", contact_email="bakery@example.com"):
    tenant = Tenant(name=name, contact_email=contact_email)
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture
def building(db):
    return seed_building(db)


@pytest.fixture
def other_building(db):
    return seed_building(db, "Downtown Plaza Condos", "987 Main St, Austin, TX 78701")


@pytest.fixture
def vendor(db):
    return seed_vendor(db)


@pytest.fixture
def tenant(db):
    return seed_tenant(db)


@pytest.fixture
def template(db, building):
    return activate_template(db, building.id, STANDARD_REQUIREMENT, actor_id="manager-1",
                             now=NOW - timedelta(days=365))


@pytest.fixture
def client(session_factory):
    def override_get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides = {}

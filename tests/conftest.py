# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import datetime, timedelta
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ROTATING_PIN_SECRET", "test-rotating-secret")
os.environ.setdefault("PIN_BCRYPT_ROUNDS", "4")

from deal_redemption.core.pin_material import PinLayer
from deal_redemption.core.security import create_access_token, hash_pin
from deal_redemption.core.settings import Settings
from deal_redemption.db.session import Base
from deal_redemption.db.session import get_db as app_get_session
from deal_redemption.db.time import utcnow
from deal_redemption.main import app as fastapi_app
from deal_redemption.models import Customer, Deal, Vendor
from deal_redemption.services.claim_ledger import ClaimLedger
from deal_redemption.services.pin_verifier import PinVerifier
from deal_redemption.services.rate_limiter import RateLimiter, reset_local_windows
from deal_redemption.services.rotating import RotatingCodeService

TEST_DB_URL = "sqlite://"

_CUSTOMER_COUNTER = count(1)
_TEST_SETTINGS_INSTANCE = Settings()

# Candidate static PINs; tests pick one that differs from the live rotating codes.
STATIC_PIN_CANDIDATES = ("4821", "5937", "7260", "6148", "3095")


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    # Session commits release savepoints on the outer transaction; code under test
    # may still open its own nested savepoints.
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def reset_rate_limit_windows() -> Iterator[None]:
    """Start every test with empty in-process attempt windows."""
    reset_local_windows()
    yield
    reset_local_windows()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return _TEST_SETTINGS_INSTANCE


@pytest.fixture()
def now() -> datetime:
    """A fixed instant shared by everything in one test."""
    return utcnow().replace(microsecond=0)


@pytest.fixture()
def make_customer(db_session: Session) -> Callable[..., Customer]:
    """Return a factory persisting customers."""

    def _make(tier: str = "basic", display_name: str | None = None) -> Customer:
        customer = Customer(
            display_name=display_name or f"Customer {next(_CUSTOMER_COUNTER)}",
            membership_tier=tier,
        )
        db_session.add(customer)
        db_session.flush()
        db_session.refresh(customer)
        return customer

    return _make


@pytest.fixture()
def customer(make_customer: Callable[..., Customer]) -> Customer:
    """Create and return the primary basic-tier customer."""
    return make_customer(display_name="Asha")


@pytest.fixture()
def other_customer(make_customer: Callable[..., Customer]) -> Customer:
    """Create and return a second basic-tier customer."""
    return make_customer(display_name="Vikram")


@pytest.fixture()
def vendor_owner(make_customer: Callable[..., Customer]) -> Customer:
    """Create the account operating the test storefront."""
    return make_customer(display_name="Store Owner")


@pytest.fixture()
def vendor(db_session: Session, vendor_owner: Customer) -> Vendor:
    """Create a storefront in central Bengaluru."""
    vendor = Vendor(
        owner_customer_id=vendor_owner.id,
        business_name="Brew Corner",
        address="Indiranagar, Bengaluru",
        city="Bengaluru",
        latitude=12.9716,
        longitude=77.5946,
    )
    db_session.add(vendor)
    db_session.flush()
    db_session.refresh(vendor)
    return vendor


@pytest.fixture()
def make_deal(db_session: Session, vendor: Vendor, now: datetime) -> Callable[..., Deal]:
    """Return a factory persisting approved deals valid around `now`."""

    def _make(**overrides: Any) -> Deal:
        values: dict[str, Any] = {
            "vendor_id": vendor.id,
            "title": "20% off coffee",
            "category": "food",
            "discount_percentage": 20,
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
            "max_redemptions": None,
            "current_redemptions": 0,
            "required_tier": None,
            "is_active": True,
            "is_approved": True,
        }
        static_pin = overrides.pop("static_pin", None)
        values.update(overrides)
        deal = Deal(**values)
        if static_pin is not None:
            material = hash_pin(static_pin, now=now, rounds=4)
            deal.pin_hash = material.pin_hash
            deal.pin_salt = material.salt
            deal.pin_created_at = material.created_at
            deal.pin_expires_at = material.expires_at
        db_session.add(deal)
        db_session.flush()
        db_session.refresh(deal)
        return deal

    return _make


@pytest.fixture()
def deal(make_deal: Callable[..., Deal]) -> Deal:
    """Create an open, unlimited deal."""
    return make_deal()


@pytest.fixture()
def rotating_service() -> RotatingCodeService:
    return RotatingCodeService()


@pytest.fixture()
def verifier(rotating_service: RotatingCodeService) -> PinVerifier:
    return PinVerifier(rotating_service)


@pytest.fixture()
def rate_limiter() -> RateLimiter:
    """In-process limiter with the production ceilings."""
    return RateLimiter(per_hour=5, per_day=10)


@pytest.fixture()
def ledger(
    db_session: Session,
    rate_limiter: RateLimiter,
    verifier: PinVerifier,
    now: datetime,
) -> ClaimLedger:
    """Claim ledger pinned to the test's fixed clock."""
    return ClaimLedger(
        db_session,
        rate_limiter=rate_limiter,
        verifier=verifier,
        clock=lambda: now,
    )


def auth_headers_for(customer: Customer) -> dict[str, str]:
    """Return authorization headers for `customer`."""
    token = create_access_token(customer.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_token(customer: Customer) -> dict[str, str]:
    """Return authorization headers for the primary customer."""
    return auth_headers_for(customer)


@pytest.fixture()
def other_auth_token(other_customer: Customer) -> dict[str, str]:
    """Return authorization headers for the secondary customer."""
    return auth_headers_for(other_customer)


@pytest.fixture()
def vendor_auth_token(vendor_owner: Customer) -> dict[str, str]:
    """Return authorization headers for the storefront operator."""
    return auth_headers_for(vendor_owner)


def pick_static_pin(accepted: list[str]) -> str:
    """Return a candidate static PIN that no live rotating code shadows."""
    for pin in STATIC_PIN_CANDIDATES:
        if pin not in accepted:
            return pin
    raise AssertionError("every candidate PIN collides with a rotating code")


def wrong_code(accepted: list[str], *others: str) -> str:
    """Return a well-formed code no layer will accept."""
    taken = set(accepted) | set(others)
    for candidate in ("9052", "8163", "2719", "1580", "6304"):
        if candidate not in taken:
            return candidate
    raise AssertionError("no free wrong code")


def expected_layer(pin: str, accepted: list[str], fallback: PinLayer) -> PinLayer:
    """Return the layer a submission of `pin` should match at."""
    return PinLayer.ROTATING if pin in accepted else fallback

from __future__ import annotations

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEBUG"] = "true"
os.environ["OTP_TEST_MODE"] = "true"
os.environ["PUBLIC_DIR"] = "__no_public_dir__"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.dependencies import get_credential_store, get_otp_registry, get_session_manager, get_telemetry
from app.main import app
from app.models import Villager
from app.services.credentials import AdminAccount, CredentialStore
from app.services.otp_service import OTPRegistry
from app.services.session_service import SessionManager
from app.services.store import MemoryStore
from app.services.telemetry_service import TelemetrySample
from app.services.tokens import OpaqueTokenCodec
from app.utils.security import get_password_hash

ADMIN_PASSWORD = "correctpass"


class Clock:
    """Manually advanced UTC clock"""

    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeTelemetry:
    def __init__(self):
        self.samples = {}
        self.queries = []

    def record(self, dev_eui: str, seconds_ago: float, field: str = "temperature", value=25.5):
        self.samples[dev_eui] = TelemetrySample(
            dev_eui=dev_eui,
            time=datetime.now(timezone.utc) - timedelta(seconds=seconds_ago),
            field=field,
            value=value,
        )

    async def latest_sample(self, dev_eui):
        self.queries.append(dev_eui)
        return self.samples.get(dev_eui)

    async def last_seen_by_device(self):
        return {k: s.time for k, s in self.samples.items()}

    async def recent_rows(self, limit=50):
        return [
            {"devEUI": s.dev_eui, "_time": s.time.isoformat(), "_field": s.field, "_value": s.value}
            for s in list(self.samples.values())[:limit]
        ]

    def close(self):
        pass


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def credentials():
    return CredentialStore([AdminAccount(username="admin", password_hash=get_password_hash(ADMIN_PASSWORD))])


@pytest.fixture
def sessions(store, credentials, clock):
    return SessionManager(OpaqueTokenCodec(store), credentials, expire_minutes=480, clock=clock)


@pytest.fixture
def registry(store, clock):
    return OTPRegistry(store, expire_minutes=5, max_attempts=3, clock=clock)


@pytest.fixture
def telemetry():
    return FakeTelemetry()


@pytest.fixture
def db_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(db_factory):
    session = db_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_factory, sessions, registry, telemetry, credentials):
    def override_get_db():
        session = db_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_manager] = lambda: sessions
    app.dependency_overrides[get_otp_registry] = lambda: registry
    app.dependency_overrides[get_telemetry] = lambda: telemetry
    app.dependency_overrides[get_credential_store] = lambda: credentials
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def villager(db):
    v = Villager(
        aadhaar="123412341234",
        name="Ramesh Kumar",
        phone="9876543210",
        village="Rampur",
        panchayat="Rampur GP",
        occupation="Farmer",
    )
    db.add(v)
    db.commit()
    db.refresh(v)
    return v


@pytest.fixture
def admin_headers(sessions):
    token = sessions.issue_admin_session("admin", ADMIN_PASSWORD)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def villager_headers(client, villager):
    r = client.post("/api/login", json={"aadhaarNumber": villager.aadhaar})
    return {"Authorization": r.json()["token"]}

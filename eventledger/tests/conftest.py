import os
from decimal import Decimal

# Keep the application engine off disk; tests bind their own database below.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from eventledger.core import redis_config
from eventledger.core.config import settings
from eventledger.database.db import Base, get_db
from eventledger.main import app
from eventledger.models.events import Event


@pytest.fixture
def engine(tmp_path):
    # A file database gives every thread its own connection, like a real server.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Session:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_redis(monkeypatch):
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    monkeypatch.setattr(redis_config, "get_redis_client", lambda: client)
    return client


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, fake_redis):
    monkeypatch.setattr(settings, "STATS_CACHE_TTL_SECONDS", 0)
    monkeypatch.setattr(settings, "STORE_RETRY_MAX_WAIT_SECONDS", 0.01)
    monkeypatch.setattr(settings, "REQUIRE_FUTURE_EVENTS", True)
    monkeypatch.setattr(settings, "PENDING_BOOKING_TTL_MINUTES", 30)
    return settings


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db: Session = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_event(db_session: Session):
    def _make_event(*, capacity: int = 10, price="0", organizer_id: str = "org-1", **kwargs) -> Event:
        event = Event(
            title=kwargs.pop("title", "Test Event"),
            organizer_id=organizer_id,
            capacity=capacity,
            price=Decimal(str(price)),
            reserved_count=kwargs.pop("reserved_count", 0),
            **kwargs,
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make_event

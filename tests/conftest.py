"""Shared fixtures for all tests.

Uses a SQLite file database so tests are fast and isolated.
The database is recreated for every test function.
"""

import os

# Force SQLite before any app imports
os.environ["DATABASE_URL"] = "sqlite:///./test_planner.db"
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["MCP_SESSION_TOKEN"] = ""

import asyncio
import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from planner.auth import Session, SessionUser
from planner.chat import tools  # noqa: F401
from planner.chat.context import RunContext
from planner.chat.registry import registry
from planner.database import Base, get_db
from planner.main import app
from planner.models import AuthSession, Event, EventCategory, Goodie, GoodieType, User
from planner.services.broadcast import BroadcastHub

TEST_DATABASE_URL = "sqlite:///./test_planner.db"

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Provide a database session for test helpers."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    """TestClient that uses the test database."""

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


# ============== Broadcast helpers ==============

class Recorder:
    """Sendable that keeps every message it receives, decoded."""

    def __init__(self):
        self.messages = []

    def send(self, data: str) -> None:
        self.messages.append(json.loads(data))

    def of_type(self, message_type: str) -> list[dict]:
        return [m for m in self.messages if m["type"] == message_type]


@pytest.fixture
def hub():
    hub = BroadcastHub()
    hub.init()
    yield hub
    hub.shutdown()


@pytest.fixture
def recorder(hub):
    rec = Recorder()
    hub.register(rec)
    return rec


# ============== Factory helpers ==============

@pytest.fixture
def create_user(db):
    """Factory to create a user row."""

    _counter = [0]

    def _create(**overrides):
        _counter[0] += 1
        data = {
            "name": f"Test User {_counter[0]}",
            "email": f"user{_counter[0]}@example.com",
        }
        data.update(overrides)
        user = User(**data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _create


@pytest.fixture
def auth_headers(db):
    """Factory: bearer headers for a fresh auth session of ``user``."""

    def _create(user, expires_in=timedelta(days=1)):
        token = uuid.uuid4().hex
        db.add(AuthSession(
            token=token,
            user_id=user.id,
            expires_at=datetime.now(timezone.utc) + expires_in,
        ))
        db.commit()
        return {"Authorization": f"Bearer {token}"}

    return _create


@pytest.fixture
def create_event(db, create_user):
    """Factory to create an event row (auto-creates its creator)."""

    def _create(creator=None, **overrides):
        if creator is None:
            creator = create_user()
        start = datetime.now(timezone.utc) + timedelta(days=2)
        data = {
            "name": "Test Event",
            "slug": f"test-event-{uuid.uuid4().hex[:8]}",
            "description": "An event for tests",
            "start_date": start,
            "end_date": start + timedelta(hours=2),
            "location": "Hall 1",
            "is_public": True,
            "category": EventCategory.MEETUP,
            "created_by_id": creator.id,
        }
        data.update(overrides)
        event = Event(**data)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _create


@pytest.fixture
def create_goodie(db, create_user):
    """Factory to create a goodie row (auto-creates its creator)."""

    def _create(creator=None, **overrides):
        if creator is None:
            creator = create_user()
        data = {
            "name": "Test Goodie",
            "location": "Booth 7",
            "instructions": "Ask at the counter",
            "type": GoodieType.GIFT,
            "created_by_id": creator.id,
        }
        data.update(overrides)
        goodie = Goodie(**data)
        db.add(goodie)
        db.commit()
        db.refresh(goodie)
        return goodie

    return _create


# ============== Tool helpers ==============

@pytest.fixture
def tool_ctx(db, hub):
    """Factory for a RunContext acting as ``user`` (None = anonymous)."""

    def _create(user=None, cache=None):
        session = Session(user=SessionUser(id=user.id)) if user else None
        return RunContext(session=session, cache={} if cache is None else cache, request_id="test", db=db, hub=hub)

    return _create


@pytest.fixture
def call_tool():
    """Run a registry tool to completion."""

    def _call(name, arguments, ctx):
        return asyncio.run(registry.call(name, arguments, ctx))

    return _call

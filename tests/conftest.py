"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime, timedelta

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of artbattle.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, select  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from artbattle.database.models import (  # noqa: E402
    Artwork,
    Base,
    Event,
    EventStatus,
    Participant,
    Profile,
    UserPoints,
)
from artbattle.engine.rules import ScoringRules  # noqa: E402


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Art Battle tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session for assertions; rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def rules() -> ScoringRules:
    """Canonical rewards with no retry sleep."""
    return ScoringRules(retry_backoff_seconds=0)


# ---------------------------------------------------------------------------
# Seed helpers — plain functions so tests can call them with any engine
# ---------------------------------------------------------------------------
def make_event(
    engine: Engine,
    *,
    status: EventStatus = EventStatus.ONGOING,
    start: datetime | None = None,
    end: datetime | None = None,
    midway: datetime | None = None,
    midway_theme: str | None = None,
) -> uuid.UUID:
    now = datetime.now(UTC)
    if start is None:
        start = now - timedelta(hours=1) if status != EventStatus.UPCOMING else now + timedelta(hours=1)
    if end is None:
        end = now + timedelta(hours=2) if status != EventStatus.ENDED else now - timedelta(minutes=5)
        if end <= start:
            start = end - timedelta(hours=1)
    with Session(engine) as session:
        event = Event(
            id=uuid.uuid4(),
            title="Autumn Clash",
            description="Paint the season",
            theme="Falling leaves",
            midway_theme=midway_theme,
            start_time=start,
            end_time=end,
            midway_time=midway,
            team_a_name="Crimson",
            team_b_name="Azure",
            status=status.value,
        )
        session.add(event)
        session.commit()
        return event.id


def make_profile(engine: Engine, username: str | None = None) -> uuid.UUID:
    user_id = uuid.uuid4()
    with Session(engine) as session:
        session.add(Profile(user_id=user_id, username=username or f"user_{user_id.hex[:8]}"))
        session.commit()
    return user_id


def add_participant(engine: Engine, event_id: uuid.UUID, user_id: uuid.UUID, team: str) -> None:
    with Session(engine) as session:
        session.add(Participant(event_id=event_id, user_id=user_id, team=team))
        session.commit()


def make_artwork(engine: Engine, event_id: uuid.UUID, user_id: uuid.UUID) -> uuid.UUID:
    with Session(engine) as session:
        artwork = Artwork(
            id=uuid.uuid4(),
            event_id=event_id,
            user_id=user_id,
            title="Ember",
            image_url="/api/uploads/ember.png",
        )
        session.add(artwork)
        session.commit()
        return artwork.id


def get_points(engine: Engine, user_id: uuid.UUID, event_id: uuid.UUID) -> UserPoints | None:
    with Session(engine, expire_on_commit=False) as session:
        return session.scalar(
            select(UserPoints).where(
                UserPoints.user_id == user_id, UserPoints.event_id == event_id
            )
        )


def get_artwork(engine: Engine, artwork_id: uuid.UUID) -> Artwork:
    with Session(engine, expire_on_commit=False) as session:
        return session.get(Artwork, artwork_id)


def seed_battle(engine: Engine) -> dict:
    """An ongoing event with U1 on team A (owning one artwork) and U2 on team B."""
    event_id = make_event(engine)
    u1 = make_profile(engine, "painter_one")
    u2 = make_profile(engine, "painter_two")
    add_participant(engine, event_id, u1, "A")
    add_participant(engine, event_id, u2, "B")
    artwork_id = make_artwork(engine, event_id, u1)
    return {"event_id": event_id, "u1": u1, "u2": u2, "artwork_id": artwork_id}


@pytest.fixture
def battle(db_engine: Engine) -> dict:
    return seed_battle(db_engine)


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------
def make_token(sub: uuid.UUID | str, *, is_admin: bool = False, username: str | None = None) -> str:
    """Create a bearer JWT the way the identity provider would."""
    import jwt

    from artbattle.api.deps import JWT_ALGORITHM, JWT_SECRET

    claims = {"sub": str(sub), "is_admin": is_admin}
    if username:
        claims["username"] = username
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db_engine: Engine, rules: ScoringRules):
    """A TestClient whose engine and rules point at the test database."""
    from fastapi.testclient import TestClient

    from artbattle.api.deps import get_engine, get_rules
    from artbattle.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_rules] = lambda: rules
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()

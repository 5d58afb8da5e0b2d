"""Shared fixtures: in-memory database, fixed clock, API client."""

from __future__ import annotations

import os

os.environ.setdefault("EMPIRES_DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from empires.database import Base, get_db
from empires.game.village import new_village
from empires.models.building import Building
from empires.models.village import Village

T0 = datetime(2026, 1, 1, 12, 0, 0)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def make_village():
    """Build a transient village (no session) with explicit stock."""

    def _make(wood=750, clay=750, iron=750, crop=750, now=T0, **fields) -> Village:
        v = new_village(owner_id=1, name="Capital City", x=0, y=0, now=now)
        v.wood, v.clay, v.iron, v.crop = wood, clay, iron, crop
        for key, value in fields.items():
            setattr(v, key, value)
        return v

    return _make


@pytest.fixture
def add_building():
    def _add(village: Village, building_type: int, level: int, slot: int) -> Building:
        return Building(
            village=village,
            type=building_type,
            level=level,
            slot_position=slot,
            is_under_construction=False,
            build_seconds=0,
            cost_wood=0,
            cost_clay=0,
            cost_iron=0,
            cost_crop=0,
            updated_at=T0,
        )

    return _add


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock(monkeypatch) -> Clock:
    import empires.game.tick as tick
    import empires.routes.game as game_routes
    import empires.routes.villages as village_routes

    c = Clock(T0)
    monkeypatch.setattr(village_routes, "utcnow", lambda: c.now)
    monkeypatch.setattr(tick, "_last_world_tick_at", None)
    monkeypatch.setattr(game_routes, "utcnow", lambda: c.now)
    return c


@pytest.fixture
def client(session_factory, clock):
    from fastapi.testclient import TestClient

    from empires.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def threaded_session_factory(tmp_path):
    """Sessions on separate connections to one SQLite file, for cross-thread tests."""
    eng = create_engine(
        f"sqlite:///{(tmp_path / 'empires.db').as_posix()}",
        connect_args={"check_same_thread": False, "timeout": 10},
        future=True,
    )
    Base.metadata.create_all(eng)
    yield sessionmaker(bind=eng, autoflush=False, autocommit=False, future=True)
    eng.dispose()

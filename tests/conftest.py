"""Shared fixtures: a hand-driven clock, stores, the engine and an API client."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from db import create_db_engine, init_db
from focus_engine import FocusEngine
from main import create_app
from session_store import InMemorySessionStore, SqlSessionStore
from settings import Settings

# a Wednesday
T0 = datetime(2026, 3, 4, 14, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.current += timedelta(seconds=seconds, **kwargs)
        return self.current


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_store(clock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture()
def engine(memory_store, clock) -> FocusEngine:
    return FocusEngine(memory_store, clock=clock)


@pytest.fixture()
def db_engine(tmp_path):
    """File-backed SQLite so worker threads get their own connections."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'focus.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def sql_store(db_engine, clock) -> SqlSessionStore:
    return SqlSessionStore(db_engine, clock=clock)


@pytest.fixture(params=["memory", "sql"])
def store(request, clock, db_engine):
    if request.param == "memory":
        return InMemorySessionStore(clock=clock)
    return SqlSessionStore(db_engine, clock=clock)


@pytest.fixture()
def db(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture()
def client(clock):
    settings = Settings(database_url="sqlite://", timezone="UTC", log_level="WARNING")
    app = create_app(settings, clock=clock)
    with TestClient(app) as test_client:
        yield test_client

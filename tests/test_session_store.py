"""Tests for the in-memory and SQL session stores."""

from __future__ import annotations

import threading
import uuid
from datetime import timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from errors import InvalidTransition, NotFound
from focus_engine import FocusEngine
from models import ACTIVE, COMPLETED, ON_BREAK, FocusSession
from session_store import KeyedLocks


def _session(clock, user_id="user-1", **fields) -> FocusSession:
    now = clock.now()
    values = dict(
        id=str(uuid.uuid4()), user_id=user_id, started_at=now, status=ACTIVE,
        total_focus_seconds=0, total_break_seconds=0, breaks_taken=0, last_updated_at=now,
    )
    values.update(fields)
    return FocusSession(**values)


def _complete(prior: FocusSession) -> dict:
    return {"status": COMPLETED}


class TestStoreContract:
    def test_create_and_get(self, store, clock):
        created = store.create(_session(clock))

        fetched = store.get(created.id)
        assert fetched.id == created.id
        assert fetched.status == ACTIVE
        assert store.get_active("user-1").id == created.id

    def test_get_missing_returns_none(self, store):
        assert store.get("nope") is None
        assert store.get_active("nobody") is None

    def test_create_refuses_second_open_session_without_close_prior(self, store, clock):
        store.create(_session(clock))

        with pytest.raises(InvalidTransition):
            store.create(_session(clock))

    def test_create_closes_prior_in_same_step(self, store, clock):
        first = store.create(_session(clock))
        clock.advance(5)
        second = store.create(_session(clock), close_prior=_complete)

        assert store.get(first.id).status == COMPLETED
        assert store.get(first.id).last_updated_at == clock.now()
        assert store.get_active("user-1").id == second.id

    def test_update_missing_is_not_found(self, store):
        with pytest.raises(NotFound):
            store.update("missing", {"status": COMPLETED})

    def test_update_stamps_last_updated_at(self, store, clock):
        created = store.create(_session(clock))
        clock.advance(42)

        updated = store.update(created.id, {"total_focus_seconds": 42})

        assert updated.total_focus_seconds == 42
        assert updated.last_updated_at == clock.now()

    def test_conditional_update_refuses_wrong_status(self, store, clock):
        created = store.create(_session(clock))
        clock.advance(10)

        with pytest.raises(InvalidTransition):
            store.update(created.id, {"status": ACTIVE}, expect_status=(ON_BREAK,))

        unchanged = store.get(created.id)
        assert unchanged.status == ACTIVE
        assert unchanged.last_updated_at == created.last_updated_at

    def test_every_write_bumps_version(self, store, clock):
        created = store.create(_session(clock))
        assert created.version == 0

        updated = store.update(created.id, {"total_focus_seconds": 5})

        assert updated.version == 1
        assert store.get(created.id).version == 1

    def test_update_refuses_stale_version(self, store, clock):
        created = store.create(_session(clock))
        store.update(created.id, {"total_focus_seconds": 5})
        clock.advance(10)
        before = store.get(created.id).model_dump()

        with pytest.raises(InvalidTransition):
            store.update(created.id, {"total_focus_seconds": 99}, expect_version=created.version)

        assert store.get(created.id).model_dump() == before

    def test_list_for_user_filters_and_orders(self, store, clock):
        old = store.create(_session(clock))
        store.update(old.id, {"status": COMPLETED})
        clock.advance(hours=1)
        newer = store.create(_session(clock))
        store.create(_session(clock, user_id="someone-else"))

        listed = store.list_for_user("user-1")
        assert [s.id for s in listed] == [newer.id, old.id]
        assert [s.id for s in store.list_for_user("user-1", status=COMPLETED)] == [old.id]
        assert [s.id for s in store.list_for_user("user-1", limit=1)] == [newer.id]
        since = clock.now() - timedelta(minutes=30)
        assert [s.id for s in store.list_for_user("user-1", since=since)] == [newer.id]

    def test_returned_rows_are_copies(self, store, clock):
        created = store.create(_session(clock))
        created.status = COMPLETED

        assert store.get(created.id).status == ACTIVE

    def test_concurrent_starts_leave_one_open_session(self, store, clock):
        engine = FocusEngine(store, clock=clock)
        barrier = threading.Barrier(8)
        errors = []

        def start():
            barrier.wait()
            try:
                engine.start("user-1")
            except InvalidTransition as e:
                errors.append(e)

        threads = [threading.Thread(target=start) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        open_sessions = [s for s in store.list_for_user("user-1") if s.status != COMPLETED]
        assert len(open_sessions) == 1
        assert len(store.list_for_user("user-1")) == 8 - len(errors)


class TestSqlStore:
    def test_timestamps_come_back_as_utc(self, sql_store, clock):
        created = sql_store.create(_session(clock))

        fetched = sql_store.get(created.id)
        assert fetched.started_at.tzinfo is not None
        assert fetched.started_at.utcoffset() == timezone.utc.utcoffset(None)
        assert fetched.started_at == clock.now()

    def test_unique_index_rejects_two_open_rows(self, db_engine, clock):
        with Session(db_engine) as db:
            db.add(_session(clock))
            db.add(_session(clock, status=ON_BREAK))
            with pytest.raises(IntegrityError):
                db.commit()

    def test_unique_index_allows_many_completed_rows(self, db_engine, sql_store, clock):
        with Session(db_engine) as db:
            db.add(_session(clock, status=COMPLETED))
            db.add(_session(clock, status=COMPLETED))
            db.add(_session(clock))
            db.commit()

        assert len(sql_store.list_for_user("user-1")) == 3


def _run_before_first_write(monkeypatch, store, other_client):
    """Let another client act between the engine's read and its write."""
    real_update = store.update
    fired = []

    def update(session_id, fields, **kwargs):
        if not fired:
            fired.append(True)
            other_client()
        return real_update(session_id, fields, **kwargs)

    monkeypatch.setattr(store, "update", update)


class TestInterleavedTransitions:
    def test_take_break_from_stale_read_is_refused(self, store, clock, monkeypatch):
        engine = FocusEngine(store, clock=clock)
        other = FocusEngine(store, clock=clock)
        session = engine.start("user-1")
        clock.advance(600)
        seen = {}

        def break_and_resume():
            other.take_break(session.id, 1)
            clock.advance(30)
            other.resume(session.id)
            seen["row"] = store.get(session.id).model_dump()

        _run_before_first_write(monkeypatch, store, break_and_resume)

        with pytest.raises(InvalidTransition):
            engine.take_break(session.id, 5)

        row = store.get(session.id)
        assert row.model_dump() == seen["row"]
        assert row.status == ACTIVE
        assert row.breaks_taken == 1
        assert row.total_break_seconds == 30

    def test_resume_from_stale_read_is_refused(self, store, clock, monkeypatch):
        engine = FocusEngine(store, clock=clock)
        other = FocusEngine(store, clock=clock)
        session = engine.start("user-1")
        clock.advance(300)
        engine.take_break(session.id, 1)
        clock.advance(30)
        seen = {}

        def resume_and_break_again():
            other.resume(session.id)
            clock.advance(10)
            other.take_break(session.id, 2)
            seen["row"] = store.get(session.id).model_dump()

        _run_before_first_write(monkeypatch, store, resume_and_break_again)

        with pytest.raises(InvalidTransition):
            engine.resume(session.id)

        row = store.get(session.id)
        assert row.model_dump() == seen["row"]
        assert row.status == ON_BREAK
        assert row.breaks_taken == 2
        assert row.total_break_seconds == 30

    def test_end_from_stale_read_is_refused(self, store, clock, monkeypatch):
        engine = FocusEngine(store, clock=clock)
        other = FocusEngine(store, clock=clock)
        session = engine.start("user-1")
        clock.advance(600)
        engine.take_break(session.id, 1)
        clock.advance(60)
        seen = {}

        def resume():
            other.resume(session.id)
            seen["row"] = store.get(session.id).model_dump()

        _run_before_first_write(monkeypatch, store, resume)

        with pytest.raises(InvalidTransition):
            engine.end(session.id)

        row = store.get(session.id)
        assert row.model_dump() == seen["row"]
        assert row.status == ACTIVE
        assert row.ended_at is None

    def test_end_after_another_end_is_not_found(self, store, clock, monkeypatch):
        engine = FocusEngine(store, clock=clock)
        other = FocusEngine(store, clock=clock)
        session = engine.start("user-1")
        clock.advance(600)
        seen = {}

        def end():
            other.end(session.id)
            seen["row"] = store.get(session.id).model_dump()

        _run_before_first_write(monkeypatch, store, end)

        with pytest.raises(NotFound):
            engine.end(session.id)

        assert store.get(session.id).model_dump() == seen["row"]
        assert store.get(session.id).total_focus_seconds == 600


def test_keyed_locks_drop_released_keys():
    locks = KeyedLocks()

    with locks.hold("user-1"):
        assert "user-1" in locks._locks

    assert "user-1" not in locks._locks

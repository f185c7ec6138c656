"""
Keyed storage for focus sessions.

Both stores keep the same contract: at most one open (active / on_break)
session per user, no deletes, and every write stamps ``last_updated_at``.
Writes for a user are serialized with a per-user lock. ``update`` can also be
made conditional on the stored status and on the row version the caller read,
so a writer working from a stale read fails with InvalidTransition instead of
overwriting.
"""
import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from clock import Clock, SystemClock
from errors import InvalidTransition, NotFound
from models import OPEN_STATUSES, FocusSession

logger = logging.getLogger(__name__)

ClosePrior = Callable[[FocusSession], dict[str, Any]]


class SessionStore(Protocol):
    def get(self, session_id: str) -> Optional[FocusSession]: ...

    def get_active(self, user_id: str) -> Optional[FocusSession]: ...

    def list_for_user(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[FocusSession]: ...

    def create(self, session: FocusSession, close_prior: Optional[ClosePrior] = None) -> FocusSession: ...

    def update(
        self,
        session_id: str,
        fields: dict[str, Any],
        expect_status: Optional[Iterable[str]] = None,
        expect_version: Optional[int] = None,
    ) -> FocusSession: ...


class KeyedLocks:
    """One lock per key, created on first use and dropped once nobody holds it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
        with lock:
            yield


def _check_status(session: FocusSession, expect_status: Optional[Iterable[str]]) -> None:
    if expect_status is None:
        return
    allowed = tuple(expect_status)
    if session.status not in allowed:
        logger.warning(
            "refused write to session %s: status is %s, expected one of %s",
            session.id, session.status, ", ".join(allowed),
        )
        raise InvalidTransition(f"Session is {session.status}")


def _check_version(session: FocusSession, expect_version: Optional[int]) -> None:
    if expect_version is None or session.version == expect_version:
        return
    logger.warning(
        "refused stale write to session %s: version is %d, caller read %d",
        session.id, session.version, expect_version,
    )
    raise InvalidTransition("Session changed since it was read")


def _copy(session: FocusSession) -> FocusSession:
    return FocusSession(**session.model_dump())


class InMemorySessionStore:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._rows: dict[str, FocusSession] = {}
        self._locks = KeyedLocks()

    def get(self, session_id: str) -> Optional[FocusSession]:
        row = self._rows.get(session_id)
        return _copy(row) if row else None

    def get_active(self, user_id: str) -> Optional[FocusSession]:
        row = self._open_row(user_id)
        return _copy(row) if row else None

    def _open_row(self, user_id: str) -> Optional[FocusSession]:
        for row in list(self._rows.values()):
            if row.user_id == user_id and row.status in OPEN_STATUSES:
                return row
        return None

    def list_for_user(self, user_id, since=None, status=None, limit=None):
        rows = [
            r for r in list(self._rows.values())
            if r.user_id == user_id
            and (since is None or r.started_at >= since)
            and (status is None or r.status == status)
        ]
        rows.sort(key=lambda r: r.started_at, reverse=True)
        if limit is not None:
            rows = rows[:limit]
        return [_copy(r) for r in rows]

    def create(self, session: FocusSession, close_prior: Optional[ClosePrior] = None) -> FocusSession:
        with self._locks.hold(session.user_id):
            prior = self._open_row(session.user_id)
            if prior is not None:
                if close_prior is None:
                    raise InvalidTransition("User already has an open focus session")
                self._apply(prior, close_prior(_copy(prior)))
            row = _copy(session)
            row.last_updated_at = self.clock.now()
            self._rows[row.id] = row
            return _copy(row)

    def update(self, session_id, fields, expect_status=None, expect_version=None) -> FocusSession:
        row = self._rows.get(session_id)
        if row is None:
            raise NotFound("Session not found")
        with self._locks.hold(row.user_id):
            _check_status(row, expect_status)
            _check_version(row, expect_version)
            self._apply(row, fields)
            return _copy(row)

    def _apply(self, row: FocusSession, fields: dict[str, Any]) -> None:
        for key, value in fields.items():
            setattr(row, key, value)
        row.last_updated_at = self.clock.now()
        row.version += 1


class SqlSessionStore:
    """SQLModel-backed store. Each call runs in its own short transaction."""

    def __init__(self, engine: Engine, clock: Optional[Clock] = None):
        self.engine = engine
        self.clock = clock or SystemClock()
        self._locks = KeyedLocks()

    def get(self, session_id: str) -> Optional[FocusSession]:
        with Session(self.engine) as db:
            return db.get(FocusSession, session_id)

    def get_active(self, user_id: str) -> Optional[FocusSession]:
        with Session(self.engine) as db:
            return self._open_row(db, user_id)

    def _open_row(self, db: Session, user_id: str) -> Optional[FocusSession]:
        statement = (
            select(FocusSession)
            .where(FocusSession.user_id == user_id, FocusSession.status.in_(OPEN_STATUSES))
            .order_by(FocusSession.started_at.desc())
        )
        return db.exec(statement).first()

    def list_for_user(self, user_id, since=None, status=None, limit=None):
        statement = select(FocusSession).where(FocusSession.user_id == user_id)
        if since is not None:
            statement = statement.where(FocusSession.started_at >= since)
        if status is not None:
            statement = statement.where(FocusSession.status == status)
        statement = statement.order_by(FocusSession.started_at.desc())
        if limit is not None:
            statement = statement.limit(limit)
        with Session(self.engine) as db:
            return list(db.exec(statement).all())

    def create(self, session: FocusSession, close_prior: Optional[ClosePrior] = None) -> FocusSession:
        with self._locks.hold(session.user_id), Session(self.engine) as db:
            prior = self._open_row(db, session.user_id)
            if prior is not None:
                if close_prior is None:
                    raise InvalidTransition("User already has an open focus session")
                self._apply(prior, close_prior(prior))
                db.add(prior)
                # the partial unique index sees the prior row as completed first
                db.flush()
            row = FocusSession(**session.model_dump())
            row.last_updated_at = self.clock.now()
            db.add(row)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                logger.warning("concurrent start for user %s rejected: %s", session.user_id, e.orig)
                raise InvalidTransition("User already has an open focus session") from e
            db.refresh(row)
            return row

    def update(self, session_id, fields, expect_status=None, expect_version=None) -> FocusSession:
        user_id = self._owner(session_id)
        with self._locks.hold(user_id), Session(self.engine) as db:
            statement = select(FocusSession).where(FocusSession.id == session_id).with_for_update()
            row = db.exec(statement).one_or_none()
            if row is None:
                raise NotFound("Session not found")
            _check_status(row, expect_status)
            _check_version(row, expect_version)
            self._apply(row, fields)
            db.add(row)
            db.commit()
            db.refresh(row)
            return row

    def _owner(self, session_id: str) -> str:
        with Session(self.engine) as db:
            row = db.get(FocusSession, session_id)
            if row is None:
                raise NotFound("Session not found")
            return row.user_id

    def _apply(self, row: FocusSession, fields: dict[str, Any]) -> None:
        for key, value in fields.items():
            setattr(row, key, value)
        row.last_updated_at = self.clock.now()
        row.version += 1

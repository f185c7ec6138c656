"""
Focus session state machine.

    active --take_break--> on_break --resume--> active
    active | on_break --end--> completed (terminal)

Accounting is in whole seconds. Focus time while active is always derived as
``elapsed since started_at - total_break_seconds``; on a break it is frozen in
``total_focus_seconds``. A break lasts as long as it actually lasted: resuming
early or late is allowed, and nothing auto-resumes an overrunning break.
"""
import logging
import math
import uuid
from datetime import timedelta
from typing import Any, Optional

from clock import Clock, SystemClock, elapsed_seconds
from errors import InvalidInput, InvalidTransition, NotFound
from models import ACTIVE, COMPLETED, ON_BREAK, OPEN_STATUSES, FocusSession
from session_store import SessionStore

logger = logging.getLogger(__name__)


MAX_BREAK_MINUTES = 24 * 60


def validate_break_minutes(minutes) -> None:
    if not minutes or not math.isfinite(minutes) or minutes <= 0:
        raise InvalidInput("Break duration must be a positive number of minutes")
    if minutes > MAX_BREAK_MINUTES:
        raise InvalidInput(f"Break duration cannot exceed {MAX_BREAK_MINUTES} minutes")


class FocusEngine:
    def __init__(self, store: SessionStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()

    def get_active(self, user_id: str) -> Optional[FocusSession]:
        return self.store.get_active(user_id)

    def start(self, user_id: str) -> FocusSession:
        """Open a new session, completing the user's previous one if still open."""
        now = self.clock.now()
        session = FocusSession(
            id=str(uuid.uuid4()),
            user_id=user_id,
            started_at=now,
            status=ACTIVE,
            total_focus_seconds=0,
            total_break_seconds=0,
            breaks_taken=0,
            last_updated_at=now,
        )

        def close_prior(prior: FocusSession) -> dict[str, Any]:
            logger.info("completing open session %s for user %s before start", prior.id, user_id)
            return self._completion_fields(prior)

        created = self.store.create(session, close_prior=close_prior)
        logger.info("started focus session %s for user %s", created.id, user_id)
        return created

    def take_break(self, session_id: str, break_duration_minutes: float) -> FocusSession:
        validate_break_minutes(break_duration_minutes)
        session = self._require(session_id)
        if session.status != ACTIVE:
            raise InvalidTransition(f"Cannot take a break from a {session.status} session")

        now = self.clock.now()
        fields = {
            "total_focus_seconds": self._focus_so_far(session),
            "status": ON_BREAK,
            "break_started_at": now,
            "break_ends_at": now + timedelta(minutes=break_duration_minutes),
            "breaks_taken": session.breaks_taken + 1,
        }
        updated = self.store.update(
            session_id, fields, expect_status=(ACTIVE,), expect_version=session.version
        )
        logger.info(
            "session %s on a %s minute break (break #%d)",
            session_id, break_duration_minutes, updated.breaks_taken,
        )
        return updated

    def resume(self, session_id: str) -> FocusSession:
        session = self._require(session_id)
        if session.status != ON_BREAK:
            raise InvalidTransition(f"Cannot resume a {session.status} session")

        fields = {
            "total_break_seconds": self._break_total_now(session),
            "status": ACTIVE,
            "break_started_at": None,
            "break_ends_at": None,
        }
        updated = self.store.update(
            session_id, fields, expect_status=(ON_BREAK,), expect_version=session.version
        )
        logger.info("session %s resumed, %ds of break so far", session_id, updated.total_break_seconds)
        return updated

    def end(self, session_id: str) -> FocusSession:
        session = self.store.get(session_id)
        if session is None or not session.is_open:
            raise NotFound("No open focus session")
        try:
            updated = self.store.update(
                session_id,
                self._completion_fields(session),
                expect_status=OPEN_STATUSES,
                expect_version=session.version,
            )
        except InvalidTransition as e:
            current = self.store.get(session_id)
            if current is None or not current.is_open:
                # someone else completed it first
                raise NotFound("No open focus session") from e
            raise
        logger.info(
            "session %s completed: %ds focus, %ds break",
            session_id, updated.total_focus_seconds, updated.total_break_seconds,
        )
        return updated

    def _require(self, session_id: str) -> FocusSession:
        session = self.store.get(session_id)
        if session is None:
            raise NotFound("Session not found")
        return session

    def _break_total_now(self, session: FocusSession) -> int:
        """Break seconds including a break that is still running."""
        total = session.total_break_seconds
        if session.status == ON_BREAK and session.break_started_at is not None:
            total += elapsed_seconds(session.break_started_at, self.clock.now())
        return total

    def _focus_so_far(self, session: FocusSession) -> int:
        elapsed = elapsed_seconds(session.started_at, self.clock.now())
        return max(0, elapsed - session.total_break_seconds)

    def _completion_fields(self, session: FocusSession) -> dict[str, Any]:
        now = self.clock.now()
        break_total = self._break_total_now(session)
        elapsed = elapsed_seconds(session.started_at, now)
        return {
            "status": COMPLETED,
            "ended_at": now,
            "total_break_seconds": break_total,
            # never below what was already frozen at the last break
            "total_focus_seconds": max(session.total_focus_seconds, elapsed - break_total, 0),
            "break_started_at": None,
            "break_ends_at": None,
        }

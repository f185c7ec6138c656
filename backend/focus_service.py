"""
Per-request facade over the focus engine: checks that sessions belong to the
caller, renders the dashboard / extension views and refreshes the
productivity snapshot after every transition.
"""
import logging
from datetime import timedelta, tzinfo
from typing import Optional

import aggregator
import projection
from errors import InvalidApiKey, NotFound
from focus_engine import FocusEngine
from models import COMPLETED, FocusSession
from preferences import UserConfigRepo
from schemas import DashboardSession, ExtensionView, FocusStats, ProductivitySummary, SessionOut

logger = logging.getLogger(__name__)


class FocusService:
    def __init__(self, engine: FocusEngine, config: UserConfigRepo, tz: tzinfo):
        self.engine = engine
        self.store = engine.store
        self.clock = engine.clock
        self.config = config
        self.tz = tz

    # -- dashboard -------------------------------------------------------

    def current_session(self, user_id: str) -> Optional[DashboardSession]:
        session = self.engine.get_active(user_id)
        if session is None:
            return None
        return projection.dashboard_view(session, self.clock.now())

    def start(self, user_id: str) -> DashboardSession:
        return self._after(self.engine.start(user_id))

    def take_break(self, user_id: str, session_id: str, minutes: Optional[float]) -> DashboardSession:
        self._owned(user_id, session_id)
        return self._after(self.engine.take_break(session_id, minutes))

    def resume(self, user_id: str, session_id: str) -> DashboardSession:
        self._owned(user_id, session_id)
        return self._after(self.engine.resume(session_id))

    def end(self, user_id: str, session_id: str) -> DashboardSession:
        self._owned(user_id, session_id)
        return self._after(self.engine.end(session_id))

    def act(self, user_id: str, action: str, minutes: Optional[float] = None) -> DashboardSession:
        """Apply an action to the caller's open session (the dashboard's single endpoint)."""
        if action == "start":
            return self.start(user_id)
        open_session = self.engine.get_active(user_id)
        if open_session is None:
            raise NotFound("No open focus session")
        if action == "take_break":
            return self.take_break(user_id, open_session.id, minutes)
        if action == "resume":
            return self.resume(user_id, open_session.id)
        return self.end(user_id, open_session.id)

    def history(self, user_id: str, limit: int = 20) -> list[SessionOut]:
        sessions = self.store.list_for_user(user_id, limit=limit)
        return [SessionOut.model_validate(s) for s in sessions]

    def stats(self, user_id: str) -> FocusStats:
        return aggregator.all_time_stats(self.store.list_for_user(user_id, status=COMPLETED))

    # -- extension -------------------------------------------------------

    def extension_view(self, api_key: Optional[str]) -> ExtensionView:
        if not api_key:
            raise InvalidApiKey("API key required")
        user_id = self.config.user_for_api_key(api_key)
        if user_id is None:
            raise InvalidApiKey("Invalid API key")
        return projection.extension_view(
            self.engine.get_active(user_id),
            self.config.get_blocked_sites(user_id),
            self.clock.now(),
        )

    # -- productivity ----------------------------------------------------

    def summary(self, user_id: str) -> ProductivitySummary:
        now = self.clock.now()
        # a week plus a day covers any zone offset; summarize() filters exactly
        sessions = self.store.list_for_user(user_id, since=now - timedelta(days=8))
        return aggregator.summarize(
            sessions,
            self.config.get_goals(user_id),
            now,
            self.tz,
            self.config.get_task_progress(user_id, aggregator.local_day(now, self.tz)),
        )

    def sync_productivity(self, user_id: str) -> ProductivitySummary:
        summary = self.summary(user_id)
        self.config.save_snapshot(
            user_id,
            summary.today.model_dump(by_alias=True),
            summary.this_week.model_dump(by_alias=True),
            self.clock.now(),
        )
        logger.debug(
            "productivity for %s: %d min today, score %d",
            user_id, summary.today.focus_time, summary.today.productivity_score,
        )
        return summary

    # -- helpers ---------------------------------------------------------

    def _owned(self, user_id: str, session_id: str) -> FocusSession:
        session = self.store.get(session_id)
        if session is None or session.user_id != user_id:
            raise NotFound("Session not found")
        return session

    def _after(self, session: FocusSession) -> DashboardSession:
        self.sync_productivity(session.user_id)
        return projection.dashboard_view(session, self.clock.now())

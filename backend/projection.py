"""
Read-only views of a focus session at a point in time.

``current_focus_seconds`` and ``remaining_break_seconds`` are the single
definition of live counters; the dashboard view, the extension view and the
productivity aggregator all go through them.
"""
from datetime import datetime
from typing import Optional

from clock import as_utc, elapsed_seconds
from models import ACTIVE, ON_BREAK, FocusSession
from schemas import DashboardSession, ExtensionView


def current_focus_seconds(session: FocusSession, now: datetime) -> int:
    if session.status == ACTIVE:
        elapsed = elapsed_seconds(session.started_at, now)
        return max(0, elapsed - session.total_break_seconds)
    return max(0, session.total_focus_seconds)


def remaining_break_seconds(session: FocusSession, now: datetime) -> int:
    if session.status != ON_BREAK or session.break_ends_at is None:
        return 0
    return elapsed_seconds(now, session.break_ends_at)


def break_overdue(session: FocusSession, now: datetime) -> bool:
    """True once a break has run past its planned end. Nothing transitions on it."""
    if session.status != ON_BREAK or session.break_ends_at is None:
        return False
    return as_utc(now) >= as_utc(session.break_ends_at)


def dashboard_view(session: FocusSession, now: datetime) -> DashboardSession:
    view = DashboardSession.model_validate(session, from_attributes=True)
    view.current_focus_seconds = current_focus_seconds(session, now)
    view.remaining_break_seconds = remaining_break_seconds(session, now)
    view.break_overdue = break_overdue(session, now)
    return view


def extension_view(
    session: Optional[FocusSession], blocked_sites: list[str], now: datetime
) -> ExtensionView:
    if session is None or not session.is_open:
        return ExtensionView(blocked_sites=blocked_sites)
    on_break = session.status == ON_BREAK
    return ExtensionView(
        is_focusing=session.status == ACTIVE,
        is_on_break=on_break,
        blocked_sites=blocked_sites,
        break_ends_at=session.break_ends_at if on_break else None,
        current_focus_seconds=current_focus_seconds(session, now),
    )

"""
Daily / weekly productivity totals.

Everything here is a pure function of the session list, the goals and "now":
recomputing from the same inputs always gives the same summary.
"""
import math
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional

from clock import as_utc
from models import COMPLETED, DailyTaskProgress, FocusSession, ProductivityGoals
from projection import current_focus_seconds
from schemas import FocusStats, PeriodSummary, ProductivitySummary

FOCUS_WEIGHT = 0.5
TASK_WEIGHT = 0.3
BREAK_WEIGHT = 0.2


def local_day(dt: datetime, tz: tzinfo) -> date:
    return as_utc(dt).astimezone(tz).date()


def week_start(day: date) -> date:
    """Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _progress(value: float, goal: Optional[float]) -> float:
    if not goal:
        return 0.0
    return min(100.0, value / goal * 100)


def task_completion_percent(progress: Optional[DailyTaskProgress]) -> float:
    if progress is None or progress.tasks_total <= 0:
        return 0.0
    return min(100.0, progress.tasks_completed / progress.tasks_total * 100)


def productivity_score(
    focus_minutes: float,
    breaks: float,
    goals: Optional[ProductivityGoals],
    task_percent: float = 0.0,
) -> int:
    """Weighted score in [0, 100]. Missing or zero goals contribute nothing."""
    goals = goals or ProductivityGoals()
    raw = (
        FOCUS_WEIGHT * _progress(focus_minutes, goals.daily_focus_goal)
        + TASK_WEIGHT * min(100.0, max(0.0, task_percent))
        + BREAK_WEIGHT * _progress(breaks, goals.daily_breaks_goal)
    )
    # halves round up
    return max(0, min(100, math.floor(raw + 0.5)))


def _focus_seconds(session: FocusSession, now: datetime) -> int:
    if session.status == COMPLETED:
        return session.total_focus_seconds
    return current_focus_seconds(session, now)


def summarize(
    sessions: Iterable[FocusSession],
    goals: Optional[ProductivityGoals],
    now: datetime,
    tz: tzinfo,
    task_progress: Optional[DailyTaskProgress] = None,
) -> ProductivitySummary:
    today = local_day(now, tz)
    first_day = week_start(today)

    day_focus = day_breaks = day_sessions = 0
    week_focus = week_breaks = week_sessions = 0
    for session in sessions:
        started = local_day(session.started_at, tz)
        if not first_day <= started <= today:
            continue
        focus = _focus_seconds(session, now)
        week_focus += focus
        week_breaks += session.breaks_taken
        week_sessions += 1
        if started == today:
            day_focus += focus
            day_breaks += session.breaks_taken
            day_sessions += 1

    task_percent = task_completion_percent(task_progress)
    tasks_completed = task_progress.tasks_completed if task_progress else 0
    tasks_total = task_progress.tasks_total if task_progress else 0

    today_summary = PeriodSummary(
        focus_seconds=day_focus,
        focus_time=day_focus // 60,
        breaks=day_breaks,
        sessions=day_sessions,
        tasks_completed=tasks_completed,
        tasks_total=tasks_total,
        productivity_score=productivity_score(day_focus // 60, day_breaks, goals, task_percent),
    )

    # weekly score: the daily formula applied to the average day so far
    days = (today - first_day).days + 1
    week_summary = PeriodSummary(
        focus_seconds=week_focus,
        focus_time=week_focus // 60,
        breaks=week_breaks,
        sessions=week_sessions,
        tasks_completed=tasks_completed,
        tasks_total=tasks_total,
        productivity_score=productivity_score(
            week_focus // 60 / days, week_breaks / days, goals, task_percent
        ),
    )
    return ProductivitySummary(today=today_summary, this_week=week_summary)


def all_time_stats(sessions: Iterable[FocusSession]) -> FocusStats:
    stats = FocusStats()
    for session in sessions:
        if session.status != COMPLETED:
            continue
        stats.total_focus_seconds += session.total_focus_seconds
        stats.total_break_seconds += session.total_break_seconds
        stats.breaks_taken += session.breaks_taken
        stats.sessions_completed += 1
    return stats

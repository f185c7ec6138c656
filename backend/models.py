from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Index, text
from sqlalchemy.types import TypeDecorator
from sqlmodel import SQLModel, Field

from clock import as_utc

ACTIVE = "active"
ON_BREAK = "on_break"
COMPLETED = "completed"
OPEN_STATUSES = (ACTIVE, ON_BREAK)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware UTC (SQLite drops tzinfo)."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class FocusSession(SQLModel, table=True):
    __table_args__ = (
        # at most one open session per user
        Index(
            "uq_focussession_open_user",
            "user_id",
            unique=True,
            sqlite_where=text("status != 'completed'"),
            postgresql_where=text("status != 'completed'"),
        ),
    )

    id: str = Field(primary_key=True, index=True)
    user_id: str = Field(index=True)
    started_at: datetime = Field(sa_type=UTCDateTime)
    ended_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    status: str = Field(default=ACTIVE, index=True)
    total_focus_seconds: int = 0
    total_break_seconds: int = 0
    breaks_taken: int = 0
    break_started_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    break_ends_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    last_updated_at: datetime = Field(sa_type=UTCDateTime)
    # bumped on every write; conditional updates compare against it
    version: int = 0

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


class ProductivityGoals(SQLModel):
    daily_focus_goal: int = 0
    daily_breaks_goal: int = 0
    daily_task_goal: int = 0
    productivity_target: int = 0


class UserConfig(SQLModel, table=True):
    user_id: str = Field(primary_key=True)
    daily_focus_goal: Optional[int] = None
    daily_breaks_goal: Optional[int] = None
    daily_task_goal: Optional[int] = None
    productivity_target: Optional[int] = None
    blocked_sites: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    extension_api_key: Optional[str] = Field(default=None, unique=True, index=True)


class DailyTaskProgress(SQLModel, table=True):
    user_id: str = Field(primary_key=True)
    day: date = Field(primary_key=True)
    tasks_completed: int = 0
    tasks_total: int = 0


class ProductivitySnapshot(SQLModel, table=True):
    user_id: str = Field(primary_key=True)
    today: dict = Field(default_factory=dict, sa_column=Column(JSON))
    this_week: dict = Field(default_factory=dict, sa_column=Column(JSON))
    computed_at: datetime = Field(sa_type=UTCDateTime)

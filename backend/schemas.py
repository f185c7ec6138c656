"""
Request and response bodies. JSON keys are camelCase, matching what the
dashboard and the browser extension already send and read.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SessionOut(CamelModel):
    id: str
    user_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: str
    total_focus_seconds: int
    total_break_seconds: int
    breaks_taken: int
    break_started_at: Optional[datetime] = None
    break_ends_at: Optional[datetime] = None
    last_updated_at: datetime


class DashboardSession(SessionOut):
    current_focus_seconds: int = 0
    remaining_break_seconds: int = 0
    break_overdue: bool = False


class SessionEnvelope(CamelModel):
    session: Optional[DashboardSession] = None


class ExtensionView(CamelModel):
    is_focusing: bool = False
    is_on_break: bool = False
    blocked_sites: list[str] = Field(default_factory=list)
    break_ends_at: Optional[datetime] = None
    current_focus_seconds: int = 0


class FocusActionRequest(CamelModel):
    action: Literal["start", "take_break", "resume", "end"]
    break_duration_minutes: Optional[float] = Field(default=None, allow_inf_nan=False)


class BreakRequest(CamelModel):
    break_duration_minutes: Optional[float] = Field(default=None, allow_inf_nan=False)


class ExtensionSyncRequest(CamelModel):
    api_key: Optional[str] = None


class ExtensionStatus(CamelModel):
    connected: bool
    api_key: Optional[str] = None


class ApiKeyResponse(CamelModel):
    api_key: str
    message: str = "API key generated"


class GoalsBody(CamelModel):
    daily_focus_goal: int = Field(default=0, ge=0)
    daily_breaks_goal: int = Field(default=0, ge=0)
    daily_task_goal: int = Field(default=0, ge=0)
    productivity_target: int = Field(default=0, ge=0, le=100)


class BlockedSitesBody(CamelModel):
    blocked_sites: list[str] = Field(default_factory=list)


class TaskProgressBody(CamelModel):
    tasks_completed: int = Field(ge=0)
    tasks_total: int = Field(ge=0)


class PeriodSummary(CamelModel):
    focus_seconds: int = 0
    # minutes, floored
    focus_time: int = 0
    breaks: int = 0
    sessions: int = 0
    tasks_completed: int = 0
    tasks_total: int = 0
    productivity_score: int = 0


class ProductivitySummary(CamelModel):
    today: PeriodSummary
    this_week: PeriodSummary


class FocusStats(CamelModel):
    total_focus_seconds: int = 0
    total_break_seconds: int = 0
    breaks_taken: int = 0
    sessions_completed: int = 0

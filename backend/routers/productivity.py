"""
Productivity summary plus the settings it is computed from: goals, blocked
sites and today's task counts.
"""
from fastapi import APIRouter, Depends

import aggregator
from deps import current_user_id, get_config_repo, get_focus_service
from focus_service import FocusService
from models import ProductivityGoals
from preferences import UserConfigRepo
from schemas import BlockedSitesBody, GoalsBody, ProductivitySummary, TaskProgressBody

router = APIRouter(prefix="/api/productivity", tags=["productivity"])


@router.get("/summary", response_model=ProductivitySummary)
def get_summary(
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    """Today and this week (from Sunday), recomputed from the sessions."""
    return service.summary(user_id)


@router.get("", response_model=ProductivitySummary)
def get_snapshot(
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    """Totals as of the last focus transition; computed now if there is none."""
    snapshot = service.config.get_snapshot(user_id)
    if snapshot is None:
        return service.summary(user_id)
    return ProductivitySummary(today=snapshot.today, this_week=snapshot.this_week)


@router.get("/goals", response_model=GoalsBody)
def get_goals(
    user_id: str = Depends(current_user_id),
    config: UserConfigRepo = Depends(get_config_repo),
):
    goals = config.get_goals(user_id) or ProductivityGoals()
    return GoalsBody.model_validate(goals)


@router.put("/goals", response_model=GoalsBody)
def put_goals(
    req: GoalsBody,
    user_id: str = Depends(current_user_id),
    config: UserConfigRepo = Depends(get_config_repo),
):
    goals = config.set_goals(user_id, ProductivityGoals(**req.model_dump()))
    return GoalsBody.model_validate(goals)


@router.get("/blocked-sites", response_model=BlockedSitesBody)
def get_blocked_sites(
    user_id: str = Depends(current_user_id),
    config: UserConfigRepo = Depends(get_config_repo),
):
    return BlockedSitesBody(blocked_sites=config.get_blocked_sites(user_id))


@router.put("/blocked-sites", response_model=BlockedSitesBody)
def put_blocked_sites(
    req: BlockedSitesBody,
    user_id: str = Depends(current_user_id),
    config: UserConfigRepo = Depends(get_config_repo),
):
    """Sites are stored as bare domains: scheme, www. and paths are dropped."""
    return BlockedSitesBody(blocked_sites=config.set_blocked_sites(user_id, req.blocked_sites))


@router.put("/tasks", response_model=ProductivitySummary)
def put_task_progress(
    req: TaskProgressBody,
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    """Today's task counts from the task tracker; returns the refreshed summary."""
    today = aggregator.local_day(service.clock.now(), service.tz)
    service.config.set_task_progress(user_id, today, req.tasks_completed, req.tasks_total)
    return service.sync_productivity(user_id)

"""
Focus sessions for the dashboard: start, break, resume and end, the live
view of the open session, history and all-time stats.
"""
from fastapi import APIRouter, Depends

from deps import current_user_id, get_focus_service
from focus_service import FocusService
from schemas import BreakRequest, FocusActionRequest, FocusStats, SessionEnvelope, SessionOut

router = APIRouter(prefix="/api/focus", tags=["focus"])


@router.get("/session", response_model=SessionEnvelope)
def get_current_session(
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    """Open session with live counters, or {"session": null}."""
    return SessionEnvelope(session=service.current_session(user_id))


@router.post("/session", response_model=SessionEnvelope)
def focus_action(
    req: FocusActionRequest,
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    """
    start | take_break | resume | end, applied to the caller's open session.
    take_break needs breakDurationMinutes.
    """
    session = service.act(user_id, req.action, req.break_duration_minutes)
    return SessionEnvelope(session=session)


@router.post("/sessions/{session_id}/break", response_model=SessionEnvelope)
def take_break(
    session_id: str,
    req: BreakRequest,
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    return SessionEnvelope(session=service.take_break(user_id, session_id, req.break_duration_minutes))


@router.post("/sessions/{session_id}/resume", response_model=SessionEnvelope)
def resume(
    session_id: str,
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    return SessionEnvelope(session=service.resume(user_id, session_id))


@router.post("/sessions/{session_id}/end", response_model=SessionEnvelope)
def end(
    session_id: str,
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    return SessionEnvelope(session=service.end(user_id, session_id))


@router.get("/sessions", response_model=list[SessionOut])
def list_sessions(
    limit: int = 20,
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    """Recent sessions (newest first) for this user."""
    return service.history(user_id, limit=max(1, min(limit, 200)))


@router.get("/stats", response_model=FocusStats)
def get_stats(
    user_id: str = Depends(current_user_id),
    service: FocusService = Depends(get_focus_service),
):
    """Totals over every completed session."""
    return service.stats(user_id)

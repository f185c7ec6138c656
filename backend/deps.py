from fastapi import Depends, Header, Request
from sqlmodel import Session

from db import get_session
from errors import Unauthenticated
from focus_service import FocusService
from preferences import UserConfigRepo


def current_user_id(user_id: str | None = Header(default=None, alias="X-User-Id")) -> str:
    if not user_id or not user_id.strip():
        raise Unauthenticated("Missing X-User-Id header")
    return user_id.strip()


def get_config_repo(db: Session = Depends(get_session)) -> UserConfigRepo:
    return UserConfigRepo(db)


def get_focus_service(
    request: Request,
    config: UserConfigRepo = Depends(get_config_repo),
) -> FocusService:
    state = request.app.state
    return FocusService(state.focus_engine, config, state.settings.tz())

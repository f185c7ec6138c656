"""
Browser extension endpoints. The extension polls every few seconds with its
API key instead of a user session.
"""
from fastapi import APIRouter, Depends

from deps import current_user_id, get_config_repo, get_focus_service
from focus_service import FocusService
from preferences import UserConfigRepo
from schemas import ApiKeyResponse, ExtensionStatus, ExtensionSyncRequest, ExtensionView

router = APIRouter(prefix="/api/focus", tags=["extension"])


@router.put("/session", response_model=ExtensionView)
def extension_sync(
    req: ExtensionSyncRequest,
    service: FocusService = Depends(get_focus_service),
):
    """Minimal state for site blocking: focusing, on break, blocked sites."""
    return service.extension_view(req.api_key)


@router.get("/extension-status", response_model=ExtensionStatus)
def extension_status(
    user_id: str = Depends(current_user_id),
    config: UserConfigRepo = Depends(get_config_repo),
):
    """The extension counts as connected once a key has been issued."""
    api_key = config.get_api_key(user_id)
    return ExtensionStatus(connected=api_key is not None, api_key=api_key)


@router.post("/extension-status", response_model=ApiKeyResponse)
def generate_api_key(
    user_id: str = Depends(current_user_id),
    config: UserConfigRepo = Depends(get_config_repo),
):
    return ApiKeyResponse(api_key=config.generate_api_key(user_id))

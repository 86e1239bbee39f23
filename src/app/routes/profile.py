"""
Profile Routes: 사용자 프로필, 팔로우, 헤더용 내 프로필.

- GET /profile/{user_id} → 프로필 화면
- POST /api/users/{user_id}/follow → 팔로우 토글
- GET /api/users/me/profile → 헤더 프로필 (캐시 갱신)
"""

from typing import Any

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse

from src.app.backend import BackendError, KibutzAPIClient
from src.app.routes.common import (
    get_api,
    get_user_id,
    jinja_templates,
    require_confirmed_user_id,
    require_token,
)
from src.app.services.profile import USER_NOT_FOUND, ProfileService
from src.core.storage import LocalStore

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


# =============================================================================
# Page Routes (HTML)
# =============================================================================

@router.get("/profile/{user_id}", response_class=HTMLResponse)
async def profile_page(
    request: Request,
    user_id: str,
    api: KibutzAPIClient = Depends(get_api),
) -> HTMLResponse:
    """없는 사용자면 404와 안내 문구."""
    try:
        page = await ProfileService(api).load_profile_page(user_id, get_user_id(request))
    except BackendError as e:
        if not e.is_not_found:
            raise
        return jinja_templates.TemplateResponse(
            request, "profile.html", {"page": None, "message": USER_NOT_FOUND}, status_code=404
        )
    return jinja_templates.TemplateResponse(
        request, "profile.html", {"page": page, "message": None}
    )


# =============================================================================
# API Routes
# =============================================================================

@api_router.get("/me/profile")
async def my_profile(
    request: Request,
    user_id: str = Depends(require_confirmed_user_id),
    api: KibutzAPIClient = Depends(get_api),
) -> dict[str, Any]:
    """헤더 표시용. 백엔드에 닿지 못하면 마지막 캐시."""
    store = LocalStore.for_user(request.app.state.data_dir, user_id)
    return {"profile": await ProfileService(api, store).refresh_profile()}


@api_router.post("/{user_id}/follow")
async def toggle_follow(
    request: Request,
    user_id: str,
    is_following: bool = Form(False),
    api: KibutzAPIClient = Depends(get_api),
) -> dict[str, Any]:
    require_token(request)
    following = await ProfileService(api).toggle_follow(user_id, is_following)
    return {"ok": True, "is_following": following}

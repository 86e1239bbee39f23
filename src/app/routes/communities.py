"""
Community Routes: 커뮤니티 관리 화면, 멤버 관리.

- GET /communities/{community_id}/manage → 관리 화면 (canEdit 필요)
- GET /communities/{community_id}/members → 멤버 화면
- POST /api/communities/{community_id}/settings → 설정 저장
- POST /api/communities/{community_id}/slug → 커스텀 URL
- DELETE /api/communities/{community_id} → 커뮤니티 삭제
- POST /api/communities/{community_id}/members/{member_id}/role → 역할 토글
- DELETE /api/communities/{community_id}/members/{member_id} → 멤버 제거
- DELETE /api/communities/{community_id}/bans/{ban_id} → 정지 해제
- GET /api/communities/{community_id}/members/search → 검색 결과 (HTML 조각)
- POST /api/communities/rules → 규칙 목록 편집 (HTML 조각)
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from src.app.backend import KibutzAPIClient
from src.app.routes.common import (
    escape_html,
    get_api,
    get_token,
    jinja_templates,
    require_token,
)
from src.app.services.community import CommunityService, SettingsUploads
from src.app.services.members import MemberService
from src.core.images import CompressionOptions, ImagePayload
from src.core.validation import add_rule, remove_rule
from src.domain.constants import COMMUNITY_HOME_PATH, MAX_COMMUNITY_RULES
from src.domain.errors import ErrorCodes, PortalError
from src.domain.schemas import CommunitySettingsForm, Member

logger = logging.getLogger(__name__)

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


def get_community_service(
    request: Request, api: KibutzAPIClient = Depends(get_api)
) -> CommunityService:
    return CommunityService(api, CompressionOptions.from_config(request.app.state.config))


def get_member_service(api: KibutzAPIClient = Depends(get_api)) -> MemberService:
    return MemberService(api)


async def _payload(upload: UploadFile | None) -> ImagePayload | None:
    if upload is None or not upload.filename:
        return None
    return ImagePayload(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        data=await upload.read(),
    )


def _json_list(value: str | None) -> list[str]:
    """existingGallery* 필드 (JSON 배열 문자열)."""
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring malformed gallery list: {value[:80]!r}")
        return []
    return [str(item) for item in parsed] if isinstance(parsed, list) else []


async def _find_member(
    service: MemberService, community_id: str, member_id: str
) -> tuple[Member, str | None]:
    page = await service.load(community_id)
    member = next((m for m in page.members if m.id == member_id), None)
    if member is None:
        raise PortalError(
            ErrorCodes.MEMBER_NOT_FOUND, community_id=community_id, member_id=member_id
        )
    return member, page.current_role


# =============================================================================
# Page Routes (HTML)
# =============================================================================

@router.get("/communities/{community_id}/manage", response_class=HTMLResponse)
async def manage_page(
    request: Request,
    community_id: str,
    service: CommunityService = Depends(get_community_service),
) -> Response:
    """편집 권한이 없으면 커뮤니티 첫 화면(강의 목록)으로 이동."""
    if not get_token(request):
        return RedirectResponse("/login", status_code=303)
    try:
        page = await service.load_for_manage(community_id)
    except PortalError as e:
        if e.code == ErrorCodes.FORBIDDEN:
            return RedirectResponse(
                COMMUNITY_HOME_PATH.format(community_id=community_id), status_code=303
            )
        raise

    return jinja_templates.TemplateResponse(
        request,
        "community_manage.html",
        {
            "community": page.community,
            "form": page.form,
            "max_rules": MAX_COMMUNITY_RULES,
        },
    )


@router.get("/communities/{community_id}/members", response_class=HTMLResponse)
async def members_page(
    request: Request,
    community_id: str,
    q: str = "",
    service: MemberService = Depends(get_member_service),
) -> Response:
    if not get_token(request):
        return RedirectResponse("/login", status_code=303)
    page = await service.load(community_id)
    return jinja_templates.TemplateResponse(
        request,
        "community_members.html",
        {
            "community_id": community_id,
            "members": service.search(page.members, q),
            "query": q,
            "current_role": page.current_role,
            "can_manage": page.can_manage,
            "banned": page.banned,
        },
    )


# =============================================================================
# API Routes: 설정
# =============================================================================

@api_router.post("/{community_id}/settings")
async def save_settings(
    request: Request,
    community_id: str,
    name: str = Form(""),
    description: str = Form(""),
    topic: str = Form(""),
    price: str = Form(""),
    youtube_url: str = Form(""),
    whatsapp_url: str = Form(""),
    facebook_url: str = Form(""),
    instagram_url: str = Form(""),
    existing_logo: str | None = Form(None),
    remove_logo: bool = Form(False),
    existing_image: str | None = Form(None),
    remove_image: bool = Form(False),
    existing_gallery_images: str = Form("[]"),
    existing_gallery_videos: str = Form("[]"),
    rules: list[str] | None = Form(None),
    logo: UploadFile | None = File(None),
    image: UploadFile | None = File(None),
    gallery_images: list[UploadFile] | None = File(None),
    service: CommunityService = Depends(get_community_service),
) -> dict[str, Any]:
    """
    설정 저장.

    검증 실패 → 422 (FormValidationError), PUT 실패 → 백엔드 상태.
    """
    require_token(request)
    form = CommunitySettingsForm(
        name=name,
        description=description,
        topic=topic,
        price=price,
        youtube_url=youtube_url,
        whatsapp_url=whatsapp_url,
        facebook_url=facebook_url,
        instagram_url=instagram_url,
        existing_logo=existing_logo or None,
        remove_logo=remove_logo,
        existing_image=existing_image or None,
        remove_image=remove_image,
        existing_gallery_images=_json_list(existing_gallery_images),
        existing_gallery_videos=_json_list(existing_gallery_videos),
        rules=[r.strip() for r in rules or [] if r.strip()][:MAX_COMMUNITY_RULES],
    )
    gallery = [p for p in [await _payload(f) for f in gallery_images or []] if p is not None]
    uploads = SettingsUploads(
        logo=await _payload(logo),
        image=await _payload(image),
        gallery_images=gallery,
    )
    message = await service.save_settings(community_id, form, uploads)
    return {"ok": True, "message": message}


@api_router.post("/{community_id}/slug")
async def update_slug(
    request: Request,
    community_id: str,
    slug: str = Form(""),
    service: CommunityService = Depends(get_community_service),
) -> dict[str, Any]:
    require_token(request)
    applied = await service.update_slug(community_id, slug)
    return {"ok": True, "slug": applied}


@api_router.delete("/{community_id}")
async def delete_community(
    request: Request,
    community_id: str,
    service: CommunityService = Depends(get_community_service),
) -> dict[str, Any]:
    require_token(request)
    await service.delete(community_id)
    return {"ok": True, "redirect": "/"}


@api_router.post("/rules", response_class=HTMLResponse)
async def edit_rules(
    rules: list[str] | None = Form(None),
    action: str = Form("add"),
    text: str = Form(""),
    index: int = Form(-1),
) -> HTMLResponse:
    """규칙 추가/삭제 후 목록 조각 (숨김 input 포함)."""
    current = [r for r in rules or [] if r.strip()]
    if action == "add":
        add_rule(current, text)
    elif action == "remove":
        remove_rule(current, index)

    items = "".join(
        f'<li class="rule"><span>{escape_html(rule)}</span>'
        f'<input type="hidden" name="rules" value="{escape_html(rule)}">'
        f'<button type="button" class="remove-rule" data-index="{i}">×</button></li>'
        for i, rule in enumerate(current)
    )
    full = "true" if len(current) >= MAX_COMMUNITY_RULES else "false"
    return HTMLResponse(
        content=f'<ul class="rules-list" data-count="{len(current)}" data-full="{full}">{items}</ul>'
    )


# =============================================================================
# API Routes: 멤버
# =============================================================================

@api_router.post("/{community_id}/members/{member_id}/role")
async def change_role(
    request: Request,
    community_id: str,
    member_id: str,
    service: MemberService = Depends(get_member_service),
) -> dict[str, Any]:
    require_token(request)
    member, current_role = await _find_member(service, community_id, member_id)
    role = await service.change_role(community_id, member, current_role)
    return {"ok": True, "member_id": member_id, "role": role}


@api_router.delete("/{community_id}/members/{member_id}")
async def remove_member(
    request: Request,
    community_id: str,
    member_id: str,
    service: MemberService = Depends(get_member_service),
) -> dict[str, Any]:
    require_token(request)
    member, current_role = await _find_member(service, community_id, member_id)
    banned = await service.remove_member(community_id, member, current_role)
    return {
        "ok": True,
        "member_id": member_id,
        "banned": [{"id": b.id, "user_id": b.user_id, "name": b.name} for b in banned],
    }


@api_router.delete("/{community_id}/bans/{ban_id}")
async def lift_ban(
    request: Request,
    community_id: str,
    ban_id: str,
    service: MemberService = Depends(get_member_service),
) -> dict[str, Any]:
    require_token(request)
    await service.lift_ban(community_id, ban_id)
    return {"ok": True, "ban_id": ban_id}


@api_router.get("/{community_id}/members/search", response_class=HTMLResponse)
async def search_members(
    request: Request,
    community_id: str,
    q: str = "",
    service: MemberService = Depends(get_member_service),
) -> HTMLResponse:
    """검색 결과 행 (HTML 조각)."""
    require_token(request)
    page = await service.load(community_id)
    rows = "".join(
        f'<tr data-member-id="{escape_html(m.id)}">'
        f"<td>{escape_html(m.name)}</td><td>{escape_html(m.email)}</td>"
        f"<td>{escape_html(m.role)}</td></tr>"
        for m in service.search(page.members, q)
    )
    return HTMLResponse(content=rows or '<tr class="empty"><td colspan="3">לא נמצאו חברים</td></tr>')

"""
Course Editor Routes: ê°ì ìì±/í¸ì§ ëëíí¸.

- GET /communities/{community_id}/courses/create â ìì± íë©´
- GET /communities/{community_id}/courses/{course_id}/edit â í¸ì§ íë©´
- POST /api/editor/drafts â ëëíí¸ ìì±
- GET /api/editor/drafts/{draft_id} â ëëíí¸ ì¡°í
- POST /api/editor/drafts/{draft_id}/ops â í¸ì§ ì°ì° ({op, params})
- POST /api/editor/drafts/{draft_id}/images â ë ì¨ ì´ë¯¸ì§ ì²¨ë¶
- DELETE /api/editor/drafts/{draft_id}/images/{ci}/{li}/{index} â ëê¸° ì´ë¯¸ì§ ì ê±°
- POST /api/editor/drafts/{draft_id}/cover â ì»¤ë² ì´ë¯¸ì§
- POST /api/editor/drafts/{draft_id}/validate â ê²ì¦ ê²°ê³¼
- POST /api/editor/drafts/{draft_id}/save â ë°±ìë ì ì¥
- DELETE /api/editor/drafts/{draft_id} â ëëíí¸ íê¸°
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from src.app.backend import KibutzAPIClient
from src.app.routes.common import (
    get_api,
    get_confirmed_user_id,
    is_htmx,
    jinja_templates,
    require_confirmed_user_id,
)
from src.app.services.course_editor import CourseEditorService
from src.core import editor_state
from src.core.images import CompressionOptions, ImagePayload
from src.core.storage import Draft, DraftStore
from src.domain.errors import ErrorCodes, FormValidationError, PortalError

logger = logging.getLogger(__name__)

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


def get_drafts(request: Request) -> DraftStore:
    return request.app.state.drafts


def get_editor(
    request: Request, api: KibutzAPIClient = Depends(get_api)
) -> CourseEditorService:
    return CourseEditorService(
        api,
        get_drafts(request),
        CompressionOptions.from_config(request.app.state.config),
    )


def _load_draft(request: Request, draft_id: str, user_id: str) -> Draft:
    return get_drafts(request).load(draft_id, owner_id=user_id)


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def _draft_payload(draft: Draft, errors: dict[str, str] | None = None) -> dict[str, Any]:
    return {
        "draft_id": draft.draft_id,
        "form": draft.form.to_dict(),
        "total_duration": editor_state.total_duration(draft.form),
        "errors": errors or {},
    }


def _render_form(
    request: Request, draft: Draft, errors: dict[str, str] | None = None
) -> HTMLResponse:
    return jinja_templates.TemplateResponse(
        request,
        "partials/editor_form.html",
        {"draft": draft, "form": draft.form, "errors": errors or {}},
    )


async def _uploads(files: list[UploadFile]) -> list[ImagePayload]:
    return [
        ImagePayload(
            filename=f.filename or "image",
            content_type=f.content_type or "application/octet-stream",
            data=await f.read(),
        )
        for f in files
    ]


# =============================================================================
# Page Routes (HTML)
# =============================================================================

@router.get("/communities/{community_id}/courses/create", response_class=HTMLResponse)
async def create_course_page(
    request: Request,
    community_id: str,
    user_id: str | None = Depends(get_confirmed_user_id),
    editor: CourseEditorService = Depends(get_editor),
) -> Response:
    if not user_id:
        return RedirectResponse("/login", status_code=303)
    draft = editor.new_form(community_id, user_id)
    return jinja_templates.TemplateResponse(
        request,
        "course_editor.html",
        {"draft": draft, "form": draft.form, "errors": {}, "community_id": community_id},
    )


@router.get("/communities/{community_id}/courses/{course_id}/edit", response_class=HTMLResponse)
async def edit_course_page(
    request: Request,
    community_id: str,
    course_id: str,
    user_id: str | None = Depends(get_confirmed_user_id),
    editor: CourseEditorService = Depends(get_editor),
) -> Response:
    if not user_id:
        return RedirectResponse("/login", status_code=303)
    draft = await editor.load(course_id, user_id)
    return jinja_templates.TemplateResponse(
        request,
        "course_editor.html",
        {"draft": draft, "form": draft.form, "errors": {}, "community_id": community_id},
    )


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("/drafts")
async def create_draft(
    request: Request,
    community_id: str = Form(...),
    course_id: str | None = Form(None),
    user_id: str = Depends(require_confirmed_user_id),
    editor: CourseEditorService = Depends(get_editor),
) -> dict[str, Any]:
    """course_idê° ìì¼ë©´ í¸ì§ ëª¨ë, ìì¼ë©´ ìì± ëª¨ë."""
    if course_id:
        draft = await editor.load(course_id, user_id)
    else:
        draft = editor.new_form(community_id, user_id)
    return _draft_payload(draft)


@api_router.get("/drafts/{draft_id}")
async def get_draft(
    request: Request, draft_id: str, user_id: str = Depends(require_confirmed_user_id)
) -> dict[str, Any]:
    return _draft_payload(_load_draft(request, draft_id, user_id))


@api_router.post("/drafts/{draft_id}/ops")
async def apply_op(
    request: Request,
    draft_id: str,
    op: str = Form(...),
    params: str = Form("{}"),
    user_id: str = Depends(require_confirmed_user_id),
) -> Response:
    """
    í¸ì§ ì°ì° ì ì© í ëëíí¸ ì ì¥.

    paramsë JSON ê°ì²´ ë¬¸ìì´ (ì: {"ci": 0, "title": "××××"}).
    HTMX ìì²­ì´ë©´ í¼ ì¡°ê°, ìëë©´ JSON.
    """
    draft = _load_draft(request, draft_id, user_id)
    try:
        parsed = json.loads(params or "{}")
    except json.JSONDecodeError as e:
        raise PortalError(ErrorCodes.UNKNOWN_OPERATION, op=op, cause=str(e)) from e
    if not isinstance(parsed, dict):
        raise PortalError(ErrorCodes.UNKNOWN_OPERATION, op=op, cause="params must be an object")

    result = editor_state.apply_operation(draft.form, op, parsed)
    get_drafts(request).save(draft)

    if is_htmx(request):
        return _render_form(request, draft)
    return JSONResponse({**_draft_payload(draft), "op": op, "result": _jsonable(result)})


@api_router.post("/drafts/{draft_id}/images")
async def attach_images(
    request: Request,
    draft_id: str,
    ci: int = Form(...),
    li: int = Form(...),
    files: list[UploadFile] = File(...),
    user_id: str = Depends(require_confirmed_user_id),
    editor: CourseEditorService = Depends(get_editor),
) -> dict[str, Any]:
    # 업로드를 먼저 다 읽는다. 로드와 저장 사이에는 await가 없어야 한다
    uploads = await _uploads(files)
    draft = _load_draft(request, draft_id, user_id)
    accepted = editor.attach_images(draft, ci, li, uploads)
    return {
        **_draft_payload(draft),
        "accepted": [image.to_dict() for image in accepted],
        "rejected": len(files) - len(accepted),
    }


@api_router.delete("/drafts/{draft_id}/images/{ci}/{li}/{index}")
async def discard_image(
    request: Request,
    draft_id: str,
    ci: int,
    li: int,
    index: int,
    user_id: str = Depends(require_confirmed_user_id),
    editor: CourseEditorService = Depends(get_editor),
) -> dict[str, Any]:
    draft = _load_draft(request, draft_id, user_id)
    removed = editor.discard_pending_image(draft, ci, li, index)
    return {**_draft_payload(draft), "removed": removed}


@api_router.post("/drafts/{draft_id}/cover")
async def attach_cover(
    request: Request,
    draft_id: str,
    file: UploadFile = File(...),
    user_id: str = Depends(require_confirmed_user_id),
    editor: CourseEditorService = Depends(get_editor),
) -> dict[str, Any]:
    uploads = await _uploads([file])
    draft = _load_draft(request, draft_id, user_id)
    image = editor.attach_cover(draft, uploads[0])
    return {**_draft_payload(draft), "cover": image.to_dict()}


@api_router.post("/drafts/{draft_id}/validate")
async def validate_draft(
    request: Request, draft_id: str, user_id: str = Depends(require_confirmed_user_id)
) -> dict[str, Any]:
    draft = _load_draft(request, draft_id, user_id)
    errors = editor_state.validate_course_form(draft.form, require_image=draft.form.is_create)
    return {
        "valid": not errors,
        "errors": errors,
        "anchor": editor_state.first_error_anchor(errors),
    }


@api_router.post("/drafts/{draft_id}/save")
async def save_draft(
    request: Request,
    draft_id: str,
    user_id: str = Depends(require_confirmed_user_id),
    editor: CourseEditorService = Depends(get_editor),
) -> Response:
    """
    ì ì¥. ì±ê³µ ì ê°ì íë©´ì¼ë¡ ì´ëí  ê²½ë¡ ë°í.

    ê²ì¦ ì¤í¨ â 422 {code, errors, anchor}
    """
    draft = _load_draft(request, draft_id, user_id)
    community_id = draft.form.community_id
    try:
        course = await editor.save(draft)
    except FormValidationError as e:
        return JSONResponse(
            status_code=422,
            content={**e.to_dict(), "anchor": editor_state.first_error_anchor(e.errors)},
        )

    course_id = course.get("id") or draft.form.id
    return JSONResponse(
        {
            "ok": True,
            "course_id": course_id,
            "redirect": f"/communities/{community_id}/courses/{course_id}",
        }
    )


@api_router.delete("/drafts/{draft_id}")
async def discard_draft(
    request: Request, draft_id: str, user_id: str = Depends(require_confirmed_user_id)
) -> dict[str, Any]:
    _load_draft(request, draft_id, user_id)
    return {"deleted": get_drafts(request).delete(draft_id)}

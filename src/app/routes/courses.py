"""
Course Viewer Routes: 강의 목록, 열람, 등록, 완료, 자동 완료 이벤트, 퀴즈.

- GET /communities/{community_id}/courses → 강의 목록 (커뮤니티 첫 화면)
- GET /communities/{community_id}/courses/{course_id} → 강의 화면
- POST/DELETE /api/courses/{course_id}/enroll → 등록/취소
- POST /api/courses/{course_id}/lessons/{lesson_id}/complete → 완료 토글
- POST /api/courses/{course_id}/lessons/{lesson_id}/activity → 열람 이벤트
- POST /api/courses/{course_id}/lessons/{lesson_id}/quiz/{question_id} → 답안 제출
- POST .../quiz/{question_id}/retry → 오답 다시 풀기
- DELETE /api/courses/{course_id} → 강의 삭제
"""

from typing import Any

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from src.app.backend import BackendError, KibutzAPIClient
from src.app.routes.common import (
    get_api,
    get_confirmed_user_id,
    jinja_templates,
    require_confirmed_user_id,
    require_token,
)
from src.app.services.course_viewer import ActivityRegistry, CourseViewerService
from src.core import progress
from src.core.progress import youtube_embed_url
from src.domain.constants import COMMUNITY_HOME_PATH, COURSE_TAB_ALL, COURSE_TABS

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


def get_registry(request: Request) -> ActivityRegistry:
    return request.app.state.activity


def get_viewer(
    request: Request, api: KibutzAPIClient = Depends(get_api)
) -> CourseViewerService:
    return CourseViewerService(api, get_registry(request))


# =============================================================================
# Page Routes (HTML)
# =============================================================================

@router.get("/communities/{community_id}/courses", response_class=HTMLResponse)
async def course_list_page(
    request: Request,
    community_id: str,
    tab: str = COURSE_TAB_ALL,
    show_payment: bool = Query(False, alias="showPayment"),
    user_id: str | None = Depends(get_confirmed_user_id),
    viewer: CourseViewerService = Depends(get_viewer),
) -> Response:
    """커뮤니티 첫 화면. 알 수 없는 탭은 all."""
    if tab not in COURSE_TABS:
        tab = COURSE_TAB_ALL
    page = await viewer.list_courses(community_id, tab, user_id)
    return jinja_templates.TemplateResponse(
        request,
        "course_list.html",
        {
            "community_id": community_id,
            "page": page,
            "tabs": COURSE_TABS,
            "show_payment": show_payment,
        },
    )


@router.get("/communities/{community_id}/courses/{course_id}", response_class=HTMLResponse)
async def course_page(
    request: Request,
    community_id: str,
    course_id: str,
    lesson: str | None = None,
    user_id: str | None = Depends(get_confirmed_user_id),
    viewer: CourseViewerService = Depends(get_viewer),
) -> Response:
    """강의 화면. 강의가 없으면 강의 목록으로 이동."""
    try:
        page = await viewer.open(course_id, lesson, user_id)
    except BackendError as e:
        if e.is_not_found:
            return RedirectResponse(
                COMMUNITY_HOME_PATH.format(community_id=community_id), status_code=303
            )
        raise

    course = page.course
    return jinja_templates.TemplateResponse(
        request,
        "course_viewer.html",
        {
            "community_id": community_id,
            "course": course,
            "lesson": page.lesson,
            "progress": page.progress,
            "can_access": page.can_access,
            "is_owner": progress.is_owner_or_author(course, user_id),
            "enrolled": course.enrollment is not None,
            "chapter_completion": {
                ch.id: progress.chapter_completion(course, ch) for ch in course.chapters
            },
            "content_types": progress.ordered_content_types(page.lesson) if page.lesson else [],
            "embed_url": (
                youtube_embed_url(page.lesson.video_url, str(request.base_url).rstrip("/"))
                if page.lesson and page.lesson.video_url
                else None
            ),
        },
    )


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("/{course_id}/enroll")
async def enroll(
    request: Request,
    course_id: str,
    viewer: CourseViewerService = Depends(get_viewer),
) -> dict[str, Any]:
    require_token(request)
    return (await viewer.enroll(course_id)).to_dict()


@api_router.delete("/{course_id}/enroll")
async def unenroll(
    request: Request,
    course_id: str,
    viewer: CourseViewerService = Depends(get_viewer),
) -> dict[str, Any]:
    require_token(request)
    return (await viewer.unenroll(course_id)).to_dict()


@api_router.post("/{course_id}/lessons/{lesson_id}/complete")
async def toggle_complete(
    request: Request,
    course_id: str,
    lesson_id: str,
    viewer: CourseViewerService = Depends(get_viewer),
) -> dict[str, Any]:
    """완료 토글. 실패 시 ok=False와 되돌린 상태를 반환."""
    require_token(request)
    course = await viewer.fetch(course_id)
    return (await viewer.toggle_completion(course, lesson_id)).to_dict()


@api_router.post("/{course_id}/lessons/{lesson_id}/activity")
async def record_activity(
    request: Request,
    course_id: str,
    lesson_id: str,
    event_type: str = Form(..., alias="type"),
    index: int | None = Form(None),
    scroll_height: int | None = Form(None),
    scroll_top: int | None = Form(None),
    client_height: int | None = Form(None),
    user_id: str = Depends(require_confirmed_user_id),
    viewer: CourseViewerService = Depends(get_viewer),
) -> dict[str, Any]:
    """열람 이벤트 (video_ended, measure, scroll, link_clicked, image_viewed, tick)."""
    event: dict[str, Any] = {"type": event_type}
    for key, value in (
        ("index", index),
        ("scroll_height", scroll_height),
        ("scroll_top", scroll_top),
        ("client_height", client_height),
    ):
        if value is not None:
            event[key] = value
    result = await viewer.record_activity(course_id, lesson_id, user_id, event)
    return result.to_dict()


@api_router.post("/{course_id}/lessons/{lesson_id}/quiz/{question_id}")
async def submit_quiz_answer(
    request: Request,
    course_id: str,
    lesson_id: str,
    question_id: str,
    option_ids: list[str] | None = Form(None),
    user_id: str = Depends(require_confirmed_user_id),
    viewer: CourseViewerService = Depends(get_viewer),
) -> dict[str, Any]:
    result = await viewer.submit_quiz_answer(
        course_id, lesson_id, user_id, question_id, option_ids or []
    )
    return result.to_dict()


@api_router.post("/{course_id}/lessons/{lesson_id}/quiz/{question_id}/retry")
async def retry_quiz_question(
    request: Request,
    course_id: str,
    lesson_id: str,
    question_id: str,
    user_id: str = Depends(require_confirmed_user_id),
    viewer: CourseViewerService = Depends(get_viewer),
) -> dict[str, Any]:
    return {"ok": viewer.retry_quiz_question(user_id, lesson_id, question_id)}


@api_router.delete("/{course_id}")
async def delete_course(
    request: Request,
    course_id: str,
    community_id: str | None = None,
    viewer: CourseViewerService = Depends(get_viewer),
) -> dict[str, Any]:
    require_token(request)
    result = (await viewer.delete_course(course_id)).to_dict()
    if result["ok"] and community_id:
        result["redirect"] = COMMUNITY_HOME_PATH.format(community_id=community_id)
    return result

"""
Course editor state: 강의 편집기 폼 리듀서.

CourseForm을 제자리에서 수정하는 순수 함수 모음.
- 제목 길이 초과 입력은 거부 (상태 유지)
- 새 챕터/레슨은 목록에서 제거, 저장된 것은 is_deleted 표시
- 삭제 후 기본 제목("פרק N" / "שיעור N")만 보이는 순서대로 재번호
- 인덱스는 삭제 항목을 포함한 전체 목록 기준
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from src.core import quiz
from src.core.validation import is_valid_link
from src.domain.constants import (
    CHAPTER_TITLE_PREFIX,
    CONTENT_IMAGES,
    CONTENT_LINKS,
    CONTENT_TEXT,
    CONTENT_VIDEO,
    DEFAULT_CHAPTER_TITLE_RE,
    DEFAULT_CONTENT_ORDER,
    DEFAULT_LESSON_DURATION,
    DEFAULT_LESSON_TITLE_RE,
    LESSON_TITLE_PREFIX,
    LESSON_TYPE_CONTENT,
    LESSON_TYPE_QUIZ,
    LESSON_TYPES,
    MAX_CHAPTER_TITLE_LENGTH,
    MAX_COURSE_DESCRIPTION_LENGTH,
    MAX_COURSE_TITLE_LENGTH,
    MAX_LESSON_DURATION,
    MAX_LESSON_IMAGES,
    MAX_LESSON_TITLE_LENGTH,
    MIN_LESSON_DURATION,
)
from src.domain.errors import ErrorCodes, PortalError
from src.domain.schemas import (
    ChapterForm,
    CourseForm,
    LessonForm,
    PendingImage,
    QuizOptionForm,
    QuizQuestionForm,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Lookup
# =============================================================================

def _chapter(form: CourseForm, ci: int) -> ChapterForm:
    if not 0 <= ci < len(form.chapters):
        raise PortalError(ErrorCodes.INVALID_INDEX, chapter=ci)
    return form.chapters[ci]


def _lesson(form: CourseForm, ci: int, li: int) -> LessonForm:
    chapter = _chapter(form, ci)
    if not 0 <= li < len(chapter.lessons):
        raise PortalError(ErrorCodes.INVALID_INDEX, chapter=ci, lesson=li)
    return chapter.lessons[li]


def _question(form: CourseForm, ci: int, li: int, qi: int) -> QuizQuestionForm:
    lesson = _lesson(form, ci, li)
    if lesson.quiz is None or not 0 <= qi < len(lesson.quiz):
        raise PortalError(ErrorCodes.INVALID_INDEX, chapter=ci, lesson=li, question=qi)
    return lesson.quiz[qi]


def lesson_at(form: CourseForm, ci: int, li: int) -> LessonForm:
    """인덱스로 레슨 조회 (범위 밖이면 INVALID_INDEX)."""
    return _lesson(form, ci, li)


def visible_chapter_number(form: CourseForm, ci: int) -> int:
    """화면에 표시되는 챕터 번호 (삭제된 앞 챕터 제외)."""
    return sum(1 for c in form.chapters[:ci] if not c.is_deleted) + 1


def visible_lesson_number(chapter: ChapterForm, li: int) -> int:
    return sum(1 for lesson in chapter.lessons[:li] if not lesson.is_deleted) + 1


# =============================================================================
# Course fields
# =============================================================================

def set_course_title(form: CourseForm, title: str) -> bool:
    if len(title) > MAX_COURSE_TITLE_LENGTH:
        return False
    form.title = title
    return True


def set_course_description(form: CourseForm, description: str) -> bool:
    if len(description) > MAX_COURSE_DESCRIPTION_LENGTH:
        return False
    form.description = description
    return True


def set_cover_image(form: CourseForm, image: PendingImage) -> None:
    form.new_image = image


# =============================================================================
# Chapters
# =============================================================================

def _renumber(items: list[Any], pattern: re.Pattern[str], prefix: str) -> None:
    visible_index = 0
    for item in items:
        if item.is_deleted:
            continue
        visible_index += 1
        if pattern.match(item.title):
            item.title = f"{prefix} {visible_index}"


def add_chapter(form: CourseForm) -> ChapterForm:
    chapter = ChapterForm(
        title=f"{CHAPTER_TITLE_PREFIX} {len(form.visible_chapters()) + 1}",
        order=len(form.chapters),
        lessons=[],
        is_new=True,
        expanded=True,
    )
    form.chapters.append(chapter)
    return chapter


def update_chapter(form: CourseForm, ci: int, **changes: Any) -> None:
    chapter = _chapter(form, ci)
    for key, value in changes.items():
        if not hasattr(chapter, key):
            raise PortalError(ErrorCodes.UNKNOWN_OPERATION, field=key)
        setattr(chapter, key, value)


def set_chapter_title(form: CourseForm, ci: int, title: str) -> bool:
    if len(title) > MAX_CHAPTER_TITLE_LENGTH:
        return False
    _chapter(form, ci).title = title
    return True


def remove_chapter(form: CourseForm, ci: int) -> None:
    chapter = _chapter(form, ci)
    if chapter.is_new:
        form.chapters.pop(ci)
    else:
        chapter.is_deleted = True
    _renumber(form.chapters, DEFAULT_CHAPTER_TITLE_RE, CHAPTER_TITLE_PREFIX)


def toggle_chapter(form: CourseForm, ci: int) -> None:
    chapter = _chapter(form, ci)
    chapter.expanded = not chapter.expanded


# =============================================================================
# Lessons
# =============================================================================

def add_lesson(form: CourseForm, ci: int) -> LessonForm:
    chapter = _chapter(form, ci)
    lesson = LessonForm(
        title=f"{LESSON_TITLE_PREFIX} {len(chapter.visible_lessons()) + 1}",
        duration=DEFAULT_LESSON_DURATION,
        order=len(chapter.lessons),
        lesson_type=LESSON_TYPE_CONTENT,
        content_order=list(DEFAULT_CONTENT_ORDER),
        is_new=True,
        expanded=True,
    )
    chapter.lessons.append(lesson)
    return lesson


def update_lesson(form: CourseForm, ci: int, li: int, **changes: Any) -> None:
    lesson = _lesson(form, ci, li)
    for key, value in changes.items():
        if not hasattr(lesson, key):
            raise PortalError(ErrorCodes.UNKNOWN_OPERATION, field=key)
        setattr(lesson, key, value)


def set_lesson_title(form: CourseForm, ci: int, li: int, title: str) -> bool:
    if len(title) > MAX_LESSON_TITLE_LENGTH:
        return False
    _lesson(form, ci, li).title = title
    return True


def set_lesson_duration(form: CourseForm, ci: int, li: int, value: Any) -> bool:
    """
    레슨 길이 입력.

    숫자로 읽을 수 없는 값은 0으로 취급 (입력 중 빈 칸).
    0..MAX_LESSON_DURATION 밖의 값은 거부.
    """
    try:
        duration = int(value)
    except (TypeError, ValueError):
        duration = 0
    if not 0 <= duration <= MAX_LESSON_DURATION:
        return False
    _lesson(form, ci, li).duration = duration
    return True


def remove_lesson(form: CourseForm, ci: int, li: int) -> None:
    chapter = _chapter(form, ci)
    lesson = _lesson(form, ci, li)
    if lesson.is_new:
        chapter.lessons.pop(li)
    else:
        lesson.is_deleted = True
    _renumber(chapter.lessons, DEFAULT_LESSON_TITLE_RE, LESSON_TITLE_PREFIX)


def toggle_lesson(form: CourseForm, ci: int, li: int) -> None:
    lesson = _lesson(form, ci, li)
    lesson.expanded = not lesson.expanded


def set_lesson_type(form: CourseForm, ci: int, li: int, lesson_type: str) -> None:
    """레슨 타입 전환. quiz로 바꿀 때 문항이 없으면 기본 문항 추가."""
    if lesson_type not in LESSON_TYPES:
        raise PortalError(ErrorCodes.UNKNOWN_OPERATION, lesson_type=lesson_type)
    lesson = _lesson(form, ci, li)
    lesson.lesson_type = lesson_type
    if lesson_type == LESSON_TYPE_QUIZ and not lesson.quiz:
        lesson.quiz = [quiz.new_question(order=0)]


def move_content_item(form: CourseForm, ci: int, li: int, index: int, direction: int) -> bool:
    """콘텐츠 블록 순서 이동 (direction: -1 위, +1 아래)."""
    lesson = _lesson(form, ci, li)
    order = list(lesson.content_order or DEFAULT_CONTENT_ORDER)
    target = index + direction
    if direction not in (-1, 1) or not 0 <= index < len(order) or not 0 <= target < len(order):
        return False
    order[index], order[target] = order[target], order[index]
    lesson.content_order = order
    return True


# =============================================================================
# Links & Images
# =============================================================================

def add_link(form: CourseForm, ci: int, li: int, url: str) -> str | None:
    """
    링크 추가.

    Returns:
        에러 메시지 (성공 시 None, 빈 입력은 무시)
    """
    value = url.strip()
    if not value:
        return None
    lesson = _lesson(form, ci, li)
    if value in lesson.links:
        return "קישור זה כבר קיים"
    if not is_valid_link(value):
        return "קישור לא תקין"
    lesson.links.append(value)
    return None


def remove_link(form: CourseForm, ci: int, li: int, index: int) -> bool:
    lesson = _lesson(form, ci, li)
    if not 0 <= index < len(lesson.links):
        return False
    lesson.links.pop(index)
    return True


def image_slots_left(lesson: LessonForm) -> int:
    return max(0, MAX_LESSON_IMAGES - len(lesson.images) - len(lesson.pending_images))


def add_pending_images(
    form: CourseForm, ci: int, li: int, images: list[PendingImage]
) -> list[PendingImage]:
    """
    업로드 대기 이미지 추가 (레슨당 최대 MAX_LESSON_IMAGES).

    Returns:
        실제로 추가된 이미지 (초과분은 버림)
    """
    lesson = _lesson(form, ci, li)
    accepted = images[: image_slots_left(lesson)]
    if len(accepted) < len(images):
        logger.info(
            f"Lesson image limit reached: kept {len(accepted)} of {len(images)} files"
        )
    lesson.pending_images.extend(accepted)
    return accepted


def remove_image(form: CourseForm, ci: int, li: int, index: int) -> bool:
    lesson = _lesson(form, ci, li)
    if not 0 <= index < len(lesson.images):
        return False
    lesson.images.pop(index)
    return True


def remove_pending_image(form: CourseForm, ci: int, li: int, index: int) -> PendingImage | None:
    lesson = _lesson(form, ci, li)
    if not 0 <= index < len(lesson.pending_images):
        return None
    return lesson.pending_images.pop(index)


# =============================================================================
# Quiz (레슨 단위 래퍼)
# =============================================================================

def add_question(form: CourseForm, ci: int, li: int) -> QuizQuestionForm:
    lesson = _lesson(form, ci, li)
    if lesson.quiz is None:
        lesson.quiz = []
    return quiz.add_question(lesson.quiz)


def remove_question(form: CourseForm, ci: int, li: int, qi: int) -> bool:
    lesson = _lesson(form, ci, li)
    return quiz.remove_question(lesson.quiz or [], qi)


def set_question_text(form: CourseForm, ci: int, li: int, qi: int, text: str) -> None:
    quiz.set_question_text(_question(form, ci, li, qi), text)


def set_question_type(form: CourseForm, ci: int, li: int, qi: int, question_type: str) -> None:
    quiz.set_question_type(_question(form, ci, li, qi), question_type)


def toggle_option(form: CourseForm, ci: int, li: int, qi: int, oi: int) -> bool:
    return quiz.toggle_option(_question(form, ci, li, qi), oi)


def add_option(form: CourseForm, ci: int, li: int, qi: int) -> None:
    quiz.add_option(_question(form, ci, li, qi))


def remove_option(form: CourseForm, ci: int, li: int, qi: int, oi: int) -> bool:
    return quiz.remove_option(_question(form, ci, li, qi), oi)


def set_option_text(form: CourseForm, ci: int, li: int, qi: int, oi: int, text: str) -> bool:
    return quiz.set_option_text(_question(form, ci, li, qi), oi, text)


# =============================================================================
# Operation Dispatch
# =============================================================================
# HTMX/JSON 요청의 {"op": ..., "params": {...}}를 리듀서 호출로 연결

OPERATIONS: dict[str, Callable[..., Any]] = {
    "set_course_title": set_course_title,
    "set_course_description": set_course_description,
    "add_chapter": add_chapter,
    "set_chapter_title": set_chapter_title,
    "remove_chapter": remove_chapter,
    "toggle_chapter": toggle_chapter,
    "add_lesson": add_lesson,
    "set_lesson_title": set_lesson_title,
    "set_lesson_duration": set_lesson_duration,
    "remove_lesson": remove_lesson,
    "toggle_lesson": toggle_lesson,
    "set_lesson_type": set_lesson_type,
    "update_lesson": update_lesson,
    "move_content_item": move_content_item,
    "add_link": add_link,
    "remove_link": remove_link,
    "remove_image": remove_image,
    "add_question": add_question,
    "remove_question": remove_question,
    "set_question_text": set_question_text,
    "set_question_type": set_question_type,
    "toggle_option": toggle_option,
    "add_option": add_option,
    "remove_option": remove_option,
    "set_option_text": set_option_text,
}

# update_lesson으로 직접 바꿀 수 있는 필드 (나머지는 전용 연산 사용)
_FREE_LESSON_FIELDS = {"content", "video_url", "files"}


def apply_operation(form: CourseForm, op: str, params: dict[str, Any] | None = None) -> Any:
    """
    이름으로 편집 연산 실행.

    Raises:
        PortalError: 알 수 없는 연산/필드, 잘못된 인덱스
    """
    params = dict(params or {})
    func = OPERATIONS.get(op)
    if func is None:
        raise PortalError(ErrorCodes.UNKNOWN_OPERATION, op=op)

    if op == "update_lesson":
        fields = set(params) - {"ci", "li"}
        if not fields <= _FREE_LESSON_FIELDS:
            raise PortalError(ErrorCodes.UNKNOWN_OPERATION, op=op, fields=sorted(fields))

    try:
        return func(form, **params)
    except TypeError as e:
        raise PortalError(ErrorCodes.UNKNOWN_OPERATION, op=op, cause=str(e)) from e


# =============================================================================
# Validation
# =============================================================================

def lesson_has_content(lesson: LessonForm) -> bool:
    return bool(
        lesson.video_url
        or lesson.content.strip()
        or lesson.images
        or lesson.pending_images
        or lesson.links
    )


def validate_course_form(form: CourseForm, require_image: bool = False) -> dict[str, str]:
    """
    저장 전 전체 폼 검증.

    Args:
        form: 편집 상태
        require_image: 생성 모드에서 커버 이미지 필수 여부

    Returns:
        에러 키 → 히브리어 메시지 (삽입 순서 = 화면 순서)
    """
    errors: dict[str, str] = {}

    if not form.title.strip():
        errors["title"] = "שם הקורס הוא שדה חובה"
    elif len(form.title) > MAX_COURSE_TITLE_LENGTH:
        errors["title"] = f"שם הקורס לא יכול להכיל יותר מ-{MAX_COURSE_TITLE_LENGTH} תווים"

    if len(form.description) > MAX_COURSE_DESCRIPTION_LENGTH:
        errors["description"] = (
            f"התיאור לא יכול להכיל יותר מ-{MAX_COURSE_DESCRIPTION_LENGTH} תווים"
        )

    if require_image and not form.new_image and not form.image:
        errors["image"] = "יש להעלות תמונה לקורס"

    if not form.visible_chapters():
        errors["chapters"] = "יש להוסיף לפחות פרק אחד"

    for ci, chapter in enumerate(form.chapters):
        if chapter.is_deleted:
            continue

        if not chapter.title.strip():
            errors[f"chapter_{ci}_title"] = "שם הפרק הוא שדה חובה"
        elif len(chapter.title) > MAX_CHAPTER_TITLE_LENGTH:
            errors[f"chapter_{ci}_title"] = (
                f"שם הפרק לא יכול להכיל יותר מ-{MAX_CHAPTER_TITLE_LENGTH} תווים"
            )

        if not chapter.visible_lessons():
            errors[f"chapter_{ci}_lessons"] = "יש להוסיף לפחות שיעור אחד"

        for li, lesson in enumerate(chapter.lessons):
            if lesson.is_deleted:
                continue
            errors.update(_validate_lesson(lesson, ci, li))

    return errors


def _validate_lesson(lesson: LessonForm, ci: int, li: int) -> dict[str, str]:
    errors: dict[str, str] = {}
    key = f"lesson_{ci}_{li}"

    if not lesson.title.strip():
        errors[f"{key}_title"] = "שם השיעור הוא שדה חובה"
    elif len(lesson.title) > MAX_LESSON_TITLE_LENGTH:
        errors[f"{key}_title"] = (
            f"שם השיעור לא יכול להכיל יותר מ-{MAX_LESSON_TITLE_LENGTH} תווים"
        )

    if not lesson.duration or lesson.duration < MIN_LESSON_DURATION:
        errors[f"{key}_duration"] = f"משך השיעור חייב להיות לפחות {MIN_LESSON_DURATION} דקה"
    elif lesson.duration > MAX_LESSON_DURATION:
        errors[f"{key}_duration"] = f"משך השיעור לא יכול לעלות על {MAX_LESSON_DURATION} דקות"

    if lesson.lesson_type == LESSON_TYPE_CONTENT and not lesson_has_content(lesson):
        errors[f"{key}_content"] = "שיעור לא יכול להיות ריק מתוכן"

    if lesson.lesson_type == LESSON_TYPE_QUIZ:
        if not lesson.quiz:
            errors[f"{key}_quiz"] = "בוחן חייב להכיל לפחות שאלה אחת"
        else:
            for qi, question in enumerate(lesson.quiz):
                errors.update(quiz.validate_question(question, qi, f"{key}_quiz"))

    return errors


_CHAPTER_KEY_RE = re.compile(r"^chapter_(\d+)")
_LESSON_KEY_RE = re.compile(r"^lesson_(\d+)_(\d+)")


def first_error_anchor(errors: dict[str, str]) -> str | None:
    """첫 번째 에러 키 → 스크롤 대상 element id."""
    if not errors:
        return None
    first = next(iter(errors))

    if first == "title":
        return "course-title"
    if first == "description":
        return "course-description"
    if first == "image":
        return "course-image"
    if first == "chapters":
        return "chapters-section"

    match = _CHAPTER_KEY_RE.match(first)
    if match:
        return f"chapter-{match.group(1)}"
    match = _LESSON_KEY_RE.match(first)
    if match:
        return f"lesson-{match.group(1)}-{match.group(2)}"
    return None


# =============================================================================
# API ↔ Form
# =============================================================================

def course_form_from_api(data: dict[str, Any]) -> CourseForm:
    """GET /courses/{id} 응답 → 편집 상태 (모든 챕터 펼침)."""
    chapters = []
    for c in data.get("chapters") or []:
        lessons = []
        for lesson in c.get("lessons") or []:
            quiz_data = lesson.get("quiz")
            lessons.append(
                LessonForm(
                    id=lesson.get("id"),
                    title=lesson.get("title") or "",
                    content=lesson.get("content") or "",
                    video_url=lesson.get("videoUrl") or "",
                    duration=lesson.get("duration") or 0,
                    order=lesson.get("order", 0),
                    lesson_type=lesson.get("lessonType") or LESSON_TYPE_CONTENT,
                    images=list(lesson.get("images") or []),
                    files=list(lesson.get("files") or []),
                    links=list(lesson.get("links") or []),
                    content_order=list(lesson.get("contentOrder") or DEFAULT_CONTENT_ORDER),
                    quiz=[
                        QuizQuestionForm(
                            id=q.get("id"),
                            question=q.get("question") or "",
                            question_type=q.get("questionType") or "radio",
                            order=q["order"] if q.get("order") is not None else qi,
                            options=[
                                QuizOptionForm(
                                    id=opt.get("id"),
                                    text=opt.get("text") or "",
                                    is_correct=bool(opt.get("isCorrect")),
                                    order=opt["order"] if opt.get("order") is not None else oi,
                                )
                                for oi, opt in enumerate(q.get("options") or [])
                            ],
                        )
                        for qi, q in enumerate(quiz_data.get("questions") or [])
                    ]
                    if quiz_data
                    else None,
                )
            )
        chapters.append(
            ChapterForm(
                id=c.get("id"),
                title=c.get("title") or "",
                order=c.get("order", 0),
                lessons=lessons,
                expanded=True,
            )
        )

    return CourseForm(
        id=data.get("id"),
        community_id=(data.get("community") or {}).get("id") or data.get("communityId"),
        title=data.get("title") or "",
        description=data.get("description") or "",
        image=data.get("image"),
        is_published=bool(data.get("isPublished")),
        chapters=chapters,
    )


def quiz_payload(lesson: LessonForm) -> dict[str, Any] | None:
    """퀴즈 요청 본문. 순서는 현재 위치 기준으로 다시 매김."""
    if lesson.lesson_type != LESSON_TYPE_QUIZ or lesson.quiz is None:
        return None
    return {
        "questions": [
            {
                "question": q.question,
                "questionType": q.question_type,
                "order": qi,
                "options": [
                    {"text": opt.text, "isCorrect": opt.is_correct, "order": oi}
                    for oi, opt in enumerate(q.options)
                ],
            }
            for qi, q in enumerate(lesson.quiz)
        ]
    }


def lesson_payload(lesson: LessonForm, images: list[str]) -> dict[str, Any]:
    """
    레슨 생성/수정 요청 본문.

    Args:
        lesson: 편집 상태의 레슨
        images: 기존 이미지 URL + 방금 업로드한 URL
    """
    return {
        "title": lesson.title,
        "content": lesson.content,
        "videoUrl": lesson.video_url or None,
        "duration": lesson.duration,
        "order": lesson.order,
        "lessonType": lesson.lesson_type,
        "images": images,
        "files": lesson.files,
        "links": [link for link in lesson.links if link.strip()],
        "contentOrder": lesson.content_order,
        "quiz": quiz_payload(lesson),
    }


def total_duration(form: CourseForm) -> int:
    """보이는 레슨들의 총 길이 (분)."""
    return sum(
        lesson.duration
        for chapter in form.visible_chapters()
        for lesson in chapter.visible_lessons()
    )


def content_types(lesson: LessonForm) -> list[str]:
    """레슨에 실제로 채워진 콘텐츠 타입 (content_order 순)."""
    present = {
        CONTENT_VIDEO: bool(lesson.video_url),
        CONTENT_TEXT: bool(lesson.content.strip()),
        CONTENT_IMAGES: bool(lesson.images or lesson.pending_images),
        CONTENT_LINKS: bool(lesson.links),
    }
    return [item for item in lesson.content_order if present.get(item)]

"""
Course Viewer Service: 강의 열람, 등록, 진행률, 자동 완료, 퀴즈.

- 완료 토글은 낙관적으로 반영하고 BackendError 시 되돌림
- 자동 완료/퀴즈 상태는 사용자별 현재 레슨 하나만 메모리에 보관
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from src.app.backend import BackendError, KibutzAPIClient
from src.core import permissions, progress
from src.core.progress import AutoCompleteTracker
from src.core.quiz import QuizSession
from src.domain.constants import (
    LESSON_TYPE_QUIZ,
    MIN_DWELL_SECONDS,
    QUESTION_RADIO,
    SCROLL_THRESHOLD_PX,
)
from src.domain.errors import ErrorCodes, PortalError
from src.domain.schemas import Community, CourseView, Lesson

logger = logging.getLogger(__name__)

ENROLL_ERROR = "שגיאה בהרשמה לקורס"
UNENROLL_ERROR = "שגיאה בביטול הרשמה"

# 열람 이벤트별 필수 필드
EVENT_FIELDS: dict[str, tuple[str, ...]] = {
    "video_ended": (),
    "measure": ("scroll_height", "client_height"),
    "scroll": ("scroll_height", "scroll_top", "client_height"),
    "link_clicked": ("index",),
    "image_viewed": ("index",),
    "tick": (),
}


def _event_values(event: dict[str, Any]) -> tuple[str, list[int]]:
    """
    이벤트 종류와 필수 필드 값 (정수).

    Raises:
        PortalError: 알 수 없는 종류, 필드 누락 또는 정수가 아닌 값
    """
    kind = str(event.get("type"))
    fields = EVENT_FIELDS.get(kind)
    if fields is None:
        raise PortalError(ErrorCodes.UNKNOWN_OPERATION, event=kind)
    missing = [name for name in fields if event.get(name) is None]
    if missing:
        raise PortalError(ErrorCodes.UNKNOWN_OPERATION, event=kind, missing=missing)
    try:
        return kind, [int(event[name]) for name in fields]
    except (TypeError, ValueError) as e:
        raise PortalError(ErrorCodes.UNKNOWN_OPERATION, event=kind, cause=str(e)) from e


# =============================================================================
# Activity Registry
# =============================================================================

@dataclass
class LessonActivity:
    """사용자 한 명이 지금 보고 있는 레슨의 상태."""
    lesson_id: str
    tracker: AutoCompleteTracker
    quiz: QuizSession | None = None


class ActivityRegistry:
    """
    레슨 열람 중 상태 저장소 (프로세스 메모리).

    브라우저 탭 하나의 수명과 같은 역할: 사용자당 현재 레슨 하나만 보관하며
    다른 레슨을 열면 이전 레슨의 상태는 버린다. 서버 재시작 시 사라진다.
    """

    def __init__(
        self,
        min_dwell: float = MIN_DWELL_SECONDS,
        scroll_threshold: int = SCROLL_THRESHOLD_PX,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_dwell = min_dwell
        self.scroll_threshold = scroll_threshold
        self.clock = clock
        self.active: dict[str, LessonActivity] = {}

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "ActivityRegistry":
        viewer = config.get("viewer", {})
        return cls(
            min_dwell=viewer.get("min_dwell_seconds", MIN_DWELL_SECONDS),
            scroll_threshold=viewer.get("scroll_threshold_px", SCROLL_THRESHOLD_PX),
        )

    def start(self, user_id: str, lesson: Lesson) -> AutoCompleteTracker:
        """레슨 진입: 체류 시간 타이머 재시작, 이전 레슨 상태 교체."""
        tracker = AutoCompleteTracker(
            lesson=lesson,
            started_at=self.clock(),
            min_dwell=self.min_dwell,
            scroll_threshold=self.scroll_threshold,
        )
        self.active[user_id] = LessonActivity(lesson_id=lesson.id, tracker=tracker)
        return tracker

    def _current(self, user_id: str, lesson: Lesson) -> LessonActivity:
        activity = self.active.get(user_id)
        if activity is None or activity.lesson_id != lesson.id:
            self.start(user_id, lesson)
            activity = self.active[user_id]
        return activity

    def tracker(self, user_id: str, lesson: Lesson) -> AutoCompleteTracker:
        return self._current(user_id, lesson).tracker

    def quiz_session(self, user_id: str, lesson: Lesson) -> QuizSession:
        activity = self._current(user_id, lesson)
        if activity.quiz is None:
            activity.quiz = QuizSession(questions=list(lesson.quiz or []))
        return activity.quiz

    def find_quiz_session(self, user_id: str, lesson_id: str) -> QuizSession | None:
        activity = self.active.get(user_id)
        if activity is None or activity.lesson_id != lesson_id:
            return None
        return activity.quiz

    def reset(self, user_id: str, lesson_id: str) -> None:
        activity = self.active.get(user_id)
        if activity is not None and activity.lesson_id == lesson_id:
            del self.active[user_id]

    def clear(self) -> None:
        self.active.clear()


# =============================================================================
# Results
# =============================================================================

@dataclass
class ViewerPage:
    """강의 페이지 렌더링 데이터."""
    course: CourseView
    lesson: Lesson | None
    progress: int
    can_access: bool
    auto_enrolled: bool = False


@dataclass
class CourseListPage:
    """커뮤니티 강의 목록."""
    community: Community
    courses: list[CourseView]
    tab: str
    can_create: bool = False


@dataclass
class ActionResult:
    ok: bool
    message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "message": self.message, **self.data}


# =============================================================================
# Service
# =============================================================================

class CourseViewerService:
    """강의 열람 화면 동작."""

    def __init__(self, api: KibutzAPIClient, registry: ActivityRegistry) -> None:
        self.api = api
        self.registry = registry

    async def fetch(self, course_id: str) -> CourseView:
        return CourseView.from_api(await self.api.get_course(course_id))

    async def list_courses(
        self, community_id: str, tab: str, user_id: str | None
    ) -> CourseListPage:
        """강의 목록 + 탭 필터. 소유자/관리자면 새 강의 버튼."""
        community_data, courses_data = await asyncio.gather(
            self.api.get_community(community_id),
            self.api.list_community_courses(community_id),
        )
        courses = [CourseView.from_api(c) for c in courses_data]
        return CourseListPage(
            community=Community.from_api(community_data),
            courses=progress.courses_for_tab(courses, tab, user_id),
            tab=tab,
            can_create=permissions.is_owner_or_manager(community_data, user_id),
        )

    def _lesson(self, course: CourseView, lesson_id: str) -> Lesson:
        lesson = progress.find_lesson(course, lesson_id)
        if lesson is None:
            raise PortalError(ErrorCodes.LESSON_NOT_FOUND, course_id=course.id, lesson_id=lesson_id)
        return lesson

    async def open(
        self, course_id: str, lesson_id: str | None, user_id: str | None
    ) -> ViewerPage:
        """
        강의 열기.

        작성자/커뮤니티 소유자가 미등록 상태면 자동 등록 후 다시 조회한다.
        자동 등록 실패는 로그만 남긴다.
        """
        course = await self.fetch(course_id)
        auto_enrolled = False

        if progress.needs_auto_enroll(course, user_id):
            try:
                await self.api.enroll(course_id)
                course = await self.fetch(course_id)
                progress.mark_enrolled(course)
                auto_enrolled = True
                logger.info(f"Auto-enrolled owner/author {user_id} in course {course_id}")
            except BackendError as e:
                logger.warning(f"Auto-enroll failed for course {course_id}: {e}")

        accessible = progress.can_access(course, user_id)
        lesson = progress.initial_lesson(course, lesson_id) if accessible else None
        if lesson is not None and user_id:
            self.registry.start(user_id, lesson)

        return ViewerPage(
            course=course,
            lesson=lesson,
            progress=progress.calculate_progress(course),
            can_access=accessible,
            auto_enrolled=auto_enrolled,
        )

    async def enroll(self, course_id: str) -> ActionResult:
        try:
            await self.api.enroll(course_id)
        except BackendError as e:
            logger.warning(f"Enroll failed for course {course_id}: {e}")
            return ActionResult(ok=False, message=self._message(ENROLL_ERROR, e))
        return ActionResult(ok=True)

    async def unenroll(self, course_id: str) -> ActionResult:
        try:
            await self.api.unenroll(course_id)
        except BackendError as e:
            logger.warning(f"Unenroll failed for course {course_id}: {e}")
            return ActionResult(ok=False, message=self._message(UNENROLL_ERROR, e))
        return ActionResult(ok=True)

    @staticmethod
    def _message(prefix: str, error: BackendError) -> str:
        if error.code == ErrorCodes.NETWORK_ERROR:
            return prefix
        return f"{prefix}: {error.message}"

    async def toggle_completion(self, course: CourseView, lesson_id: str) -> ActionResult:
        """
        레슨 완료 토글 (낙관적).

        Returns:
            ok=False면 course는 토글 이전 상태로 복구됨
        """
        self._lesson(course, lesson_id)
        snapshot = progress.apply_completion_toggle(course, lesson_id)
        try:
            if snapshot.was_completed:
                await self.api.uncomplete_lesson(lesson_id)
            else:
                await self.api.complete_lesson(lesson_id)
        except BackendError as e:
            logger.warning(f"Lesson completion toggle failed, reverting: {lesson_id}: {e}")
            progress.revert_completion(course, snapshot)
            return ActionResult(ok=False, data=self._progress_data(course, lesson_id))
        return ActionResult(ok=True, data=self._progress_data(course, lesson_id))

    @staticmethod
    def _progress_data(course: CourseView, lesson_id: str) -> dict[str, Any]:
        return {
            "lesson_id": lesson_id,
            "completed": progress.is_completed(course, lesson_id),
            "progress": progress.calculate_progress(course),
        }

    async def _auto_complete(self, course: CourseView, lesson: Lesson, user_id: str) -> bool:
        try:
            await self.api.complete_lesson(lesson.id)
        except BackendError as e:
            logger.warning(f"Auto-complete failed for lesson {lesson.id}: {e}")
            return False
        course.lesson_progress[lesson.id] = True
        if course.enrollment is not None:
            course.enrollment.progress = progress.calculate_progress(course)
        self.registry.reset(user_id, lesson.id)
        logger.info(f"Lesson auto-completed: {lesson.id} (user={user_id})")
        return True

    async def record_activity(
        self,
        course_id: str,
        lesson_id: str,
        user_id: str,
        event: dict[str, Any],
        now: float | None = None,
    ) -> ActionResult:
        """
        열람 이벤트 반영 후 자동 완료 조건 확인.

        event["type"]:
        - video_ended
        - measure: scroll_height, client_height
        - scroll: scroll_height, scroll_top, client_height
        - link_clicked / image_viewed: index
        - tick: 체류 시간만 재확인
        """
        kind, values = _event_values(event)
        course = await self.fetch(course_id)
        lesson = self._lesson(course, lesson_id)
        tracker = self.registry.tracker(user_id, lesson)

        if kind == "video_ended":
            tracker.mark_video_ended()
        elif kind == "measure":
            tracker.measure_content(*values)
        elif kind == "scroll":
            tracker.on_scroll(*values)
        elif kind in ("link_clicked", "image_viewed"):
            mark = tracker.mark_link_clicked if kind == "link_clicked" else tracker.mark_image_viewed
            mark(values[0])

        now = self.registry.clock() if now is None else now
        completed = False
        if tracker.should_complete(
            now,
            enrolled=course.enrollment is not None,
            completed=progress.is_completed(course, lesson_id),
        ):
            completed = await self._auto_complete(course, lesson, user_id)

        return ActionResult(
            ok=True,
            data={
                **self._progress_data(course, lesson_id),
                "auto_completed": completed,
                "tracker": tracker.to_dict(),
            },
        )

    async def submit_quiz_answer(
        self,
        course_id: str,
        lesson_id: str,
        user_id: str,
        question_id: str,
        option_ids: list[str],
    ) -> ActionResult:
        """
        퀴즈 문항 제출.

        모든 문항을 맞히면 레슨을 완료 처리한다 (등록자, 미완료일 때).
        """
        course = await self.fetch(course_id)
        lesson = self._lesson(course, lesson_id)
        if lesson.lesson_type != LESSON_TYPE_QUIZ:
            raise PortalError(ErrorCodes.LESSON_NOT_FOUND, lesson_id=lesson_id, reason="not a quiz")

        session = self.registry.quiz_session(user_id, lesson)
        question = next((q for q in session.questions if q.id == question_id), None)
        if question is not None and question_id not in session.submitted:
            session.answers[question_id] = set()
            selected = option_ids[:1] if question.question_type == QUESTION_RADIO else option_ids
            for option_id in dict.fromkeys(selected):
                session.select(question_id, option_id)

        all_correct = session.submit(question_id)
        completed = False
        if (
            all_correct
            and course.enrollment is not None
            and not progress.is_completed(course, lesson_id)
        ):
            completed = await self._auto_complete(course, lesson, user_id)

        return ActionResult(
            ok=True,
            data={
                **self._progress_data(course, lesson_id),
                "question_id": question_id,
                "correct": session.submitted.get(question_id),
                "quiz": session.to_dict(),
                "auto_completed": completed,
            },
        )

    def retry_quiz_question(self, user_id: str, lesson_id: str, question_id: str) -> bool:
        """오답 문항만 다시 풀 수 있다."""
        session = self.registry.find_quiz_session(user_id, lesson_id)
        return session is not None and session.retry(question_id)

    async def delete_course(self, course_id: str) -> ActionResult:
        try:
            await self.api.delete_course(course_id)
        except BackendError as e:
            logger.error(f"Failed to delete course {course_id}: {e}", exc_info=True)
            return ActionResult(ok=False, message=e.message)
        logger.info(f"Course deleted: {course_id}")
        return ActionResult(ok=True)

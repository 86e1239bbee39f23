"""
Course viewer progress: 진행률 계산, 낙관적 완료 토글, 자동 완료 추적.

자동 완료 조건 (모두 충족):
- 등록된 사용자, 아직 완료되지 않은 레슨
- 레슨을 연 지 MIN_DWELL_SECONDS 이상 경과
- 영상이 있으면 재생 종료
- 텍스트가 있으면 끝까지 스크롤 (스크롤이 필요 없으면 읽은 것으로 간주)
- 링크가 있으면 모두 클릭
- 이미지가 있으면 모두 열람
- 콘텐츠 타입이 최소 하나 존재
"""

import logging
import math
from dataclasses import dataclass, field

from src.domain.constants import (
    CONTENT_IMAGES,
    CONTENT_LINKS,
    CONTENT_TEXT,
    CONTENT_VIDEO,
    COURSE_TAB_COMPLETED,
    COURSE_TAB_IN_PROGRESS,
    DEFAULT_CONTENT_ORDER,
    MIN_DWELL_SECONDS,
    SCROLL_THRESHOLD_PX,
    YOUTUBE_ID_RE,
)
from src.domain.schemas import Chapter, CourseView, Enrollment, Lesson

logger = logging.getLogger(__name__)


# =============================================================================
# Progress
# =============================================================================

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_progress(course: CourseView) -> int:
    """완료 레슨 비율 (0..100, 반올림)."""
    total = len(course.all_lessons())
    if total == 0:
        return 0
    completed = sum(1 for done in course.lesson_progress.values() if done)
    return _round_half_up(completed / total * 100)


def chapter_completion(course: CourseView, chapter: Chapter) -> tuple[int, int]:
    """챕터별 (완료 수, 전체 수)."""
    total = len(chapter.lessons)
    completed = sum(1 for lesson in chapter.lessons if course.lesson_progress.get(lesson.id))
    return completed, total


def is_completed(course: CourseView, lesson_id: str) -> bool:
    return bool(course.lesson_progress.get(lesson_id))


@dataclass
class CompletionSnapshot:
    """낙관적 토글 이전 상태 (롤백용)."""
    lesson_id: str
    was_completed: bool
    progress: int | None


def apply_completion_toggle(course: CourseView, lesson_id: str) -> CompletionSnapshot:
    """
    레슨 완료 상태를 즉시 뒤집고 등록 진행률을 다시 계산.

    Returns:
        롤백에 필요한 이전 상태
    """
    snapshot = CompletionSnapshot(
        lesson_id=lesson_id,
        was_completed=is_completed(course, lesson_id),
        progress=course.enrollment.progress if course.enrollment else None,
    )
    course.lesson_progress[lesson_id] = not snapshot.was_completed
    if course.enrollment is not None:
        course.enrollment.progress = calculate_progress(course)
    return snapshot


def revert_completion(course: CourseView, snapshot: CompletionSnapshot) -> None:
    course.lesson_progress[snapshot.lesson_id] = snapshot.was_completed
    if course.enrollment is not None and snapshot.progress is not None:
        course.enrollment.progress = snapshot.progress


# =============================================================================
# Access / Navigation
# =============================================================================

def find_lesson(course: CourseView, lesson_id: str) -> Lesson | None:
    for chapter in course.chapters:
        for lesson in chapter.lessons:
            if lesson.id == lesson_id:
                return lesson
    return None


def is_owner_or_author(course: CourseView, user_id: str | None) -> bool:
    if not user_id:
        return False
    return user_id in (course.author_id, course.community_owner_id)


def can_access(course: CourseView, user_id: str | None) -> bool:
    """레슨 열람 가능: 등록자, 작성자, 커뮤니티 소유자."""
    return course.enrollment is not None or is_owner_or_author(course, user_id)


def initial_lesson(course: CourseView, lesson_id: str | None = None) -> Lesson | None:
    """URL의 레슨 → 없으면 첫 챕터의 첫 레슨."""
    if lesson_id:
        lesson = find_lesson(course, lesson_id)
        if lesson is not None:
            return lesson
    if course.chapters and course.chapters[0].lessons:
        return course.chapters[0].lessons[0]
    return None


def needs_auto_enroll(course: CourseView, user_id: str | None) -> bool:
    return course.enrollment is None and is_owner_or_author(course, user_id)


def mark_enrolled(course: CourseView) -> None:
    if course.enrollment is None:
        course.enrollment = Enrollment(progress=calculate_progress(course))


# =============================================================================
# Course list (강의 목록)
# =============================================================================

def courses_for_tab(
    courses: list[CourseView], tab: str, user_id: str | None
) -> list[CourseView]:
    """
    강의 목록 탭 필터.

    - all: 공개된 강의 + 내가 쓴 비공개 강의
    - in-progress: 등록했고 아직 완료 안 됨
    - completed: 완료됨
    """
    if tab == COURSE_TAB_IN_PROGRESS:
        return [c for c in courses if c.enrollment and not c.enrollment.completed_at]
    if tab == COURSE_TAB_COMPLETED:
        return [c for c in courses if c.enrollment and c.enrollment.completed_at]
    return [c for c in courses if c.is_published or (user_id and c.author_id == user_id)]


# =============================================================================
# YouTube
# =============================================================================

def youtube_video_id(url: str | None) -> str | None:
    if not url:
        return None
    match = YOUTUBE_ID_RE.search(url)
    return match.group(1) if match else None


def youtube_embed_url(url: str, origin: str = "") -> str:
    """임베드 URL. 유튜브가 아니면 원래 URL."""
    video_id = youtube_video_id(url)
    if video_id is None:
        return url
    return (
        f"https://www.youtube.com/embed/{video_id}"
        f"?enablejsapi=1&rel=0&modestbranding=1&autoplay=1&origin={origin}"
    )


def youtube_thumbnail(url: str | None) -> str | None:
    video_id = youtube_video_id(url)
    return f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg" if video_id else None


def ordered_content_types(lesson: Lesson) -> list[str]:
    """content_order 순서대로, 실제로 있는 콘텐츠만."""
    present = {
        CONTENT_VIDEO: lesson.has_video,
        CONTENT_TEXT: lesson.has_text,
        CONTENT_IMAGES: bool(lesson.images),
        CONTENT_LINKS: bool(lesson.links),
    }
    order = lesson.content_order or list(DEFAULT_CONTENT_ORDER)
    return [item for item in order if present.get(item)]


# =============================================================================
# Auto-Complete Tracker
# =============================================================================

@dataclass
class AutoCompleteTracker:
    """
    열린 레슨 하나의 소비 신호.

    시간은 호출자가 넘기는 초 단위 값 (time.monotonic 등).
    """
    lesson: Lesson
    started_at: float
    min_dwell: float = MIN_DWELL_SECONDS
    scroll_threshold: int = SCROLL_THRESHOLD_PX
    video_ended: bool = False
    scrolled_to_bottom: bool = False
    needs_scroll: bool = False
    clicked_links: set[int] = field(default_factory=set)
    viewed_images: set[int] = field(default_factory=set)

    # === 신호 ===

    def mark_video_ended(self) -> None:
        self.video_ended = True

    def measure_content(self, scroll_height: int, client_height: int) -> None:
        """콘텐츠 영역 측정. 스크롤이 필요 없으면 읽은 것으로 처리."""
        self.needs_scroll = scroll_height > client_height + self.scroll_threshold
        if not self.needs_scroll:
            self.scrolled_to_bottom = True

    def on_scroll(self, scroll_height: int, scroll_top: int, client_height: int) -> None:
        if scroll_height - scroll_top <= client_height + self.scroll_threshold:
            self.scrolled_to_bottom = True

    def mark_link_clicked(self, index: int) -> None:
        if 0 <= index < len(self.lesson.links):
            self.clicked_links.add(index)

    def mark_image_viewed(self, index: int) -> None:
        if 0 <= index < len(self.lesson.images):
            self.viewed_images.add(index)

    # === 판정 ===

    @property
    def has_any_content(self) -> bool:
        return bool(
            self.lesson.video_url
            or self.lesson.content
            or self.lesson.links
            or self.lesson.images
        )

    def is_satisfied(self, now: float) -> bool:
        if now - self.started_at < self.min_dwell:
            return False

        video_done = not self.lesson.video_url or self.video_ended
        text_done = not self.lesson.content or self.scrolled_to_bottom or not self.needs_scroll
        links_done = len(self.clicked_links) >= len(self.lesson.links)
        images_done = len(self.viewed_images) >= len(self.lesson.images)

        return (
            video_done and text_done and links_done and images_done and self.has_any_content
        )

    def should_complete(self, now: float, enrolled: bool, completed: bool) -> bool:
        if not enrolled or completed:
            return False
        return self.is_satisfied(now)

    def to_dict(self) -> dict[str, object]:
        return {
            "lesson_id": self.lesson.id,
            "video_ended": self.video_ended,
            "scrolled_to_bottom": self.scrolled_to_bottom,
            "needs_scroll": self.needs_scroll,
            "clicked_links": sorted(self.clicked_links),
            "viewed_images": sorted(self.viewed_images),
        }

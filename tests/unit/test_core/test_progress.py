"""
Viewer progress tests.

테스트 케이스:
1. 진행률 반올림, 챕터별 완료 수
2. 낙관적 완료 토글 + 롤백
3. 접근 권한, 첫 레슨 선택, 자동 등록 대상
4. 유튜브 URL 처리
5. 자동 완료 추적 (체류 시간, 영상, 스크롤, 링크, 이미지)
"""

import pytest

from src.core import progress
from src.domain.schemas import CourseView, Lesson


@pytest.fixture
def course(course_data) -> CourseView:
    return CourseView.from_api(course_data)


class TestProgress:
    """진행률."""

    def test_calculate_progress_rounds(self, course):
        assert progress.calculate_progress(course) == 33

        course.lesson_progress["l2"] = True
        assert progress.calculate_progress(course) == 67

    def test_empty_course(self):
        assert progress.calculate_progress(CourseView(id="x", title="t")) == 0

    def test_chapter_completion(self, course):
        assert progress.chapter_completion(course, course.chapters[0]) == (1, 2)
        assert progress.chapter_completion(course, course.chapters[1]) == (0, 1)

    def test_toggle_and_revert(self, course):
        snapshot = progress.apply_completion_toggle(course, "l2")

        assert course.lesson_progress["l2"] is True
        assert course.enrollment.progress == 67

        progress.revert_completion(course, snapshot)

        assert course.lesson_progress["l2"] is False
        assert course.enrollment.progress == 33

    def test_toggle_completed_lesson_uncompletes(self, course):
        progress.apply_completion_toggle(course, "l1")

        assert progress.is_completed(course, "l1") is False
        assert course.enrollment.progress == 0


class TestAccess:
    """접근/탐색."""

    def test_enrolled_user_can_access(self, course):
        assert progress.can_access(course, "someone") is True

    def test_unenrolled_access_by_role(self, course):
        course.enrollment = None

        assert progress.can_access(course, "someone") is False
        assert progress.can_access(course, "author-1") is True
        assert progress.can_access(course, "owner-1") is True
        assert progress.can_access(course, None) is False

    def test_needs_auto_enroll(self, course):
        assert progress.needs_auto_enroll(course, "author-1") is False

        course.enrollment = None
        assert progress.needs_auto_enroll(course, "author-1") is True
        assert progress.needs_auto_enroll(course, "someone") is False

    def test_mark_enrolled_uses_current_progress(self, course):
        course.enrollment = None
        progress.mark_enrolled(course)
        assert course.enrollment.progress == 33

    def test_initial_lesson(self, course):
        assert progress.initial_lesson(course).id == "l1"
        assert progress.initial_lesson(course, "l3").id == "l3"
        assert progress.initial_lesson(course, "missing").id == "l1"
        assert progress.initial_lesson(CourseView(id="x", title="t")) is None


class TestYoutube:
    """유튜브 URL."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
        ],
    )
    def test_video_id(self, url):
        assert progress.youtube_video_id(url) == "dQw4w9WgXcQ"

    def test_not_youtube(self):
        assert progress.youtube_video_id("https://vimeo.com/123") is None
        assert progress.youtube_embed_url("https://vimeo.com/123") == "https://vimeo.com/123"
        assert progress.youtube_thumbnail(None) is None

    def test_embed_url(self):
        url = progress.youtube_embed_url("https://youtu.be/dQw4w9WgXcQ", origin="http://x")
        assert url.startswith("https://www.youtube.com/embed/dQw4w9WgXcQ?enablejsapi=1")
        assert url.endswith("origin=http://x")

    def test_ordered_content_types(self, course):
        lesson = course.chapters[0].lessons[1]
        assert progress.ordered_content_types(lesson) == ["video", "links"]


class TestAutoCompleteTracker:
    """자동 완료 추적."""

    def test_text_only_needs_dwell(self):
        tracker = progress.AutoCompleteTracker(Lesson(id="l", title="t", content="short"), 100.0)
        tracker.measure_content(scroll_height=300, client_height=500)

        assert tracker.is_satisfied(104.9) is False
        assert tracker.is_satisfied(105.0) is True

    def test_long_text_needs_scroll(self):
        tracker = progress.AutoCompleteTracker(Lesson(id="l", title="t", content="long"), 0.0)
        tracker.measure_content(scroll_height=2000, client_height=500)
        assert tracker.is_satisfied(10.0) is False

        tracker.on_scroll(scroll_height=2000, scroll_top=1000, client_height=500)
        assert tracker.is_satisfied(10.0) is False

        tracker.on_scroll(scroll_height=2000, scroll_top=1460, client_height=500)
        assert tracker.is_satisfied(10.0) is True

    def test_video_must_end(self):
        tracker = progress.AutoCompleteTracker(
            Lesson(id="l", title="t", video_url="https://youtu.be/dQw4w9WgXcQ"), 0.0
        )
        assert tracker.is_satisfied(60.0) is False

        tracker.mark_video_ended()
        assert tracker.is_satisfied(60.0) is True

    def test_all_links_and_images(self):
        lesson = Lesson(
            id="l", title="t", links=["https://a.com", "https://b.com"], images=["/1.jpg"]
        )
        tracker = progress.AutoCompleteTracker(lesson, 0.0)
        tracker.mark_link_clicked(0)
        tracker.mark_link_clicked(7)
        tracker.mark_image_viewed(0)
        assert tracker.is_satisfied(10.0) is False

        tracker.mark_link_clicked(1)
        assert tracker.is_satisfied(10.0) is True
        assert tracker.to_dict()["clicked_links"] == [0, 1]

    def test_empty_lesson_never_completes(self):
        tracker = progress.AutoCompleteTracker(Lesson(id="l", title="t"), 0.0)
        assert tracker.has_any_content is False
        assert tracker.is_satisfied(100.0) is False

    def test_should_complete_requires_enrollment(self):
        tracker = progress.AutoCompleteTracker(Lesson(id="l", title="t", content="x"), 0.0)

        assert tracker.should_complete(10.0, enrolled=False, completed=False) is False
        assert tracker.should_complete(10.0, enrolled=True, completed=True) is False
        assert tracker.should_complete(10.0, enrolled=True, completed=False) is True

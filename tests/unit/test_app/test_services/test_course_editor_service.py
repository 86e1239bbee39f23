"""
CourseEditorService tests.

테스트 케이스:
1. 생성 모드 드래프트 (챕터 1 + 레슨 1)
2. 이미지 첨부: 압축, 레슨당 한도, 커버 교체
3. create: 검증 실패, 코스 → 챕터 → 레슨 순서 호출
4. save: 삭제/생성/수정 반영, 항상 isPublished=true
5. 레슨 이미지 업로드 실패는 건너뜀
"""

from urllib.parse import parse_qs

import httpx
import pytest

from src.app.services.course_editor import CourseEditorService
from src.core import editor_state
from src.core.images import ImagePayload
from src.core.storage import DraftStore
from src.domain.errors import FormValidationError


def _jpeg(name: str = "photo.jpg") -> ImagePayload:
    return ImagePayload(name, "image/jpeg", b"\xff\xd8\xff\xe0small-jpeg")


@pytest.fixture
def drafts(tmp_path) -> DraftStore:
    return DraftStore(tmp_path)


@pytest.fixture
def service(api, drafts) -> CourseEditorService:
    return CourseEditorService(api, drafts)


def _fill_valid(draft) -> None:
    form = draft.form
    form.title = "קורס חדש"
    form.chapters[0].lessons[0].content = "תוכן"


class TestDraftLifecycle:
    def test_new_form(self, service, drafts):
        draft = service.new_form("comm-1", owner_id="user-1")

        assert draft.form.community_id == "comm-1"
        assert draft.form.is_create is True
        assert [c.title for c in draft.form.chapters] == ["פרק 1"]
        assert [lesson.title for lesson in draft.form.chapters[0].lessons] == ["שיעור 1"]
        assert drafts.load(draft.draft_id, owner_id="user-1").form.community_id == "comm-1"

    @pytest.mark.asyncio
    async def test_load_existing_course(self, service, backend, course_data):
        backend.on("GET", "/courses/c1", body=course_data)

        draft = await service.load("c1", owner_id="user-1")

        assert draft.form.id == "c1"
        assert len(draft.form.chapters) == 2


class TestImages:
    def test_attach_images_respects_limit(self, service, drafts):
        draft = service.new_form("comm-1", owner_id="user-1")
        draft.form.chapters[0].lessons[0].images = ["/1.jpg", "/2.jpg", "/3.jpg", "/4.jpg", "/5.jpg"]

        accepted = service.attach_images(draft, 0, 0, [_jpeg("a.jpg"), _jpeg("b.jpg")])

        assert [img.filename for img in accepted] == ["a.jpg"]
        stored = list((drafts.root / draft.draft_id / "images").iterdir())
        assert len(stored) == 1
        reloaded = drafts.load(draft.draft_id)
        assert len(reloaded.form.chapters[0].lessons[0].pending_images) == 1

    def test_replacing_cover_discards_previous_file(self, service, drafts):
        draft = service.new_form("comm-1", owner_id="user-1")

        first = service.attach_cover(draft, _jpeg("one.jpg"))
        second = service.attach_cover(draft, _jpeg("two.jpg"))

        images_dir = drafts.root / draft.draft_id / "images"
        assert [p.name for p in images_dir.iterdir()] == [second.stored_name]
        assert first.stored_name != second.stored_name
        assert draft.form.new_image == second

    def test_discard_pending_image(self, service, drafts):
        draft = service.new_form("comm-1", owner_id="user-1")
        service.attach_images(draft, 0, 0, [_jpeg()])

        assert service.discard_pending_image(draft, 0, 0, 0) is True
        assert service.discard_pending_image(draft, 0, 0, 0) is False
        assert list((drafts.root / draft.draft_id / "images").iterdir()) == []


class TestCreate:
    @pytest.mark.asyncio
    async def test_validation_errors(self, service, backend):
        draft = service.new_form("comm-1", owner_id="user-1")

        with pytest.raises(FormValidationError) as exc_info:
            await service.create(draft)

        assert list(exc_info.value.errors) == ["title", "image", "lesson_0_0_content"]
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_create_calls_in_order(self, service, backend, drafts):
        backend.on("POST", "/courses", body={"id": "new-1"})
        backend.on("POST", "/courses/new-1/chapters", body={"id": "ch-new"})
        backend.on("POST", "/courses/chapters/ch-new/lessons", body={"id": "l-new"})
        draft = service.new_form("comm-1", owner_id="user-1")
        _fill_valid(draft)
        service.attach_cover(draft, _jpeg("cover.jpg"))

        course = await service.create(draft)

        assert course["id"] == "new-1"
        assert [r.url.path for r in backend.requests] == [
            "/courses",
            "/courses/new-1/chapters",
            "/courses/chapters/ch-new/lessons",
        ]
        assert b'filename="cover.jpg"' in backend.requests[0].content
        assert backend.json_body(backend.requests[1]) == {"title": "פרק 1", "order": 0}
        lesson_body = backend.json_body(backend.requests[2])
        assert lesson_body["content"] == "תוכן"
        assert lesson_body["quiz"] is None
        assert drafts.list_drafts() == []

    @pytest.mark.asyncio
    async def test_pending_lesson_images_are_uploaded(self, service, backend):
        urls = iter(["/uploads/a.jpg", "/uploads/b.jpg"])
        backend.on("POST", "/courses", body={"id": "new-1"})
        backend.on("POST", "/courses/new-1/chapters", body={"id": "ch-new"})
        backend.on("POST", "/courses/chapters/ch-new/lessons", body={"id": "l-new"})
        backend.on_call(
            "POST",
            "/courses/lessons/upload-image",
            lambda request: httpx.Response(200, json={"url": next(urls)}),
        )
        draft = service.new_form("comm-1", owner_id="user-1")
        _fill_valid(draft)
        service.attach_cover(draft, _jpeg("cover.jpg"))
        service.attach_images(draft, 0, 0, [_jpeg("a.jpg"), _jpeg("b.jpg")])

        await service.create(draft)

        lesson_request = backend.calls("POST", "/courses/chapters/ch-new/lessons")[0]
        assert backend.json_body(lesson_request)["images"] == ["/uploads/a.jpg", "/uploads/b.jpg"]

    @pytest.mark.asyncio
    async def test_failed_image_upload_is_skipped(self, service, backend):
        backend.on("POST", "/courses", body={"id": "new-1"})
        backend.on("POST", "/courses/new-1/chapters", body={"id": "ch-new"})
        backend.on("POST", "/courses/chapters/ch-new/lessons", body={"id": "l-new"})
        backend.on("POST", "/courses/lessons/upload-image", status=500, body={"message": "disk"})
        draft = service.new_form("comm-1", owner_id="user-1")
        _fill_valid(draft)
        service.attach_cover(draft, _jpeg("cover.jpg"))
        service.attach_images(draft, 0, 0, [_jpeg("a.jpg")])

        await service.create(draft)

        lesson_request = backend.calls("POST", "/courses/chapters/ch-new/lessons")[0]
        assert backend.json_body(lesson_request)["images"] == []


class TestSave:
    @pytest.mark.asyncio
    async def test_save_applies_changes(self, service, backend, course_data, drafts):
        backend.on("GET", "/courses/c1", body=course_data)
        backend.on("PATCH", "/courses/c1", body={"id": "c1"})
        backend.on("DELETE", "/courses/chapters/ch2")
        backend.on("PATCH", "/courses/chapters/ch1", body={"id": "ch1"})
        backend.on("PATCH", "/courses/lessons/l1", body={"id": "l1"})
        backend.on("DELETE", "/courses/lessons/l2")
        backend.on("POST", "/courses/chapters/ch1/lessons", body={"id": "l-new"})
        backend.on("POST", "/courses/c1/chapters", body={"id": "ch-new"})
        backend.on("POST", "/courses/chapters/ch-new/lessons", body={"id": "l-new2"})

        draft = await service.load("c1", owner_id="author-1")
        form = draft.form
        editor_state.remove_chapter(form, 1)
        editor_state.remove_lesson(form, 0, 1)
        new_lesson = editor_state.add_lesson(form, 0)
        new_lesson.content = "חדש"
        editor_state.add_chapter(form)
        editor_state.add_lesson(form, 2).content = "עוד"
        backend.requests.clear()

        await service.save(draft)

        calls = [(r.method, r.url.path) for r in backend.requests]
        assert calls == [
            ("PATCH", "/courses/c1"),
            ("PATCH", "/courses/chapters/ch1"),
            ("PATCH", "/courses/lessons/l1"),
            ("DELETE", "/courses/lessons/l2"),
            ("POST", "/courses/chapters/ch1/lessons"),
            ("DELETE", "/courses/chapters/ch2"),
            ("POST", "/courses/c1/chapters"),
            ("POST", "/courses/chapters/ch-new/lessons"),
        ]
        patch_fields = parse_qs(backend.requests[0].content.decode())
        assert patch_fields["isPublished"] == ["true"]
        assert drafts.list_drafts() == []

    @pytest.mark.asyncio
    async def test_save_edit_does_not_require_cover(self, service, backend, course_data):
        course_data["image"] = None
        course_data["chapters"] = course_data["chapters"][:1]
        backend.on("GET", "/courses/c1", body=course_data)
        backend.on("PATCH", "/courses/c1", body={"id": "c1"})
        backend.on("PATCH", "/courses/chapters/ch1", body={})
        backend.on("PATCH", "/courses/lessons/l1", body={})
        backend.on("PATCH", "/courses/lessons/l2", body={})

        draft = await service.load("c1", owner_id="author-1")
        result = await service.save(draft)

        assert result == {"id": "c1"}

    @pytest.mark.asyncio
    async def test_save_keeps_draft_on_validation_error(self, service, backend, course_data, drafts):
        backend.on("GET", "/courses/c1", body=course_data)
        draft = await service.load("c1", owner_id="author-1")
        draft.form.title = ""

        with pytest.raises(FormValidationError) as exc_info:
            await service.save(draft)

        assert "title" in exc_info.value.errors
        assert drafts.list_drafts() != []

"""
Course Editor Service: 편집 상태(CourseForm) → 백엔드 반영.

흐름:
1. load / new_form → DraftStore에 드래프트 생성
2. 편집 연산은 core.editor_state 리듀서 (라우트에서 apply_operation)
3. attach_images: 압축 후 드래프트 폴더에 대기 이미지 저장
4. create / save: 검증 → 코스 → 챕터 → 레슨 순서로 API 호출

이미지 업로드 실패는 로그만 남기고 해당 이미지를 건너뛴다.
"""

import logging
from typing import Any

from src.app.backend import BackendError, KibutzAPIClient
from src.core import editor_state
from src.core.images import CompressionOptions, ImagePayload, compress_image
from src.core.storage import Draft, DraftStore
from src.domain.errors import FormValidationError
from src.domain.schemas import ChapterForm, CourseForm, LessonForm, PendingImage

logger = logging.getLogger(__name__)


class CourseEditorService:
    """강의 생성/편집 저장."""

    def __init__(
        self,
        api: KibutzAPIClient,
        drafts: DraftStore,
        compression: CompressionOptions | None = None,
    ) -> None:
        self.api = api
        self.drafts = drafts
        self.compression = compression or CompressionOptions()

    # =========================================================================
    # Draft lifecycle
    # =========================================================================

    async def load(self, course_id: str, owner_id: str) -> Draft:
        """기존 강의를 편집용 드래프트로 불러오기."""
        data = await self.api.get_course(course_id)
        form = editor_state.course_form_from_api(data)
        return self.drafts.create(form, owner_id)

    def new_form(self, community_id: str, owner_id: str) -> Draft:
        """생성 모드: 빈 폼에 챕터 1개 + 레슨 1개."""
        form = CourseForm(community_id=community_id)
        editor_state.add_chapter(form)
        editor_state.add_lesson(form, 0)
        return self.drafts.create(form, owner_id)

    def _store(self, draft: Draft, upload: ImagePayload) -> PendingImage:
        compressed = compress_image(upload, self.compression)
        return self.drafts.save_image(
            draft.draft_id, compressed.filename, compressed.content_type, compressed.data
        )

    def attach_images(
        self, draft: Draft, ci: int, li: int, uploads: list[ImagePayload]
    ) -> list[PendingImage]:
        """
        레슨 이미지 첨부.

        Returns:
            실제로 추가된 대기 이미지 (레슨당 6개 초과분 제외)
        """
        lesson = editor_state.lesson_at(draft.form, ci, li)
        slots = editor_state.image_slots_left(lesson)
        stored = [self._store(draft, upload) for upload in uploads[:slots]]
        accepted = editor_state.add_pending_images(draft.form, ci, li, stored)
        self.drafts.save(draft)
        return accepted

    def attach_cover(self, draft: Draft, upload: ImagePayload) -> PendingImage:
        previous = draft.form.new_image
        image = self._store(draft, upload)
        editor_state.set_cover_image(draft.form, image)
        if previous is not None:
            self.drafts.discard_image(draft.draft_id, previous)
        self.drafts.save(draft)
        return image

    def discard_pending_image(self, draft: Draft, ci: int, li: int, index: int) -> bool:
        removed = editor_state.remove_pending_image(draft.form, ci, li, index)
        if removed is None:
            return False
        self.drafts.discard_image(draft.draft_id, removed)
        self.drafts.save(draft)
        return True

    def _payload(self, draft_id: str, image: PendingImage) -> ImagePayload:
        return ImagePayload(
            filename=image.filename,
            content_type=image.content_type,
            data=self.drafts.read_image(draft_id, image),
        )

    # =========================================================================
    # Create
    # =========================================================================

    async def create(self, draft: Draft) -> dict[str, Any]:
        """
        새 강의 생성.

        Returns:
            POST /courses 응답 (id 포함)

        Raises:
            FormValidationError: 검증 실패 (커버 이미지 필수)
            BackendError: 코스/챕터/레슨 생성 실패
        """
        form = draft.form
        errors = editor_state.validate_course_form(form, require_image=True)
        if errors:
            raise FormValidationError(errors, draft_id=draft.draft_id)

        cover = self._payload(draft.draft_id, form.new_image) if form.new_image else None
        course = await self.api.create_course(
            title=form.title,
            description=form.description,
            community_id=form.community_id or "",
            image=cover,
        )
        course_id = course["id"]
        logger.info(f"Course created: {course_id} (draft={draft.draft_id})")

        for chapter in form.visible_chapters():
            await self._create_chapter(draft.draft_id, course_id, chapter)

        self.drafts.delete(draft.draft_id)
        return course

    # =========================================================================
    # Save (edit mode)
    # =========================================================================

    async def save(self, draft: Draft) -> dict[str, Any]:
        """
        기존 강의 저장.

        코스는 항상 isPublished=true로 PATCH.
        챕터/레슨은 삭제 → 생성 → 수정을 목록 순서대로 반영.
        """
        form = draft.form
        if form.id is None:
            return await self.create(draft)

        errors = editor_state.validate_course_form(form)
        if errors:
            raise FormValidationError(errors, draft_id=draft.draft_id)

        cover = self._payload(draft.draft_id, form.new_image) if form.new_image else None
        course = await self.api.update_course(
            form.id,
            {"title": form.title, "description": form.description, "isPublished": "true"},
            image=cover,
        )

        for chapter in form.chapters:
            if chapter.is_deleted:
                if chapter.id:
                    await self.api.delete_chapter(chapter.id)
                continue
            if chapter.is_new or not chapter.id:
                await self._create_chapter(draft.draft_id, form.id, chapter)
                continue

            await self.api.update_chapter(chapter.id, chapter.title, chapter.order)
            for lesson in chapter.lessons:
                if lesson.is_deleted:
                    if lesson.id:
                        await self.api.delete_lesson(lesson.id)
                    continue
                payload = await self._lesson_body(draft.draft_id, lesson)
                if lesson.is_new or not lesson.id:
                    await self.api.create_lesson(chapter.id, payload)
                else:
                    await self.api.update_lesson(lesson.id, payload)

        logger.info(f"Course saved: {form.id} (draft={draft.draft_id})")
        self.drafts.delete(draft.draft_id)
        return course

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _create_chapter(self, draft_id: str, course_id: str, chapter: ChapterForm) -> str:
        created = await self.api.create_chapter(course_id, chapter.title, chapter.order)
        chapter_id: str = created["id"]
        for lesson in chapter.visible_lessons():
            payload = await self._lesson_body(draft_id, lesson)
            await self.api.create_lesson(chapter_id, payload)
        return chapter_id

    async def _lesson_body(self, draft_id: str, lesson: LessonForm) -> dict[str, Any]:
        images = list(lesson.images)
        images.extend(await self._upload_pending(draft_id, lesson))
        return editor_state.lesson_payload(lesson, images)

    async def _upload_pending(self, draft_id: str, lesson: LessonForm) -> list[str]:
        urls: list[str] = []
        for image in lesson.pending_images:
            try:
                payload = self._payload(draft_id, image)
                urls.append(await self.api.upload_lesson_image(payload))
            except (BackendError, OSError) as e:
                logger.warning(f"Lesson image upload skipped: {image.filename}: {e}")
        return urls

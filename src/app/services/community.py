"""
Community Service: 커뮤니티 관리 화면 (설정, 규칙, 슬러그, 삭제).

권한: membership.canEdit가 아니면 관리 화면 진입 불가.
"""

import logging
from dataclasses import dataclass, field

from src.app.backend import BackendError, KibutzAPIClient
from src.app.backend.base import FileField, file_field
from src.app.backend.client import json_field
from src.core.images import CompressionOptions, ImagePayload, compress_image
from src.core.validation import sanitize_slug, validate_community_settings, validate_slug
from src.domain.errors import ErrorCodes, FormValidationError, PortalError
from src.domain.schemas import Community, CommunitySettingsForm, Membership

logger = logging.getLogger(__name__)

SETTINGS_SAVED = "הקהילה עודכנה בהצלחה!"
SETTINGS_ERROR = "שגיאה בעדכון הקהילה"
SLUG_TAKEN = "הכתובת הזו כבר תפוסה"
SLUG_SAVED = "הכתובת עודכנה בהצלחה!"
SLUG_ERROR = "שגיאה בעדכון הכתובת"


@dataclass
class SettingsUploads:
    """관리 폼에서 새로 올린 파일."""
    logo: ImagePayload | None = None
    image: ImagePayload | None = None
    gallery_images: list[ImagePayload] = field(default_factory=list)


@dataclass
class ManagePage:
    community: Community
    membership: Membership
    form: CommunitySettingsForm


def settings_fields(form: CommunitySettingsForm) -> dict[str, str]:
    """
    PUT /communities/{id} multipart 텍스트 필드.

    기존 파일은 경로로 유지, 제거는 remove* 플래그. 빈 가격은 무료("0").
    """
    fields = {
        "name": form.name.strip(),
        "description": form.description.strip(),
        "youtubeUrl": form.youtube_url,
        "whatsappUrl": form.whatsapp_url,
        "facebookUrl": form.facebook_url,
        "instagramUrl": form.instagram_url,
        "price": form.price.strip() or "0",
        "existingGalleryImages": json_field(form.existing_gallery_images),
        "existingGalleryVideos": json_field(form.existing_gallery_videos),
    }
    if form.topic:
        fields["topic"] = form.topic
    if form.remove_logo:
        fields["removeLogo"] = "true"
    elif form.existing_logo:
        fields["existingLogo"] = form.existing_logo
    if form.remove_image:
        fields["removeImage"] = "true"
    elif form.existing_image:
        fields["existingPrimaryImage"] = form.existing_image
    return fields


class CommunityService:
    """커뮤니티 관리."""

    def __init__(self, api: KibutzAPIClient, compression: CompressionOptions | None = None) -> None:
        self.api = api
        self.compression = compression or CompressionOptions()

    async def load_for_manage(self, community_id: str) -> ManagePage:
        """
        Raises:
            PortalError: 편집 권한 없음 (FORBIDDEN)
        """
        membership = Membership.from_api(await self.api.get_membership(community_id))
        if not membership.can_edit:
            raise PortalError(ErrorCodes.FORBIDDEN, community_id=community_id)

        community = Community.from_api(await self.api.get_community(community_id))
        return ManagePage(
            community=community,
            membership=membership,
            form=CommunitySettingsForm.from_community(community),
        )

    def _files(self, uploads: SettingsUploads) -> list[FileField]:
        files: list[FileField] = []
        if uploads.logo is not None:
            files.append(file_field("logo", compress_image(uploads.logo, self.compression)))
        if uploads.image is not None:
            files.append(file_field("image", compress_image(uploads.image, self.compression)))
        for image in uploads.gallery_images:
            files.append(file_field("galleryImages", compress_image(image, self.compression)))
        return files

    async def save_settings(
        self,
        community_id: str,
        form: CommunitySettingsForm,
        uploads: SettingsUploads | None = None,
    ) -> str:
        """
        설정 저장: PUT 후 규칙 PATCH.

        규칙 저장 실패는 로그만 남기고 성공으로 처리한다.

        Returns:
            성공 메시지

        Raises:
            FormValidationError: 필수 필드 누락
            BackendError: PUT 실패
        """
        errors = validate_community_settings(form)
        if errors:
            raise FormValidationError(errors, community_id=community_id)

        files = self._files(uploads or SettingsUploads())
        await self.api.update_community(community_id, settings_fields(form), files)

        try:
            await self.api.update_rules(community_id, form.rules)
        except BackendError as e:
            logger.warning(f"Failed to save rules for community {community_id}: {e}")

        logger.info(f"Community settings saved: {community_id}")
        return SETTINGS_SAVED

    async def update_slug(self, community_id: str, raw_slug: str) -> str:
        """
        커스텀 URL 변경.

        Returns:
            적용된 슬러그

        Raises:
            FormValidationError: 형식 오류 또는 이미 사용 중 ({"slug": 메시지})
        """
        slug = sanitize_slug(raw_slug)
        message = validate_slug(slug)
        if message:
            raise FormValidationError({"slug": message}, community_id=community_id)

        if not await self.api.check_slug(slug, exclude_id=community_id):
            raise FormValidationError({"slug": SLUG_TAKEN}, community_id=community_id)

        try:
            await self.api.update_slug(community_id, slug)
        except BackendError as e:
            logger.error(f"Slug update failed for {community_id}: {e}", exc_info=True)
            raise FormValidationError(
                {"slug": e.message or SLUG_ERROR}, community_id=community_id
            ) from e

        logger.info(f"Community slug updated: {community_id} -> {slug}")
        return slug

    async def delete(self, community_id: str) -> None:
        await self.api.delete_community(community_id)
        logger.info(f"Community deleted: {community_id}")

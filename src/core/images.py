"""
Image compression before upload.

규칙:
- 500KB 미만, 이미지가 아닌 파일, GIF(애니메이션 보존)는 그대로
- 가로세로 비율 유지하며 max_width × max_height 안으로 축소
- JPEG(quality 85)로 재인코딩
- 결과가 원본보다 작지 않거나 디코딩 실패 시 원본 반환
"""

import io
import logging
from dataclasses import dataclass
from typing import Any

from PIL import Image, UnidentifiedImageError

from src.domain.constants import (
    IMAGE_JPEG_QUALITY,
    IMAGE_MAX_HEIGHT,
    IMAGE_MAX_WIDTH,
    IMAGE_SKIP_BELOW_BYTES,
)

logger = logging.getLogger(__name__)


@dataclass
class ImagePayload:
    """업로드 대상 파일 (이름, MIME, 바이트)."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class CompressionOptions:
    max_width: int = IMAGE_MAX_WIDTH
    max_height: int = IMAGE_MAX_HEIGHT
    quality: int = IMAGE_JPEG_QUALITY
    skip_below_bytes: int = IMAGE_SKIP_BELOW_BYTES

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "CompressionOptions":
        """default.yaml의 images 섹션."""
        images = config.get("images", {})
        return cls(
            max_width=images.get("max_width", IMAGE_MAX_WIDTH),
            max_height=images.get("max_height", IMAGE_MAX_HEIGHT),
            quality=images.get("quality", IMAGE_JPEG_QUALITY),
            skip_below_bytes=images.get("skip_below_kb", IMAGE_SKIP_BELOW_BYTES // 1024) * 1024,
        )


def _fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    if width <= max_width and height <= max_height:
        return width, height
    ratio = min(max_width / width, max_height / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def compress_image(
    payload: ImagePayload, options: CompressionOptions | None = None
) -> ImagePayload:
    """
    이미지 하나 압축.

    Args:
        payload: 원본 파일
        options: 압축 옵션 (None이면 기본값)

    Returns:
        압축된 파일 또는 원본
    """
    opts = options or CompressionOptions()

    if payload.size < opts.skip_below_bytes or not payload.content_type.startswith("image/"):
        return payload
    if payload.content_type == "image/gif":
        return payload

    try:
        with Image.open(io.BytesIO(payload.data)) as img:
            width, height = _fit_within(img.width, img.height, opts.max_width, opts.max_height)
            converted = img.convert("RGB")
            if (width, height) != converted.size:
                converted = converted.resize((width, height), Image.Resampling.LANCZOS)

            buffer = io.BytesIO()
            converted.save(buffer, "JPEG", quality=opts.quality, optimize=True)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.error(f"Image compression error: {payload.filename}: {e}")
        return payload

    compressed = buffer.getvalue()
    if len(compressed) >= payload.size:
        return payload

    logger.info(
        f"Compressed {payload.filename}: "
        f"{payload.size / 1024 / 1024:.2f}MB -> {len(compressed) / 1024 / 1024:.2f}MB"
    )
    return ImagePayload(filename=payload.filename, content_type="image/jpeg", data=compressed)


def compress_images(
    payloads: list[ImagePayload], options: CompressionOptions | None = None
) -> list[ImagePayload]:
    return [compress_image(p, options) for p in payloads]

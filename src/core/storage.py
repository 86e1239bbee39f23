"""
Local storage: 브라우저 localStorage에 해당하는 서버측 파일 저장소.

구성:
- atomic_write_json: temp → fsync → rename
- LocalStore: 사용자별 key/value (프로필 캐시 등). 서버와의 일관성은 보장하지 않음
- DraftStore: 강의 편집기 드래프트 + 업로드 대기 이미지

data/
├── store/<user_id>.json
└── drafts/<draft_id>/
    ├── draft.json
    └── images/<stored_name>
"""

import json
import logging
import os
import re
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from src.domain.constants import (
    DRAFT_IMAGES_DIR,
    DRAFT_JSON_FILENAME,
    DRAFTS_DIR,
    STORE_DIR,
)
from src.domain.errors import ErrorCodes, PortalError
from src.domain.schemas import CourseForm, PendingImage

logger = logging.getLogger(__name__)


# =============================================================================
# Atomic Write
# =============================================================================

def _fsync_dir(dir_path: Path) -> None:
    """디렉토리 fsync (rename 엔트리 내구성, 미지원 환경은 경고만)."""
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        logger.warning(f"Directory fsync failed for {dir_path}: {e}")


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    """
    원자적 JSON 쓰기.

    - 중간 상태 없음: temp → rename
    - fsync 실패 시 경고 남기고 계속 진행
    - 실패 시 temp 파일 삭제, 기존 파일 유지

    Args:
        path: 저장할 파일 경로
        data: JSON 직렬화할 데이터
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(f"File fsync failed for {path}: {e}")

        os.replace(temp_path, path)
        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = json.load(f)
        return data


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# LocalStore
# =============================================================================

class LocalStore:
    """
    JSON 파일 하나에 대한 key/value 저장소.

    손상된 파일은 빈 저장소로 취급하고 경고를 남긴다 (캐시 용도).
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, Any]:
        try:
            return _read_json(self.path) or {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Local store unreadable, starting empty: {self.path}: {e}")
            return {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        atomic_write_json(self.path, data)

    def remove(self, key: str) -> Any:
        data = self._load()
        value = data.pop(key, None)
        if value is not None:
            atomic_write_json(self.path, data)
        return value

    @classmethod
    def for_user(cls, data_dir: Path, user_id: str) -> "LocalStore":
        safe_id = re.sub(r"[^A-Za-z0-9_-]", "_", user_id)
        return cls(data_dir / STORE_DIR / f"{safe_id}.json")


# =============================================================================
# DraftStore
# =============================================================================

_DRAFT_ID_RE = re.compile(r"^DRAFT-\d{14}-[0-9a-f]{8}$")


def generate_draft_id() -> str:
    """포맷: DRAFT-{timestamp}-{uuid[:8]}"""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"DRAFT-{timestamp}-{uuid.uuid4().hex[:8]}"


@dataclass
class Draft:
    draft_id: str
    owner_id: str
    form: CourseForm
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "draft_id": self.draft_id,
            "owner_id": self.owner_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "form": self.form.to_dict(),
        }


class DraftStore:
    """
    강의 편집기 드래프트 저장소.

    편집 연산마다 draft.json을 원자적으로 다시 쓴다.
    """

    def __init__(self, root: Path) -> None:
        self.root = root / DRAFTS_DIR

    def _dir(self, draft_id: str) -> Path:
        if not _DRAFT_ID_RE.match(draft_id):
            raise PortalError(ErrorCodes.DRAFT_NOT_FOUND, draft_id=draft_id)
        return self.root / draft_id

    def create(self, form: CourseForm, owner_id: str) -> Draft:
        now = _utcnow()
        draft = Draft(
            draft_id=generate_draft_id(),
            owner_id=owner_id,
            form=form,
            created_at=now,
            updated_at=now,
        )
        atomic_write_json(self._dir(draft.draft_id) / DRAFT_JSON_FILENAME, draft.to_dict())
        logger.info(f"Draft created: {draft.draft_id} (course={form.id or 'new'})")
        return draft

    def load(self, draft_id: str, owner_id: str | None = None) -> Draft:
        """
        Raises:
            PortalError: 미존재(DRAFT_NOT_FOUND), 손상(DRAFT_CORRUPT), 소유자 불일치(FORBIDDEN)
        """
        path = self._dir(draft_id) / DRAFT_JSON_FILENAME
        try:
            data = _read_json(path)
        except json.JSONDecodeError as e:
            raise PortalError(ErrorCodes.DRAFT_CORRUPT, draft_id=draft_id, cause=str(e)) from e
        if data is None:
            raise PortalError(ErrorCodes.DRAFT_NOT_FOUND, draft_id=draft_id)
        if owner_id is not None and data.get("owner_id") != owner_id:
            raise PortalError(ErrorCodes.FORBIDDEN, draft_id=draft_id)

        return Draft(
            draft_id=data["draft_id"],
            owner_id=data.get("owner_id", ""),
            form=CourseForm.from_dict(data.get("form") or {}),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    def save(self, draft: Draft) -> None:
        draft.updated_at = _utcnow()
        atomic_write_json(self._dir(draft.draft_id) / DRAFT_JSON_FILENAME, draft.to_dict())

    def delete(self, draft_id: str) -> bool:
        path = self._dir(draft_id)
        if not path.exists():
            return False
        shutil.rmtree(path)
        logger.info(f"Draft deleted: {draft_id}")
        return True

    def save_image(
        self, draft_id: str, filename: str, content_type: str, data: bytes
    ) -> PendingImage:
        """업로드 대기 이미지 파일 저장."""
        images_dir = self._dir(draft_id) / DRAFT_IMAGES_DIR
        images_dir.mkdir(parents=True, exist_ok=True)
        suffix = Path(filename).suffix.lower() or ".bin"
        stored_name = f"{uuid.uuid4().hex}{suffix}"
        (images_dir / stored_name).write_bytes(data)
        return PendingImage(
            filename=filename,
            stored_name=stored_name,
            content_type=content_type,
            size=len(data),
        )

    def read_image(self, draft_id: str, image: PendingImage) -> bytes:
        return (self._dir(draft_id) / DRAFT_IMAGES_DIR / image.stored_name).read_bytes()

    def discard_image(self, draft_id: str, image: PendingImage) -> None:
        path = self._dir(draft_id) / DRAFT_IMAGES_DIR / image.stored_name
        if path.exists():
            path.unlink()

    def list_drafts(self) -> list[Path]:
        if not self.root.exists():
            return []
        return sorted(p for p in self.root.iterdir() if p.is_dir() and _DRAFT_ID_RE.match(p.name))

"""
Domain Constants: 포털 전역 상수.

강의 편집기 제한값, 뷰어 자동 완료 기준, 커뮤니티 설정 제한 등
시스템 전반에서 사용되는 값들.
"""

import re

# =============================================================================
# Course Editor Limits (강의 편집기 제한)
# =============================================================================

MAX_COURSE_TITLE_LENGTH = 20
MAX_COURSE_DESCRIPTION_LENGTH = 100
MAX_CHAPTER_TITLE_LENGTH = 80
MAX_LESSON_TITLE_LENGTH = 80

MIN_LESSON_DURATION = 1
MAX_LESSON_DURATION = 480  # 분 단위 (8시간)
DEFAULT_LESSON_DURATION = 10

MAX_LESSON_IMAGES = 6

# =============================================================================
# Lesson Content (레슨 콘텐츠 타입)
# =============================================================================

CONTENT_VIDEO = "video"
CONTENT_TEXT = "text"
CONTENT_IMAGES = "images"
CONTENT_LINKS = "links"

DEFAULT_CONTENT_ORDER: tuple[str, ...] = (
    CONTENT_VIDEO,
    CONTENT_TEXT,
    CONTENT_IMAGES,
    CONTENT_LINKS,
)

CONTENT_LABELS_HE = {
    CONTENT_VIDEO: "סרטון",
    CONTENT_TEXT: "טקסט",
    CONTENT_IMAGES: "תמונות",
    CONTENT_LINKS: "קישורים",
}

LESSON_TYPE_CONTENT = "content"
LESSON_TYPE_QUIZ = "quiz"
LESSON_TYPES = (LESSON_TYPE_CONTENT, LESSON_TYPE_QUIZ)

# =============================================================================
# Quiz Rules (퀴즈 규칙)
# =============================================================================
# radio: 옵션 2개 이상, 정답 정확히 1개
# checkbox: 옵션 4개 이상, 정답 2개 이상

QUESTION_RADIO = "radio"
QUESTION_CHECKBOX = "checkbox"
QUESTION_TYPES = (QUESTION_RADIO, QUESTION_CHECKBOX)

RADIO_MIN_OPTIONS = 2
CHECKBOX_MIN_OPTIONS = 4
CHECKBOX_MIN_CORRECT = 2

# =============================================================================
# Default Titles (기본 제목 패턴)
# =============================================================================
# 기본 제목은 삭제 시 보이는 순서대로 재번호 매김. 사용자 지정 제목은 유지.

CHAPTER_TITLE_PREFIX = "פרק"
LESSON_TITLE_PREFIX = "שיעור"

DEFAULT_CHAPTER_TITLE_RE = re.compile(r"^פרק\s*[0-9]+\Z")
DEFAULT_LESSON_TITLE_RE = re.compile(r"^שיעור\s*[0-9]+\Z")

# =============================================================================
# Viewer Auto-Completion (뷰어 자동 완료)
# =============================================================================

MIN_DWELL_SECONDS = 5.0
SCROLL_THRESHOLD_PX = 50
COMPLETION_POLL_SECONDS = 1.0

# =============================================================================
# Patterns (검증 패턴)
# =============================================================================

LINK_URL_RE = re.compile(
    r"^(https?://)?(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
    r"([-a-zA-Z0-9()@:%_+.~#?&/=]*)$"
)

YOUTUBE_ID_RE = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)"
    r"([^\"&?/\s]{11})"
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SLUG_ALLOWED_RE = re.compile(r"[^a-z0-9-]")

# =============================================================================
# Community Settings (커뮤니티 설정)
# =============================================================================

MAX_COMMUNITY_RULES = 3
SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 50

ROLE_OWNER = "OWNER"
ROLE_MANAGER = "MANAGER"
ROLE_USER = "USER"
MEMBER_ROLES = (ROLE_OWNER, ROLE_MANAGER, ROLE_USER)

# 커뮤니티 첫 화면 (강의 목록)
COMMUNITY_HOME_PATH = "/communities/{community_id}/courses"

# 강의 목록 탭
COURSE_TAB_ALL = "all"
COURSE_TAB_IN_PROGRESS = "in-progress"
COURSE_TAB_COMPLETED = "completed"
COURSE_TABS = (COURSE_TAB_ALL, COURSE_TAB_IN_PROGRESS, COURSE_TAB_COMPLETED)

# =============================================================================
# Account (계정)
# =============================================================================

MIN_PASSWORD_LENGTH = 8

AUTH_COOKIE_NAME = "auth-token"
AUTH_COOKIE_MAX_AGE = 60 * 60 * 24 * 7  # 7일
IDENTITY_COOKIE_NAME = "kibutz-identity"  # 서명된 확인 사용자 ID

# LocalStore 키 (pending*는 쿠키 이름으로도 사용)
PROFILE_CACHE_KEY = "userProfileCache"
PENDING_JOIN_KEY = "pendingJoinCommunity"
PENDING_PAYMENT_KEY = "pendingPayment"

# =============================================================================
# Images (이미지 압축)
# =============================================================================

IMAGE_MAX_WIDTH = 1920
IMAGE_MAX_HEIGHT = 1920
IMAGE_JPEG_QUALITY = 85
IMAGE_SKIP_BELOW_BYTES = 500 * 1024

# =============================================================================
# Local Storage Layout (로컬 저장소 구조)
# =============================================================================
# data/
# ├── store/<user_id>.json  (프로필 캐시)
# └── drafts/<draft_id>/
#     ├── draft.json
#     └── images/

STORE_DIR = "store"
DRAFTS_DIR = "drafts"
DRAFT_JSON_FILENAME = "draft.json"
DRAFT_IMAGES_DIR = "images"

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def get_mime_type(filename: str) -> str:
    """파일 확장자로 MIME 타입 추정."""
    for ext, mime in IMAGE_MIME_TYPES.items():
        if filename.lower().endswith(ext):
            return mime
    return "application/octet-stream"

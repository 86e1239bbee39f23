"""
Data schemas for the portal.

규칙:
- 백엔드 응답은 camelCase, 파이썬 필드는 snake_case
- from_dict()는 백엔드 JSON → dataclass, to_dict()는 드래프트 저장/응답용
- 엔티티는 단순 전송 형태 (백엔드가 진실 원천)
"""

from dataclasses import dataclass, field
from typing import Any

from src.domain.constants import (
    DEFAULT_CONTENT_ORDER,
    DEFAULT_LESSON_DURATION,
    LESSON_TYPE_CONTENT,
    QUESTION_RADIO,
    ROLE_USER,
)

# =============================================================================
# Course Editor Forms (강의 편집기 폼 상태)
# =============================================================================

@dataclass
class QuizOptionForm:
    """퀴즈 보기 (편집용)."""
    text: str = ""
    is_correct: bool = False
    order: int = 0
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "is_correct": self.is_correct,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], order: int = 0) -> "QuizOptionForm":
        return cls(
            id=data.get("id"),
            text=data.get("text") or "",
            is_correct=bool(data.get("is_correct", data.get("isCorrect", False))),
            order=data["order"] if data.get("order") is not None else order,
        )


@dataclass
class QuizQuestionForm:
    """퀴즈 문항 (편집용)."""
    question: str = ""
    question_type: str = QUESTION_RADIO
    order: int = 0
    options: list[QuizOptionForm] = field(default_factory=list)
    id: str | None = None

    def correct_count(self) -> int:
        return sum(1 for opt in self.options if opt.is_correct)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "question_type": self.question_type,
            "order": self.order,
            "options": [opt.to_dict() for opt in self.options],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], order: int = 0) -> "QuizQuestionForm":
        return cls(
            id=data.get("id"),
            question=data.get("question") or "",
            question_type=data.get("question_type", data.get("questionType")) or QUESTION_RADIO,
            order=data["order"] if data.get("order") is not None else order,
            options=[
                QuizOptionForm.from_dict(opt, i)
                for i, opt in enumerate(data.get("options") or [])
            ],
        )


@dataclass
class PendingImage:
    """
    업로드 대기 이미지.

    드래프트 디렉토리에 저장된 파일을 가리킨다 (저장 시 업로드).
    """
    filename: str
    stored_name: str
    content_type: str = "image/jpeg"
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "stored_name": self.stored_name,
            "content_type": self.content_type,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingImage":
        return cls(
            filename=data["filename"],
            stored_name=data["stored_name"],
            content_type=data.get("content_type", "image/jpeg"),
            size=data.get("size", 0),
        )


@dataclass
class LessonForm:
    """레슨 (편집용)."""
    title: str = ""
    content: str = ""
    video_url: str = ""
    duration: int = DEFAULT_LESSON_DURATION
    order: int = 0
    lesson_type: str = LESSON_TYPE_CONTENT
    images: list[str] = field(default_factory=list)
    pending_images: list[PendingImage] = field(default_factory=list)
    files: list[dict[str, str]] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    quiz: list[QuizQuestionForm] | None = None
    content_order: list[str] = field(default_factory=lambda: list(DEFAULT_CONTENT_ORDER))
    id: str | None = None
    is_new: bool = False
    is_deleted: bool = False
    expanded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "video_url": self.video_url,
            "duration": self.duration,
            "order": self.order,
            "lesson_type": self.lesson_type,
            "images": list(self.images),
            "pending_images": [img.to_dict() for img in self.pending_images],
            "files": list(self.files),
            "links": list(self.links),
            "quiz": [q.to_dict() for q in self.quiz] if self.quiz is not None else None,
            "content_order": list(self.content_order),
            "is_new": self.is_new,
            "is_deleted": self.is_deleted,
            "expanded": self.expanded,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LessonForm":
        quiz = data.get("quiz")
        return cls(
            id=data.get("id"),
            title=data.get("title") or "",
            content=data.get("content") or "",
            video_url=data.get("video_url") or "",
            duration=data.get("duration", DEFAULT_LESSON_DURATION),
            order=data.get("order", 0),
            lesson_type=data.get("lesson_type") or LESSON_TYPE_CONTENT,
            images=list(data.get("images") or []),
            pending_images=[PendingImage.from_dict(p) for p in data.get("pending_images") or []],
            files=list(data.get("files") or []),
            links=list(data.get("links") or []),
            quiz=[QuizQuestionForm.from_dict(q, i) for i, q in enumerate(quiz)]
            if quiz is not None
            else None,
            content_order=list(data.get("content_order") or DEFAULT_CONTENT_ORDER),
            is_new=data.get("is_new", False),
            is_deleted=data.get("is_deleted", False),
            expanded=data.get("expanded", False),
        )


@dataclass
class ChapterForm:
    """챕터 (편집용)."""
    title: str = ""
    order: int = 0
    lessons: list[LessonForm] = field(default_factory=list)
    id: str | None = None
    is_new: bool = False
    is_deleted: bool = False
    expanded: bool = True

    def visible_lessons(self) -> list[LessonForm]:
        return [lesson for lesson in self.lessons if not lesson.is_deleted]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "order": self.order,
            "lessons": [lesson.to_dict() for lesson in self.lessons],
            "is_new": self.is_new,
            "is_deleted": self.is_deleted,
            "expanded": self.expanded,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChapterForm":
        return cls(
            id=data.get("id"),
            title=data.get("title") or "",
            order=data.get("order", 0),
            lessons=[LessonForm.from_dict(lesson) for lesson in data.get("lessons") or []],
            is_new=data.get("is_new", False),
            is_deleted=data.get("is_deleted", False),
            expanded=data.get("expanded", True),
        )


@dataclass
class CourseForm:
    """
    강의 편집기 전체 상태.

    id가 None이면 생성 모드 (커버 이미지 필수).
    """
    title: str = ""
    description: str = ""
    image: str | None = None
    new_image: PendingImage | None = None
    chapters: list[ChapterForm] = field(default_factory=list)
    is_published: bool = False
    id: str | None = None
    community_id: str | None = None

    @property
    def is_create(self) -> bool:
        return self.id is None

    def visible_chapters(self) -> list[ChapterForm]:
        return [chapter for chapter in self.chapters if not chapter.is_deleted]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "community_id": self.community_id,
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "new_image": self.new_image.to_dict() if self.new_image else None,
            "chapters": [chapter.to_dict() for chapter in self.chapters],
            "is_published": self.is_published,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CourseForm":
        new_image = data.get("new_image")
        return cls(
            id=data.get("id"),
            community_id=data.get("community_id"),
            title=data.get("title") or "",
            description=data.get("description") or "",
            image=data.get("image"),
            new_image=PendingImage.from_dict(new_image) if new_image else None,
            chapters=[ChapterForm.from_dict(c) for c in data.get("chapters") or []],
            is_published=data.get("is_published", False),
        )


# =============================================================================
# Course Viewer (강의 뷰어)
# =============================================================================

@dataclass
class QuizOption:
    id: str
    text: str
    is_correct: bool = False
    order: int = 0


@dataclass
class QuizQuestion:
    id: str
    question: str
    question_type: str = QUESTION_RADIO
    order: int = 0
    options: list[QuizOption] = field(default_factory=list)

    def correct_ids(self) -> set[str]:
        return {opt.id for opt in self.options if opt.is_correct}


@dataclass
class Lesson:
    """뷰어용 레슨."""
    id: str
    title: str
    content: str | None = None
    video_url: str | None = None
    duration: int = 0
    order: int = 0
    lesson_type: str = LESSON_TYPE_CONTENT
    images: list[str] = field(default_factory=list)
    files: list[dict[str, str]] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    content_order: list[str] = field(default_factory=lambda: list(DEFAULT_CONTENT_ORDER))
    quiz: list[QuizQuestion] | None = None

    @property
    def has_video(self) -> bool:
        return bool(self.video_url)

    @property
    def has_text(self) -> bool:
        return bool(self.content and self.content.strip())

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Lesson":
        quiz = data.get("quiz")
        questions = None
        if quiz:
            questions = [
                QuizQuestion(
                    id=q["id"],
                    question=q.get("question") or "",
                    question_type=q.get("questionType") or QUESTION_RADIO,
                    order=q.get("order", qi),
                    options=[
                        QuizOption(
                            id=o["id"],
                            text=o.get("text") or "",
                            is_correct=bool(o.get("isCorrect")),
                            order=o.get("order", oi),
                        )
                        for oi, o in enumerate(q.get("options") or [])
                    ],
                )
                for qi, q in enumerate(quiz.get("questions") or [])
            ]
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            content=data.get("content"),
            video_url=data.get("videoUrl"),
            duration=data.get("duration") or 0,
            order=data.get("order", 0),
            lesson_type=data.get("lessonType") or LESSON_TYPE_CONTENT,
            images=list(data.get("images") or []),
            files=list(data.get("files") or []),
            links=list(data.get("links") or []),
            content_order=list(data.get("contentOrder") or DEFAULT_CONTENT_ORDER),
            quiz=questions,
        )


@dataclass
class Chapter:
    id: str
    title: str
    order: int = 0
    lessons: list[Lesson] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Chapter":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            order=data.get("order", 0),
            lessons=[Lesson.from_api(lesson) for lesson in data.get("lessons") or []],
        )


@dataclass
class Enrollment:
    progress: int = 0
    completed_at: str | None = None


@dataclass
class CourseView:
    """
    뷰어용 강의.

    lesson_progress: lesson_id → 완료 여부
    enrollment: None이면 미등록
    """
    id: str
    title: str
    description: str = ""
    image: str | None = None
    total_lessons: int = 0
    total_duration: int = 0
    is_published: bool = False
    author_id: str = ""
    author: dict[str, Any] = field(default_factory=dict)
    community: dict[str, Any] = field(default_factory=dict)
    chapters: list[Chapter] = field(default_factory=list)
    enrollment: Enrollment | None = None
    lesson_progress: dict[str, bool] = field(default_factory=dict)
    enrollment_count: int = 0

    @property
    def community_owner_id(self) -> str | None:
        return self.community.get("ownerId")

    def all_lessons(self) -> list[Lesson]:
        return [lesson for chapter in self.chapters for lesson in chapter.lessons]

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "CourseView":
        enrollment = data.get("enrollment")
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            description=data.get("description") or "",
            image=data.get("image"),
            total_lessons=data.get("totalLessons") or 0,
            total_duration=data.get("totalDuration") or 0,
            is_published=bool(data.get("isPublished")),
            author_id=data.get("authorId") or (data.get("author") or {}).get("id") or "",
            author=dict(data.get("author") or {}),
            community=dict(data.get("community") or {}),
            chapters=[Chapter.from_api(c) for c in data.get("chapters") or []],
            enrollment=Enrollment(
                progress=enrollment.get("progress") or 0,
                completed_at=enrollment.get("completedAt"),
            )
            if enrollment
            else None,
            lesson_progress=dict(data.get("lessonProgress") or {}),
            enrollment_count=(data.get("_count") or {}).get("enrollments", 0),
        )


# =============================================================================
# Community & Members (커뮤니티/멤버)
# =============================================================================

@dataclass
class Community:
    id: str
    name: str
    description: str = ""
    slug: str | None = None
    topic: str | None = None
    logo: str | None = None
    image: str | None = None
    owner_id: str | None = None
    price: float | None = None
    rules: list[str] = field(default_factory=list)
    gallery_images: list[str] = field(default_factory=list)
    gallery_videos: list[str] = field(default_factory=list)
    social_links: dict[str, str] = field(default_factory=dict)
    members: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Community":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            description=data.get("description") or "",
            slug=data.get("slug"),
            topic=data.get("topic"),
            logo=data.get("logo"),
            image=data.get("image"),
            owner_id=data.get("ownerId"),
            price=data.get("price"),
            rules=list(data.get("rules") or []),
            gallery_images=list(data.get("galleryImages") or []),
            gallery_videos=list(data.get("galleryVideos") or []),
            social_links={
                key: data[key]
                for key in ("youtubeUrl", "whatsappUrl", "facebookUrl", "instagramUrl")
                if data.get(key)
            },
            members=list(data.get("members") or []),
        )


@dataclass
class CommunitySettingsForm:
    """커뮤니티 관리 폼 (PUT /communities/{id})."""
    name: str = ""
    description: str = ""
    topic: str = ""
    price: str = ""
    youtube_url: str = ""
    whatsapp_url: str = ""
    facebook_url: str = ""
    instagram_url: str = ""
    existing_logo: str | None = None
    remove_logo: bool = False
    existing_image: str | None = None
    remove_image: bool = False
    existing_gallery_images: list[str] = field(default_factory=list)
    existing_gallery_videos: list[str] = field(default_factory=list)
    rules: list[str] = field(default_factory=list)

    @classmethod
    def from_community(cls, community: Community) -> "CommunitySettingsForm":
        return cls(
            name=community.name,
            description=community.description,
            topic=community.topic or "",
            price="" if community.price is None else str(community.price),
            youtube_url=community.social_links.get("youtubeUrl", ""),
            whatsapp_url=community.social_links.get("whatsappUrl", ""),
            facebook_url=community.social_links.get("facebookUrl", ""),
            instagram_url=community.social_links.get("instagramUrl", ""),
            existing_logo=community.logo,
            existing_image=community.image,
            existing_gallery_images=list(community.gallery_images),
            existing_gallery_videos=list(community.gallery_videos),
            rules=list(community.rules),
        )


@dataclass
class Member:
    id: str
    user_id: str
    name: str
    email: str = ""
    role: str = ROLE_USER
    profile_image: str | None = None
    joined_at: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Member":
        user = data.get("user") or {}
        return cls(
            id=data["id"],
            user_id=data.get("userId") or user.get("id") or "",
            name=user.get("name") or data.get("name") or "",
            email=user.get("email") or data.get("email") or "",
            role=data.get("role") or ROLE_USER,
            profile_image=user.get("profileImage") or data.get("profileImage"),
            joined_at=data.get("joinedAt"),
        )


@dataclass
class BannedUser:
    id: str
    user_id: str
    name: str
    email: str = ""
    reason: str | None = None
    banned_at: str | None = None
    expires_at: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "BannedUser":
        user = data.get("user") or {}
        return cls(
            id=data["id"],
            user_id=data.get("userId") or user.get("id") or "",
            name=user.get("name") or "",
            email=user.get("email") or "",
            reason=data.get("reason"),
            banned_at=data.get("bannedAt") or data.get("createdAt"),
            expires_at=data.get("expiresAt"),
        )


@dataclass
class Membership:
    """GET /communities/{id}/membership 응답."""
    is_member: bool = False
    role: str | None = None
    can_edit: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Membership":
        return cls(
            is_member=bool(data.get("isMember")),
            role=data.get("role"),
            can_edit=bool(data.get("canEdit")),
        )


# =============================================================================
# Account (계정)
# =============================================================================

@dataclass
class UserProfile:
    id: str
    name: str
    email: str = ""
    profile_image: str | None = None
    bio: str | None = None
    created_at: str | None = None

    def cache_entry(self) -> dict[str, Any]:
        """LocalStore의 userProfileCache 형태."""
        return {"name": self.name, "profileImage": self.profile_image}

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "UserProfile":
        # /users/me는 id 대신 userId
        return cls(
            id=data.get("id") or data.get("userId") or "",
            name=data.get("name") or "",
            email=data.get("email") or "",
            profile_image=data.get("profileImage"),
            bio=data.get("bio"),
            created_at=data.get("createdAt"),
        )


@dataclass
class UserStats:
    followers: int = 0
    following: int = 0
    community_members: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "UserStats":
        return cls(
            followers=data.get("followers") or 0,
            following=data.get("following") or 0,
            community_members=data.get("communityMembers") or 0,
        )

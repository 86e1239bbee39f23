"""
Pytest fixtures for the portal tests.

구성:
- FakeBackend: httpx.MockTransport 핸들러 (경로별 응답 등록 + 요청 기록)
- make_token: 테스트 백엔드 키로 서명한 JWT (GET /users/me가 이 키로 검증)
- 샘플 백엔드 응답 (강의, 커뮤니티, 멤버)
"""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import jwt
import pytest
import yaml
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.app.backend import KibutzAPIClient
from src.app.routes import auth, communities, courses, editor, profile
from src.app.routes.common import register_error_handlers, register_identity_cookie
from src.app.services.course_viewer import ActivityRegistry
from src.core.storage import DraftStore

BACKEND_URL = "http://backend.test"
TOKEN_KEY = "portal-test-signing-key-0123456789abcdef"
IDENTITY_SECRET = "portal-test-identity-secret-0123456789"

# =============================================================================
# Path / Config Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config(project_root: Path) -> dict:
    """default.yaml 로드."""
    with open(project_root / "default.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def test_config() -> dict:
    """테스트용 설정 (재시도 대기 없음)."""
    return {
        "api": {
            "base_url": BACKEND_URL,
            "timeout": 5.0,
            "max_retries": 2,
            "retry_initial_delay": 0,
        },
        "storage": {"data_dir": "data", "draft_retention_days": 7},
        "images": {"max_width": 1920, "max_height": 1920, "quality": 85, "skip_below_kb": 500},
        "viewer": {"min_dwell_seconds": 5, "scroll_threshold_px": 50},
    }


# =============================================================================
# Auth
# =============================================================================

def make_token(user_id: str = "user-1", **claims: Any) -> str:
    return jwt.encode({"sub": user_id, **claims}, TOKEN_KEY, algorithm="HS256")


@pytest.fixture
def token() -> str:
    return make_token("user-1", email="dana@example.com")


@pytest.fixture
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Fake Backend
# =============================================================================

Responder = Callable[[httpx.Request], httpx.Response]


class FakeBackend:
    """
    경로별 응답을 등록하는 MockTransport 핸들러.

    등록되지 않은 요청은 404 {"message": "Not found"}.
    GET /users/me는 기본으로 토큰 서명을 검증해 sub를 돌려준다 (덮어쓰기 가능).
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder | tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.on_call("GET", "/users/me", self.me)

    def on(self, method: str, path: str, status: int = 200, body: Any = None) -> None:
        self.routes[(method.upper(), path)] = (status, body if body is not None else {})

    def on_call(self, method: str, path: str, responder: Responder) -> None:
        self.routes[(method.upper(), path)] = responder

    def unreachable(self, method: str, path: str) -> None:
        """연결 실패 (httpx.ConnectError)."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self.on_call(method, path, refuse)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def me(self, request: httpx.Request) -> httpx.Response:
        header = request.headers.get("Authorization", "")
        try:
            claims = jwt.decode(header.removeprefix("Bearer "), TOKEN_KEY, algorithms=["HS256"])
        except jwt.PyJWTError:
            return httpx.Response(401, json={"message": "Unauthorized"})
        user_id = claims["sub"]
        return httpx.Response(
            200, json={"userId": user_id, "name": f"User {user_id}", "email": claims.get("email", "")}
        )

    # === 검증 헬퍼 ===

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def json_body(self, request: httpx.Request) -> Any:
        return json.loads(request.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def api(backend: FakeBackend, token: str) -> KibutzAPIClient:
    """FakeBackend에 연결된 인증 클라이언트."""
    return KibutzAPIClient(
        base_url=BACKEND_URL,
        token=token,
        max_retries=2,
        retry_initial_delay=0,
        transport=backend.transport,
    )


# =============================================================================
# Sample Backend Payloads
# =============================================================================

@pytest.fixture
def course_data() -> dict[str, Any]:
    """
    GET /courses/{id} 응답.

    챕터 2개, 레슨 3개 (l1 완료), 작성자 author-1, 커뮤니티 소유자 owner-1.
    """
    return {
        "id": "c1",
        "title": "יסודות הבישול",
        "description": "קורס מבוא",
        "image": "/uploads/cover.jpg",
        "isPublished": True,
        "authorId": "author-1",
        "totalLessons": 3,
        "totalDuration": 40,
        "community": {"id": "comm-1", "ownerId": "owner-1"},
        "chapters": [
            {
                "id": "ch1",
                "title": "פרק 1",
                "order": 0,
                "lessons": [
                    {
                        "id": "l1",
                        "title": "שיעור 1",
                        "content": "טקסט",
                        "duration": 10,
                        "order": 0,
                        "lessonType": "content",
                    },
                    {
                        "id": "l2",
                        "title": "שיעור 2",
                        "videoUrl": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                        "links": ["https://example.com/a"],
                        "duration": 20,
                        "order": 1,
                        "lessonType": "content",
                    },
                ],
            },
            {
                "id": "ch2",
                "title": "סיכום",
                "order": 1,
                "lessons": [
                    {
                        "id": "l3",
                        "title": "בוחן",
                        "duration": 10,
                        "order": 0,
                        "lessonType": "quiz",
                        "quiz": {
                            "questions": [
                                {
                                    "id": "q1",
                                    "question": "2+2?",
                                    "questionType": "radio",
                                    "options": [
                                        {"id": "o1", "text": "4", "isCorrect": True},
                                        {"id": "o2", "text": "5", "isCorrect": False},
                                    ],
                                },
                                {
                                    "id": "q2",
                                    "question": "זוגיים?",
                                    "questionType": "checkbox",
                                    "options": [
                                        {"id": "p1", "text": "2", "isCorrect": True},
                                        {"id": "p2", "text": "3", "isCorrect": False},
                                        {"id": "p3", "text": "4", "isCorrect": True},
                                        {"id": "p4", "text": "5", "isCorrect": False},
                                    ],
                                },
                            ]
                        },
                    }
                ],
            },
        ],
        "enrollment": {"progress": 33},
        "lessonProgress": {"l1": True},
    }


@pytest.fixture
def community_data() -> dict[str, Any]:
    return {
        "id": "comm-1",
        "name": "מטבח ביתי",
        "description": "קהילת בישול",
        "slug": "home-kitchen",
        "topic": "food",
        "logo": "/uploads/logo.png",
        "image": "/uploads/hero.png",
        "ownerId": "owner-1",
        "price": 0,
        "rules": ["כבוד הדדי"],
        "galleryImages": ["/uploads/g1.png"],
        "galleryVideos": [],
        "youtubeUrl": "https://youtube.com/@kitchen",
    }


@pytest.fixture
def members_data() -> list[dict[str, Any]]:
    return [
        {"id": "m1", "userId": "owner-1", "role": "OWNER",
         "user": {"name": "Owner", "email": "owner@example.com"}},
        {"id": "m2", "userId": "user-2", "role": "MANAGER",
         "user": {"name": "Noa Levi", "email": "noa@example.com"}},
        {"id": "m3", "userId": "user-3", "role": "USER",
         "user": {"name": "Avi Cohen", "email": "avi@example.com"}},
    ]


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app(tmp_path: Path, test_config: dict, backend: FakeBackend) -> FastAPI:
    """
    테스트용 FastAPI 앱.

    백엔드 호출은 app.state.api_transport(FakeBackend)로 향한다.
    """
    app = FastAPI()
    register_error_handlers(app)
    register_identity_cookie(app)

    app.include_router(auth.router)
    app.include_router(editor.router)
    app.include_router(courses.router)
    app.include_router(communities.router)
    app.include_router(profile.router)
    app.include_router(auth.api_router, prefix="/api/auth")
    app.include_router(editor.api_router, prefix="/api/editor")
    app.include_router(courses.api_router, prefix="/api/courses")
    app.include_router(communities.api_router, prefix="/api/communities")
    app.include_router(profile.api_router, prefix="/api/users")

    app.state.config = test_config
    app.state.data_dir = tmp_path
    app.state.drafts = DraftStore(tmp_path)
    app.state.activity = ActivityRegistry.from_config(test_config)
    app.state.api_transport = backend.transport
    app.state.identity_secret = IDENTITY_SECRET
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """익명 테스트 클라이언트."""
    return TestClient(app)


@pytest.fixture
def user_client(app: FastAPI, token: str) -> TestClient:
    """Bearer 토큰을 보내는 테스트 클라이언트 (user-1)."""
    client = TestClient(app)
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest.fixture
def client_for(app: FastAPI) -> Callable[[str], TestClient]:
    """지정한 사용자 토큰으로 인증된 테스트 클라이언트 생성."""

    def build(user_id: str) -> TestClient:
        client = TestClient(app)
        client.headers["Authorization"] = f"Bearer {make_token(user_id)}"
        return client

    return build


@pytest.fixture
def forged_client_for(app: FastAPI) -> Callable[[str], TestClient]:
    """다른 키로 서명해 sub만 흉내 낸 토큰 (백엔드가 401로 거부)."""

    def build(user_id: str) -> TestClient:
        forged = jwt.encode({"sub": user_id}, "attacker-signing-key-0123456789abcdef", algorithm="HS256")
        client = TestClient(app)
        client.headers["Authorization"] = f"Bearer {forged}"
        return client

    return build

"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uv run uvicorn src.app.main:app --reload
- 프로덕션: uv run uvicorn src.app.main:app
"""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

# Routes
from src.app.routes import auth, communities, courses, editor, profile
from src.app.routes.common import (
    get_user_id,
    load_identity_secret,
    register_error_handlers,
    register_identity_cookie,
)
from src.app.services.course_viewer import ActivityRegistry
from src.core.storage import DraftStore

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    설정 파일 로드 + 환경 변수 덮어쓰기.

    - KIBUTZ_API_URL → api.base_url
    - KIBUTZ_DATA_DIR → storage.data_dir
    """
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = PROJECT_ROOT / "default.yaml"

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    api_url = os.getenv("KIBUTZ_API_URL")
    if api_url:
        data.setdefault("api", {})["base_url"] = api_url
    data_dir = os.getenv("KIBUTZ_DATA_DIR")
    if data_dir:
        data.setdefault("storage", {})["data_dir"] = data_dir
    return data


def resolve_data_dir(config: dict[str, Any]) -> Path:
    """storage.data_dir (상대 경로는 프로젝트 루트 기준)."""
    path = Path(config.get("storage", {}).get("data_dir", "data"))
    return path if path.is_absolute() else PROJECT_ROOT / path


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: .env, 설정 로드, ID 쿠키 서명 키, 드래프트 저장소, 열람 활동 레지스트리
    """
    # Startup
    load_dotenv()
    app.state.config = load_config()
    app.state.data_dir = resolve_data_dir(app.state.config)
    app.state.identity_secret = load_identity_secret(app.state.config)
    app.state.drafts = DraftStore(app.state.data_dir)
    app.state.activity = ActivityRegistry.from_config(app.state.config)
    logger.info(
        f"Kibutz portal started (backend={app.state.config.get('api', {}).get('base_url', 'default')}, "
        f"data_dir={app.state.data_dir})"
    )

    yield

    # Shutdown
    app.state.activity.clear()


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Kibutz Portal",
    description="커뮤니티/강의 플랫폼 웹 프론트엔드 (Kibutz REST 백엔드 클라이언트)",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)
register_identity_cookie(app)

# Static files (CSS, JS)
static_dir = Path(__file__).parent / "static"
if static_dir.exists():
    app.mount("/static", StaticFiles(directory=static_dir), name="static")


# =============================================================================
# Routes
# =============================================================================

# 페이지 라우트 (HTML)
# editor가 courses보다 먼저: /courses/create가 /courses/{course_id}에 잡히지 않도록
app.include_router(auth.router, prefix="", tags=["Auth"])
app.include_router(editor.router, prefix="", tags=["Editor"])
app.include_router(courses.router, prefix="", tags=["Courses"])
app.include_router(communities.router, prefix="", tags=["Communities"])
app.include_router(profile.router, prefix="", tags=["Profile"])

# API 라우트
app.include_router(auth.api_router, prefix="/api/auth", tags=["Auth API"])
app.include_router(editor.api_router, prefix="/api/editor", tags=["Editor API"])
app.include_router(courses.api_router, prefix="/api/courses", tags=["Courses API"])
app.include_router(
    communities.api_router, prefix="/api/communities", tags=["Communities API"]
)
app.include_router(profile.api_router, prefix="/api/users", tags=["Profile API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/")
async def root(request: Request) -> RedirectResponse:
    """로그인 상태면 내 프로필(가입한 커뮤니티 목록), 아니면 로그인 화면."""
    user_id = get_user_id(request)
    if not user_id:
        return RedirectResponse("/login", status_code=303)
    return RedirectResponse(f"/profile/{user_id}", status_code=303)


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )

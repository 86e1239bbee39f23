"""
Route 공통: 인증 토큰, 백엔드 클라이언트 의존성, 에러 응답, 템플릿.

토큰 위치: auth-token 쿠키 → Authorization 헤더 순.
사용자별 서버 상태는 백엔드가 확인한 ID(서명 쿠키)로만 접근한다.
"""

import html as html_escape_module
import logging
import os
import secrets
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.templating import Jinja2Templates

from src.app.backend import BackendError, KibutzAPIClient
from src.core.formatting import format_date_he, format_duration_hebrew, lesson_count_label
from src.core.tokens import current_user_id, read_identity, sign_identity
from src.domain.constants import AUTH_COOKIE_MAX_AGE, AUTH_COOKIE_NAME, IDENTITY_COOKIE_NAME
from src.domain.errors import ErrorCodes, FormValidationError, PortalError
from src.domain.schemas import UserProfile

logger = logging.getLogger(__name__)

# Jinja2 템플릿 설정
_templates_dir = Path(__file__).parent.parent / "templates"
jinja_templates = Jinja2Templates(directory=_templates_dir)
jinja_templates.env.filters["duration_he"] = format_duration_hebrew
jinja_templates.env.filters["date_he"] = format_date_he
jinja_templates.env.filters["lesson_count"] = lesson_count_label


def escape_html(text: str) -> str:
    """HTML 이스케이프."""
    return html_escape_module.escape(text)


# =============================================================================
# Auth
# =============================================================================

def get_token(request: Request) -> str | None:
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def get_user_id(request: Request) -> str | None:
    """검증되지 않은 토큰의 sub. 화면 표시에만 사용한다."""
    return current_user_id(get_token(request))


def require_token(request: Request) -> str:
    """
    Raises:
        PortalError: 토큰 없음 (AUTH_REQUIRED → 401)
    """
    token = get_token(request)
    if not token:
        raise PortalError(ErrorCodes.AUTH_REQUIRED, path=request.url.path)
    return token


def set_auth_cookie(response: Any, token: str) -> None:
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=AUTH_COOKIE_MAX_AGE,
        path="/",
        samesite="lax",
    )


def clear_auth_cookies(response: Any) -> None:
    response.delete_cookie(AUTH_COOKIE_NAME, path="/")
    response.delete_cookie(IDENTITY_COOKIE_NAME, path="/")


# =============================================================================
# Backend client dependency
# =============================================================================

async def get_api(request: Request) -> AsyncGenerator[KibutzAPIClient, None]:
    """요청 단위 백엔드 클라이언트 (app.state.api_transport가 있으면 주입)."""
    client = KibutzAPIClient.from_config(
        request.app.state.config,
        token=get_token(request),
        transport=getattr(request.app.state, "api_transport", None),
    )
    try:
        yield client
    finally:
        await client.aclose()


# =============================================================================
# Confirmed identity
# =============================================================================
# 서버에 저장하는 사용자별 상태(프로필 캐시, 드래프트, 열람 상태)는
# 백엔드가 토큰을 받아들인 사용자 ID로만 접근한다.

def load_identity_secret(config: dict[str, Any]) -> str:
    """
    ID 쿠키 서명 키.

    KIBUTZ_IDENTITY_SECRET → auth.identity_secret → 프로세스별 임시 키
    """
    secret = os.getenv("KIBUTZ_IDENTITY_SECRET") or config.get("auth", {}).get("identity_secret")
    if secret:
        return str(secret)
    logger.warning("No identity secret configured, using a per-process key")
    return secrets.token_urlsafe(32)


async def get_confirmed_user_id(
    request: Request, api: KibutzAPIClient = Depends(get_api)
) -> str | None:
    """
    백엔드가 확인한 사용자 ID.

    서명된 ID 쿠키가 현재 토큰과 맞으면 그대로 쓰고, 아니면 /users/me로 확인한다.
    확인된 ID는 응답에 새 ID 쿠키로 실린다.

    Returns:
        사용자 ID (토큰 없음 또는 백엔드가 토큰을 거부하면 None)

    Raises:
        BackendError: 백엔드에 확인할 수 없음 (네트워크, 5xx)
    """
    token = get_token(request)
    if not token:
        return None
    secret: str = request.app.state.identity_secret
    user_id = read_identity(request.cookies.get(IDENTITY_COOKIE_NAME), token, secret)
    if user_id:
        return user_id

    try:
        me = await api.get_me()
    except BackendError as e:
        if e.is_auth_rejected:
            logger.warning(f"{request.method} {request.url.path}: token rejected by backend")
            return None
        raise
    user_id = UserProfile.from_api(me).id or None
    if user_id:
        request.state.identity_cookie = sign_identity(user_id, token, secret)
    return user_id


async def require_confirmed_user_id(
    request: Request, user_id: str | None = Depends(get_confirmed_user_id)
) -> str:
    """
    Raises:
        PortalError: 토큰 없음 또는 거부됨 (AUTH_REQUIRED → 401)
    """
    if not user_id:
        raise PortalError(ErrorCodes.AUTH_REQUIRED, path=request.url.path)
    return user_id


def register_identity_cookie(app: FastAPI) -> None:
    """요청 중 확인된 사용자 ID를 서명 쿠키로 응답에 싣는다."""

    @app.middleware("http")
    async def identity_cookie(request: Request, call_next: Any) -> Response:
        response: Response = await call_next(request)
        value = getattr(request.state, "identity_cookie", None)
        if value:
            response.set_cookie(
                IDENTITY_COOKIE_NAME,
                value,
                max_age=AUTH_COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                samesite="lax",
            )
        return response


# =============================================================================
# Error responses
# =============================================================================

_STATUS_BY_CODE = {
    ErrorCodes.AUTH_REQUIRED: 401,
    ErrorCodes.FORBIDDEN: 403,
    ErrorCodes.DRAFT_NOT_FOUND: 404,
    ErrorCodes.LESSON_NOT_FOUND: 404,
    ErrorCodes.MEMBER_NOT_FOUND: 404,
    ErrorCodes.DRAFT_CORRUPT: 409,
    ErrorCodes.NOT_ENROLLED: 403,
}


def portal_error_status(error: PortalError) -> int:
    return _STATUS_BY_CODE.get(error.code, 400)


async def _form_error_handler(request: Request, exc: FormValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content=exc.to_dict())


async def _portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    status = portal_error_status(exc)
    if exc.code == ErrorCodes.DRAFT_CORRUPT:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status, content={"detail": exc.to_dict()})


async def _backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
    status = exc.status_code or 502
    logger.warning(f"{request.method} {request.url.path}: backend error {exc}")
    return JSONResponse(
        status_code=status,
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


def register_error_handlers(app: FastAPI) -> None:
    """FormValidationError → 422, PortalError → 코드별 상태, BackendError → 백엔드 상태."""
    app.add_exception_handler(FormValidationError, _form_error_handler)
    app.add_exception_handler(PortalError, _portal_error_handler)
    app.add_exception_handler(BackendError, _backend_error_handler)


def is_htmx(request: Request) -> bool:
    return request.headers.get("HX-Request") == "true"

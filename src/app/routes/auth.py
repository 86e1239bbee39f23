"""
Auth Routes: 로그인, 회원가입, 비밀번호 재설정, 이메일 인증.

- GET /login, /signup, /reset-password, /forgot-password, /verify-email
- GET /logout
- POST /api/auth/login, /signup, /reset-password, /forgot-password, /resend-verification
- GET /api/auth/check-email
- POST /api/auth/password-strength (HTMX 체크리스트)
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from src.app.backend import BackendError, KibutzAPIClient
from src.app.routes.common import (
    clear_auth_cookies,
    escape_html,
    get_api,
    get_confirmed_user_id,
    jinja_templates,
    set_auth_cookie,
)
from src.app.services.account import AccountService
from src.core.storage import LocalStore
from src.core.validation import password_checklist, password_strength, strength_label
from src.domain.constants import (
    PENDING_JOIN_KEY,
    PENDING_PAYMENT_KEY,
    PROFILE_CACHE_KEY,
)

logger = logging.getLogger(__name__)

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


# =============================================================================
# Page Routes (HTML)
# =============================================================================

@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, return_url: str | None = None) -> HTMLResponse:
    return jinja_templates.TemplateResponse(
        request, "login.html", {"return_url": return_url or ""}
    )


@router.get("/signup", response_class=HTMLResponse)
async def signup_page(request: Request) -> HTMLResponse:
    return jinja_templates.TemplateResponse(request, "signup.html", {})


@router.get("/reset-password", response_class=HTMLResponse)
async def reset_password_page(request: Request, token: str | None = None) -> HTMLResponse:
    return jinja_templates.TemplateResponse(
        request, "reset_password.html", {"token": token or ""}
    )


@router.get("/forgot-password", response_class=HTMLResponse)
async def forgot_password_page(request: Request) -> HTMLResponse:
    return jinja_templates.TemplateResponse(request, "forgot_password.html", {})


@router.get("/verify-email", response_class=HTMLResponse)
async def verify_email_page(
    request: Request,
    token: str | None = None,
    api: KibutzAPIClient = Depends(get_api),
) -> HTMLResponse:
    result = await AccountService(api).verify_email(token)
    return jinja_templates.TemplateResponse(
        request, "verify_email.html", {"ok": result.ok, "message": result.message}
    )


@router.get("/logout")
async def logout(
    request: Request,
    api: KibutzAPIClient = Depends(get_api),
) -> RedirectResponse:
    """쿠키 삭제. 백엔드가 확인한 사용자면 프로필 캐시도 삭제."""
    try:
        user_id = await get_confirmed_user_id(request, api)
    except BackendError as e:
        logger.warning(f"Logout without cache cleanup, backend unavailable: {e}")
        user_id = None
    if user_id:
        LocalStore.for_user(request.app.state.data_dir, user_id).remove(PROFILE_CACHE_KEY)
    request.state.identity_cookie = None

    response = RedirectResponse("/login", status_code=303)
    clear_auth_cookies(response)
    return response


# =============================================================================
# API Routes
# =============================================================================

def _clear_pending(response: JSONResponse) -> None:
    response.delete_cookie(PENDING_JOIN_KEY, path="/")
    response.delete_cookie(PENDING_PAYMENT_KEY, path="/")


@api_router.post("/login")
async def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    return_url: str | None = Form(None),
    api: KibutzAPIClient = Depends(get_api),
) -> JSONResponse:
    """
    로그인.

    대기 중인 커뮤니티 가입은 pendingJoinCommunity / pendingPayment 쿠키로 전달된다.
    """
    pending_join = request.cookies.get(PENDING_JOIN_KEY)
    pending_payment = bool(request.cookies.get(PENDING_PAYMENT_KEY))

    result = await AccountService(api).login(
        email,
        password,
        pending_join=pending_join,
        pending_payment=pending_payment,
        return_url=return_url,
    )
    response = JSONResponse({"ok": True, "redirect": result.redirect})
    set_auth_cookie(response, result.token)
    if pending_join:
        _clear_pending(response)
    return response


@api_router.post("/signup")
async def signup(
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    api: KibutzAPIClient = Depends(get_api),
) -> JSONResponse:
    token = await AccountService(api).signup(name, email, password)
    response = JSONResponse({"ok": True, "redirect": "/"})
    set_auth_cookie(response, token)
    return response


@api_router.post("/reset-password")
async def reset_password(
    token: str | None = Form(None),
    password: str = Form(""),
    confirm_password: str = Form(""),
    api: KibutzAPIClient = Depends(get_api),
) -> dict[str, Any]:
    await AccountService(api).reset_password(token, password, confirm_password)
    return {"ok": True, "redirect": "/login"}


@api_router.post("/forgot-password")
async def forgot_password(
    email: str = Form(""),
    api: KibutzAPIClient = Depends(get_api),
) -> dict[str, Any]:
    await AccountService(api).forgot_password(email)
    return {"ok": True}


@api_router.post("/resend-verification")
async def resend_verification(
    email: str = Form(""),
    api: KibutzAPIClient = Depends(get_api),
) -> dict[str, Any]:
    await AccountService(api).resend_verification(email)
    return {"ok": True}


@api_router.get("/check-email")
async def check_email(
    email: str,
    api: KibutzAPIClient = Depends(get_api),
) -> dict[str, Any]:
    return {"exists": await AccountService(api).check_email(email)}


@api_router.post("/password-strength", response_class=HTMLResponse)
async def password_strength_fragment(password: str = Form("")) -> HTMLResponse:
    """비밀번호 요구사항 체크리스트 (HTML 조각)."""
    items = "".join(
        f'<li class="{"met" if item["met"] else "unmet"}">{escape_html(str(item["label"]))}</li>'
        for item in password_checklist(password)
    )
    label = strength_label(password)
    return HTMLResponse(
        content=f"""<div class="password-strength" data-strength="{password_strength(password)}">
    <ul class="requirements">{items}</ul>
    <span class="strength-label">{escape_html(label)}</span>
</div>"""
    )

"""
AccountService tests.

테스트 케이스:
1. 가입: 입력 검증, 백엔드 거절 메시지
2. 로그인: 필드 에러 매핑, 이동 경로 (return_url, 대기 중인 가입/결제)
3. 비밀번호 재설정/찾기, 이메일 인증
"""

import pytest

from src.app.services.account import (
    FORGOT_FAILED,
    LOGIN_FAILED,
    LOGIN_UNAVAILABLE,
    USER_NOT_FOUND,
    VERIFY_MISSING_TOKEN,
    VERIFY_OK,
    WRONG_PASSWORD,
    AccountService,
)
from src.domain.errors import FormValidationError

STRONG = "Abcdefg1"


@pytest.fixture
def service(api) -> AccountService:
    return AccountService(api)


class TestSignup:
    @pytest.mark.asyncio
    async def test_invalid_input_skips_backend(self, service, backend):
        with pytest.raises(FormValidationError) as exc_info:
            await service.signup("", "bad", "weak")

        assert set(exc_info.value.errors) == {"name", "email", "password"}
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_returns_token(self, service, backend):
        backend.on("POST", "/auth/signup", body={"access_token": "tok"})

        assert await service.signup(" Dana ", "dana@example.com", STRONG) == "tok"
        assert backend.json_body(backend.requests[0])["name"] == "Dana"

    @pytest.mark.asyncio
    async def test_backend_rejection(self, service, backend):
        backend.on("POST", "/auth/signup", status=409, body={"message": "Email already exists"})

        with pytest.raises(FormValidationError) as exc_info:
            await service.signup("Dana", "dana@example.com", STRONG)

        assert exc_info.value.errors == {"form": "Email already exists"}


class TestLogin:
    @pytest.mark.asyncio
    async def test_redirects_home(self, service, backend):
        backend.on("POST", "/auth/login", body={"access_token": "tok"})

        result = await service.login("dana@example.com", "pw")

        assert result.token == "tok"
        assert result.redirect == "/"

    @pytest.mark.asyncio
    async def test_return_url(self, service, backend):
        backend.on("POST", "/auth/login", body={"access_token": "tok"})

        result = await service.login("dana@example.com", "pw", return_url="/courses/c1")

        assert result.redirect == "/courses/c1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message,errors",
        [
            ("User not found", {"email": USER_NOT_FOUND}),
            ("Invalid Password", {"password": WRONG_PASSWORD}),
            ("Account locked", {"form": LOGIN_FAILED}),
        ],
    )
    async def test_error_mapping(self, service, backend, message, errors):
        backend.on("POST", "/auth/login", status=401, body={"message": message})

        with pytest.raises(FormValidationError) as exc_info:
            await service.login("dana@example.com", "pw")

        assert exc_info.value.errors == errors

    @pytest.mark.asyncio
    async def test_network_error(self, service, backend):
        backend.unreachable("POST", "/auth/login")

        with pytest.raises(FormValidationError) as exc_info:
            await service.login("dana@example.com", "pw")

        assert exc_info.value.errors == {"form": LOGIN_UNAVAILABLE}

    @pytest.mark.asyncio
    async def test_pending_join_uses_new_token(self, service, backend, api, token):
        backend.on("POST", "/auth/login", body={"access_token": "fresh"})
        backend.on("POST", "/communities/comm-1/join", body={})

        result = await service.login("dana@example.com", "pw", pending_join="comm-1")

        assert result.redirect == "/communities/comm-1/courses"
        join = backend.calls("POST", "/communities/comm-1/join")[0]
        assert join.headers["Authorization"] == "Bearer fresh"
        assert api.token == token

    @pytest.mark.asyncio
    async def test_pending_join_failure_still_opens_community(self, service, backend):
        backend.on("POST", "/auth/login", body={"access_token": "fresh"})
        backend.on("POST", "/communities/comm-1/join", status=400, body={"message": "full"})

        result = await service.login("dana@example.com", "pw", pending_join="comm-1")

        assert result.redirect == "/communities/comm-1/courses"

    @pytest.mark.asyncio
    async def test_pending_payment_opens_payment(self, service, backend):
        backend.on("POST", "/auth/login", body={"access_token": "fresh"})

        result = await service.login(
            "dana@example.com", "pw", pending_join="comm-1", pending_payment=True
        )

        assert result.redirect == "/communities/comm-1/courses?showPayment=true"
        assert backend.calls("POST", "/communities/comm-1/join") == []


class TestPasswordAndEmail:
    @pytest.mark.asyncio
    async def test_reset_password(self, service, backend):
        backend.on("POST", "/auth/reset-password", body={})

        await service.reset_password("reset-tok", STRONG, STRONG)

        assert backend.json_body(backend.requests[0]) == {"token": "reset-tok", "password": STRONG}

    @pytest.mark.asyncio
    async def test_reset_password_mismatch(self, service, backend):
        with pytest.raises(FormValidationError) as exc_info:
            await service.reset_password("reset-tok", STRONG, "Other123")

        assert "confirm_password" in exc_info.value.errors
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_reset_password_expired(self, service, backend):
        backend.on("POST", "/auth/reset-password", status=400, body={"message": "Token expired"})

        with pytest.raises(FormValidationError) as exc_info:
            await service.reset_password("reset-tok", STRONG, STRONG)

        assert exc_info.value.errors == {"form": "Token expired"}

    @pytest.mark.asyncio
    async def test_forgot_password_network_error(self, service, backend):
        backend.unreachable("POST", "/auth/forgot-password")

        with pytest.raises(FormValidationError) as exc_info:
            await service.forgot_password("dana@example.com")

        assert exc_info.value.errors == {"form": FORGOT_FAILED}

    @pytest.mark.asyncio
    async def test_check_email_failure_is_false(self, service, backend):
        backend.on("GET", "/auth/check-email", status=500, body={})
        assert await service.check_email("dana@example.com") is False

    @pytest.mark.asyncio
    async def test_verify_email(self, service, backend):
        backend.on("GET", "/auth/verify-email/abc", body={"message": "ok"})

        result = await service.verify_email("abc")

        assert result.ok is True
        assert result.message == VERIFY_OK

    @pytest.mark.asyncio
    async def test_verify_email_missing_token(self, service, backend):
        result = await service.verify_email(None)

        assert result.ok is False
        assert result.message == VERIFY_MISSING_TOKEN
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_verify_email_rejected(self, service, backend):
        backend.on("GET", "/auth/verify-email/abc", status=400, body={"message": "Invalid token"})

        result = await service.verify_email("abc")

        assert result.ok is False
        assert result.message == "Invalid token"

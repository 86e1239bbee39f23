"""
Account Service: 회원가입, 로그인, 비밀번호 재설정, 이메일 인증.

로그인 실패 메시지는 필드 에러로 변환:
- "not found" → email
- "password" → password
- 그 외 → form
"""

import logging
from dataclasses import dataclass

from src.app.backend import BackendError, KibutzAPIClient
from src.core.validation import validate_login, validate_reset_password, validate_signup
from src.domain.constants import COMMUNITY_HOME_PATH
from src.domain.errors import ErrorCodes, FormValidationError

logger = logging.getLogger(__name__)

LOGIN_FAILED = "ההתחברות נכשלה. אנא בדוק את הפרטים ונסה שוב"
LOGIN_UNAVAILABLE = "שגיאה בהתחברות. אנא נסה שוב מאוחר יותר"
USER_NOT_FOUND = "לא נמצא חשבון עם כתובת אימייל זו"
WRONG_PASSWORD = "הסיסמה שגויה"
SIGNUP_FAILED = "ההרשמה נכשלה"
RESET_FAILED = "איפוס הסיסמה נכשל"
RESET_UNAVAILABLE = "שגיאה באיפוס הסיסמה"
FORGOT_FAILED = "שגיאה בשליחת הבקשה"
VERIFY_MISSING_TOKEN = "טוקן אימות חסר"
VERIFY_OK = "האימייל אומת בהצלחה!"
VERIFY_FAILED = "אימות נכשל"
VERIFY_UNAVAILABLE = "שגיאה באימות האימייל"


@dataclass
class LoginResult:
    """로그인 성공: 토큰과 이동할 경로."""
    token: str
    redirect: str


@dataclass
class VerifyResult:
    ok: bool
    message: str


def _login_field_errors(message: str) -> dict[str, str]:
    if "not found" in message:
        return {"email": USER_NOT_FOUND}
    if "password" in message.lower():
        return {"password": WRONG_PASSWORD}
    return {"form": LOGIN_FAILED}


class AccountService:
    def __init__(self, api: KibutzAPIClient) -> None:
        self.api = api

    async def signup(self, name: str, email: str, password: str) -> str:
        """
        Returns:
            access_token

        Raises:
            FormValidationError: 입력 오류 또는 백엔드 거절
        """
        errors = validate_signup(name, email, password)
        if errors:
            raise FormValidationError(errors)
        try:
            data = await self.api.signup(name.strip(), email.strip(), password)
        except BackendError as e:
            logger.warning(f"Signup rejected for {email}: {e}")
            raise FormValidationError({"form": e.message or SIGNUP_FAILED}) from e

        token = data.get("access_token")
        if not token:
            raise FormValidationError({"form": SIGNUP_FAILED})
        logger.info(f"Signup succeeded: {email}")
        return str(token)

    async def login(
        self,
        email: str,
        password: str,
        pending_join: str | None = None,
        pending_payment: bool = False,
        return_url: str | None = None,
    ) -> LoginResult:
        """
        로그인 후 이동 경로 결정.

        대기 중인 커뮤니티 가입이 있으면:
        - 결제 대기 → 커뮤니티 첫 화면 (showPayment)
        - 아니면 바로 가입 시도 후 커뮤니티 첫 화면 (실패는 로그만)
        """
        errors = validate_login(email, password)
        if errors:
            raise FormValidationError(errors)

        try:
            data = await self.api.login(email.strip(), password)
        except BackendError as e:
            if e.code == ErrorCodes.NETWORK_ERROR:
                logger.error(f"Login unavailable: {e}")
                raise FormValidationError({"form": LOGIN_UNAVAILABLE}) from e
            raise FormValidationError(_login_field_errors(e.message)) from e

        token = data.get("access_token")
        if not token:
            raise FormValidationError({"form": LOGIN_FAILED})

        redirect = return_url or "/"
        if pending_join:
            redirect = await self._complete_pending_join(str(token), pending_join, pending_payment)
        return LoginResult(token=str(token), redirect=redirect)

    async def _complete_pending_join(
        self, token: str, community_id: str, pending_payment: bool
    ) -> str:
        home = COMMUNITY_HOME_PATH.format(community_id=community_id)
        if pending_payment:
            return f"{home}?showPayment=true"

        previous = self.api.token
        self.api.token = token
        try:
            await self.api.join_community(community_id)
        except BackendError as e:
            logger.warning(f"Pending join failed for community {community_id}: {e}")
            return home
        finally:
            self.api.token = previous
        return home

    async def reset_password(self, token: str | None, password: str, confirm: str) -> None:
        errors = validate_reset_password(password, confirm, token)
        if errors:
            raise FormValidationError(errors)
        try:
            await self.api.reset_password(str(token), password)
        except BackendError as e:
            if e.code == ErrorCodes.NETWORK_ERROR:
                raise FormValidationError({"form": RESET_UNAVAILABLE}) from e
            raise FormValidationError({"form": e.message or RESET_FAILED}) from e

    async def forgot_password(self, email: str) -> None:
        try:
            await self.api.forgot_password(email.strip())
        except BackendError as e:
            message = FORGOT_FAILED if e.code == ErrorCodes.NETWORK_ERROR else e.message
            raise FormValidationError({"form": message or FORGOT_FAILED}) from e

    async def resend_verification(self, email: str) -> None:
        try:
            await self.api.resend_verification(email.strip())
        except BackendError as e:
            logger.warning(f"Resend verification failed for {email}: {e}")
            raise FormValidationError({"form": e.message or FORGOT_FAILED}) from e

    async def check_email(self, email: str) -> bool:
        """이미 가입된 이메일인지 (실패 시 False)."""
        try:
            return await self.api.check_email(email.strip())
        except BackendError as e:
            logger.warning(f"Email check failed: {e}")
            return False

    async def verify_email(self, token: str | None) -> VerifyResult:
        if not token:
            return VerifyResult(ok=False, message=VERIFY_MISSING_TOKEN)
        try:
            await self.api.verify_email(token)
        except BackendError as e:
            if e.code == ErrorCodes.NETWORK_ERROR:
                return VerifyResult(ok=False, message=VERIFY_UNAVAILABLE)
            return VerifyResult(ok=False, message=e.message or VERIFY_FAILED)
        return VerifyResult(ok=True, message=VERIFY_OK)

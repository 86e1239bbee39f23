"""
Error definitions for the portal.

규칙:
- 조용한 실패 금지 → PortalError로 명시적 실패
- 폼 검증 실패 → FormValidationError (필드 키 → 히브리어 메시지)
- 백엔드 호출 실패 → src.app.backend.base.BackendError
"""

from typing import Any


class PortalError(Exception):
    """
    포털 정책 위반 시 발생하는 에러.

    즉시 중단이 필요한 경우에만 사용:
    - 드래프트 손상/미존재
    - 권한 없음
    - 로그인 필요

    Usage:
        raise PortalError("DRAFT_NOT_FOUND", draft_id="abc123")
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            **self.context,
        }


class FormValidationError(PortalError):
    """
    폼 검증 실패.

    errors는 삽입 순서가 유지되는 dict이며 첫 번째 키가
    화면에서 스크롤할 대상이 된다.
    """

    def __init__(self, errors: dict[str, str], **context: Any) -> None:
        self.errors = dict(errors)
        super().__init__(ErrorCodes.FORM_INVALID, fields=list(self.errors), **context)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "errors": self.errors}


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Forms ===
    FORM_INVALID = "FORM_INVALID"

    # === Auth ===
    AUTH_REQUIRED = "AUTH_REQUIRED"
    FORBIDDEN = "FORBIDDEN"

    # === Drafts ===
    DRAFT_NOT_FOUND = "DRAFT_NOT_FOUND"
    DRAFT_CORRUPT = "DRAFT_CORRUPT"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"
    INVALID_INDEX = "INVALID_INDEX"

    # === Viewer ===
    LESSON_NOT_FOUND = "LESSON_NOT_FOUND"
    NOT_ENROLLED = "NOT_ENROLLED"

    # === Community ===
    SLUG_TAKEN = "SLUG_TAKEN"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"

    # === Backend ===
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"

    # === Images ===
    IMAGE_LIMIT_REACHED = "IMAGE_LIMIT_REACHED"

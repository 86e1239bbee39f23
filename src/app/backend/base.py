"""
Backend client 공통 타입.

- BackendError: 2xx 아닌 응답 / 네트워크 실패
- 응답 본문 파싱, 에러 메시지 추출, multipart 파일 변환
"""

from typing import Any

import httpx

from src.core.images import ImagePayload
from src.domain.errors import ErrorCodes

# httpx files= 항목: (필드명, (파일명, 바이트, MIME))
FileField = tuple[str, tuple[str, bytes, str]]


class BackendError(Exception):
    """
    백엔드 호출 실패.

    code: HTTP_<status> 또는 NETWORK_ERROR
    message: 백엔드의 message 필드 (없으면 reason phrase)
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int | None = None,
        **context: Any,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.context = context
        super().__init__(f"[{code}] {message}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_auth_rejected(self) -> bool:
        """토큰 거부 (401/403)."""
        return self.status_code in (401, 403)

    @property
    def is_unavailable(self) -> bool:
        """네트워크 실패 또는 5xx: 로컬 캐시로 대체해도 되는 실패."""
        return self.code == ErrorCodes.NETWORK_ERROR or (self.status_code or 0) >= 500

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            **self.context,
        }


def error_message(response: httpx.Response) -> str:
    """
    에러 응답에서 사용자 메시지 추출.

    {"message": "..."} 또는 {"message": ["...", "..."]} (검증 에러 목록)
    """
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, list):
            return ", ".join(str(m) for m in message)
        if message:
            return str(message)
    return response.reason_phrase


def raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise BackendError(
        f"HTTP_{response.status_code}",
        error_message(response),
        status_code=response.status_code,
        path=response.request.url.path,
    )


def parse_json(response: httpx.Response) -> Any:
    """성공 응답 본문. 빈 본문은 {}."""
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise BackendError(
            ErrorCodes.INVALID_RESPONSE,
            "Response is not valid JSON",
            status_code=response.status_code,
        ) from e


def file_field(name: str, image: ImagePayload) -> FileField:
    return (name, (image.filename, image.data, image.content_type))


def network_error(exc: httpx.HTTPError, method: str, path: str) -> BackendError:
    return BackendError(ErrorCodes.NETWORK_ERROR, str(exc) or type(exc).__name__, method=method, path=path)

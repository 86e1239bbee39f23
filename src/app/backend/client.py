"""
Kibutz REST API client (httpx.AsyncClient).

- 인증 호출은 Bearer 토큰
- 본문은 JSON, 이미지가 들어가는 요청만 multipart
- GET은 httpx.TransportError에 한해 지수 백오프 재시도
- 2xx가 아니면 BackendError

Usage:
    async with KibutzAPIClient.from_config(config, token=token) as api:
        course = await api.get_course("abc")
"""

import json
import logging
from typing import Any

import httpx

from src.app.backend.base import (
    BackendError,
    FileField,
    file_field,
    network_error,
    parse_json,
    raise_for_status,
)
from src.core.images import ImagePayload
from src.utils.retry import retry_with_exponential_backoff

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:4000"
DEFAULT_TIMEOUT = 15.0


class KibutzAPIClient:
    """백엔드 REST API 클라이언트."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 2,
        retry_initial_delay: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.max_retries = max_retries
        self.retry_initial_delay = retry_initial_delay
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "KibutzAPIClient":
        """default.yaml의 api 섹션으로 생성."""
        api = config.get("api", {})
        return cls(
            base_url=api.get("base_url", DEFAULT_BASE_URL),
            token=token,
            timeout=api.get("timeout", DEFAULT_TIMEOUT),
            max_retries=api.get("max_retries", 2),
            retry_initial_delay=api.get("retry_initial_delay", 0.5),
            transport=transport,
        )

    async def __aenter__(self) -> "KibutzAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def asset_url(self, path: str | None) -> str | None:
        """백엔드가 돌려준 상대 경로(/uploads/...) → 절대 URL."""
        if not path:
            return None
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    # =========================================================================
    # Transport
    # =========================================================================

    def _headers(self, auth: bool) -> dict[str, str]:
        if auth and self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _send(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        json_body: Any = None,
        data: dict[str, Any] | None = None,
        files: list[FileField] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        response = await self._client.request(
            method,
            path,
            headers=self._headers(auth),
            json=json_body,
            data=data,
            files=files,
            params=params,
        )
        raise_for_status(response)
        return response

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """변경 요청 (재시도 없음)."""
        try:
            response = await self._send(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise network_error(e, method, path) from e
        return parse_json(response)

    async def _get(self, path: str, **kwargs: Any) -> Any:
        """조회 요청 (네트워크 실패 시 재시도)."""
        try:
            response = await retry_with_exponential_backoff(
                self._send,
                "GET",
                path,
                max_retries=self.max_retries,
                initial_delay=self.retry_initial_delay,
                exceptions=(httpx.TransportError,),
                label=f"GET {path}",
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise network_error(e, "GET", path) from e
        return parse_json(response)

    # =========================================================================
    # Courses
    # =========================================================================

    async def list_community_courses(self, community_id: str) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = await self._get(f"/courses/community/{community_id}")
        return result

    async def get_course(self, course_id: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._get(f"/courses/{course_id}")
        return result

    async def create_course(
        self,
        title: str,
        description: str,
        community_id: str,
        image: ImagePayload | None = None,
    ) -> dict[str, Any]:
        files = [file_field("image", image)] if image else None
        result: dict[str, Any] = await self._request(
            "POST",
            "/courses",
            data={"title": title, "description": description, "communityId": community_id},
            files=files,
        )
        return result

    async def update_course(
        self,
        course_id: str,
        fields: dict[str, str],
        image: ImagePayload | None = None,
    ) -> dict[str, Any]:
        """PATCH /courses/{id} (multipart: title, description, isPublished, image)."""
        files = [file_field("image", image)] if image else None
        result: dict[str, Any] = await self._request(
            "PATCH", f"/courses/{course_id}", data=fields, files=files
        )
        return result

    async def delete_course(self, course_id: str) -> None:
        await self._request("DELETE", f"/courses/{course_id}")

    async def enroll(self, course_id: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._request("POST", f"/courses/{course_id}/enroll")
        return result

    async def unenroll(self, course_id: str) -> None:
        await self._request("DELETE", f"/courses/{course_id}/enroll")

    async def create_chapter(self, course_id: str, title: str, order: int) -> dict[str, Any]:
        result: dict[str, Any] = await self._request(
            "POST",
            f"/courses/{course_id}/chapters",
            json_body={"title": title, "order": order},
        )
        return result

    async def update_chapter(self, chapter_id: str, title: str, order: int) -> dict[str, Any]:
        result: dict[str, Any] = await self._request(
            "PATCH",
            f"/courses/chapters/{chapter_id}",
            json_body={"title": title, "order": order},
        )
        return result

    async def delete_chapter(self, chapter_id: str) -> None:
        await self._request("DELETE", f"/courses/chapters/{chapter_id}")

    async def create_lesson(self, chapter_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = await self._request(
            "POST", f"/courses/chapters/{chapter_id}/lessons", json_body=payload
        )
        return result

    async def update_lesson(self, lesson_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = await self._request(
            "PATCH", f"/courses/lessons/{lesson_id}", json_body=payload
        )
        return result

    async def delete_lesson(self, lesson_id: str) -> None:
        await self._request("DELETE", f"/courses/lessons/{lesson_id}")

    async def complete_lesson(self, lesson_id: str) -> None:
        await self._request("POST", f"/courses/lessons/{lesson_id}/complete")

    async def uncomplete_lesson(self, lesson_id: str) -> None:
        await self._request("DELETE", f"/courses/lessons/{lesson_id}/complete")

    async def upload_lesson_image(self, image: ImagePayload) -> str:
        """
        레슨 이미지 업로드.

        Returns:
            저장된 이미지 URL
        """
        result = await self._request(
            "POST", "/courses/lessons/upload-image", files=[file_field("image", image)]
        )
        url = result.get("url") if isinstance(result, dict) else None
        if not url:
            raise BackendError("INVALID_RESPONSE", "Upload response has no url")
        return str(url)

    # =========================================================================
    # Communities
    # =========================================================================

    async def get_community(self, community_id: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._get(f"/communities/{community_id}")
        return result

    async def update_community(
        self,
        community_id: str,
        fields: dict[str, str],
        files: list[FileField] | None = None,
    ) -> dict[str, Any]:
        """PUT /communities/{id} (multipart)."""
        result: dict[str, Any] = await self._request(
            "PUT", f"/communities/{community_id}", data=fields, files=files or None
        )
        return result

    async def delete_community(self, community_id: str) -> None:
        await self._request("DELETE", f"/communities/{community_id}")

    async def update_rules(self, community_id: str, rules: list[str]) -> None:
        await self._request(
            "PATCH", f"/communities/{community_id}/rules", json_body={"rules": rules}
        )

    async def check_slug(self, slug: str, exclude_id: str | None = None) -> bool:
        """Returns: 사용 가능 여부."""
        params = {"excludeId": exclude_id} if exclude_id else None
        result = await self._get(f"/communities/check-slug/{slug}", params=params, auth=False)
        return bool(result.get("available"))

    async def update_slug(self, community_id: str, slug: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._request(
            "PATCH", f"/communities/{community_id}/slug", json_body={"slug": slug}
        )
        return result

    async def get_membership(self, community_id: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._get(f"/communities/{community_id}/membership")
        return result

    async def list_members(self, community_id: str) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = await self._get(f"/communities/{community_id}/members")
        return result

    async def update_member_role(self, community_id: str, member_id: str, role: str) -> None:
        await self._request(
            "PUT",
            f"/communities/{community_id}/members/{member_id}/role",
            json_body={"role": role},
        )

    async def remove_member(self, community_id: str, member_id: str) -> None:
        await self._request("DELETE", f"/communities/{community_id}/members/{member_id}")

    async def list_banned(self, community_id: str) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = await self._get(f"/communities/{community_id}/banned")
        return result

    async def lift_ban(self, community_id: str, ban_id: str) -> None:
        await self._request("DELETE", f"/communities/{community_id}/banned/{ban_id}")

    async def join_community(self, community_id: str) -> None:
        await self._request("POST", f"/communities/{community_id}/join")

    # =========================================================================
    # Auth
    # =========================================================================

    async def signup(self, name: str, email: str, password: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._request(
            "POST",
            "/auth/signup",
            auth=False,
            json_body={"name": name, "email": email, "password": password},
        )
        return result

    async def login(self, email: str, password: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._request(
            "POST",
            "/auth/login",
            auth=False,
            json_body={"email": email, "password": password},
        )
        return result

    async def reset_password(self, token: str, password: str) -> None:
        await self._request(
            "POST",
            "/auth/reset-password",
            auth=False,
            json_body={"token": token, "password": password},
        )

    async def forgot_password(self, email: str) -> None:
        await self._request(
            "POST", "/auth/forgot-password", auth=False, json_body={"email": email}
        )

    async def resend_verification(self, email: str) -> None:
        await self._request(
            "POST", "/auth/resend-verification", auth=False, json_body={"email": email}
        )

    async def check_email(self, email: str) -> bool:
        """Returns: 이미 가입된 이메일인지."""
        result = await self._get("/auth/check-email", params={"email": email}, auth=False)
        return bool(result.get("exists"))

    async def verify_email(self, token: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._get(f"/auth/verify-email/{token}", auth=False)
        return result

    # =========================================================================
    # Users
    # =========================================================================

    async def get_me(self) -> dict[str, Any]:
        result: dict[str, Any] = await self._get("/users/me")
        return result

    async def get_user(self, user_id: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._get(f"/users/{user_id}", auth=False)
        return result

    async def get_user_stats(self, user_id: str) -> dict[str, Any]:
        result: dict[str, Any] = await self._get(f"/users/{user_id}/stats", auth=False)
        return result

    async def created_communities(self, user_id: str) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = await self._get(
            f"/users/{user_id}/communities/created", auth=False
        )
        return result

    async def member_communities(self, user_id: str) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = await self._get(
            f"/users/{user_id}/communities/member", auth=False
        )
        return result

    async def is_following(self, user_id: str) -> bool:
        result = await self._get(f"/users/{user_id}/is-following")
        return bool(result.get("isFollowing"))

    async def follow(self, user_id: str) -> None:
        await self._request("POST", f"/users/{user_id}/follow")

    async def unfollow(self, user_id: str) -> None:
        await self._request("DELETE", f"/users/{user_id}/follow")


def json_field(value: Any) -> str:
    """multipart 필드에 넣을 JSON 문자열."""
    return json.dumps(value, ensure_ascii=False)

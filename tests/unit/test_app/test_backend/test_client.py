"""
KibutzAPIClient tests (httpx.MockTransport).

테스트 케이스:
1. Bearer 헤더 (인증/비인증 엔드포인트)
2. 에러 응답 → BackendError (메시지 추출)
3. GET 재시도 (TransportError만), 변경 요청은 재시도 없음
4. multipart 업로드, 쿼리 파라미터
5. 자산 URL, 설정 기반 생성
"""

import httpx
import pytest

from src.app.backend import BackendError, KibutzAPIClient
from src.core.images import ImagePayload


class TestAuthHeaders:
    """인증 헤더."""

    @pytest.mark.asyncio
    async def test_authenticated_call_sends_bearer(self, api, backend, token):
        backend.on("GET", "/users/me", body={"userId": "user-1", "name": "Dana"})

        me = await api.get_me()

        assert me["name"] == "Dana"
        assert backend.requests[0].headers["Authorization"] == f"Bearer {token}"

    @pytest.mark.asyncio
    async def test_public_call_has_no_bearer(self, api, backend):
        backend.on("GET", "/auth/check-email", body={"exists": True})

        assert await api.check_email("dana@example.com") is True
        request = backend.requests[0]
        assert "Authorization" not in request.headers
        assert request.url.params["email"] == "dana@example.com"

    @pytest.mark.asyncio
    async def test_no_token_no_header(self, backend):
        backend.on("GET", "/courses/c1", body={"id": "c1"})
        client = KibutzAPIClient(base_url="http://backend.test", transport=backend.transport)

        await client.get_course("c1")

        assert "Authorization" not in backend.requests[0].headers
        await client.aclose()


class TestErrors:
    """에러 응답."""

    @pytest.mark.asyncio
    async def test_backend_message_is_extracted(self, api, backend):
        backend.on("POST", "/courses/c1/enroll", status=400, body={"message": "Already enrolled"})

        with pytest.raises(BackendError) as exc_info:
            await api.enroll("c1")

        error = exc_info.value
        assert error.code == "HTTP_400"
        assert error.status_code == 400
        assert error.message == "Already enrolled"
        assert error.context["path"] == "/courses/c1/enroll"

    @pytest.mark.asyncio
    async def test_message_list_is_joined(self, api, backend):
        backend.on(
            "POST", "/auth/signup", status=400, body={"message": ["email taken", "weak password"]}
        )

        with pytest.raises(BackendError) as exc_info:
            await api.signup("Dana", "dana@example.com", "x")

        assert exc_info.value.message == "email taken, weak password"

    @pytest.mark.asyncio
    async def test_not_found(self, api):
        with pytest.raises(BackendError) as exc_info:
            await api.get_course("missing")
        assert exc_info.value.is_not_found is True

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, api, backend):
        backend.on_call(
            "GET", "/courses/c1", lambda request: httpx.Response(200, content=b"<html>")
        )

        with pytest.raises(BackendError) as exc_info:
            await api.get_course("c1")
        assert exc_info.value.code == "INVALID_RESPONSE"

    @pytest.mark.asyncio
    async def test_empty_body_is_accepted(self, api, backend):
        backend.on_call("DELETE", "/courses/c1", lambda request: httpx.Response(204))
        assert await api.delete_course("c1") is None


class TestRetry:
    """GET 재시도."""

    @pytest.mark.asyncio
    async def test_get_retries_transport_errors(self, api, backend):
        attempts = {"n": 0}

        def flaky(request: httpx.Request) -> httpx.Response:
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"id": "c1"})

        backend.on_call("GET", "/courses/c1", flaky)

        assert (await api.get_course("c1"))["id"] == "c1"
        assert attempts["n"] == 3

    @pytest.mark.asyncio
    async def test_get_gives_up_with_network_error(self, api, backend):
        def down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend.on_call("GET", "/courses/c1", down)

        with pytest.raises(BackendError) as exc_info:
            await api.get_course("c1")

        assert exc_info.value.code == "NETWORK_ERROR"
        assert len(backend.requests) == 3

    @pytest.mark.asyncio
    async def test_http_errors_are_not_retried(self, api, backend):
        backend.on("GET", "/courses/c1", status=500, body={"message": "boom"})

        with pytest.raises(BackendError):
            await api.get_course("c1")
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_mutations_are_not_retried(self, api, backend):
        def down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend.on_call("POST", "/courses/lessons/l1/complete", down)

        with pytest.raises(BackendError) as exc_info:
            await api.complete_lesson("l1")

        assert exc_info.value.code == "NETWORK_ERROR"
        assert len(backend.requests) == 1


class TestRequests:
    """요청 형태."""

    @pytest.mark.asyncio
    async def test_create_course_is_multipart(self, api, backend):
        backend.on("POST", "/courses", body={"id": "new-1"})
        cover = ImagePayload("cover.jpg", "image/jpeg", b"\xff\xd8jpeg")

        course = await api.create_course("קורס", "תיאור", "comm-1", image=cover)

        assert course["id"] == "new-1"
        request = backend.requests[0]
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="communityId"' in body
        assert b'filename="cover.jpg"' in body

    @pytest.mark.asyncio
    async def test_create_lesson_is_json(self, api, backend):
        backend.on("POST", "/courses/chapters/ch1/lessons", body={"id": "l9"})

        await api.create_lesson("ch1", {"title": "t", "duration": 5})

        assert backend.json_body(backend.requests[0]) == {"title": "t", "duration": 5}

    @pytest.mark.asyncio
    async def test_upload_lesson_image_returns_url(self, api, backend):
        backend.on("POST", "/courses/lessons/upload-image", body={"url": "/uploads/x.jpg"})

        url = await api.upload_lesson_image(ImagePayload("x.jpg", "image/jpeg", b"data"))

        assert url == "/uploads/x.jpg"

    @pytest.mark.asyncio
    async def test_upload_without_url_fails(self, api, backend):
        backend.on("POST", "/courses/lessons/upload-image", body={})

        with pytest.raises(BackendError):
            await api.upload_lesson_image(ImagePayload("x.jpg", "image/jpeg", b"data"))

    @pytest.mark.asyncio
    async def test_check_slug_excludes_own_community(self, api, backend):
        backend.on("GET", "/communities/check-slug/my-slug", body={"available": False})

        assert await api.check_slug("my-slug", exclude_id="comm-1") is False
        assert backend.requests[0].url.params["excludeId"] == "comm-1"

    @pytest.mark.asyncio
    async def test_member_role_update(self, api, backend):
        backend.on("PUT", "/communities/comm-1/members/m3/role", body={})

        await api.update_member_role("comm-1", "m3", "MANAGER")

        assert backend.json_body(backend.requests[0]) == {"role": "MANAGER"}


class TestClientConfig:
    def test_from_config(self, test_config):
        client = KibutzAPIClient.from_config(test_config, token="t")

        assert client.base_url == "http://backend.test"
        assert client.retry_initial_delay == 0
        assert client.token == "t"

    def test_asset_url(self, api):
        assert api.asset_url("/uploads/a.png") == "http://backend.test/uploads/a.png"
        assert api.asset_url("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"
        assert api.asset_url(None) is None

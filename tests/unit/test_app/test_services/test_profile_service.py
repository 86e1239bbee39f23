"""
ProfileService tests.

테스트 케이스:
1. 프로필 캐시 갱신, 백엔드 장애 시 기존 캐시 (토큰 거부는 전파)
2. 프로필 페이지 병렬 조회 (부가 정보 실패는 기본값)
3. 팔로우 토글
"""

import pytest

from src.app.backend import BackendError, KibutzAPIClient
from src.app.services.profile import ProfileService
from src.core.storage import LocalStore

USER = {"id": "user-2", "name": "Noa", "email": "noa@example.com", "profileImage": "/u/noa.png"}


@pytest.fixture
def store(tmp_path) -> LocalStore:
    return LocalStore.for_user(tmp_path, "user-1")


class TestProfileCache:
    @pytest.mark.asyncio
    async def test_refresh_writes_cache(self, api, backend, store):
        backend.on("GET", "/users/me", body={"userId": "user-1", "name": "Dana", "profileImage": None})

        entry = await ProfileService(api, store).refresh_profile()

        assert entry == {"name": "Dana", "profileImage": None}
        assert store.get("userProfileCache") == entry

    @pytest.mark.asyncio
    async def test_network_failure_uses_cached(self, api, backend, store):
        store.set("userProfileCache", {"name": "Old", "profileImage": None})
        backend.unreachable("GET", "/users/me")

        entry = await ProfileService(api, store).refresh_profile()

        assert entry == {"name": "Old", "profileImage": None}

    @pytest.mark.asyncio
    async def test_rejected_token_is_not_served_from_cache(self, api, backend, store):
        store.set("userProfileCache", {"name": "Old", "profileImage": None})
        backend.on("GET", "/users/me", status=401, body={"message": "Unauthorized"})

        with pytest.raises(BackendError) as exc_info:
            await ProfileService(api, store).refresh_profile()

        assert exc_info.value.status_code == 401
        assert store.get("userProfileCache") == {"name": "Old", "profileImage": None}

    @pytest.mark.asyncio
    async def test_no_store_no_cache(self, api, backend):
        backend.on("GET", "/users/me", status=500, body={})
        assert await ProfileService(api).refresh_profile() is None


class TestProfilePage:
    @pytest.mark.asyncio
    async def test_loads_everything(self, api, backend):
        backend.on("GET", "/users/user-2", body=USER)
        backend.on("GET", "/users/user-2/communities/created", body=[{"id": "comm-1"}])
        backend.on("GET", "/users/user-2/communities/member", body=[])
        backend.on("GET", "/users/user-2/stats", body={"followers": 3, "following": 1})
        backend.on("GET", "/users/user-2/is-following", body={"isFollowing": True})

        page = await ProfileService(api).load_profile_page("user-2", viewer_id="user-1")

        assert page.profile.name == "Noa"
        assert page.stats.followers == 3
        assert page.created_communities == [{"id": "comm-1"}]
        assert page.is_following is True
        assert page.is_self is False

    @pytest.mark.asyncio
    async def test_optional_parts_default(self, api, backend):
        backend.on("GET", "/users/user-2", body=USER)

        page = await ProfileService(api).load_profile_page("user-2", viewer_id="user-2")

        assert page.stats.followers == 0
        assert page.member_communities == []
        assert page.is_following is False
        assert page.is_self is True

    @pytest.mark.asyncio
    async def test_anonymous_skips_is_following(self, backend):
        backend.on("GET", "/users/user-2", body=USER)
        anonymous = KibutzAPIClient(
            base_url="http://backend.test", retry_initial_delay=0, transport=backend.transport
        )

        page = await ProfileService(anonymous).load_profile_page("user-2")

        assert page.is_following is False
        assert backend.calls("GET", "/users/user-2/is-following") == []
        await anonymous.aclose()

    @pytest.mark.asyncio
    async def test_missing_user_propagates(self, api):
        with pytest.raises(BackendError) as exc_info:
            await ProfileService(api).load_profile_page("ghost")
        assert exc_info.value.is_not_found


class TestFollow:
    @pytest.mark.asyncio
    async def test_follow_and_unfollow(self, api, backend):
        backend.on("POST", "/users/user-2/follow", body={})
        backend.on("DELETE", "/users/user-2/follow", body={})
        service = ProfileService(api)

        assert await service.toggle_follow("user-2", is_following=False) is True
        assert await service.toggle_follow("user-2", is_following=True) is False
        assert [r.method for r in backend.requests] == ["POST", "DELETE"]

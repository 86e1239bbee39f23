"""
Profile Service: 내 프로필 캐시, 사용자 프로필 페이지, 팔로우.

프로필 캐시(userProfileCache)는 헤더 표시용이며 서버와 일치하지 않을 수 있다.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from src.app.backend import BackendError, KibutzAPIClient
from src.core.storage import LocalStore
from src.domain.constants import PROFILE_CACHE_KEY
from src.domain.schemas import UserProfile, UserStats
from src.utils.retry import with_fallback

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "המשתמש לא נמצא"


@dataclass
class ProfilePage:
    profile: UserProfile
    stats: UserStats
    created_communities: list[dict[str, Any]] = field(default_factory=list)
    member_communities: list[dict[str, Any]] = field(default_factory=list)
    is_following: bool = False
    is_self: bool = False


class ProfileService:
    def __init__(self, api: KibutzAPIClient, store: LocalStore | None = None) -> None:
        self.api = api
        self.store = store

    # =========================================================================
    # Header cache
    # =========================================================================

    def cached_profile(self) -> dict[str, Any] | None:
        if self.store is None:
            return None
        cached: dict[str, Any] | None = self.store.get(PROFILE_CACHE_KEY)
        return cached

    async def refresh_profile(self) -> dict[str, Any] | None:
        """
        /users/me로 캐시 갱신.

        백엔드에 닿지 못할 때(네트워크, 5xx)만 기존 캐시를 사용한다.
        토큰 거부 등 4xx는 그대로 전파.
        """

        async def fetch() -> dict[str, Any] | None:
            profile = UserProfile.from_api(await self.api.get_me())
            entry = profile.cache_entry()
            if self.store is not None:
                self.store.set(PROFILE_CACHE_KEY, entry)
            return entry

        return await with_fallback(
            fetch,
            self.cached_profile,
            exceptions=(BackendError,),
            when=lambda e: isinstance(e, BackendError) and e.is_unavailable,
        )

    # =========================================================================
    # Profile page
    # =========================================================================

    async def _optional(self, call: Any, default: Any, label: str) -> Any:
        try:
            return await call
        except BackendError as e:
            logger.warning(f"Profile page: {label} unavailable: {e}")
            return default

    async def load_profile_page(
        self, user_id: str, viewer_id: str | None = None
    ) -> ProfilePage:
        """
        프로필, 생성/가입 커뮤니티, 통계, 팔로우 여부를 동시에 조회.

        프로필 조회 실패(404 포함)는 BackendError로 전파, 나머지는 기본값.
        """
        following_call = (
            self._optional(self.api.is_following(user_id), False, "is-following")
            if self.api.token
            else asyncio.sleep(0, result=False)
        )
        profile_data, created, member, stats_data, is_following = await asyncio.gather(
            self.api.get_user(user_id),
            self._optional(self.api.created_communities(user_id), [], "created communities"),
            self._optional(self.api.member_communities(user_id), [], "member communities"),
            self._optional(self.api.get_user_stats(user_id), {}, "stats"),
            following_call,
        )
        return ProfilePage(
            profile=UserProfile.from_api(profile_data),
            stats=UserStats.from_api(stats_data),
            created_communities=created,
            member_communities=member,
            is_following=bool(is_following),
            is_self=viewer_id is not None and viewer_id == user_id,
        )

    async def toggle_follow(self, user_id: str, is_following: bool) -> bool:
        """
        Returns:
            토글 후 팔로우 여부
        """
        if is_following:
            await self.api.unfollow(user_id)
        else:
            await self.api.follow(user_id)
        logger.info(f"Follow toggled: {user_id} -> {not is_following}")
        return not is_following

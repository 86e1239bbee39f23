"""
Member Service: 커뮤니티 멤버 목록, 역할 변경, 제거, 정지 해제.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from src.app.backend import BackendError, KibutzAPIClient
from src.core import permissions
from src.domain.errors import ErrorCodes, PortalError
from src.domain.schemas import BannedUser, Member, Membership

logger = logging.getLogger(__name__)

REMOVE_ERROR = "שגיאה בהסרת המשתמש"
LIFT_BAN_ERROR = "שגיאה בהסרת ההשעיה"


@dataclass
class MembersPage:
    members: list[Member]
    current_role: str | None
    banned: list[BannedUser] = field(default_factory=list)

    @property
    def can_manage(self) -> bool:
        return permissions.is_privileged(self.current_role)


class MemberService:
    def __init__(self, api: KibutzAPIClient) -> None:
        self.api = api

    async def load(self, community_id: str) -> MembersPage:
        """멤버 목록 + 내 역할. 관리자 이상이면 정지 목록도 조회."""
        membership_data, members_data = await asyncio.gather(
            self.api.get_membership(community_id),
            self.api.list_members(community_id),
        )
        membership = Membership.from_api(membership_data)
        page = MembersPage(
            members=[Member.from_api(m) for m in members_data],
            current_role=membership.role,
        )
        if page.can_manage:
            page.banned = await self._banned(community_id)
        return page

    async def _banned(self, community_id: str) -> list[BannedUser]:
        try:
            return [BannedUser.from_api(b) for b in await self.api.list_banned(community_id)]
        except BackendError as e:
            logger.warning(f"Failed to load banned users for {community_id}: {e}")
            return []

    async def change_role(
        self, community_id: str, member: Member, current_role: str | None
    ) -> str:
        """
        MANAGER ↔ USER 토글 (OWNER만 가능).

        Returns:
            새 역할
        """
        if not permissions.can_change_role(current_role, member.role):
            raise PortalError(ErrorCodes.FORBIDDEN, member_id=member.id, action="change_role")

        role = permissions.next_role(member)
        await self.api.update_member_role(community_id, member.id, role)
        member.role = role
        logger.info(f"Member role changed: {member.id} -> {role} (community={community_id})")
        return role

    async def remove_member(
        self, community_id: str, member: Member, current_role: str | None
    ) -> list[BannedUser]:
        """
        멤버 제거 후 정지 목록 새로 고침.

        Returns:
            갱신된 정지 목록
        """
        if not permissions.can_remove_member(current_role, member.role):
            raise PortalError(ErrorCodes.FORBIDDEN, member_id=member.id, action="remove")

        await self.api.remove_member(community_id, member.id)
        logger.info(f"Member removed: {member.id} (community={community_id})")
        return await self._banned(community_id)

    async def lift_ban(self, community_id: str, ban_id: str) -> None:
        await self.api.lift_ban(community_id, ban_id)
        logger.info(f"Ban lifted: {ban_id} (community={community_id})")

    @staticmethod
    def search(members: list[Member], query: str) -> list[Member]:
        return permissions.filter_members(members, query)

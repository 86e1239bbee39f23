"""
Community roles: 멤버 관리 권한 규칙.

- OWNER: 역할 변경 가능 (대상이 OWNER가 아닐 때), OWNER 외 모두 제거 가능
- MANAGER: USER만 제거 가능
- USER: 관리 권한 없음
"""

from typing import Any

from src.domain.constants import ROLE_MANAGER, ROLE_OWNER, ROLE_USER
from src.domain.schemas import Member


def is_privileged(role: str | None) -> bool:
    return role in (ROLE_OWNER, ROLE_MANAGER)


def is_owner_or_manager(community: dict[str, Any], user_id: str | None) -> bool:
    """
    커뮤니티 응답(ownerId, members[])으로 편집 권한 판정.

    Args:
        community: GET /communities/{id} 응답
        user_id: 백엔드가 확인한 사용자 ID
    """
    if not user_id:
        return False
    if community.get("ownerId") == user_id:
        return True
    membership = next(
        (m for m in community.get("members") or [] if m.get("userId") == user_id), None
    )
    return bool(membership) and is_privileged(membership.get("role"))


def can_change_role(current_role: str | None, member_role: str) -> bool:
    return current_role == ROLE_OWNER and member_role != ROLE_OWNER


def can_remove_member(current_role: str | None, member_role: str) -> bool:
    if member_role == ROLE_OWNER:
        return False
    if current_role == ROLE_OWNER:
        return True
    return current_role == ROLE_MANAGER and member_role == ROLE_USER


def next_role(member: Member) -> str:
    """역할 토글: MANAGER ↔ USER."""
    return ROLE_USER if member.role == ROLE_MANAGER else ROLE_MANAGER


def filter_members(members: list[Member], query: str) -> list[Member]:
    """이름/이메일 부분 일치 (대소문자 무시)."""
    needle = query.strip().lower()
    if not needle:
        return list(members)
    return [
        m for m in members
        if needle in m.name.lower() or needle in m.email.lower()
    ]

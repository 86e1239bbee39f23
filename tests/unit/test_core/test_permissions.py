"""
Community role rule tests.
"""

import pytest

from src.core import permissions
from src.domain.schemas import Member


def _member(role: str, name: str = "n", email: str = "e@x.co") -> Member:
    return Member(id=f"m-{name}", user_id=f"u-{name}", name=name, email=email, role=role)


class TestOwnerOrManager:
    def test_owner(self, community_data):
        assert permissions.is_owner_or_manager(community_data, "owner-1") is True

    def test_manager_from_members(self, community_data):
        community_data["members"] = [{"userId": "user-2", "role": "MANAGER"}]
        assert permissions.is_owner_or_manager(community_data, "user-2") is True

    def test_plain_member_or_anonymous(self, community_data):
        community_data["members"] = [{"userId": "user-3", "role": "USER"}]
        assert permissions.is_owner_or_manager(community_data, "user-3") is False
        assert permissions.is_owner_or_manager(community_data, None) is False


class TestRoleRules:
    @pytest.mark.parametrize(
        "current,target,expected",
        [
            ("OWNER", "USER", True),
            ("OWNER", "MANAGER", True),
            ("OWNER", "OWNER", False),
            ("MANAGER", "USER", False),
            ("USER", "USER", False),
        ],
    )
    def test_can_change_role(self, current, target, expected):
        assert permissions.can_change_role(current, target) is expected

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            ("OWNER", "MANAGER", True),
            ("OWNER", "USER", True),
            ("MANAGER", "USER", True),
            ("MANAGER", "MANAGER", False),
            ("USER", "USER", False),
            ("OWNER", "OWNER", False),
        ],
    )
    def test_can_remove_member(self, current, target, expected):
        assert permissions.can_remove_member(current, target) is expected

    def test_next_role_toggles(self):
        assert permissions.next_role(_member("USER")) == "MANAGER"
        assert permissions.next_role(_member("MANAGER")) == "USER"


class TestFilterMembers:
    def test_matches_name_or_email_case_insensitive(self):
        members = [
            _member("USER", name="Noa Levi", email="noa@example.com"),
            _member("USER", name="Avi", email="avi@mail.com"),
        ]

        assert [m.name for m in permissions.filter_members(members, "LEVI")] == ["Noa Levi"]
        assert [m.name for m in permissions.filter_members(members, "mail.com")] == ["Avi"]
        assert len(permissions.filter_members(members, "  ")) == 2

"""
Account / community form validation tests.
"""

import pytest

from src.core import validation
from src.domain.schemas import CommunitySettingsForm


class TestPassword:
    """비밀번호 규칙."""

    @pytest.mark.parametrize(
        "password,strength,label",
        [
            ("", 0, ""),
            ("abc", 1, "חלשה מאוד"),
            ("abcdefgh", 2, "חלשה"),
            ("Abcdefgh", 3, "בינונית"),
            ("Abcdefg1", 4, "חזקה"),
        ],
    )
    def test_strength(self, password, strength, label):
        assert validation.password_strength(password) == strength
        assert validation.strength_label(password) == label

    def test_checklist(self):
        checklist = validation.password_checklist("abcdefgh")

        assert [item["id"] for item in checklist] == ["length", "uppercase", "lowercase", "number"]
        assert [item["met"] for item in checklist] == [True, False, True, False]

    def test_reset_password(self):
        assert validation.validate_reset_password("Abcdefg1", "Abcdefg1", "tok") == {}

        errors = validation.validate_reset_password("weak", "other", "tok")
        assert set(errors) == {"password", "confirm_password"}

    def test_reset_password_missing_token(self):
        errors = validation.validate_reset_password("Abcdefg1", "Abcdefg1", None)
        assert errors == {"token": "טוקן איפוס חסר"}


class TestLoginSignup:
    """로그인/가입 폼."""

    def test_login_ok(self):
        assert validation.validate_login(" dana@example.com ", "x") == {}

    def test_login_errors(self):
        assert validation.validate_login("", "")["email"] == "יש להזין כתובת אימייל"
        assert validation.validate_login("bad", "x") == {"email": "כתובת אימייל לא תקינה"}

    def test_signup_requires_strong_password(self):
        errors = validation.validate_signup("", "dana@example.com", "weak")

        assert errors["name"] == "יש להזין שם"
        assert errors["password"] == "הסיסמה לא עומדת בדרישות"

    def test_signup_ok(self):
        assert validation.validate_signup("Dana", "dana@example.com", "Abcdefg1") == {}


class TestCommunityRules:
    """슬러그, 규칙, 설정."""

    def test_sanitize_slug(self):
        assert validation.sanitize_slug("My Slug_1!") == "myslug1"
        assert validation.sanitize_slug("home-kitchen") == "home-kitchen"

    def test_validate_slug(self):
        assert validation.validate_slug("") == "יש להזין כתובת URL"
        assert validation.validate_slug("ab") is not None
        assert validation.validate_slug("a" * 51) is not None
        assert validation.validate_slug("abc") is None

    def test_add_rule_limit(self):
        rules: list[str] = []
        for text in ["  one ", "two", "three"]:
            assert validation.add_rule(rules, text) is True

        assert validation.add_rule(rules, "four") is False
        assert rules == ["one", "two", "three"]

    def test_add_blank_rule(self):
        rules: list[str] = []
        assert validation.add_rule(rules, "   ") is False

    def test_remove_rule(self):
        rules = ["a", "b"]
        assert validation.remove_rule(rules, 0) is True
        assert rules == ["b"]
        assert validation.remove_rule(rules, 4) is False

    def test_settings_required_fields(self):
        assert validation.validate_community_settings(
            CommunitySettingsForm(name="x", description="y")
        ) == {}
        assert validation.validate_community_settings(
            CommunitySettingsForm(name="x", description=" ")
        ) == {"form": "אנא מלאו את כל השדות החובה"}

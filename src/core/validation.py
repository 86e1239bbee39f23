"""
Form validation: 계정/커뮤니티 폼 검증 규칙.

모든 메시지는 히브리어 (화면에 그대로 노출).
검증 함수는 필드 키 → 메시지 dict를 반환하며 비어 있으면 통과.
"""

import re
from dataclasses import dataclass

from src.domain.constants import (
    EMAIL_RE,
    LINK_URL_RE,
    MAX_COMMUNITY_RULES,
    MIN_PASSWORD_LENGTH,
    SLUG_ALLOWED_RE,
    SLUG_MAX_LENGTH,
    SLUG_MIN_LENGTH,
)
from src.domain.schemas import CommunitySettingsForm

# =============================================================================
# Password
# =============================================================================

@dataclass(frozen=True)
class PasswordRequirement:
    id: str
    label: str
    pattern: re.Pattern[str] | None = None

    def test(self, password: str) -> bool:
        if self.pattern is None:
            return len(password) >= MIN_PASSWORD_LENGTH
        return bool(self.pattern.search(password))


PASSWORD_REQUIREMENTS = (
    PasswordRequirement("length", f"לפחות {MIN_PASSWORD_LENGTH} תווים"),
    PasswordRequirement("uppercase", "אות גדולה באנגלית", re.compile(r"[A-Z]")),
    PasswordRequirement("lowercase", "אות קטנה באנגלית", re.compile(r"[a-z]")),
    PasswordRequirement("number", "מספר אחד לפחות", re.compile(r"[0-9]")),
)


def password_checklist(password: str) -> list[dict[str, object]]:
    """요구사항별 충족 여부 (화면 체크리스트)."""
    return [
        {"id": req.id, "label": req.label, "met": req.test(password)}
        for req in PASSWORD_REQUIREMENTS
    ]


def password_strength(password: str) -> int:
    """충족한 요구사항 개수 (0..4)."""
    return sum(1 for req in PASSWORD_REQUIREMENTS if req.test(password))


def strength_label(password: str) -> str:
    if not password:
        return ""
    strength = password_strength(password)
    if strength <= 1:
        return "חלשה מאוד"
    if strength == 2:
        return "חלשה"
    if strength == 3:
        return "בינונית"
    return "חזקה"


def is_password_valid(password: str) -> bool:
    return password_strength(password) == len(PASSWORD_REQUIREMENTS)


def validate_reset_password(password: str, confirm: str, token: str | None) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not is_password_valid(password):
        errors["password"] = "הסיסמה לא עומדת בדרישות"
    if password != confirm or not confirm:
        errors["confirm_password"] = "הסיסמאות אינן תואמות"
    if not errors and not token:
        errors["token"] = "טוקן איפוס חסר"
    return errors


# =============================================================================
# Login / Signup
# =============================================================================

def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def validate_login(email: str, password: str) -> dict[str, str]:
    errors: dict[str, str] = {}
    email = email.strip()
    if not email:
        errors["email"] = "יש להזין כתובת אימייל"
    elif not is_valid_email(email):
        errors["email"] = "כתובת אימייל לא תקינה"
    if not password:
        errors["password"] = "יש להזין סיסמה"
    return errors


def validate_signup(name: str, email: str, password: str) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not name.strip():
        errors["name"] = "יש להזין שם"
    errors.update(validate_login(email, password))
    if "password" not in errors and not is_password_valid(password):
        errors["password"] = "הסיסמה לא עומדת בדרישות"
    return errors


# =============================================================================
# Community slug / rules / settings
# =============================================================================

def sanitize_slug(value: str) -> str:
    """소문자, 숫자, 하이픈만 남김."""
    return SLUG_ALLOWED_RE.sub("", value.lower())


def validate_slug(slug: str) -> str | None:
    """Returns: 에러 메시지 (통과 시 None)."""
    if not slug.strip():
        return "יש להזין כתובת URL"
    if len(slug) < SLUG_MIN_LENGTH:
        return f"הכתובת חייבת להכיל לפחות {SLUG_MIN_LENGTH} תווים"
    if len(slug) > SLUG_MAX_LENGTH:
        return f"הכתובת יכולה להכיל עד {SLUG_MAX_LENGTH} תווים"
    return None


def add_rule(rules: list[str], text: str) -> bool:
    """규칙 추가 (trim, 빈 값 무시, 최대 MAX_COMMUNITY_RULES)."""
    value = text.strip()
    if not value or len(rules) >= MAX_COMMUNITY_RULES:
        return False
    rules.append(value)
    return True


def remove_rule(rules: list[str], index: int) -> bool:
    if not 0 <= index < len(rules):
        return False
    rules.pop(index)
    return True


def validate_community_settings(form: CommunitySettingsForm) -> dict[str, str]:
    if not form.name.strip() or not form.description.strip():
        return {"form": "אנא מלאו את כל השדות החובה"}
    return {}


def is_valid_link(url: str) -> bool:
    return bool(LINK_URL_RE.match(url.strip()))

"""
Display formatting (히브리어 표시 형식).
"""

from datetime import datetime


def _format_minutes(minutes: int) -> str:
    if minutes == 1:
        return "דקה"
    return f"{minutes} דקות"


def format_duration_hebrew(minutes: int) -> str:
    """
    분 → 히브리어 길이 표기.

    예: 1 → "דקה", 45 → "45 דקות", 60 → "שעה", 120 → "שעתיים",
    61 → "שעה ודקה", 150 → "שעתיים ו30 דקות"
    """
    if minutes < 60:
        return _format_minutes(minutes)

    hours, remaining = divmod(minutes, 60)
    if hours == 1:
        hours_text = "שעה"
    elif hours == 2:
        hours_text = "שעתיים"
    else:
        hours_text = f"{hours} שעות"

    if remaining == 0:
        return hours_text
    if remaining == 1:
        return f"{hours_text} ודקה"
    return f"{hours_text} ו{remaining} דקות"


def format_date_he(value: str | None) -> str:
    """ISO 날짜 → dd.mm.yyyy (파싱 실패 시 원문)."""
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%d.%m.%Y")


def username_from_email(email: str) -> str:
    return "@" + email.split("@")[0] if email else ""


def lesson_count_label(count: int) -> str:
    if count == 1:
        return "שיעור אחד"
    return f"{count} שיעורים"

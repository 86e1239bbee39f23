"""
Hebrew display formatting tests.
"""

import pytest

from src.core.formatting import (
    format_date_he,
    format_duration_hebrew,
    lesson_count_label,
    username_from_email,
)


@pytest.mark.parametrize(
    "minutes,expected",
    [
        (0, "0 דקות"),
        (1, "דקה"),
        (45, "45 דקות"),
        (60, "שעה"),
        (61, "שעה ודקה"),
        (90, "שעה ו30 דקות"),
        (120, "שעתיים"),
        (150, "שעתיים ו30 דקות"),
        (180, "3 שעות"),
        (241, "4 שעות ודקה"),
    ],
)
def test_format_duration_hebrew(minutes, expected):
    assert format_duration_hebrew(minutes) == expected


class TestFormatDate:
    def test_iso_with_z(self):
        assert format_date_he("2024-03-05T10:00:00Z") == "05.03.2024"

    def test_invalid_returns_input(self):
        assert format_date_he("yesterday") == "yesterday"

    def test_empty(self):
        assert format_date_he(None) == ""


def test_username_from_email():
    assert username_from_email("dana@example.com") == "@dana"
    assert username_from_email("") == ""


def test_lesson_count_label():
    assert lesson_count_label(1) == "שיעור אחד"
    assert lesson_count_label(5) == "5 שיעורים"

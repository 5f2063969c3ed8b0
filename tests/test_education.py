"""Tests for education timeline helpers."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from folio.education import (
    NEVER,
    CourseStats,
    course_stats,
    format_display_date,
    group_courses_by_year,
    programs_by_status,
)
from folio.models import AcademicProgram, Course

pytestmark = pytest.mark.unit


def _course(index: int, *, year: int | None, status: str, credits: int = 3) -> Course:
    return Course(id=f"c{index}", code=f"C{index}", year=year, status=status, credits=credits)


COURSES = [
    _course(1, year=2024, status="IN_PROGRESS", credits=4),
    _course(2, year=2022, status="COMPLETED"),
    _course(3, year=2024, status="UPCOMING"),
    _course(4, year=None, status="COMPLETED", credits=2),
    _course(5, year=2022, status="completed", credits=5),
]


def test_group_courses_by_year():
    groups = group_courses_by_year(COURSES)
    assert list(groups) == [2022, 2024]
    assert [c.id for c in groups[2022]] == ["c2", "c5"]
    assert [c.id for c in groups[2024]] == ["c1", "c3"]


def test_group_courses_empty():
    assert group_courses_by_year([]) == {}


def test_course_stats():
    assert course_stats(COURSES) == CourseStats(
        total=5,
        completed=3,
        in_progress=1,
        upcoming=1,
        total_credits=17,
        completed_credits=10,
    )


def test_course_stats_current_counts_as_in_progress():
    stats = course_stats([_course(1, year=2024, status="current")])
    assert stats.in_progress == 1


def test_programs_by_status():
    programs = [
        AcademicProgram(id="a", name="BSc", status="completed"),
        AcademicProgram(id="b", name="MSc", status="ACTIVE"),
        AcademicProgram(id="c", name="PhD", status="planned"),
        AcademicProgram(id="d", name="Second MSc", status="active"),
    ]
    result = programs_by_status(programs)
    assert result.current is not None and result.current.id == "b"
    assert [p.id for p in result.completed] == ["a"]
    assert [p.id for p in result.planned] == ["c"]


def test_programs_by_status_without_active():
    result = programs_by_status([AcademicProgram(id="a", status="planned")])
    assert result.current is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, NEVER),
        ("", NEVER),
        ("2024-03-05T10:00:00Z", "Mar 5, 2024"),
        ("2023-12-25", "Dec 25, 2023"),
        (date(2021, 7, 1), "Jul 1, 2021"),
        (datetime(2020, 1, 31, 23, 59), "Jan 31, 2020"),
    ],
)
def test_format_display_date(value, expected):
    assert format_display_date(value) == expected


def test_format_display_date_invalid():
    with pytest.raises(ValueError):
        format_display_date("not a date")

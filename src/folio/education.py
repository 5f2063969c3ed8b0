"""Derived views for the education timeline.

Pure helpers over already-fetched courses and programs: grouping by year,
credit statistics, program status buckets and display dates.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

from folio.models import AcademicProgram, Course

NEVER = "Never"


@dataclass(frozen=True)
class CourseStats:
    """Headline numbers shown above the course list."""

    total: int = 0
    completed: int = 0
    in_progress: int = 0
    upcoming: int = 0
    total_credits: int = 0
    completed_credits: int = 0


@dataclass(frozen=True)
class ProgramsByStatus:
    current: AcademicProgram | None = None
    completed: tuple[AcademicProgram, ...] = field(default_factory=tuple)
    planned: tuple[AcademicProgram, ...] = field(default_factory=tuple)


def _status(value: str | None) -> str:
    return (value or "").strip().upper().replace("-", "_").replace(" ", "_")


def group_courses_by_year(courses: Iterable[Course]) -> dict[int, list[Course]]:
    """Group courses by ``year``, years ascending, input order kept within a year.

    Courses without a year are left out.
    """
    groups: dict[int, list[Course]] = {}
    for course in courses:
        if course.year is None:
            continue
        groups.setdefault(course.year, []).append(course)
    return {year: groups[year] for year in sorted(groups)}


def course_stats(courses: Iterable[Course]) -> CourseStats:
    total = completed = in_progress = upcoming = 0
    total_credits = completed_credits = 0
    for course in courses:
        total += 1
        credits = course.credits or 0
        total_credits += credits
        status = _status(course.status)
        if status == "COMPLETED":
            completed += 1
            completed_credits += credits
        elif status in ("IN_PROGRESS", "CURRENT"):
            in_progress += 1
        elif status == "UPCOMING":
            upcoming += 1
    return CourseStats(
        total=total,
        completed=completed,
        in_progress=in_progress,
        upcoming=upcoming,
        total_credits=total_credits,
        completed_credits=completed_credits,
    )


def programs_by_status(programs: Iterable[AcademicProgram]) -> ProgramsByStatus:
    """Split programs into the active one, completed ones and planned ones.

    Status comparison is case-insensitive; only the first active program is
    treated as current.
    """
    current: AcademicProgram | None = None
    completed: list[AcademicProgram] = []
    planned: list[AcademicProgram] = []
    for program in programs:
        status = _status(program.status)
        if status == "ACTIVE":
            if current is None:
                current = program
        elif status == "COMPLETED":
            completed.append(program)
        elif status == "PLANNED":
            planned.append(program)
    return ProgramsByStatus(current=current, completed=tuple(completed), planned=tuple(planned))


def format_display_date(value: datetime | date | str | None) -> str:
    """Format a date as ``"Mar 5, 2024"``; ``None`` or empty becomes ``"Never"``.

    Strings are parsed as ISO 8601 (a trailing ``Z`` is accepted).

    Raises
    ------
    ValueError
        If a string value is not a valid ISO 8601 date.
    """
    if value is None or value == "":
        return NEVER
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return f"{value:%b} {value.day}, {value.year}"

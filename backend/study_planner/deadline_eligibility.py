"""Classifies deadlines as study-worthy coursework versus calendar noise."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Pattern, Sequence

from .config import get_settings
from .models import Deadline

ASSIGNMENT_OR_EXAM_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r"\bassignments?\b", re.IGNORECASE),
    re.compile(r"\bexams?\b", re.IGNORECASE),
    re.compile(r"\beksamen\b", re.IGNORECASE),
    re.compile(r"\bmidterm\b", re.IGNORECASE),
    re.compile(r"\bfinal\b", re.IGNORECASE),
    re.compile(r"\boblig\b", re.IGNORECASE),
    re.compile(r"\binnlevering\b", re.IGNORECASE),
)

LAB_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r"\blab\b", re.IGNORECASE),
    re.compile(r"\blaboratorium\b", re.IGNORECASE),
)


def has_assignment_or_exam_keyword(text: str) -> bool:
    return any(pattern.search(text) for pattern in ASSIGNMENT_OR_EXAM_PATTERNS)


def _has_lab_keyword(text: str) -> bool:
    return any(pattern.search(text) for pattern in LAB_PATTERNS)


def _is_lab_course(course: str, prefixes: Iterable[str]) -> bool:
    normalized = course.strip().upper()
    return any(prefix and normalized.startswith(prefix.strip().upper()) for prefix in prefixes)


def is_study_worthy(
    deadline: Deadline,
    *,
    lab_course_prefixes: Optional[Iterable[str]] = None,
) -> bool:
    """Return True when the deadline is an assignment or exam worth planning work for.

    A deadline linked to an LMS assignment always qualifies. Otherwise the
    course and task text must contain an assignment/exam keyword, or a lab
    keyword when the course belongs to one of the lab course families.
    """
    if isinstance(deadline.source_assignment_id, int):
        return True

    text = f"{deadline.course} {deadline.task}".strip()
    if has_assignment_or_exam_keyword(text):
        return True

    prefixes = lab_course_prefixes if lab_course_prefixes is not None else get_settings().lab_course_prefixes
    return _is_lab_course(deadline.course, prefixes) and _has_lab_keyword(deadline.task)


__all__ = ["has_assignment_or_exam_keyword", "is_study_worthy"]

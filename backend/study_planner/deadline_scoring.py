"""Urgency scoring and effort estimates for deadlines."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict

from .models import Priority, ensure_utc

PRIORITY_WEIGHTS: Dict[str, int] = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}

ESTIMATED_WORK_MINUTES: Dict[str, int] = {
    "critical": 300,
    "high": 210,
    "medium": 150,
    "low": 90,
}


def priority_weight(priority: Priority) -> int:
    return PRIORITY_WEIGHTS[priority]


def urgency_bucket(hours_until_due: float) -> int:
    if hours_until_due <= 0:
        return 500
    if hours_until_due <= 24:
        return 450
    if hours_until_due <= 48:
        return 380
    if hours_until_due <= 72:
        return 320
    if hours_until_due <= 7 * 24:
        return 260
    return 180


def hours_until(moment: datetime, now: datetime) -> float:
    return (ensure_utc(moment) - ensure_utc(now)) / timedelta(hours=1)


def deadline_score(priority: Priority, due_date: datetime, now: datetime) -> int:
    """Higher scores are scheduled first."""
    return priority_weight(priority) * 100 + urgency_bucket(hours_until(due_date, now))


def estimate_work_minutes(priority: Priority) -> int:
    # Effort is a flat proxy from priority; task content is not inspected.
    return ESTIMATED_WORK_MINUTES[priority]


__all__ = [
    "ESTIMATED_WORK_MINUTES",
    "PRIORITY_WEIGHTS",
    "deadline_score",
    "estimate_work_minutes",
    "hours_until",
    "priority_weight",
    "urgency_bucket",
]

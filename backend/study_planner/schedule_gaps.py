"""Free-time computation over fixed calendar blocks."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Tuple

from .models import ScheduleEvent, ScheduleGap, ensure_utc

Interval = Tuple[datetime, datetime]


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap; touching intervals do not overlap."""
    return start_a < end_b and end_a > start_b


def merge_busy_blocks(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort intervals and merge the ones that overlap or touch."""
    merged: List[Interval] = []
    for start, end in sorted(intervals):
        if end <= start:
            continue
        if merged and start <= merged[-1][1]:
            previous_start, previous_end = merged[-1]
            merged[-1] = (previous_start, max(previous_end, end))
        else:
            merged.append((start, end))
    return merged


def _gap(start: datetime, end: datetime) -> ScheduleGap:
    minutes = int((end - start) // timedelta(minutes=1))
    return ScheduleGap(start_time=start, end_time=end, duration_minutes=minutes)


def free_intervals(busy: Iterable[Interval], window_start: datetime, window_end: datetime) -> List[ScheduleGap]:
    """Complement of ``busy`` inside ``[window_start, window_end]`` in ascending order."""
    window_start = ensure_utc(window_start)
    window_end = ensure_utc(window_end)
    if window_end <= window_start:
        return []

    clipped: List[Interval] = []
    for start, end in busy:
        start = max(ensure_utc(start), window_start)
        end = min(ensure_utc(end), window_end)
        if end > start:
            clipped.append((start, end))

    gaps: List[ScheduleGap] = []
    cursor = window_start
    for start, end in merge_busy_blocks(clipped):
        if start > cursor:
            gaps.append(_gap(cursor, start))
        cursor = max(cursor, end)
    if window_end > cursor:
        gaps.append(_gap(cursor, window_end))
    return gaps


def calculate_schedule_gaps(
    events: Iterable[ScheduleEvent],
    window_start: datetime,
    window_end: datetime,
) -> List[ScheduleGap]:
    """Return the free spans between ``events`` inside the planning window.

    Events may arrive unsorted and may overlap each other. Events outside the
    window are ignored and events straddling a window boundary are clipped.
    """
    return free_intervals(
        ((event.start_time, event.end_time) for event in events),
        window_start,
        window_end,
    )


__all__ = ["calculate_schedule_gaps", "free_intervals", "merge_busy_blocks", "overlaps"]

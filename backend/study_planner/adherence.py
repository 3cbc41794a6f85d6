"""Study-session check-ins and the adherence metrics derived from them."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from .models import (
    CheckInNote,
    CheckInTrends,
    StudyPlanAdherenceMetrics,
    StudySession,
    ensure_utc,
)
from .session_store import StudySessionStore
from .telemetry import emit_event

logger = logging.getLogger(__name__)

DEFAULT_METRICS_WINDOW_DAYS = 7
CHECK_IN_STATUSES = ("done", "skipped")
LOW_LEVEL_THRESHOLD = 2
HIGH_LEVEL_THRESHOLD = 4


def _validate_level(name: str, value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValueError(f"{name} must be an integer between 1 and 5.")
    return value


def set_session_status(
    store: StudySessionStore,
    session_id: str,
    status: str,
    checked_at: Optional[datetime] = None,
    *,
    energy_level: Optional[int] = None,
    focus_level: Optional[int] = None,
    note: Optional[str] = None,
) -> Optional[StudySession]:
    """Record a check-in for ``session_id``.

    ``pending`` sessions may move to done or skipped, and done/skipped may be
    corrected into each other. Omitted check-in fields keep their previous
    values. Returns ``None`` when the session does not exist.
    """
    if status not in CHECK_IN_STATUSES:
        raise ValueError(f"Unsupported check-in status '{status}'; expected one of {CHECK_IN_STATUSES}.")
    energy_level = _validate_level("energy_level", energy_level)
    focus_level = _validate_level("focus_level", focus_level)

    existing = store.get_session(session_id)
    if existing is None:
        logger.info("Check-in requested for unknown study session %s", session_id)
        return None

    previous_status = existing.status
    updated = existing.model_copy(
        update={
            "status": status,
            "checked_at": ensure_utc(checked_at) if checked_at is not None else datetime.now(timezone.utc),
            "energy_level": energy_level if energy_level is not None else existing.energy_level,
            "focus_level": focus_level if focus_level is not None else existing.focus_level,
            "check_in_note": note if note is not None else existing.check_in_note,
        }
    )
    saved = store.save_session(updated)
    emit_event(
        "study_session_checked_in",
        session_id=session_id,
        deadline_id=saved.deadline_id,
        previous_status=previous_status,
        status=status,
        checked_at=saved.checked_at,
        energy_level=saved.energy_level,
        focus_level=saved.focus_level,
        has_note=bool(saved.check_in_note and saved.check_in_note.strip()),
    )
    return saved


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _percent(numerator: int, denominator: int) -> int:
    if denominator == 0:
        return 0
    return _round_half_up(numerator / denominator * 100)


def _mean(values: Sequence[int]) -> Optional[float]:
    if not values:
        return None
    return _round_half_up(sum(values) / len(values) * 10) / 10


def resolve_metrics_window(
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    end = ensure_utc(window_end) if window_end is not None else ensure_utc(now or datetime.now(timezone.utc))
    start = (
        ensure_utc(window_start)
        if window_start is not None
        else end - timedelta(days=DEFAULT_METRICS_WINDOW_DAYS)
    )
    if start > end:
        start, end = end, start
    return start, end


def _check_in_trends(sessions: Iterable[StudySession], note_limit: Optional[int]) -> CheckInTrends:
    checked = [session for session in sessions if session.checked_at is not None]
    energy = [session.energy_level for session in checked if session.energy_level is not None]
    focus = [session.focus_level for session in checked if session.focus_level is not None]
    with_notes = [
        session for session in checked if session.check_in_note and session.check_in_note.strip()
    ]
    with_notes.sort(key=lambda session: session.checked_at, reverse=True)
    if note_limit is not None:
        with_notes_listed = with_notes[: max(note_limit, 0)]
    else:
        with_notes_listed = with_notes

    return CheckInTrends(
        sessions_checked=len(checked),
        sessions_with_energy=len(energy),
        sessions_with_focus=len(focus),
        sessions_with_notes=len(with_notes),
        average_energy=_mean(energy),
        average_focus=_mean(focus),
        low_energy_count=sum(1 for value in energy if value <= LOW_LEVEL_THRESHOLD),
        high_energy_count=sum(1 for value in energy if value >= HIGH_LEVEL_THRESHOLD),
        low_focus_count=sum(1 for value in focus if value <= LOW_LEVEL_THRESHOLD),
        high_focus_count=sum(1 for value in focus if value >= HIGH_LEVEL_THRESHOLD),
        recent_notes=[
            CheckInNote(
                session_id=session.id,
                course=session.course,
                task=session.task,
                status=session.status,
                checked_at=session.checked_at,
                note=session.check_in_note or "",
            )
            for session in with_notes_listed
            if session.status in CHECK_IN_STATUSES
        ],
    )


def compute_adherence_metrics(
    sessions: Iterable[StudySession],
    *,
    window_start: datetime,
    window_end: datetime,
    note_limit: Optional[int] = None,
) -> StudyPlanAdherenceMetrics:
    """Summarise completion and check-in trends for sessions starting inside the window."""
    start, end = resolve_metrics_window(window_start, window_end)
    in_window: List[StudySession] = [
        session for session in sessions if start <= session.start_time <= end
    ]

    done = [session for session in in_window if session.status == "done"]
    skipped = [session for session in in_window if session.status == "skipped"]
    pending = [session for session in in_window if session.status == "pending"]

    return StudyPlanAdherenceMetrics(
        window_start=start,
        window_end=end,
        sessions_planned=len(in_window),
        sessions_done=len(done),
        sessions_skipped=len(skipped),
        sessions_pending=len(pending),
        completion_rate=_percent(len(done), len(in_window)),
        adherence_rate=_percent(len(done), len(done) + len(skipped)),
        total_planned_minutes=sum(session.duration_minutes for session in in_window),
        completed_minutes=sum(session.duration_minutes for session in done),
        skipped_minutes=sum(session.duration_minutes for session in skipped),
        pending_minutes=sum(session.duration_minutes for session in pending),
        check_in_trends=_check_in_trends(in_window, note_limit),
    )


def get_adherence_metrics(
    store: StudySessionStore,
    *,
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
    note_limit: Optional[int] = None,
) -> StudyPlanAdherenceMetrics:
    start, end = resolve_metrics_window(window_start, window_end, now=now)
    sessions = store.list_sessions(window_start=start, window_end=end)
    return compute_adherence_metrics(sessions, window_start=start, window_end=end, note_limit=note_limit)


__all__ = [
    "compute_adherence_metrics",
    "get_adherence_metrics",
    "resolve_metrics_window",
    "set_session_status",
]

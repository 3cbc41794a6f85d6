"""Tests for study-session check-ins and adherence metrics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from study_planner.adherence import (
    compute_adherence_metrics,
    get_adherence_metrics,
    resolve_metrics_window,
    set_session_status,
)
from study_planner.models import StudySession
from study_planner.session_store import StudySessionStore
from study_planner.telemetry import TelemetryEvent, clear_listeners, register_listener

NOW = datetime(2026, 2, 16, 8, 0, tzinfo=timezone.utc)
WINDOW_START = NOW - timedelta(days=7)


def _session(
    session_id: str,
    minutes: int,
    status: str = "pending",
    *,
    hours_ago: int = 24,
    checked_at: Optional[datetime] = None,
    energy: Optional[int] = None,
    focus: Optional[int] = None,
    note: Optional[str] = None,
) -> StudySession:
    start = NOW - timedelta(hours=hours_ago)
    return StudySession(
        id=session_id,
        deadline_id=f"deadline-{session_id}",
        course="DAT560",
        task=f"Assignment {session_id}",
        priority="medium",
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration_minutes=minutes,
        score=460,
        rationale="Placed in a quality work block this week based on priority and availability.",
        status=status,
        checked_at=checked_at if checked_at is not None else (start if status != "pending" else None),
        energy_level=energy,
        focus_level=focus,
        check_in_note=note,
    )


def _store(sessions: List[StudySession]) -> StudySessionStore:
    store = StudySessionStore()
    for session in sessions:
        store.save_session(session)
    return store


def test_completion_and_adherence_rates() -> None:
    sessions = [
        _session("a", 90, "done"),
        _session("b", 60, "skipped"),
        _session("c", 45, "pending"),
    ]

    metrics = compute_adherence_metrics(sessions, window_start=WINDOW_START, window_end=NOW)

    assert metrics.sessions_planned == 3
    assert (metrics.sessions_done, metrics.sessions_skipped, metrics.sessions_pending) == (1, 1, 1)
    assert metrics.completion_rate == 33
    assert metrics.adherence_rate == 50
    assert metrics.total_planned_minutes == 195
    assert (metrics.completed_minutes, metrics.skipped_minutes, metrics.pending_minutes) == (90, 60, 45)


def test_rates_round_half_up() -> None:
    sessions = [_session("done", 60, "done")] + [_session(f"p{i}", 60) for i in range(7)]

    metrics = compute_adherence_metrics(sessions, window_start=WINDOW_START, window_end=NOW)

    assert metrics.completion_rate == 13
    assert metrics.adherence_rate == 100


def test_no_tracked_sessions_yields_zero_rates() -> None:
    metrics = compute_adherence_metrics([_session("p", 45)], window_start=WINDOW_START, window_end=NOW)

    assert metrics.completion_rate == 0
    assert metrics.adherence_rate == 0
    assert metrics.check_in_trends.sessions_checked == 0
    assert metrics.check_in_trends.average_energy is None
    assert metrics.check_in_trends.recent_notes == []


def test_sessions_outside_window_are_excluded() -> None:
    sessions = [_session("in", 60, "done"), _session("old", 60, "skipped", hours_ago=24 * 10)]

    metrics = compute_adherence_metrics(sessions, window_start=WINDOW_START, window_end=NOW)

    assert metrics.sessions_planned == 1
    assert metrics.adherence_rate == 100


def test_check_in_trends_aggregate_checked_sessions() -> None:
    sessions = [
        _session("a", 60, "done", hours_ago=30, energy=5, focus=4, note="Great flow",
                 checked_at=NOW - timedelta(hours=28)),
        _session("b", 60, "done", hours_ago=20, energy=2, focus=1, note="  ",
                 checked_at=NOW - timedelta(hours=18)),
        _session("c", 60, "skipped", hours_ago=10, energy=1, note="Too tired",
                 checked_at=NOW - timedelta(hours=9)),
        _session("d", 60, "pending", hours_ago=5),
    ]

    trends = compute_adherence_metrics(sessions, window_start=WINDOW_START, window_end=NOW).check_in_trends

    assert trends.sessions_checked == 3
    assert trends.sessions_with_energy == 3
    assert trends.sessions_with_focus == 2
    assert trends.sessions_with_notes == 2
    assert trends.average_energy == pytest.approx(2.7)
    assert trends.average_focus == pytest.approx(2.5)
    assert (trends.low_energy_count, trends.high_energy_count) == (2, 1)
    assert (trends.low_focus_count, trends.high_focus_count) == (1, 1)
    assert [note.session_id for note in trends.recent_notes] == ["c", "a"]
    assert trends.recent_notes[0].status == "skipped"
    assert trends.recent_notes[0].note == "Too tired"


def test_recent_notes_can_be_limited() -> None:
    sessions = [
        _session(str(i), 45, "done", hours_ago=48 - i, note=f"note {i}", checked_at=NOW - timedelta(hours=40 - i))
        for i in range(6)
    ]

    metrics = compute_adherence_metrics(sessions, window_start=WINDOW_START, window_end=NOW, note_limit=2)

    assert [note.session_id for note in metrics.check_in_trends.recent_notes] == ["5", "4"]
    assert metrics.check_in_trends.sessions_with_notes == 6


def test_metrics_window_defaults_and_swaps() -> None:
    start, end = resolve_metrics_window(now=NOW)
    assert (start, end) == (NOW - timedelta(days=7), NOW)

    start, end = resolve_metrics_window(NOW, NOW - timedelta(days=2))
    assert (start, end) == (NOW - timedelta(days=2), NOW)


def test_get_adherence_metrics_reads_store_window() -> None:
    store = _store([_session("a", 90, "done"), _session("b", 60, "skipped"), _session("c", 45)])

    metrics = get_adherence_metrics(store, now=NOW)

    assert metrics.window_end == NOW
    assert metrics.completion_rate == 33
    assert metrics.adherence_rate == 50


def test_check_in_transitions_and_field_preservation() -> None:
    store = _store([_session("a", 60)])

    done = set_session_status(store, "a", "done", NOW, energy_level=4, focus_level=3, note="Finished part 1")
    assert done.status == "done"
    assert done.checked_at == NOW

    corrected = set_session_status(store, "a", "skipped", NOW + timedelta(minutes=5), focus_level=2)
    assert corrected.status == "skipped"
    assert corrected.energy_level == 4
    assert corrected.focus_level == 2
    assert corrected.check_in_note == "Finished part 1"
    assert store.get_session("a") == corrected

    back = set_session_status(store, "a", "done", NOW + timedelta(minutes=10))
    assert back.status == "done"


def test_unknown_session_returns_none() -> None:
    assert set_session_status(StudySessionStore(), "missing", "done", NOW) is None


def test_invalid_check_ins_raise() -> None:
    store = _store([_session("a", 60)])
    with pytest.raises(ValueError):
        set_session_status(store, "a", "pending", NOW)
    with pytest.raises(ValueError):
        set_session_status(store, "a", "done", NOW, energy_level=6)
    with pytest.raises(ValueError):
        set_session_status(store, "a", "done", NOW, focus_level=0)
    assert store.get_session("a").status == "pending"


def test_check_in_emits_telemetry() -> None:
    events: List[TelemetryEvent] = []
    clear_listeners()
    register_listener(events.append)
    store = _store([_session("a", 60)])

    set_session_status(store, "a", "done", NOW, note="ok")

    clear_listeners()
    assert [event.name for event in events] == ["study_session_checked_in"]
    assert events[0].payload["previous_status"] == "pending"
    assert events[0].payload["has_note"] is True

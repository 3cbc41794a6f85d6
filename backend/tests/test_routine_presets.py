"""Tests for routine preset placement and regeneration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

from study_planner.models import RoutinePreset, ScheduleEvent
from study_planner.routine_presets import (
    apply_routine_preset_placements,
    parse_time_of_day,
    weekday_index,
)
from study_planner.telemetry import TelemetryEvent, clear_listeners, register_listener

# Monday 2026-02-16, weekday index 1 (0 = Sunday).
NOW = datetime(2026, 2, 16, 6, 0, tzinfo=timezone.utc)
MONDAY = 1
WEDNESDAY = 3


def _preset(preset_id: str = "gym", **overrides) -> RoutinePreset:
    payload = {
        "id": preset_id,
        "title": "Morning gym",
        "preferred_start_time": "07:00",
        "duration_minutes": 60,
        "workload": "medium",
        "weekdays": [MONDAY],
        "active": True,
    }
    payload.update(overrides)
    return RoutinePreset(**payload)


def _lecture(event_id: str, start: datetime, minutes: int) -> ScheduleEvent:
    return ScheduleEvent(id=event_id, title="DAT520 Lecture", start_time=start, duration_minutes=minutes)


def _routine_events(events: List[ScheduleEvent], preset: RoutinePreset) -> List[ScheduleEvent]:
    return [event for event in events if event.recurrence_parent_id == preset.recurrence_parent_id]


def test_weekday_index_starts_on_sunday() -> None:
    assert weekday_index(NOW.date()) == MONDAY
    assert weekday_index(datetime(2026, 2, 15).date()) == 0


def test_routine_moves_past_conflicting_lecture() -> None:
    lecture = _lecture("lecture", datetime(2026, 2, 16, 7, 0, tzinfo=timezone.utc), 60)
    preset = _preset()

    result = apply_routine_preset_placements([preset], [lecture], now=NOW, horizon_days=1, step_minutes=15)

    assert result.created_events == 1
    routine = _routine_events(result.events, preset)
    assert len(routine) == 1
    assert routine[0].start_time == datetime(2026, 2, 16, 8, 0, tzinfo=timezone.utc)
    assert routine[0].recurrence_parent_id == "routine-preset:gym"
    assert lecture in result.events


def test_routine_takes_next_step_aligned_slot() -> None:
    lecture = _lecture("lecture", datetime(2026, 2, 16, 7, 0, tzinfo=timezone.utc), 30)

    result = apply_routine_preset_placements([_preset()], [lecture], now=NOW, horizon_days=1, step_minutes=15)

    assert [event.start_time for event in result.created] == [datetime(2026, 2, 16, 7, 30, tzinfo=timezone.utc)]


def test_regeneration_replaces_previous_occurrences() -> None:
    preset = _preset("review", title="Nightly review", preferred_start_time="21:00", duration_minutes=45)

    first = apply_routine_preset_placements([preset], [], now=NOW, horizon_days=1)
    second = apply_routine_preset_placements([preset], first.events, now=NOW, horizon_days=1)

    assert first.created_events == 1
    assert second.cleared_events == 1
    assert second.created_events == 1
    assert len(_routine_events(second.events, preset)) == 1
    assert [event.id for event in first.created] == [event.id for event in second.created]


def test_one_occurrence_per_active_weekday_in_horizon() -> None:
    preset = _preset(weekdays=[MONDAY, WEDNESDAY])

    first = apply_routine_preset_placements([preset], [], now=NOW, horizon_days=7)
    second = apply_routine_preset_placements([preset], first.events, now=NOW, horizon_days=7)

    occurrences = _routine_events(second.events, preset)
    assert second.cleared_events == second.created_events == 2
    assert sorted(weekday_index(event.start_time.date()) for event in occurrences) == [MONDAY, WEDNESDAY]


def test_edited_preset_is_regenerated_without_duplicates() -> None:
    original = _preset()
    first = apply_routine_preset_placements([original], [], now=NOW, horizon_days=1)

    edited = _preset(preferred_start_time="18:30", duration_minutes=90)
    second = apply_routine_preset_placements([edited], first.events, now=NOW, horizon_days=1)

    occurrences = _routine_events(second.events, edited)
    assert len(occurrences) == 1
    assert occurrences[0].start_time == datetime(2026, 2, 16, 18, 30, tzinfo=timezone.utc)
    assert occurrences[0].duration_minutes == 90


def test_presets_on_same_slot_do_not_collide() -> None:
    reading = _preset("reading", title="Reading", preferred_start_time="07:00", duration_minutes=30)
    gym = _preset("gym", title="Gym", preferred_start_time="07:00", duration_minutes=60)

    result = apply_routine_preset_placements([reading, gym], [], now=NOW, horizon_days=1, step_minutes=15)

    by_id = {event.recurrence_parent_id: event for event in result.created}
    # Same preferred start: placed in title order.
    assert by_id["routine-preset:gym"].start_time == datetime(2026, 2, 16, 7, 0, tzinfo=timezone.utc)
    assert by_id["routine-preset:reading"].start_time == datetime(2026, 2, 16, 8, 0, tzinfo=timezone.utc)


def test_day_without_room_is_skipped() -> None:
    all_day = _lecture("exam-day", datetime(2026, 2, 16, 0, 0, tzinfo=timezone.utc), 24 * 60)

    result = apply_routine_preset_placements([_preset()], [all_day], now=NOW, horizon_days=1)

    assert result.created_events == 0
    assert result.skipped_placements == 1


def test_late_preferred_start_does_not_spill_into_next_day() -> None:
    preset = _preset(preferred_start_time="23:30", duration_minutes=60)

    result = apply_routine_preset_placements([preset], [], now=NOW, horizon_days=1)

    assert result.created_events == 0
    assert result.skipped_placements == 1


def test_unreadable_start_time_is_skipped() -> None:
    assert parse_time_of_day("7am") is None
    assert parse_time_of_day("24:00") is None
    assert parse_time_of_day(" 7:05 ").hour == 7

    result = apply_routine_preset_placements([_preset(preferred_start_time="7am")], [], now=NOW, horizon_days=1)

    assert result.created_events == 0
    assert result.skipped_placements == 1


def test_inactive_presets_are_ignored_but_their_old_occurrences_cleared() -> None:
    preset = _preset()
    first = apply_routine_preset_placements([preset], [], now=NOW, horizon_days=1)

    paused = _preset(active=False)
    second = apply_routine_preset_placements([paused], first.events, now=NOW, horizon_days=1)

    assert second.presets_considered == 0
    assert second.cleared_events == 1
    assert _routine_events(second.events, paused) == []


def test_events_outside_horizon_and_fixed_events_are_kept() -> None:
    lecture = _lecture("lecture", datetime(2026, 2, 16, 12, 0, tzinfo=timezone.utc), 90)
    earlier = ScheduleEvent(
        id="routine-gym-old",
        title="Morning gym",
        start_time=datetime(2026, 2, 9, 7, 0, tzinfo=timezone.utc),
        duration_minutes=60,
        recurrence_parent_id="routine-preset:gym",
    )

    result = apply_routine_preset_placements([_preset()], [lecture, earlier], now=NOW, horizon_days=1)

    assert result.cleared_events == 0
    assert lecture in result.events
    assert earlier in result.events
    assert len(result.events) == 3


def test_weekdays_and_duration_are_normalised() -> None:
    assert _preset(weekdays=[]).weekdays == [0, 1, 2, 3, 4, 5, 6]
    assert _preset(weekdays=[9, -1, 2, 2]).weekdays == [2]
    assert _preset(weekdays=[7, 8]).weekdays == [0, 1, 2, 3, 4, 5, 6]
    assert _preset(duration_minutes=5).duration_minutes == 15
    assert _preset(title="  Stretch  ").title == "Stretch"


def test_horizon_and_step_are_clamped() -> None:
    preset = _preset(weekdays=[])

    result = apply_routine_preset_placements([preset], [], now=NOW, horizon_days=90, step_minutes=1)

    assert result.window_end - result.window_start == timedelta(days=31)
    assert result.created_events == 31


def test_local_timezone_controls_day_boundaries() -> None:
    preset = _preset()

    result = apply_routine_preset_placements(
        [preset],
        [],
        now=NOW,
        horizon_days=1,
        timezone_name="Europe/Oslo",
    )

    # 07:00 in Oslo during winter is 06:00 UTC.
    assert [event.start_time for event in result.created] == [datetime(2026, 2, 16, 6, 0, tzinfo=timezone.utc)]
    assert result.window_start == datetime(2026, 2, 15, 23, 0, tzinfo=timezone.utc)


def test_spring_forward_day_measures_real_duration() -> None:
    # Oslo jumps from 02:00 to 03:00 local on 2026-03-29 (a Sunday).
    preset = _preset(preferred_start_time="01:30", duration_minutes=120, weekdays=[0])
    lecture = _lecture("lecture", datetime(2026, 3, 29, 2, 0, tzinfo=timezone.utc), 60)

    result = apply_routine_preset_placements(
        [preset],
        [lecture],
        now=datetime(2026, 3, 29, 0, 0, tzinfo=timezone.utc),
        horizon_days=1,
        step_minutes=15,
        timezone_name="Europe/Oslo",
    )

    assert result.created_events == 1
    occurrence = result.created[0]
    assert occurrence.start_time == datetime(2026, 3, 29, 3, 0, tzinfo=timezone.utc)
    assert not (occurrence.start_time < lecture.end_time and occurrence.end_time > lecture.start_time)
    assert result.window_end - result.window_start == timedelta(hours=23)


def test_fall_back_day_keeps_preferred_slot() -> None:
    # Oslo repeats 02:00-03:00 local on 2026-10-25 (a Sunday); 01:30 CEST is 23:30 UTC the day before.
    preset = _preset(preferred_start_time="01:30", duration_minutes=120, weekdays=[0])
    lecture = _lecture("lecture", datetime(2026, 10, 25, 1, 45, tzinfo=timezone.utc), 30)

    result = apply_routine_preset_placements(
        [preset],
        [lecture],
        now=datetime(2026, 10, 25, 0, 0, tzinfo=timezone.utc),
        horizon_days=1,
        step_minutes=15,
        timezone_name="Europe/Oslo",
    )

    assert [event.start_time for event in result.created] == [datetime(2026, 10, 24, 23, 30, tzinfo=timezone.utc)]
    assert result.created[0].end_time == datetime(2026, 10, 25, 1, 30, tzinfo=timezone.utc)
    assert result.window_end - result.window_start == timedelta(hours=25)


def test_placement_emits_telemetry() -> None:
    events: List[TelemetryEvent] = []
    clear_listeners()
    register_listener(events.append)

    apply_routine_preset_placements([_preset()], [], now=NOW, horizon_days=1)

    clear_listeners()
    names = [event.name for event in events]
    assert names == ["routine_presets_applied"]
    assert events[0].payload["created_events"] == 1

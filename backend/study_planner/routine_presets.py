"""Placement of recurring routine blocks around fixed calendar events."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional, Sequence, Tuple

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import get_settings
from .models import RoutinePlacementResult, RoutinePreset, ScheduleEvent, ensure_utc
from .schedule_gaps import Interval, overlaps
from .telemetry import emit_event

logger = logging.getLogger(__name__)

MIN_HORIZON_DAYS = 1
MAX_HORIZON_DAYS = 31
MIN_STEP_MINUTES = 5
MAX_STEP_MINUTES = 60
_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_time_of_day(value: str) -> Optional[time]:
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        return None
    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def weekday_index(day: date) -> int:
    """Weekday numbering used by presets: 0=Sunday through 6=Saturday."""
    return (day.weekday() + 1) % 7


def _resolve_timezone(raw: Optional[str]) -> tzinfo:
    if raw is None or not raw.strip():
        return timezone.utc
    try:
        return ZoneInfo(raw.strip())
    except ZoneInfoNotFoundError:
        logger.warning("Ignoring unsupported timezone value: %s", raw)
        return timezone.utc


def _local_midnight(day: date, zone: tzinfo) -> datetime:
    # Local time only picks the calendar day; slot arithmetic stays in UTC.
    return ensure_utc(datetime.combine(day, time(0), tzinfo=zone))


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def _preset_order(preset: RoutinePreset) -> Tuple[int, str]:
    parsed = parse_time_of_day(preset.preferred_start_time)
    minutes = parsed.hour * 60 + parsed.minute if parsed else 24 * 60
    return minutes, preset.title


def find_free_slot(
    preferred_start: datetime,
    duration: timedelta,
    day_start: datetime,
    day_end: datetime,
    occupied: Sequence[Interval],
    step: timedelta,
) -> Optional[datetime]:
    """First step-aligned start at or after ``preferred_start`` that fits before ``day_end``."""
    if duration > day_end - day_start:
        return None
    candidate = max(preferred_start, day_start)
    while candidate + duration <= day_end:
        end = candidate + duration
        if not any(overlaps(candidate, end, start, stop) for start, stop in occupied):
            return candidate
        candidate += step
    return None


def _occurrence(preset: RoutinePreset, start: datetime) -> ScheduleEvent:
    start_utc = ensure_utc(start)
    return ScheduleEvent(
        id=f"routine-{preset.id}-{start_utc.strftime('%Y%m%d%H%M')}",
        title=preset.title,
        start_time=start_utc,
        duration_minutes=preset.duration_minutes,
        workload=preset.workload,
        recurrence_parent_id=preset.recurrence_parent_id,
    )


def apply_routine_preset_placements(
    presets: Iterable[RoutinePreset],
    existing_events: Iterable[ScheduleEvent],
    *,
    now: Optional[datetime] = None,
    horizon_days: Optional[int] = None,
    step_minutes: Optional[int] = None,
    timezone_name: Optional[str] = None,
) -> RoutinePlacementResult:
    """Clear previously generated routine occurrences in the horizon and place them again.

    The horizon starts at midnight of the day containing ``now``. Each active
    preset gets at most one occurrence per active weekday, at the preferred
    start time or the next step-aligned slot that avoids fixed events and the
    occurrences already placed in this run. Days without room are skipped.
    """
    settings = get_settings()
    zone = _resolve_timezone(timezone_name)
    reference = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
    horizon_value = horizon_days if horizon_days is not None else settings.horizon_days
    horizon = _clamp(int(round(horizon_value)), MIN_HORIZON_DAYS, MAX_HORIZON_DAYS)
    step_value = step_minutes if step_minutes is not None else settings.routine_step_minutes
    step = timedelta(minutes=_clamp(int(round(step_value)), MIN_STEP_MINUTES, MAX_STEP_MINUTES))

    first_day = reference.astimezone(zone).date()
    window_start = _local_midnight(first_day, zone)
    window_end = _local_midnight(first_day + timedelta(days=horizon), zone)

    kept: List[ScheduleEvent] = []
    cleared = 0
    for event in existing_events:
        if event.is_routine_generated and window_start <= event.start_time < window_end:
            cleared += 1
            continue
        kept.append(event)

    active_presets = sorted((preset for preset in presets if preset.active), key=_preset_order)
    fixed = [(event.start_time, event.end_time) for event in kept if not event.is_routine_generated]
    created: List[ScheduleEvent] = []
    skipped = 0

    for offset in range(horizon):
        day = first_day + timedelta(days=offset)
        day_start = _local_midnight(day, zone)
        day_end = _local_midnight(day + timedelta(days=1), zone)
        weekday = weekday_index(day)

        for preset in active_presets:
            if weekday not in preset.weekdays:
                continue
            preferred = parse_time_of_day(preset.preferred_start_time)
            if preferred is None:
                logger.warning(
                    "Routine preset %s has unreadable start time %r; skipping %s",
                    preset.id,
                    preset.preferred_start_time,
                    day.isoformat(),
                )
                skipped += 1
                continue

            occupied = [
                interval
                for interval in [*fixed, *((event.start_time, event.end_time) for event in created)]
                if overlaps(interval[0], interval[1], day_start, day_end)
            ]
            start = find_free_slot(
                ensure_utc(datetime.combine(day, preferred, tzinfo=zone)),
                timedelta(minutes=preset.duration_minutes),
                day_start,
                day_end,
                occupied,
                step,
            )
            if start is None:
                logger.debug("No free slot for routine preset %s on %s", preset.id, day.isoformat())
                skipped += 1
                continue
            created.append(_occurrence(preset, start))

    events = sorted([*kept, *created], key=lambda event: (event.start_time, event.id))
    result = RoutinePlacementResult(
        window_start=ensure_utc(window_start),
        window_end=ensure_utc(window_end),
        presets_considered=len(active_presets),
        cleared_events=cleared,
        created_events=len(created),
        skipped_placements=skipped,
        created=created,
        events=events,
    )
    emit_event(
        "routine_presets_applied",
        window_start=result.window_start,
        window_end=result.window_end,
        horizon_days=horizon,
        presets_considered=result.presets_considered,
        cleared_events=cleared,
        created_events=len(created),
        skipped_placements=skipped,
    )
    return result


__all__ = [
    "apply_routine_preset_placements",
    "find_free_slot",
    "parse_time_of_day",
    "weekday_index",
]

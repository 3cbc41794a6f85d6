"""Planner domain models shared by the allocator, routine placer, and adherence tracker."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

Priority = Literal["low", "medium", "high", "critical"]
Workload = Literal["low", "medium", "high"]
SessionStatus = Literal["pending", "done", "skipped"]
CheckInStatus = Literal["done", "skipped"]

ROUTINE_PARENT_PREFIX = "routine-preset:"
ALL_WEEKDAYS: List[int] = [0, 1, 2, 3, 4, 5, 6]
MIN_ROUTINE_DURATION_MINUTES = 15
LATEST_TIMESTAMP = datetime.max.replace(tzinfo=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, reading naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning ``None`` when it cannot be read."""
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    if not text:
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return ensure_utc(parsed)


def format_utc(value: datetime) -> str:
    """Render a timestamp the way the planner persists it: ``2026-02-17T08:00:00.000Z``."""
    moment = ensure_utc(value)
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{moment.microsecond // 1000:03d}Z"


class Deadline(BaseModel):
    """Outstanding coursework synced from the LMS or entered by the learner."""

    id: str
    course: str
    task: str
    due_date: str
    priority: Priority = "medium"
    completed: bool = False
    source_assignment_id: Optional[int] = None
    notes: Optional[str] = None


class ScheduleEvent(BaseModel):
    """Fixed calendar block (lecture, imported event, or generated routine occurrence)."""

    id: str
    title: str
    start_time: datetime
    duration_minutes: int = Field(ge=0)
    workload: Workload = "medium"
    recurrence_parent_id: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def _normalize_start(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def end_time(self) -> datetime:
        try:
            return self.start_time + timedelta(minutes=self.duration_minutes)
        except OverflowError:
            # Malformed imports can run past the representable calendar.
            logger.debug("Event %s duration %s overflows; clamping its end", self.id, self.duration_minutes)
            return LATEST_TIMESTAMP

    @property
    def is_routine_generated(self) -> bool:
        parent = self.recurrence_parent_id
        return isinstance(parent, str) and parent.startswith(ROUTINE_PARENT_PREFIX)


class ScheduleGap(BaseModel):
    start_time: datetime
    end_time: datetime
    duration_minutes: int = Field(ge=0)


class StudySession(BaseModel):
    """Focused work block allocated to a deadline."""

    id: str
    deadline_id: str
    course: str
    task: str
    priority: Priority
    start_time: datetime
    end_time: datetime
    duration_minutes: int = Field(ge=1)
    score: int
    rationale: str
    generated_at: Optional[datetime] = None
    status: SessionStatus = "pending"
    checked_at: Optional[datetime] = None
    energy_level: Optional[int] = Field(default=None, ge=1, le=5)
    focus_level: Optional[int] = Field(default=None, ge=1, le=5)
    check_in_note: Optional[str] = None

    @field_validator("start_time", "end_time", "generated_at", "checked_at")
    @classmethod
    def _normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class StudyPlanSummary(BaseModel):
    horizon_days: int = Field(ge=1)
    deadlines_considered: int = Field(default=0, ge=0)
    deadlines_covered: int = Field(default=0, ge=0)
    total_sessions: int = Field(default=0, ge=0)
    total_planned_minutes: int = Field(default=0, ge=0)


class StudyPlanUnallocatedItem(BaseModel):
    """Deadline whose estimated work did not fit into the planning window."""

    deadline_id: str
    course: str
    task: str
    priority: Priority
    due_date: str
    remaining_minutes: int = Field(ge=0)
    reason: str


class StudyPlan(BaseModel):
    generated_at: datetime
    window_start: datetime
    window_end: datetime
    summary: StudyPlanSummary
    sessions: List[StudySession] = Field(default_factory=list)
    unallocated: List[StudyPlanUnallocatedItem] = Field(default_factory=list)

    @field_validator("generated_at", "window_start", "window_end")
    @classmethod
    def _normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class RoutinePreset(BaseModel):
    """Recurring habit block placed around fixed events on its active weekdays."""

    id: str
    title: str
    preferred_start_time: str
    duration_minutes: int
    workload: Workload = "medium"
    weekdays: List[int] = Field(default_factory=lambda: list(ALL_WEEKDAYS))
    active: bool = True

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        return value.strip()

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def _normalize_duration(cls, value: Any) -> int:
        return max(MIN_ROUTINE_DURATION_MINUTES, int(round(float(value))))

    @field_validator("weekdays", mode="before")
    @classmethod
    def _normalize_weekdays(cls, value: Any) -> List[int]:
        values = value if isinstance(value, (list, tuple, set, frozenset)) else []
        normalized = sorted(
            {
                entry
                for entry in values
                if isinstance(entry, int) and not isinstance(entry, bool) and 0 <= entry <= 6
            }
        )
        if not normalized:
            if values:
                logger.debug("Routine weekdays %r contained no valid entries; using every day", value)
            return list(ALL_WEEKDAYS)
        return normalized

    @property
    def recurrence_parent_id(self) -> str:
        return f"{ROUTINE_PARENT_PREFIX}{self.id}"


class RoutinePlacementResult(BaseModel):
    window_start: datetime
    window_end: datetime
    presets_considered: int = Field(default=0, ge=0)
    cleared_events: int = Field(default=0, ge=0)
    created_events: int = Field(default=0, ge=0)
    skipped_placements: int = Field(default=0, ge=0)
    created: List[ScheduleEvent] = Field(default_factory=list)
    events: List[ScheduleEvent] = Field(default_factory=list)


class CheckInNote(BaseModel):
    session_id: str
    course: str
    task: str
    status: CheckInStatus
    checked_at: datetime
    note: str


class CheckInTrends(BaseModel):
    sessions_checked: int = Field(default=0, ge=0)
    sessions_with_energy: int = Field(default=0, ge=0)
    sessions_with_focus: int = Field(default=0, ge=0)
    sessions_with_notes: int = Field(default=0, ge=0)
    average_energy: Optional[float] = None
    average_focus: Optional[float] = None
    low_energy_count: int = Field(default=0, ge=0)
    high_energy_count: int = Field(default=0, ge=0)
    low_focus_count: int = Field(default=0, ge=0)
    high_focus_count: int = Field(default=0, ge=0)
    recent_notes: List[CheckInNote] = Field(default_factory=list)


class StudyPlanAdherenceMetrics(BaseModel):
    """Completion and check-in summary over a window of planned sessions."""

    window_start: datetime
    window_end: datetime
    sessions_planned: int = Field(default=0, ge=0)
    sessions_done: int = Field(default=0, ge=0)
    sessions_skipped: int = Field(default=0, ge=0)
    sessions_pending: int = Field(default=0, ge=0)
    completion_rate: int = Field(default=0, ge=0, le=100)
    adherence_rate: int = Field(default=0, ge=0, le=100)
    total_planned_minutes: int = Field(default=0, ge=0)
    completed_minutes: int = Field(default=0, ge=0)
    skipped_minutes: int = Field(default=0, ge=0)
    pending_minutes: int = Field(default=0, ge=0)
    check_in_trends: CheckInTrends = Field(default_factory=CheckInTrends)


__all__ = [
    "ALL_WEEKDAYS",
    "LATEST_TIMESTAMP",
    "CheckInNote",
    "CheckInStatus",
    "CheckInTrends",
    "Deadline",
    "Priority",
    "ROUTINE_PARENT_PREFIX",
    "RoutinePlacementResult",
    "RoutinePreset",
    "ScheduleEvent",
    "ScheduleGap",
    "SessionStatus",
    "StudyPlan",
    "StudyPlanAdherenceMetrics",
    "StudyPlanSummary",
    "StudyPlanUnallocatedItem",
    "StudySession",
    "Workload",
    "ensure_utc",
    "format_utc",
    "parse_timestamp",
]

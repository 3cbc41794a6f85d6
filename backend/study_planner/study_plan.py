"""Greedy study-session allocation over free calendar gaps."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from time import perf_counter
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import get_settings
from .deadline_eligibility import is_study_worthy
from .deadline_scoring import deadline_score, estimate_work_minutes, hours_until
from .models import (
    Deadline,
    ScheduleEvent,
    StudyPlan,
    StudyPlanSummary,
    StudyPlanUnallocatedItem,
    StudySession,
    ensure_utc,
    parse_timestamp,
)
from .schedule_gaps import calculate_schedule_gaps
from .telemetry import emit_event

if TYPE_CHECKING:
    from .session_store import StudySessionStore

logger = logging.getLogger(__name__)

UNALLOCATED_REASON = "Insufficient schedule gaps within planning window."
SESSION_ID_PREFIX = "study-session-"


@dataclass
class _DeadlineState:
    deadline: Deadline
    due_date: datetime
    score: int
    remaining_minutes: int

    def sort_key(self) -> Tuple[int, datetime, str, str]:
        return (-self.score, self.due_date, self.deadline.task, self.deadline.id)


@dataclass(frozen=True)
class PlanningOptions:
    now: datetime
    horizon_days: int
    min_session_minutes: int
    max_session_minutes: int

    @property
    def window_end(self) -> datetime:
        return self.now + timedelta(days=self.horizon_days)


def session_time_key(start: datetime) -> str:
    moment = ensure_utc(start)
    return f"{moment.strftime('%Y%m%d%H%M%S')}{moment.microsecond // 1000:03d}"


def build_session_id(deadline_id: str, start: datetime) -> str:
    return f"{SESSION_ID_PREFIX}{deadline_id}-{session_time_key(start)}"


def build_rationale(deadline: Deadline, due_date: datetime, start_time: datetime, now: datetime) -> str:
    hours_until_due = math.floor(hours_until(due_date, now))
    starts_in_hours = math.floor(hours_until(start_time, now))

    if hours_until_due <= 0:
        return f"Overdue {deadline.course} work, scheduled immediately in the next available block."
    if hours_until_due <= 48:
        return f"Due soon ({hours_until_due}h). This block is prioritized to reduce deadline risk."
    if starts_in_hours <= 24:
        return "Scheduled in a near-term gap to keep steady progress before the due date."
    return "Placed in a quality work block this week based on priority and availability."


class StudyPlanner:
    """Allocates bounded study sessions to eligible deadlines, most urgent first."""

    def __init__(
        self,
        *,
        horizon_days: Optional[int] = None,
        min_session_minutes: Optional[int] = None,
        max_session_minutes: Optional[int] = None,
        lab_course_prefixes: Optional[Sequence[str]] = None,
    ) -> None:
        self._horizon_days = horizon_days
        self._min_session_minutes = min_session_minutes
        self._max_session_minutes = max_session_minutes
        self._lab_course_prefixes = lab_course_prefixes

    def resolve_options(
        self,
        *,
        now: Optional[datetime] = None,
        horizon_days: Optional[int] = None,
        min_session_minutes: Optional[int] = None,
        max_session_minutes: Optional[int] = None,
    ) -> PlanningOptions:
        settings = get_settings()
        options = PlanningOptions(
            now=ensure_utc(now) if now is not None else datetime.now(timezone.utc),
            horizon_days=_first_set(horizon_days, self._horizon_days, settings.horizon_days),
            min_session_minutes=_first_set(
                min_session_minutes, self._min_session_minutes, settings.min_session_minutes
            ),
            max_session_minutes=_first_set(
                max_session_minutes, self._max_session_minutes, settings.max_session_minutes
            ),
        )
        if options.horizon_days <= 0:
            raise ValueError("horizon_days must be positive.")
        if options.min_session_minutes <= 0:
            raise ValueError("min_session_minutes must be positive.")
        if options.max_session_minutes < options.min_session_minutes:
            raise ValueError("max_session_minutes must be greater than or equal to min_session_minutes.")
        return options

    def generate(
        self,
        deadlines: Iterable[Deadline],
        events: Iterable[ScheduleEvent],
        *,
        now: Optional[datetime] = None,
        horizon_days: Optional[int] = None,
        min_session_minutes: Optional[int] = None,
        max_session_minutes: Optional[int] = None,
    ) -> StudyPlan:
        options = self.resolve_options(
            now=now,
            horizon_days=horizon_days,
            min_session_minutes=min_session_minutes,
            max_session_minutes=max_session_minutes,
        )
        window_end = options.window_end
        states = self._eligible_states(deadlines, options)

        sessions: List[StudySession] = []
        if states:
            gaps = [
                gap
                for gap in calculate_schedule_gaps(events, options.now, window_end)
                if gap.duration_minutes >= options.min_session_minutes
            ]
            for gap in gaps:
                sessions.extend(self._fill_gap(gap.start_time, gap.duration_minutes, states, options))
            sessions.sort(key=lambda session: session.start_time)

        unallocated = [
            StudyPlanUnallocatedItem(
                deadline_id=state.deadline.id,
                course=state.deadline.course,
                task=state.deadline.task,
                priority=state.deadline.priority,
                due_date=state.deadline.due_date,
                remaining_minutes=state.remaining_minutes,
                reason=UNALLOCATED_REASON,
            )
            for state in states
            if state.remaining_minutes > 0
        ]
        covered = {state.deadline.id for state in states if state.remaining_minutes <= 0}

        logger.debug(
            "Planned %s sessions for %s deadlines (%s unallocated)",
            len(sessions),
            len(states),
            len(unallocated),
        )
        return StudyPlan(
            generated_at=options.now,
            window_start=options.now,
            window_end=window_end,
            summary=StudyPlanSummary(
                horizon_days=options.horizon_days,
                deadlines_considered=len(states),
                deadlines_covered=len(covered),
                total_sessions=len(sessions),
                total_planned_minutes=sum(session.duration_minutes for session in sessions),
            ),
            sessions=sessions,
            unallocated=unallocated,
        )

    def _eligible_states(self, deadlines: Iterable[Deadline], options: PlanningOptions) -> List[_DeadlineState]:
        window_end = options.window_end
        states: List[_DeadlineState] = []
        for deadline in deadlines:
            if deadline.completed:
                continue
            if not is_study_worthy(deadline, lab_course_prefixes=self._lab_course_prefixes):
                continue
            due_date = parse_timestamp(deadline.due_date)
            if due_date is None:
                logger.debug("Skipping deadline %s with unreadable due date %r", deadline.id, deadline.due_date)
                continue
            if due_date > window_end:
                continue
            states.append(
                _DeadlineState(
                    deadline=deadline,
                    due_date=due_date,
                    score=deadline_score(deadline.priority, due_date, options.now),
                    remaining_minutes=estimate_work_minutes(deadline.priority),
                )
            )
        return states

    def _fill_gap(
        self,
        gap_start: datetime,
        gap_minutes: int,
        states: Sequence[_DeadlineState],
        options: PlanningOptions,
    ) -> List[StudySession]:
        sessions: List[StudySession] = []
        cursor = gap_start
        remaining = gap_minutes

        while remaining >= options.min_session_minutes:
            candidates = [state for state in states if state.remaining_minutes >= options.min_session_minutes]
            if not candidates:
                break
            candidate = min(candidates, key=_DeadlineState.sort_key)

            duration = min(remaining, options.max_session_minutes, candidate.remaining_minutes)
            if duration < options.min_session_minutes:
                break

            end_time = cursor + timedelta(minutes=duration)
            deadline = candidate.deadline
            sessions.append(
                StudySession(
                    id=build_session_id(deadline.id, cursor),
                    deadline_id=deadline.id,
                    course=deadline.course,
                    task=deadline.task,
                    priority=deadline.priority,
                    start_time=cursor,
                    end_time=end_time,
                    duration_minutes=duration,
                    score=candidate.score,
                    rationale=build_rationale(deadline, candidate.due_date, cursor, options.now),
                    generated_at=options.now,
                )
            )
            candidate.remaining_minutes -= duration
            cursor = end_time
            remaining -= duration

        return sessions


def _first_set(*values: Optional[int]) -> int:
    for value in values:
        if value is not None:
            return int(value)
    raise ValueError("No planning option value available.")


planner = StudyPlanner()


def generate_study_plan(
    deadlines: Iterable[Deadline],
    events: Iterable[ScheduleEvent],
    *,
    now: Optional[datetime] = None,
    horizon_days: Optional[int] = None,
    min_session_minutes: Optional[int] = None,
    max_session_minutes: Optional[int] = None,
) -> StudyPlan:
    """Pure planning call: identical inputs and ``now`` always yield the identical plan."""
    return planner.generate(
        deadlines,
        events,
        now=now,
        horizon_days=horizon_days,
        min_session_minutes=min_session_minutes,
        max_session_minutes=max_session_minutes,
    )


def _retained_blocks(store: "StudySessionStore", window_start: datetime, window_end: datetime) -> List[ScheduleEvent]:
    blocks: List[ScheduleEvent] = []
    for session in store.list_sessions(window_end=window_end):
        if session.end_time <= window_start:
            continue
        # Pending sessions inside the window are replaced; ones already under way stay and block their slot.
        if session.status == "pending" and session.start_time >= window_start:
            continue
        blocks.append(
            ScheduleEvent(
                id=session.id,
                title=f"{session.course} Study: {session.task}",
                start_time=session.start_time,
                duration_minutes=session.duration_minutes,
            )
        )
    return blocks


def refresh_study_plan(
    store: "StudySessionStore",
    deadlines: Sequence[Deadline],
    events: Sequence[ScheduleEvent],
    *,
    now: Optional[datetime] = None,
    horizon_days: Optional[int] = None,
    min_session_minutes: Optional[int] = None,
    max_session_minutes: Optional[int] = None,
) -> StudyPlan:
    """Regenerate the plan and write it into ``store``.

    Sessions the learner already checked in (done or skipped) stay in the
    store unchanged and block their time slot for the new plan, as do pending
    sessions that started before ``now`` and are still running. Pending
    sessions starting inside the window are replaced.
    """
    started = perf_counter()
    options = planner.resolve_options(
        now=now,
        horizon_days=horizon_days,
        min_session_minutes=min_session_minutes,
        max_session_minutes=max_session_minutes,
    )
    retained = _retained_blocks(store, options.now, options.window_end)
    plan = planner.generate(
        deadlines,
        [*events, *retained],
        now=options.now,
        horizon_days=options.horizon_days,
        min_session_minutes=options.min_session_minutes,
        max_session_minutes=options.max_session_minutes,
    )
    store.upsert_plan(plan)
    duration_ms = (perf_counter() - started) * 1000

    per_deadline: Dict[str, int] = {}
    for session in plan.sessions:
        per_deadline[session.deadline_id] = per_deadline.get(session.deadline_id, 0) + session.duration_minutes
    emit_event(
        "study_plan_generated",
        duration_ms=round(duration_ms, 2),
        window_start=plan.window_start,
        window_end=plan.window_end,
        horizon_days=plan.summary.horizon_days,
        deadlines_considered=plan.summary.deadlines_considered,
        deadlines_covered=plan.summary.deadlines_covered,
        session_count=plan.summary.total_sessions,
        total_planned_minutes=plan.summary.total_planned_minutes,
        unallocated_count=len(plan.unallocated),
        preserved_session_count=len(retained),
        deadlines_scheduled=len(per_deadline),
    )
    return plan


__all__ = [
    "PlanningOptions",
    "StudyPlanner",
    "UNALLOCATED_REASON",
    "build_rationale",
    "build_session_id",
    "generate_study_plan",
    "planner",
    "refresh_study_plan",
]

"""REST endpoints for study-plan generation, check-ins, adherence, and routine placement."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from .adherence import get_adherence_metrics, set_session_status
from .models import (
    CheckInStatus,
    Deadline,
    RoutinePlacementResult,
    RoutinePreset,
    ScheduleEvent,
    SessionStatus,
    StudyPlan,
    StudyPlanAdherenceMetrics,
    StudySession,
)
from .routine_presets import apply_routine_preset_placements
from .session_store import session_store
from .study_plan import refresh_study_plan
from .study_plan_export import build_study_plan_calendar_ics

router = APIRouter(prefix="/api/study-plan", tags=["study-plan"])
logger = logging.getLogger(__name__)


class StudyPlanRequest(BaseModel):
    deadlines: List[Deadline] = Field(default_factory=list)
    events: List[ScheduleEvent] = Field(default_factory=list)
    now: Optional[datetime] = None
    horizon_days: Optional[int] = Field(default=None, ge=1, le=31)
    min_session_minutes: Optional[int] = Field(default=None, ge=1)
    max_session_minutes: Optional[int] = Field(default=None, ge=1)


class CheckInRequest(BaseModel):
    status: CheckInStatus
    checked_at: Optional[datetime] = None
    energy_level: Optional[int] = Field(default=None, ge=1, le=5)
    focus_level: Optional[int] = Field(default=None, ge=1, le=5)
    note: Optional[str] = Field(default=None, max_length=500)


class RoutinePlacementRequest(BaseModel):
    presets: List[RoutinePreset] = Field(default_factory=list)
    events: List[ScheduleEvent] = Field(default_factory=list)
    now: Optional[datetime] = None
    horizon_days: Optional[int] = None
    step_minutes: Optional[int] = None
    timezone: Optional[str] = None


class ExportRequest(BaseModel):
    plan: StudyPlan
    calendar_name: Optional[str] = Field(default=None, max_length=120)


@router.post("/generate", response_model=StudyPlan, status_code=status.HTTP_200_OK)
def generate_plan(payload: StudyPlanRequest) -> StudyPlan:
    try:
        plan = refresh_study_plan(
            session_store,
            payload.deadlines,
            payload.events,
            now=payload.now,
            horizon_days=payload.horizon_days,
            min_session_minutes=payload.min_session_minutes,
            max_session_minutes=payload.max_session_minutes,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    logger.info(
        "Generated study plan with %s sessions (%s unallocated)",
        plan.summary.total_sessions,
        len(plan.unallocated),
    )
    return plan


@router.get("/sessions", response_model=List[StudySession], status_code=status.HTTP_200_OK)
def list_sessions(
    window_start: Optional[datetime] = Query(default=None),
    window_end: Optional[datetime] = Query(default=None),
    session_status: Optional[SessionStatus] = Query(default=None, alias="status"),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
) -> List[StudySession]:
    return session_store.list_sessions(
        window_start=window_start,
        window_end=window_end,
        status=session_status,
        limit=limit,
    )


@router.post(
    "/sessions/{session_id}/check-in",
    response_model=StudySession,
    status_code=status.HTTP_200_OK,
)
def check_in_session(session_id: str, payload: CheckInRequest) -> StudySession:
    try:
        updated = set_session_status(
            session_store,
            session_id,
            payload.status,
            payload.checked_at,
            energy_level=payload.energy_level,
            focus_level=payload.focus_level,
            note=payload.note,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Study session '{session_id}' was not found.",
        )
    return updated


@router.get("/adherence", response_model=StudyPlanAdherenceMetrics, status_code=status.HTTP_200_OK)
def adherence_metrics(
    window_start: Optional[datetime] = Query(default=None),
    window_end: Optional[datetime] = Query(default=None),
    note_limit: Optional[int] = Query(default=None, ge=0, le=50),
) -> StudyPlanAdherenceMetrics:
    return get_adherence_metrics(
        session_store,
        window_start=window_start,
        window_end=window_end,
        note_limit=note_limit,
    )


@router.post("/export.ics", status_code=status.HTTP_200_OK)
def export_plan(payload: ExportRequest) -> Response:
    body = build_study_plan_calendar_ics(payload.plan, calendar_name=payload.calendar_name)
    return Response(
        content=body,
        media_type="text/calendar",
        headers={"Content-Disposition": 'attachment; filename="study-plan.ics"'},
    )


@router.post("/routines/apply", response_model=RoutinePlacementResult, status_code=status.HTTP_200_OK)
def apply_routines(payload: RoutinePlacementRequest) -> RoutinePlacementResult:
    result = apply_routine_preset_placements(
        payload.presets,
        payload.events,
        now=payload.now,
        horizon_days=payload.horizon_days,
        step_minutes=payload.step_minutes,
        timezone_name=payload.timezone,
    )
    logger.info(
        "Applied routine presets: cleared=%s created=%s skipped=%s",
        result.cleared_events,
        result.created_events,
        result.skipped_placements,
    )
    return result


__all__ = ["router"]

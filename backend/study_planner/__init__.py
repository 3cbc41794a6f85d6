"""Deterministic study-session planning, routine placement, and adherence tracking."""

from .adherence import compute_adherence_metrics, get_adherence_metrics, set_session_status
from .deadline_eligibility import is_study_worthy
from .deadline_scoring import deadline_score, estimate_work_minutes
from .routine_presets import apply_routine_preset_placements
from .schedule_gaps import calculate_schedule_gaps
from .session_store import StudySessionStore
from .study_plan import StudyPlanner, generate_study_plan, refresh_study_plan
from .study_plan_export import build_study_plan_calendar_ics

__all__ = [
    "StudyPlanner",
    "StudySessionStore",
    "apply_routine_preset_placements",
    "build_study_plan_calendar_ics",
    "calculate_schedule_gaps",
    "compute_adherence_metrics",
    "deadline_score",
    "estimate_work_minutes",
    "generate_study_plan",
    "get_adherence_metrics",
    "is_study_worthy",
    "refresh_study_plan",
    "set_session_status",
]

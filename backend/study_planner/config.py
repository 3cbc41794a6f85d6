import os
from functools import lru_cache
from typing import List

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    horizon_days: int = Field(7, ge=1, alias="STUDY_PLANNER_HORIZON_DAYS")
    min_session_minutes: int = Field(45, ge=1, alias="STUDY_PLANNER_MIN_SESSION_MINUTES")
    max_session_minutes: int = Field(120, ge=1, alias="STUDY_PLANNER_MAX_SESSION_MINUTES")
    routine_step_minutes: int = Field(15, ge=1, alias="STUDY_PLANNER_ROUTINE_STEP_MINUTES")
    lab_course_prefixes: List[str] = Field(
        default_factory=lambda: ["DAT520"],
        alias="STUDY_PLANNER_LAB_COURSE_PREFIXES",
    )
    calendar_name: str = Field("Companion Study Plan", alias="STUDY_PLANNER_CALENDAR_NAME")
    max_stored_sessions: int = Field(5000, ge=1, alias="STUDY_PLANNER_MAX_STORED_SESSIONS")
    debug_endpoints: bool = Field(False, alias="STUDY_PLANNER_DEBUG_ENDPOINTS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid planner configuration: {exc}") from exc
    if settings.max_session_minutes < settings.min_session_minutes:
        raise RuntimeError(
            "Invalid planner configuration: STUDY_PLANNER_MAX_SESSION_MINUTES must be "
            "greater than or equal to STUDY_PLANNER_MIN_SESSION_MINUTES."
        )
    return settings

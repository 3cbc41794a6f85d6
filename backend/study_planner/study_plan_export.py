"""iCalendar export for generated study plans."""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional

from .config import get_settings
from .models import StudyPlan, StudySession, ensure_utc

PRODUCT_ID = "-//Companion//Study Plan Export//EN"
UID_DOMAIN = "companion.local"
_UID_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


def format_utc_for_ics(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y%m%dT%H%M%SZ")


def escape_ics_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace(",", "\\,")
        .replace(";", "\\;")
    )


def build_stable_event_uid(session: StudySession) -> str:
    """UID stays identical across exports as long as deadline, start, and length do."""
    deadline_part = _UID_UNSAFE.sub("", session.deadline_id)
    start = format_utc_for_ics(session.start_time)
    return f"study-plan-{deadline_part}-{start}-{session.duration_minutes}@{UID_DOMAIN}"


def build_study_plan_calendar_ics(
    plan: StudyPlan,
    *,
    calendar_name: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    name = calendar_name if calendar_name is not None else get_settings().calendar_name
    stamp = format_utc_for_ics(generated_at if generated_at is not None else plan.generated_at)

    lines: List[str] = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODUCT_ID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_ics_text(name)}",
        "X-WR-TIMEZONE:UTC",
    ]
    for session in plan.sessions:
        lines.extend(
            [
                "BEGIN:VEVENT",
                f"UID:{build_stable_event_uid(session)}",
                f"DTSTAMP:{stamp}",
                f"DTSTART:{format_utc_for_ics(session.start_time)}",
                f"DTEND:{format_utc_for_ics(session.end_time)}",
                f"SUMMARY:{escape_ics_text(f'{session.course} Study: {session.task}')}",
                f"DESCRIPTION:{escape_ics_text(session.rationale)}",
                "CATEGORIES:STUDY",
                "STATUS:CONFIRMED",
                "TRANSP:OPAQUE",
                "END:VEVENT",
            ]
        )
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines)


__all__ = ["build_stable_event_uid", "build_study_plan_calendar_ics", "escape_ics_text"]

"""Process-local ledger of planned study sessions and their check-in state."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

from .config import get_settings
from .models import SessionStatus, StudyPlan, StudySession, ensure_utc

logger = logging.getLogger(__name__)


class StudySessionStore:
    """In-memory session ledger.

    Re-planning replaces pending sessions only; a session whose status has
    been recorded as done or skipped is never removed or rewritten by
    ``upsert_plan``.
    """

    def __init__(self, max_sessions: Optional[int] = None) -> None:
        self._sessions: Dict[str, StudySession] = {}
        self._max_sessions = max_sessions
        self._lock = threading.RLock()

    @staticmethod
    def _clone(session: StudySession) -> StudySession:
        return session.model_copy(deep=True)

    def upsert_plan(self, plan: StudyPlan) -> List[StudySession]:
        window_start = ensure_utc(plan.window_start)
        window_end = ensure_utc(plan.window_end)
        with self._lock:
            stale = [
                session_id
                for session_id, session in self._sessions.items()
                if session.status == "pending" and window_start <= session.start_time <= window_end
            ]
            for session_id in stale:
                del self._sessions[session_id]

            stored: List[StudySession] = []
            for session in plan.sessions:
                existing = self._sessions.get(session.id)
                if existing is not None and existing.status != "pending":
                    logger.debug("Keeping checked-in session %s untouched during re-planning", session.id)
                    continue
                record = session.model_copy(
                    deep=True,
                    update={
                        "generated_at": plan.generated_at,
                        "status": "pending",
                        "checked_at": None,
                        "energy_level": None,
                        "focus_level": None,
                        "check_in_note": None,
                    },
                )
                self._sessions[record.id] = record
                stored.append(self._clone(record))
            self._trim_unlocked()
        logger.debug("Replaced %s pending sessions with %s new sessions", len(stale), len(stored))
        return stored

    def get_session(self, session_id: str) -> Optional[StudySession]:
        with self._lock:
            session = self._sessions.get(session_id)
            return self._clone(session) if session else None

    def list_sessions(
        self,
        *,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
        status: Optional[SessionStatus] = None,
        limit: Optional[int] = None,
    ) -> List[StudySession]:
        start = ensure_utc(window_start) if window_start is not None else None
        end = ensure_utc(window_end) if window_end is not None else None
        with self._lock:
            sessions = [
                self._clone(session)
                for session in self._sessions.values()
                if (start is None or session.start_time >= start)
                and (end is None or session.start_time <= end)
                and (status is None or session.status == status)
            ]
        sessions.sort(key=lambda session: (session.start_time, session.id))
        if limit is not None:
            sessions = sessions[: max(limit, 0)]
        return sessions

    def save_session(self, session: StudySession) -> StudySession:
        with self._lock:
            self._sessions[session.id] = self._clone(session)
            self._trim_unlocked()
        return self._clone(session)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def _trim_unlocked(self) -> None:
        limit = self._max_sessions if self._max_sessions is not None else get_settings().max_stored_sessions
        overflow = len(self._sessions) - limit
        if overflow <= 0:
            return
        oldest = sorted(self._sessions.values(), key=lambda session: (session.start_time, session.id))[:overflow]
        for session in oldest:
            del self._sessions[session.id]
        logger.info("Trimmed %s sessions beyond the ledger cap of %s", overflow, limit)


session_store = StudySessionStore()

__all__ = ["StudySessionStore", "session_store"]

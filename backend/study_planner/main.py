import logging
from typing import Dict

from fastapi import Depends, FastAPI

from .config import Settings, get_settings
from .logging_config import configure_logging
from .planner_routes import router as planner_router
from .session_store import session_store


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Study Planner Backend", version="0.1.0")
app.include_router(planner_router)

settings_snapshot = get_settings()
logger.info(
    "Planner starting with horizon=%sd sessions=%s-%smin",
    settings_snapshot.horizon_days,
    settings_snapshot.min_session_minutes,
    settings_snapshot.max_session_minutes,
)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "horizon_days": str(settings.horizon_days)}


if settings_snapshot.debug_endpoints:

    @app.post("/api/debug/reset")
    def reset_state() -> Dict[str, str]:
        session_store.clear()
        logger.warning("Session ledger cleared through debug endpoint")
        return {"status": "cleared"}

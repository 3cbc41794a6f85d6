import logging
import os
from logging.config import dictConfig

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOGGER = "study_planner.telemetry"


def configure_logging() -> None:
    """Configure planner logging from ``STUDY_PLANNER_LOG_LEVEL``.

    Telemetry lines can be quieted separately with
    ``STUDY_PLANNER_TELEMETRY_LOG_LEVEL`` since every plan run, routine
    placement and check-in emits one.
    """
    level = os.getenv("STUDY_PLANNER_LOG_LEVEL", "INFO").upper()
    telemetry_level = os.getenv("STUDY_PLANNER_TELEMETRY_LOG_LEVEL", level).upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": DEFAULT_LOG_FORMAT,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                TELEMETRY_LOGGER: {"level": telemetry_level},
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )
    logging.getLogger(__name__).debug("Logging configured at %s (telemetry %s)", level, telemetry_level)

"""Logging setup for the service.

Application records go to stderr. Telemetry events are JSON lines on the
``userprefs.telemetry`` logger; when ``USERPREFS_TELEMETRY_LOG_FILE`` is set
they are written to that file only, so they can be shipped without the
application noise.
"""

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict, Mapping, Optional

APP_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOG_FORMAT = "%(asctime)s %(message)s"
TELEMETRY_LOGGER = "userprefs.telemetry"


def _telemetry_logger(env: Mapping[str, str], level: str) -> Dict[str, Any]:
    config: Dict[str, Any] = {
        "level": env.get("USERPREFS_TELEMETRY_LOG_LEVEL", level).upper(),
        "propagate": True,
    }
    if env.get("USERPREFS_TELEMETRY_LOG_FILE"):
        config["handlers"] = ["telemetry"]
        config["propagate"] = False
    return config


def build_logging_config(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if env is None else env
    level = env.get("USERPREFS_LOG_LEVEL", "INFO").upper()
    handlers: Dict[str, Any] = {
        "default": {"class": "logging.StreamHandler", "formatter": "default"},
    }
    telemetry_file = env.get("USERPREFS_TELEMETRY_LOG_FILE")
    if telemetry_file:
        handlers["telemetry"] = {
            "class": "logging.handlers.WatchedFileHandler",
            "formatter": "telemetry",
            "filename": telemetry_file,
            "delay": True,
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": APP_LOG_FORMAT},
            "telemetry": {"format": TELEMETRY_LOG_FORMAT},
        },
        "handlers": handlers,
        "root": {"handlers": ["default"], "level": level},
        "loggers": {
            TELEMETRY_LOGGER: _telemetry_logger(env, level),
            "sqlalchemy.engine": {"level": env.get("USERPREFS_SQL_LOG_LEVEL", "WARNING").upper()},
        },
    }


def configure_logging() -> None:
    dictConfig(build_logging_config())
    if os.getenv("USERPREFS_DEBUG_HTTP", "0") == "1":
        logging.getLogger("uvicorn.access").setLevel(logging.DEBUG)

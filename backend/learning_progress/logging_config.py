import logging
import os
from logging.config import dictConfig
from typing import Any, Dict

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# httpx logs every request at INFO; the API client reports failures itself.
_HTTP_LOGGERS = ("httpx", "httpcore")


def _logger_levels(level: str) -> Dict[str, Dict[str, Any]]:
    http_level = "DEBUG" if os.getenv("PROGRESS_DEBUG_HTTP", "0") == "1" else "WARNING"
    loggers: Dict[str, Dict[str, Any]] = {
        "learning_progress": {"level": level},
        "learning_progress.telemetry": {
            "level": os.getenv("PROGRESS_TELEMETRY_LOG_LEVEL", level).upper(),
        },
    }
    for name in _HTTP_LOGGERS:
        loggers[name] = {"level": http_level}
    return loggers


def configure_logging() -> None:
    """Configure process logging from the PROGRESS_* environment flags.

    ``PROGRESS_LOG_LEVEL`` sets the engine level, ``PROGRESS_TELEMETRY_LOG_LEVEL``
    the level of the ``TELEMETRY`` lines and ``PROGRESS_DEBUG_HTTP=1`` turns on
    request logging from httpx.
    """
    level = os.getenv("PROGRESS_LOG_LEVEL", "INFO").upper()

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
            "loggers": _logger_levels(level),
            "root": {
                "handlers": ["default"],
                "level": "WARNING",
            },
        }
    )
    logging.getLogger(__name__).debug("Logging configured at %s", level)

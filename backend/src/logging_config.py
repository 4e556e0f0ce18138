"""Central logging configuration for the anonymiser."""

from __future__ import annotations

import logging
import logging.config
import os
from typing import Any, Optional

from db.config import get_settings


_CONFIGURED = False

APPLICATION_LOGGERS = ("anonymize", "db", "cli")


def build_logging_config(level_name: str, *, echo_sql: bool = False) -> dict[str, Any]:
    """dictConfig payload: application loggers at ``level_name``, SQL statements only when echoed."""

    formatter = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    # Levels only; records reach the stdout handler through the root logger
    loggers: dict[str, dict[str, Any]] = {name: {"level": level_name} for name in APPLICATION_LOGGERS}
    loggers["sqlalchemy.engine"] = {"level": "INFO" if echo_sql else "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": formatter,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {
            "level": "WARNING",
            "handlers": ["stdout"],
        },
        "loggers": loggers,
    }


def configure_logging(default_level: Optional[str] = None) -> None:
    """Ensure the application logs to stdout with a consistent formatter.

    ``ANONYMIZE_DB_ECHO`` routes every SQL statement through the same handler.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    level_name = (default_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.config.dictConfig(build_logging_config(level_name, echo_sql=get_settings().echo))

    _CONFIGURED = True

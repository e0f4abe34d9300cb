"""Logging configuration for the scheme migration service."""
from __future__ import annotations

import copy
import logging
import logging.config
from pathlib import Path
from typing import Any, Dict


class RequestIdFilter(logging.Filter):
    """Guarantee a ``request_id`` attribute so the format string never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": RequestIdFilter},
    },
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "filters": ["request_id"],
        }
    },
    "loggers": {
        "sqlalchemy.engine": {"level": "WARNING"},
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
}


def configure_logging() -> None:
    """Apply logging configuration."""

    from scheme_migration.core.config import settings

    config = copy.deepcopy(LOGGING_CONFIG)
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    config.setdefault("handlers", {})["file"] = {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "standard",
        "filters": ["request_id"],
        "filename": str(log_dir / "scheme_migration.log"),
        "maxBytes": settings.log_max_bytes,
        "backupCount": settings.log_backup_count,
    }
    config.setdefault("root", {}).setdefault("handlers", ["console"]).append("file")
    if settings.debug:
        config["root"]["level"] = "DEBUG"

    logging.config.dictConfig(config)

"""Logging configuration: console output plus a rotating JSON event log."""

import json
import logging
import logging.config
import os
from datetime import datetime
from typing import Any, Dict, Optional

from src.core.config import settings

# Attributes present on every LogRecord; anything else came in via ``extra=``.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Structured fields passed through ``extra=`` (``event``, ``template_id``,
    ``entity_id`` ...) become top-level keys so skip and batch events can
    be filtered without parsing the message.
    """

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(self.extra_fields(record))

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry)

    @staticmethod
    def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
        fields = {}
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            fields[key] = value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        return fields


def _writable_directory(path: str) -> bool:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        print(f"Error with log directory {path}: {e}")
        return False
    if not os.access(path, os.W_OK):
        print(f"Log directory {path} is not writable")
        return False
    return True


def build_logging_config(level: str, log_file_path: Optional[str]) -> Dict[str, Any]:
    """dictConfig for the service; without a file path only the console is used."""
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "simple",
            "stream": "ext://sys.stdout",
        },
    }
    if log_file_path:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "json",
            "filename": log_file_path,
            "maxBytes": settings.LOG_MAX_BYTES,
            "backupCount": settings.LOG_BACKUP_COUNT,
            "encoding": "utf-8",
        }
    handler_names = list(handlers)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "src.utils.logging.JSONFormatter",
                "service_name": settings.SERVICE_NAME,
            },
            "simple": {"format": CONSOLE_FORMAT},
        },
        "handlers": handlers,
        "loggers": {
            "": {"level": level, "handlers": handler_names},
            "uvicorn": {"level": "INFO", "handlers": handler_names, "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": handler_names, "propagate": False},
            # SQL echo is controlled by SQL_ECHO, not by the service log level.
            "sqlalchemy.engine": {"level": "INFO" if settings.SQL_ECHO else "WARNING"},
        },
    }


def setup_logging() -> None:
    """Configure root, uvicorn and SQLAlchemy loggers from settings."""
    level = settings.LOG_LEVEL.upper()

    log_directory = os.path.abspath(settings.LOG_DIRECTORY)
    log_file_path = None
    if _writable_directory(log_directory):
        log_file_path = os.path.join(log_directory, f"{settings.SERVICE_NAME}.log")
    else:
        print("Falling back to console-only logging")

    try:
        logging.config.dictConfig(build_logging_config(level, log_file_path))
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        print(f"Error setting up logging configuration: {e}")
        logging.basicConfig(level=level, format=CONSOLE_FORMAT, handlers=[logging.StreamHandler()])

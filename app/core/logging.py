import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core import context
from app.core.settings import settings

AUDIT_LOGGER = "app.audit"

# Everything a bare LogRecord carries; the rest arrived through ``extra``.
_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "request_id", "user_id"}


class RequestContextFilter(logging.Filter):
    """Stamp each record with the request and user bound to the current task."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in context.snapshot().items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, stream: str = "app") -> None:
        super().__init__()
        self.stream = stream

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "stream": self.stream,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
        }
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and key not in entry:
                entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _handler(formatter: str, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def build_logging_config(level: str) -> Dict[str, Any]:
    quiet = "WARNING" if level in {"DEBUG", "INFO"} else level
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": {"()": RequestContextFilter}},
        "formatters": {
            "app": {"()": JsonFormatter, "stream": "app"},
            "audit": {"()": JsonFormatter, "stream": "audit"},
        },
        "handlers": {
            "app": _handler("app", level),
            "audit": _handler("audit", level),
        },
        "root": {"handlers": ["app"], "level": level},
        "loggers": {
            AUDIT_LOGGER: {"handlers": ["audit"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": [], "level": quiet, "propagate": False},
            "sqlalchemy.engine": {"level": quiet},
        },
    }


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    logging.config.dictConfig(build_logging_config(log_level))
    logging.getLogger(__name__).debug("Logging configured", extra={"log_level": log_level})


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER)

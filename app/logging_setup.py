import contextvars
import logging
import logging.config
import uuid
from typing import Optional

LOG_LEVEL_NAMES = ["debug", "info", "warning", "error", "critical"]
DEFAULT_LOG_LEVEL = "info"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [req:%(request_id)s] %(message)s"
NO_REQUEST_ID = "-"

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


def new_request_id() -> str:
    return uuid.uuid4().hex


def current_request_id() -> Optional[str]:
    return request_id_var.get()


class RequestIdFilter(logging.Filter):
    """Adds the id of the request being handled to every record as ``request_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or NO_REQUEST_ID
        return True


def resolve_level(level: Optional[str]) -> str:
    level = (level or "").lower()
    if level == "warn":
        level = "warning"
    if level not in LOG_LEVEL_NAMES:
        return DEFAULT_LOG_LEVEL
    return level


def configure_logging(level: Optional[str] = None) -> str:
    """Send app and uvicorn logs to stdout with the request id. Returns the level used."""
    resolved = resolve_level(level).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": RequestIdFilter}},
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "default",
                    "filters": ["request_id"],
                }
            },
            "loggers": {
                "app": {"handlers": ["stdout"], "level": resolved, "propagate": False},
                "uvicorn": {"handlers": ["stdout"], "level": resolved, "propagate": False},
                "uvicorn.error": {"level": resolved},
                "uvicorn.access": {"handlers": ["stdout"], "level": resolved, "propagate": False},
            },
        }
    )
    return resolved.lower()

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Optional

from app.core.context import get_active_role, get_employee_id, get_request_id
from app.core.settings import settings


# Workflow identifiers services attach through ``extra=``.
_WORKFLOW_FIELDS = ("lead_id", "lead_no", "loan_no", "actor_id", "workflow_status")


class RequestContextFilter(logging.Filter):
    """Stamp each record with the request id and the acting employee and role."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.employee_id = get_employee_id()
        record.active_role = get_active_role()
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, stream_label: str = "transactional") -> None:
        super().__init__()
        self.stream_label = stream_label

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "stream": self.stream_label,
            "request_id": getattr(record, "request_id", "-"),
            "employee_id": getattr(record, "employee_id", "-"),
            "active_role": getattr(record, "active_role", "-"),
        }
        payload.update(
            {key: getattr(record, key) for key in _WORKFLOW_FIELDS if getattr(record, key, None)}
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


_PLAIN_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s %(employee_id)s/%(active_role)s] %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Route application, audit trail and uvicorn logs to stdout.

    ``LOG_FORMAT=plain`` swaps the JSON lines for a console format during local work.
    SQL statements are logged only with ``DB_ECHO`` enabled.
    """
    log_level = (level or settings.log_level).upper()
    formatter = "plain" if settings.log_format == "plain" else "json"

    def _handler(formatter_name: str) -> dict:
        return {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": formatter_name,
            "filters": ["request_context"],
            "stream": "ext://sys.stdout",
        }

    def _logger(handler: str, logger_level: str = log_level) -> dict:
        return {"handlers": [handler], "level": logger_level, "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_context": {"()": RequestContextFilter}},
            "formatters": {
                "json": {"()": JsonFormatter, "stream_label": "transactional"},
                "audit_json": {"()": JsonFormatter, "stream_label": "audit"},
                "plain": {"format": _PLAIN_FORMAT},
            },
            "handlers": {
                "default": _handler(formatter),
                "audit": _handler("plain" if formatter == "plain" else "audit_json"),
            },
            "loggers": {
                "": _logger("default"),
                "app.audit": _logger("audit"),
                "sqlalchemy.engine": _logger("default", "INFO" if settings.db_echo else "WARNING"),
                "uvicorn": _logger("default"),
                "uvicorn.error": _logger("default"),
                "uvicorn.access": _logger("default"),
            },
        }
    )
    logging.getLogger(__name__).info(
        "Logging configured for environment=%s format=%s", settings.environment, formatter
    )


def get_audit_logger() -> logging.Logger:
    """Logger mirroring every lead log row written by the workflow."""
    return logging.getLogger("app.audit")

"""Structured JSON logging for the API and the ingestion runs.

Every entry carries a `correlation_id`. The trace-id middleware seeds it with
the request's X-Trace-Id; an ingestion replaces it with its ImportRun id as
soon as the run is opened, so provider calls, skips and the final summary of
one run can be grepped together.

Known `extra=` keys (run_id, city, step, gate, ...) are copied to top-level
fields; anything else passed in `extra` is ignored.
"""
import logging
import json
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from vantera.config import settings

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

EXTRA_FIELDS = (
    "trace_id",
    "run_id",
    "city",
    "source",
    "step",
    "status",
    "duration",
    "gate",
    "host",
)

# Loggers that are noisy at INFO: the async engine, the provider HTTP stack
# (requests -> urllib3), the test client and uvicorn's access log.
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "urllib3", "httpx", "uvicorn.access")


def set_correlation_id(value: str | None = None) -> str:
    """Bind a trace id or run id to the current context. Returns it."""
    cid = value or str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


class JSONFormatter(logging.Formatter):
    """One JSON object per line, tagged with the service name."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": settings.app_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        cid = correlation_id_var.get("")
        if cid:
            log_entry["correlation_id"] = cid

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging() -> None:
    """Send JSON logs to stdout at LOG_LEVEL."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

"""Structured Logging — JSON log lines carrying account, role and principal ids.

Invariants:
    - Every line has timestamp, level, logger and message
    - Known context extras are copied when set; UUIDs and enums become strings
    - setup_logging is idempotent: re-running it replaces its own handler only
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum

CONTEXT_FIELDS = (
    "account_id", "role_id", "principal_id", "bound_count", "error_code", "path",
)

_HANDLER_NAME = "custom_roles"


def _plain(value):
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Enum):
        return value.value
    return str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({
            name: _plain(getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install the root handler (json or human-readable text)."""
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        JSONFormatter() if fmt == "json"
        else logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # SQL echo only when explicitly debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if level.upper() == "DEBUG" else logging.WARNING,
    )

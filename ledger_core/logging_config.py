"""
Structured logging configuration.

Every module logs through logging.getLogger(__name__). This module
installs a JSON formatter on the package logger so that ledger and
audit messages can be shipped to a log pipeline as-is.
"""

import json
import logging
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """Render a log record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "actor_id": getattr(record, "actor_id", None),
            "action": getattr(record, "action", None),
            "account_id": getattr(record, "account_id", None),
            "entry_id": getattr(record, "entry_id", None),
        }
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "ledger_core") -> logging.Logger:
    """
    Attach a JSON stream handler to the package logger.

    Safe to call more than once; existing handlers are replaced
    so log lines are not duplicated.
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    return logger

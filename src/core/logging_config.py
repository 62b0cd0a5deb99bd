"""Structured logging configuration for bulk trafficking runs.

Supports two modes:
- Production: one JSON object per line, for log aggregation
- Development: Human-readable format
"""

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord carries; anything else arrived via extra={}
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {"message", "taskName"}

# SOAP libraries that log each request and response at INFO
_CHATTY_LOGGERS = ("googleads", "googleads.soap", "zeep", "zeep.transports")

DEV_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production runs.

    ``correlation_id`` and ``operation`` from ``log_dfp_operation`` are lifted
    to the top level so one bulk upload can be followed across lines.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        for key in ("correlation_id", "operation"):
            if key in extra:
                entry[key] = extra[key]
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def is_production_logging() -> bool:
    return bool(os.environ.get("PRODUCTION"))


def setup_structured_logging(level: int = logging.INFO) -> None:
    """Configure the root logger for a bulk trafficking run.

    With ``PRODUCTION`` set, the root logger gets a single JSON handler and the
    SOAP libraries are quietened to WARNING. Otherwise the standard
    human-readable format is used.
    """
    if not is_production_logging():
        logging.basicConfig(level=level, format=DEV_FORMAT, force=True)
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for logger_name in _CHATTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.info("JSON structured logging enabled for production")

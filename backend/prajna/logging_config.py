"""
Structured JSON logging configuration.

Every log line is a single JSON object on stdout with a channel
(http, db, exam, scoring, evaluator, credits), the current request ID,
business context (exam_id, user_id, ...) and free-form extra metadata.
"""

import logging
import json
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

from prajna.config import LOG_LEVEL

# Request ID of the HTTP request currently being served. Set by the
# middleware in prajna.main and read by the formatter for every entry.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

CHANNELS = ["http", "db", "exam", "scoring", "evaluator", "credits"]


class StructuredJsonFormatter(logging.Formatter):
    """
    Formatter producing one JSON document per record.

    Keys: timestamp (UTC, millisecond precision), level, message, channel,
    context (always carries request_id) and extra.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", record.name.split(".")[-1] if "." in record.name else "app"),
            "context": {
                "request_id": request_id_var.get(""),
                **(getattr(record, "context", {}) or {})
            },
            "extra": getattr(record, "extra_data", {}) or {}
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging():
    """Install the JSON formatter on the root logger and set channel levels."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    level = getattr(logging, LOG_LEVEL, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for channel in CHANNELS:
        logging.getLogger(f"prajna.{channel}").setLevel(level)

    return root_logger


def get_logger(channel: str) -> logging.Logger:
    """Return the logger for a channel, e.g. get_logger("scoring")."""
    return logging.getLogger(f"prajna.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: dict = None, extra_data: dict = None,
                     exc_info: bool = False):
    """
    Emit a structured log entry.

    Args:
        logger: Channel logger from get_logger()
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        message: Human-readable message
        context: Business identifiers (exam_id, user_id, subject_id)
        extra_data: Metadata such as duration_ms or counts
        exc_info: Attach the active exception traceback
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.log(
        log_level,
        message,
        exc_info=exc_info,
        extra={"context": context or {}, "extra_data": extra_data or {}, "channel": logger.name.split(".")[-1]}
    )


def generate_request_id() -> str:
    return str(uuid.uuid4())

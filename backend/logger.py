"""Structured logging for indexing and search events."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

# Keys every engine event carries at the top level of a JSON line
EVENT_FIELDS = ("event", "operation")


def log_event(
    target: logging.Logger,
    level: int,
    message: str,
    event: str,
    operation: str,
    **fields: Any
) -> None:
    """
    Log a message tagged with an engine event.

    Args:
        target: Logger to emit on
        level: Logging level
        message: Human-readable message
        event: Event name, e.g. ``vector_fallback`` or ``corpus_indexed``
        operation: Engine operation that produced it (``index``, ``search``)
        **fields: Additional context (reason, corpus_version, chunk_count)
    """
    target.log(level, message, extra={"event_fields": {"event": event, "operation": operation, **fields}})


class JSONFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        event_fields: Dict[str, Any] = getattr(record, "event_fields", None) or {}

        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Plain log calls get null event keys so every line has the same shape
        for key in EVENT_FIELDS:
            log_data[key] = event_fields.get(key)

        context = {k: v for k, v in event_fields.items() if k not in EVENT_FIELDS}
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO") -> None:
    """Replace the root handlers with a single structured JSON handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.addHandler(handler)

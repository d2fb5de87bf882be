"""JSON log lines for blockseq.

Every record becomes one JSON object. The Sequencer cursors are written
right after the fixed keys; any other ``extra`` fields follow.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

SEQUENCER_LOGGER = "blockseq.sequencer"

_CURSOR_FIELDS = ("height", "current", "next", "watermark", "source")

# Attributes every LogRecord carries, i.e. not passed through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render a record as a JSON object with a UTC timestamp."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        line.update(
            (name, getattr(record, name))
            for name in _CURSOR_FIELDS
            if hasattr(record, name)
        )
        line.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in line
        )
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)

        try:
            return json.dumps(line, default=str)
        except ValueError:
            # Circular structure in an extra field
            return str(line)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return ``name``'s logger writing JSON lines to stderr.

    Repeated calls reuse the handler attached the first time.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def configure_sequencer_logger(level: int = logging.INFO) -> logging.Logger:
    return get_logger(SEQUENCER_LOGGER, level)

"""
JSONL logging for loader activity.

Each record carries the pipeline context the loader attaches through
`extra=`: the stage, the normalized module name and its address. Hosts call
`init_json_logging()` once; the sink is installed on the `hookloader` logger
so host application logs are not captured.
"""

import json
import logging
import os
from datetime import UTC
from datetime import datetime
from pathlib import Path

DEFAULT_PATH = os.environ.get("HOOKLOADER_LOG_PATH", "./hookloader.log.jsonl")
DEFAULT_LEVEL = os.environ.get("HOOKLOADER_LOG_LEVEL", "INFO").upper()

LOGGER_NAME = "hookloader"

# Pipeline context fields set by Loader log calls
CONTEXT_FIELDS = ("stage", "load_name", "address")


class JsonlHandler(logging.Handler):
    """Appends one JSON object per record to `path`."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def to_dict(self, record: logging.LogRecord) -> dict:
        entry = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "lvl": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            entry[key] = getattr(record, key, None)
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return entry

    def formatException(self, exc_info) -> str:
        return logging.Formatter().formatException(exc_info)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.to_dict(record), ensure_ascii=False, default=str)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            self.handleError(record)


def init_json_logging(path: str | Path | None = None, level: str | None = None) -> JsonlHandler:
    """Install the JSONL sink on the `hookloader` logger.

    Args:
        path: Output file (default: HOOKLOADER_LOG_PATH)
        level: Level name (default: HOOKLOADER_LOG_LEVEL)

    Returns:
        The installed handler (replaces any previous JsonlHandler)
    """
    path = path or DEFAULT_PATH
    level = (level or DEFAULT_LEVEL).upper()
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(getattr(logging, level, logging.INFO))
    for h in list(package_logger.handlers):
        if isinstance(h, JsonlHandler):
            package_logger.removeHandler(h)
            h.close()
    handler = JsonlHandler(path)
    package_logger.addHandler(handler)
    return handler

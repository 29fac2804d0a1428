"""
Logging setup for filescout.

The interactive session owns the terminal, so log records go to a file in
the data directory instead of stderr.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "query"):
            log_data["query"] = record.query
        if hasattr(record, "generation"):
            log_data["generation"] = record.generation

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class PlainFormatter(logging.Formatter):
    """Human-readable single-line formatter."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(threadName)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


_configured = False


def configure_logging(log_file: Optional[Union[str, Path]] = None, level: Optional[str] = None) -> None:
    """Configure the filescout logger.

    Environment Variables:
        FILESCOUT_LOG_LEVEL: Log level used when level is not given
        FILESCOUT_LOG_JSON: Set to 'true' for JSON lines

    Args:
        log_file: File receiving log records; without one records go nowhere
        level: Log level name
    """
    global _configured
    if _configured:
        return

    level_str = (level or os.environ.get("FILESCOUT_LOG_LEVEL", "INFO")).upper()
    use_json = os.environ.get("FILESCOUT_LOG_JSON", "false").lower() == "true"
    log_level = getattr(logging, level_str, logging.INFO)

    root_logger = logging.getLogger("filescout")
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path, encoding="utf-8")
    else:
        handler = logging.NullHandler()

    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if use_json else PlainFormatter())
    root_logger.addHandler(handler)

    # Keep records off the terminal
    root_logger.propagate = False

    _configured = True


def reset_logging() -> None:
    """Drop installed handlers so configure_logging can run again."""
    global _configured
    root_logger = logging.getLogger("filescout")
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.propagate = True
    _configured = False

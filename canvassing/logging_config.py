"""
Logging configuration for the canvassing service.
Called once from create_app(); modules only do logging.getLogger(__name__).
"""

import json
import logging
import logging.handlers
import os
from datetime import datetime

# Marks handlers installed here so a second create_app() (tests) replaces them
_HANDLER_TAG = "_canvassing_handler"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    EXTRA_KEYS = ("pr_no", "stage", "section", "quote_id", "user", "status", "notice")

    def format(self, record):
        entry = {
            "ts": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        for key in self.EXTRA_KEYS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Short colored console lines."""

    COLORS = {
        "DEBUG": "\033[36m", "INFO": "\033[32m",
        "WARNING": "\033[33m", "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.utcnow().strftime("%H:%M:%S")
        line = f"{color}{ts} [{record.levelname[0]}] {record.name}: {record.getMessage()}{self.RESET}"
        if record.exc_info and record.exc_info[0]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _tagged(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    return handler


def setup_logging(level=None, json_logs=None, log_file=None):
    """
    Configure root logging for the application.

    Args:
        level: level name (default: LOG_LEVEL env or INFO)
        json_logs: JSON console lines instead of colored text
        log_file: optional path for a rotating JSON log file
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    level = str(level).upper()
    if json_logs is None:
        json_logs = False

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    for handler in [h for h in root.handlers if getattr(h, _HANDLER_TAG, False)]:
        root.removeHandler(handler)

    console = _tagged(logging.StreamHandler())
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    if log_file:
        # 5MB per file, 5 backups
        try:
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
            fh = _tagged(logging.handlers.RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=5))
            fh.setFormatter(JSONFormatter())
            root.addHandler(fh)
        except OSError:
            logging.getLogger(__name__).warning("File logging disabled, cannot write %s", log_file)

    for name in ("urllib3", "werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("canvassing").info("Logging initialized at %s", level)

"""
Logging setup for the PowerQuote backend.
Call setup_logging() once at app (or CLI) startup.
"""
import json
import logging
import logging.handlers
import os
from datetime import datetime, timezone

from powerquote.server.settings.config import settings


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""
    def format(self, record):
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        for key in ("quote_id", "user", "role", "lane", "decision", "duration_ms"):
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
        ts = datetime.now().strftime("%H:%M:%S")
        line = f"{color}{ts} [{record.levelname[0]}] {record.name}: {record.getMessage()}{self.RESET}"
        if record.exc_info and record.exc_info[0]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level=None, json_logs=None, log_dir=None):
    """
    Configure the root logger.

    Args:
        level: log level name (default: settings.log_level)
        json_logs: JSON console output (default: settings.json_logs)
        log_dir: directory for the rotating file log, "" disables it
                 (default: settings.log_dir)
    """
    level = (level or settings.log_level).upper()
    if json_logs is None:
        json_logs = settings.json_logs
    if log_dir is None:
        log_dir = settings.log_dir

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    # rotates at 5MB, keeps 5 backups
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            fh = logging.handlers.RotatingFileHandler(
                os.path.join(log_dir, "powerquote.log"),
                maxBytes=5_000_000, backupCount=5,
            )
            fh.setFormatter(JSONFormatter())
            root.addHandler(fh)
        except OSError as e:
            logging.getLogger("powerquote").warning("File logging disabled: %s", e)

    for name in ("uvicorn.access", "sqlalchemy.engine", "multipart"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("powerquote").info("Logging initialized (level=%s, json=%s)", level, json_logs)

# src/omniflow/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "omniflow.log"

# Chatty client libraries: WARNING and above only, in every handler.
QUIET_LOGGERS = ("httpx", "httpcore", "openai")

# Loggers that report every timer fire. Their INFO lines go to the file only.
_PERIODIC_LOGGERS = ("omniflow.scheduling.scheduler", "omniflow.scheduling.jobs")


class _OpsConsoleFilter(logging.Filter):
    """
    Keep the ops console readable while the scheduler runs in the background.

    - omniflow records pass, except INFO chatter from the periodic job loggers
    - everything else (py.warnings, third-party) needs ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("omniflow."):
            return record.levelno >= logging.ERROR
        if name in _PERIODIC_LOGGERS:
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/omniflow",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
) -> Path:
    """
    Console handler for the operator plus a size-rotated file with everything.

    Call once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_OpsConsoleFilter())
    root.addHandler(console)

    # The service runs unattended for weeks; keep the file bounded.
    rotating = RotatingFileHandler(
        str(log_file),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    rotating.setLevel(file_level)
    rotating.setFormatter(fmt)
    root.addHandler(rotating)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    return log_file

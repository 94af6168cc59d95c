# src/dailyquest/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "dailyquest.log"

# The REPL already prints the outcome of every command, so these components
# only reach the console at WARNING+. The log file keeps everything.
QUIET_ON_CONSOLE = (
    "dailyquest.storage.",
    "dailyquest.quests.task_store",
    "dailyquest.quests.recurrence",
    "dailyquest.quests.streaks",
)

_OWN_HANDLER_ATTR = "_dailyquest_handler"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter for the interactive tracker:
    - dailyquest logs pass, except the chatty components in `quiet` (WARNING+)
    - anything else, captured py.warnings included, only at ERROR+
    """

    def __init__(self, quiet: tuple[str, ...] = QUIET_ON_CONSOLE) -> None:
        super().__init__()
        self._quiet = quiet

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("dailyquest."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._quiet):
            return record.levelno >= logging.WARNING
        return True


def parse_level(raw: str | int | None, default: int = logging.INFO) -> int:
    """Level from a name ("debug", "WARNING") or a number; unknown names give `default`."""
    if isinstance(raw, int):
        return raw
    level = logging.getLevelName(str(raw or "").strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/dailyquest",
    console_level: str | int = logging.INFO,
    file_level: str | int = logging.DEBUG,
    max_bytes: int = 1_000_000,
    backups: int = 3,
) -> Path:
    """
    Console handler (filtered, stderr) plus a rotating file with the full log.

    Safe to call again: only handlers installed by a previous call are
    replaced. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        if getattr(h, _OWN_HANDLER_ATTR, False):
            root.removeHandler(h)
            h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(parse_level(console_level))
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())

    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=max_bytes,
        backupCount=backups,
        encoding="utf-8",
    )
    file_handler.setLevel(parse_level(file_level, logging.DEBUG))
    file_handler.setFormatter(fmt)

    for h in (console, file_handler):
        setattr(h, _OWN_HANDLER_ATTR, True)
        root.addHandler(h)

    logging.captureWarnings(True)
    return log_file

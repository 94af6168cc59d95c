# src/dailyquest/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Every value has a usable default, so a bare checkout runs.
- Level-curve tuning lives here rather than as constants scattered in the engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "DAILYQUEST"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Calendar ----
    # IANA zone name used for day boundaries; empty means the system local zone.
    timezone: str

    # ---- Level curve ----
    max_level: int
    level_base_xp: int
    level_growth: float

    # ---- Suggestions ----
    recent_suggestions: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "dailyquest") or "dailyquest"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/dailyquest"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "dailyquest.sqlite3")

        timezone = _env(_k("TIMEZONE"), "").strip()

        max_level = max(2, _env_int(_k("MAX_LEVEL"), 100))
        level_base_xp = max(1, _env_int(_k("LEVEL_BASE_XP"), 50))
        level_growth = max(1.0, _env_float(_k("LEVEL_GROWTH"), 1.2))

        recent_suggestions = max(0, _env_int(_k("RECENT_SUGGESTIONS"), 15))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
            timezone=timezone,
            max_level=max_level,
            level_base_xp=level_base_xp,
            level_growth=level_growth,
            recent_suggestions=recent_suggestions,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS

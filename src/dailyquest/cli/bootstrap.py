# src/dailyquest/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store, repository, clock and level curve into a QuestEngine,
- exposes the result as AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import SystemClock, resolve_timezone
from ..core.ports import Clock
from ..core.state import AppState
from ..quests.engine import QuestEngine
from ..quests.level_curve import LevelCurve
from ..quests.suggestions import QuestSuggester
from ..storage.kv_store import SqliteKVStore
from ..storage.repository import QuestRepository

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, clock: Clock | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Settings and clock are injectable so tests can run against a temp database
    and a fixed day. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if clock is None:
        clock = SystemClock(resolve_timezone(getattr(settings, "timezone", "")))

    kv = SqliteKVStore(settings.db_path)
    repository = QuestRepository(kv, clock=clock)
    engine = QuestEngine(
        repository,
        clock=clock,
        curve=LevelCurve.from_settings(settings),
        suggester=QuestSuggester(
            repository,
            recent_limit=getattr(settings, "recent_suggestions", 15),
        ),
    )

    logger.debug("State wired: db=%s tz=%s", settings.db_path, clock.tz)
    return AppState(settings=settings, kv=kv, repository=repository, engine=engine)

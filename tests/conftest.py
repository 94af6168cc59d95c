# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from dailyquest.cli.bootstrap import create_initial_state
from dailyquest.core.state import AppState
from dailyquest.quests.engine import QuestEngine
from dailyquest.quests.task_store import TaskStore
from dailyquest.storage.kv_store import SqliteKVStore
from dailyquest.storage.repository import QuestRepository

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and the level curve.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="dailyquest-test",
        log_level="DEBUG",
        console_enabled=False,
        # Paths (tmp per test run)
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "dailyquest.sqlite3",
        timezone="UTC",
        # Level curve
        max_level=100,
        level_base_xp=50,
        level_growth=1.2,
        # Suggestions
        recent_suggestions=15,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def kv(tmp_path: Path) -> SqliteKVStore:
    """Real SQLite store: its persistence behaviour is part of what we test."""
    return SqliteKVStore(tmp_path / "kv.sqlite3")


@pytest.fixture()
def repository(kv: SqliteKVStore, clock: FakeClock) -> QuestRepository:
    return QuestRepository(kv, clock=clock)


@pytest.fixture()
def store(repository: QuestRepository, clock: FakeClock) -> TaskStore:
    return TaskStore(repository, clock=clock)


@pytest.fixture()
def engine(repository: QuestRepository, clock: FakeClock) -> QuestEngine:
    return QuestEngine(repository, clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace, clock: FakeClock) -> AppState:
    return create_initial_state(settings=settings, clock=clock)

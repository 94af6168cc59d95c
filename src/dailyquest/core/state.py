# src/dailyquest/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..quests.engine import QuestEngine
from ..storage.kv_store import SqliteKVStore
from ..storage.repository import QuestRepository


@dataclass
class AppState:
    # Settings are kept on the state so connectors and commands can read them.
    settings: object

    kv: SqliteKVStore
    repository: QuestRepository
    engine: QuestEngine

    # Serializes commands when more than one connector drives the same engine.
    lock: threading.RLock = field(default_factory=threading.RLock)

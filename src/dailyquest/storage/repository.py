# src/dailyquest/storage/repository.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..core.clock import SystemClock, parse_date
from ..core.ports import Clock, KeyValueStore
from ..quests.models import DailyStats, Task, TaskHistory, User

logger = logging.getLogger(__name__)

KEY_PREFIX = "dailyquest_"
TASKS_KEY = f"{KEY_PREFIX}tasks"
USER_KEY = f"{KEY_PREFIX}user"
STATS_KEY = f"{KEY_PREFIX}stats"
HISTORY_KEY = f"{KEY_PREFIX}history"
QUEST_TYPES_KEY = f"{KEY_PREFIX}quest_types"
FAILURE_CHECK_KEY = f"{KEY_PREFIX}last_failure_check"
RECENTLY_SUGGESTED_KEY = f"{KEY_PREFIX}recently_suggested"

ALL_KEYS = (
    TASKS_KEY,
    USER_KEY,
    STATS_KEY,
    HISTORY_KEY,
    QUEST_TYPES_KEY,
    FAILURE_CHECK_KEY,
    RECENTLY_SUGGESTED_KEY,
)


@dataclass(slots=True, frozen=True)
class StorageStatus:
    available: bool
    size: int
    keys: list[str]


def _dedupe_by_id(tasks: list[Task]) -> list[Task]:
    """Drop duplicate ids keeping the latest occurrence, preserving original order."""
    latest: dict[str, int] = {}
    for idx, t in enumerate(tasks):
        latest[t.id] = idx
    return [t for idx, t in enumerate(tasks) if latest[t.id] == idx]


class QuestRepository:
    """
    Typed access to the persisted records.

    Reads are forgiving: anything malformed is skipped or replaced by defaults.
    Writes validate and clean before storing.
    """

    def __init__(self, kv: KeyValueStore, *, clock: Clock | None = None) -> None:
        self._kv = kv
        self._clock: Clock = clock if clock is not None else SystemClock()

    @property
    def kv(self) -> KeyValueStore:
        return self._kv

    # ---- tasks ----

    def get_tasks(self) -> list[Task]:
        raw = self._kv.get(TASKS_KEY)
        if not isinstance(raw, list):
            if raw is not None:
                logger.warning("Stored tasks are not a list (%s); ignoring.", type(raw).__name__)
            return []
        today = self._clock.today()
        out: list[Task] = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            try:
                out.append(Task.from_dict(item, today=today))
            except (TypeError, ValueError):
                logger.exception("Skipping undecodable task id=%s", item.get("id"))
        return _dedupe_by_id(out)

    def save_tasks(self, tasks: list[Task]) -> None:
        valid = [t for t in tasks if t is not None and t.id]
        if len(valid) != len(tasks):
            logger.warning("Filtered out %d invalid tasks during save", len(tasks) - len(valid))

        unique = _dedupe_by_id(valid)
        if len(unique) != len(valid):
            logger.warning("Removed %d duplicate task ids", len(valid) - len(unique))

        self._kv.set(TASKS_KEY, [t.to_dict() for t in unique])

    # ---- user ----

    def get_user(self, *, today: date) -> User:
        raw = self._kv.get(USER_KEY)
        if not isinstance(raw, dict):
            return User(last_active=today)
        return User.from_dict(raw, today=today)

    def save_user(self, user: User) -> None:
        self._kv.set(USER_KEY, user.to_dict())

    # ---- daily stats ----

    def get_stats(self) -> list[DailyStats]:
        raw = self._kv.get(STATS_KEY)
        if not isinstance(raw, list):
            return []
        out = [DailyStats.from_dict(s) for s in raw if isinstance(s, dict)]
        return [s for s in out if s is not None]

    def save_stats(self, stats: list[DailyStats]) -> None:
        self._kv.set(STATS_KEY, [s.to_dict() for s in stats])

    def update_daily_stats(
        self,
        *,
        tasks_completed: int,
        xp_gained: int,
        day: date,
        today: date,
        floor_xp: bool = False,
    ) -> bool:
        """
        Add deltas to the stats row for `day`.

        tasks_completed never goes below 0; xp_gained may go negative (failure
        penalties) unless floor_xp is set, as it is when reverting a completion.
        Refuses future dates: a stats row for tomorrow would corrupt charts.
        """
        if day > today:
            logger.error("Attempted to add stats for a future date: %s", day)
            return False

        stats = [s for s in self.get_stats() if s.date <= today]
        row = next((s for s in stats if s.date == day), None)
        if row is None:
            row = DailyStats(date=day)
            stats.append(row)
            stats.sort(key=lambda s: s.date)

        row.tasks_completed = max(0, row.tasks_completed + tasks_completed)
        row.xp_gained += xp_gained
        if floor_xp:
            row.xp_gained = max(0, row.xp_gained)
        self.save_stats(stats)
        return True

    # ---- task history ----

    def get_history(self) -> list[TaskHistory]:
        raw = self._kv.get(HISTORY_KEY)
        if not isinstance(raw, list):
            return []
        out = [TaskHistory.from_dict(h) for h in raw if isinstance(h, dict)]
        return [h for h in out if h is not None]

    def save_history(self, history: list[TaskHistory]) -> None:
        self._kv.set(HISTORY_KEY, [h.to_dict() for h in history])

    def record_history(self, task: Task, *, day: date) -> None:
        """Upsert a snapshot of `task` into the history bucket for `day`."""
        history = self.get_history()
        bucket = next((h for h in history if h.date == day), None)
        if bucket is None:
            history.append(TaskHistory(date=day, tasks=[task]))
        else:
            for i, t in enumerate(bucket.tasks):
                if t.id == task.id:
                    bucket.tasks[i] = task
                    break
            else:
                bucket.tasks.append(task)
        self.save_history(history)

    # ---- quest types ----

    def get_quest_types(self) -> list[str]:
        raw = self._kv.get(QUEST_TYPES_KEY)
        if not isinstance(raw, list):
            return []
        return [str(x) for x in raw if isinstance(x, str) and x.strip()]

    def save_quest_types(self, types: list[str]) -> None:
        self._kv.set(QUEST_TYPES_KEY, list(types))

    # ---- idempotency marker for the daily failure check ----

    def get_last_failure_check(self) -> date | None:
        raw = self._kv.get(FAILURE_CHECK_KEY)
        return parse_date(raw) if isinstance(raw, str) else None

    def set_last_failure_check(self, day: date) -> None:
        self._kv.set(FAILURE_CHECK_KEY, day.isoformat())

    # ---- suggestions ----

    def get_recently_suggested(self) -> list[str]:
        raw = self._kv.get(RECENTLY_SUGGESTED_KEY)
        if not isinstance(raw, list):
            return []
        return [str(x) for x in raw if isinstance(x, str)]

    def save_recently_suggested(self, titles: list[str]) -> None:
        self._kv.set(RECENTLY_SUGGESTED_KEY, list(titles))

    # ---- maintenance ----

    def cleanup_future_dates(self, *, today: date) -> int:
        """Drop stats/history rows dated after `today`. Returns how many were removed."""
        removed = 0

        stats = self.get_stats()
        valid_stats = [s for s in stats if s.date <= today]
        if len(valid_stats) != len(stats):
            removed += len(stats) - len(valid_stats)
            self.save_stats(valid_stats)

        history = self.get_history()
        valid_history = [h for h in history if h.date <= today]
        if len(valid_history) != len(history):
            removed += len(history) - len(valid_history)
            self.save_history(valid_history)

        if removed:
            logger.info("Removed %d future-dated stats/history entries.", removed)
        return removed

    def clear(self) -> None:
        for key in ALL_KEYS:
            self._kv.delete(key)
        logger.info("All dailyquest data cleared.")

    def storage_status(self) -> StorageStatus:
        try:
            keys = self._kv.keys(KEY_PREFIX)
        except Exception:
            logger.exception("Storage status check failed.")
            return StorageStatus(available=False, size=0, keys=[])
        size_fn: Any = getattr(self._kv, "size", None)
        size = int(size_fn(KEY_PREFIX)) if callable(size_fn) else 0
        return StorageStatus(available=True, size=size, keys=keys)

# src/dailyquest/quests/task_store.py

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, replace

from ..core.clock import to_utc_iso
from ..core.ports import Clock
from ..storage.repository import QuestRepository
from .level_curve import LevelCurve
from .models import (
    XP_REWARDS,
    DayOfWeek,
    Difficulty,
    QuestStatus,
    Task,
    User,
    normalize_quest_type,
)

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


@dataclass(slots=True, frozen=True)
class TaskChange:
    """Outcome of a task mutation: the affected task and the recomputed user."""

    task: Task
    user: User
    old_level: int
    new_level: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


def _clean_days(days: Iterable[DayOfWeek | str] | None) -> tuple[DayOfWeek, ...]:
    out: list[DayOfWeek] = []
    for d in days or ():
        parsed = DayOfWeek.parse(d)
        if parsed is not None and parsed not in out:
            out.append(parsed)
    # Keep calendar order regardless of input order.
    order = list(DayOfWeek)
    return tuple(sorted(out, key=order.index))


def _find(tasks: list[Task], task_id: str) -> int:
    for i, t in enumerate(tasks):
        if t.id == task_id:
            return i
    return -1


class TaskStore:
    """
    Canonical task collection on top of QuestRepository.

    Every mutation re-reads the persisted tasks and user first, applies its
    change, recomputes the user totals from scratch, and writes both back.
    Invalid targets are rejected with a log line and a None/False return.
    """

    def __init__(self, repository: QuestRepository, *, clock: Clock, curve: LevelCurve | None = None) -> None:
        self._repo = repository
        self._clock = clock
        self._curve = curve if curve is not None else LevelCurve()

    @property
    def curve(self) -> LevelCurve:
        return self._curve

    # ---- low-level helpers ----

    def _now_iso(self) -> str:
        return to_utc_iso(self._clock.now())

    def _load(self) -> tuple[list[Task], User]:
        today = self._clock.today()
        return self._repo.get_tasks(), self._repo.get_user(today=today)

    def _commit(self, tasks: list[Task], user: User) -> None:
        self._repo.save_tasks(tasks)
        self._repo.save_user(user)

    def recompute_totals(self, user: User, tasks: list[Task]) -> User:
        """
        Full recompute of every derived user field from the task collection.

        net = earned (completed rewards) + streak bonuses - applied failure penalties

        failed_xp is the sum of table penalties; only the applied part of each
        one counts against the net.
        """
        completed = [t for t in tasks if t.completed and not t.is_failure]
        failures = [t.failure for t in tasks if t.failure is not None]

        earned = sum(t.xp_reward for t in completed)
        failed_xp = sum(f.penalty for f in failures)
        applied = sum(f.applied for f in failures)
        unpaid = sum(f.unpaid for f in failures)
        progress = self._curve.progress_for(earned + user.bonus_xp - applied, unpaid=unpaid)

        return replace(
            user,
            level=progress.level,
            xp=progress.xp,
            total_xp=progress.total_xp,
            xp_to_next_level=progress.xp_to_next_level,
            tasks_completed=len(completed),
            tasks_failed=len(failures),
            failed_xp=failed_xp,
        )

    # ---- queries ----

    def get_tasks(self) -> list[Task]:
        return self._repo.get_tasks()

    def get_task(self, task_id: str) -> Task | None:
        tasks = self._repo.get_tasks()
        idx = _find(tasks, task_id)
        return tasks[idx] if idx >= 0 else None

    # ---- commands ----

    def add_task(
        self,
        title: str,
        description: str = "",
        difficulty: Difficulty | str = Difficulty.EASY,
        is_recurring: bool = False,
        recurring_days: Iterable[DayOfWeek | str] | None = None,
        quest_type: str | None = None,
    ) -> Task | None:
        title = (title or "").strip()
        if not title:
            logger.info("add_task rejected: empty title")
            return None

        days = _clean_days(recurring_days)
        if is_recurring and not days:
            logger.info("add_task rejected: recurring task %r has no days", title)
            return None

        diff = Difficulty.from_raw(difficulty)
        task = Task(
            id=str(uuid.uuid4()),
            title=title,
            description=(description or "").strip(),
            difficulty=diff,
            xp_reward=XP_REWARDS[diff],
            created_at=self._now_iso(),
            is_recurring=bool(is_recurring),
            recurring_days=days if is_recurring else (),
            quest_type=normalize_quest_type(quest_type),
            quest_status=QuestStatus.ACTIVE,
        )

        tasks = self._repo.get_tasks()
        tasks.append(task)
        self._repo.save_tasks(tasks)
        self._repo.record_history(task, day=self._clock.today())
        logger.debug("Task added id=%s kind=%s difficulty=%s", task.id, task.kind.value, diff.value)
        return task

    def complete_task(self, task_id: str) -> TaskChange | None:
        tasks, user = self._load()
        idx = _find(tasks, task_id)
        if idx < 0:
            logger.info("complete_task rejected: unknown id=%s", task_id)
            return None

        task = tasks[idx]
        if task.completed:
            logger.info("complete_task rejected: id=%s already completed", task_id)
            return None
        if task.is_recurring:
            logger.info("complete_task rejected: id=%s is a recurring template", task_id)
            return None
        if task.is_failure:
            logger.info("complete_task rejected: id=%s is a failure record", task_id)
            return None

        done = replace(
            task,
            completed=True,
            completed_at=self._now_iso(),
            quest_status=QuestStatus.COMPLETED,
        )
        tasks[idx] = done

        old_level = user.level
        user = self.recompute_totals(user, tasks)
        self._commit(tasks, user)

        today = self._clock.today()
        self._repo.record_history(done, day=today)
        self._repo.update_daily_stats(tasks_completed=1, xp_gained=done.xp_reward, day=today, today=today)

        logger.info(
            "Task completed id=%s xp=+%d total=%d level=%d->%d",
            task_id,
            done.xp_reward,
            user.total_xp,
            old_level,
            user.level,
        )
        return TaskChange(task=done, user=user, old_level=old_level, new_level=user.level)

    def undo_task(self, task_id: str) -> TaskChange | None:
        """
        Revert a completion, or remove a failure record.

        For a failure record the removed record is returned as `task`; refunding
        the penalty happens through the recompute, reinstating a quest is up to
        the caller.
        """
        tasks, user = self._load()
        idx = _find(tasks, task_id)
        if idx < 0:
            logger.info("undo_task rejected: unknown id=%s", task_id)
            return None

        task = tasks[idx]
        old_level = user.level
        today = self._clock.today()

        if task.is_failure:
            del tasks[idx]
            user = self.recompute_totals(user, tasks)
            self._commit(tasks, user)
            logger.info("Failure record removed id=%s template=%s", task_id, task.parent_task_id)
            return TaskChange(task=task, user=user, old_level=old_level, new_level=user.level)

        if not task.completed:
            logger.info("undo_task rejected: id=%s is not completed", task_id)
            return None

        reverted = replace(
            task,
            completed=False,
            completed_at=None,
            quest_status=QuestStatus.HIDDEN if task.quest_status == QuestStatus.HIDDEN else QuestStatus.ACTIVE,
        )
        tasks[idx] = reverted
        user = self.recompute_totals(user, tasks)
        self._commit(tasks, user)
        self._repo.record_history(reverted, day=today)

        if self._clock.local_date(task.completed_at) == today:
            self._repo.update_daily_stats(
                tasks_completed=-1,
                xp_gained=-task.xp_reward,
                day=today,
                today=today,
                floor_xp=True,
            )

        logger.info("Task undone id=%s total=%d level=%d", task_id, user.total_xp, user.level)
        return TaskChange(task=reverted, user=user, old_level=old_level, new_level=user.level)

    def delete_task(self, task_id: str) -> TaskChange | None:
        tasks, user = self._load()
        idx = _find(tasks, task_id)
        if idx < 0:
            logger.info("delete_task rejected: unknown id=%s", task_id)
            return None

        removed = tasks.pop(idx)
        old_level = user.level
        if removed.completed or removed.is_failure:
            user = self.recompute_totals(user, tasks)
            self._commit(tasks, user)
        else:
            self._repo.save_tasks(tasks)

        logger.info("Task deleted id=%s kind=%s", task_id, removed.kind.value)
        return TaskChange(task=removed, user=user, old_level=old_level, new_level=user.level)

    def edit_task(
        self,
        task_id: str,
        title: str,
        description: str,
        difficulty: Difficulty | str,
        is_recurring: bool | None = None,
        recurring_days: Iterable[DayOfWeek | str] | None = None,
        quest_type: str | None = None,
    ) -> TaskChange | None:
        """
        Replace the mutable fields of a task.

        is_recurring=None keeps the current recurrence flag (and days, unless new
        days are given). quest_type is replaced as given; None clears it.
        """
        tasks, user = self._load()
        idx = _find(tasks, task_id)
        if idx < 0:
            logger.info("edit_task rejected: unknown id=%s", task_id)
            return None

        old = tasks[idx]
        if old.is_failure:
            logger.info("edit_task rejected: id=%s is a failure record", task_id)
            return None

        title = (title or "").strip()
        if not title:
            logger.info("edit_task rejected: empty title for id=%s", task_id)
            return None

        recurring = old.is_recurring if is_recurring is None else bool(is_recurring)
        if recurring and old.parent_task_id is not None:
            logger.info("edit_task rejected: instance id=%s cannot become a template", task_id)
            return None
        if recurring and old.completed:
            logger.info("edit_task rejected: completed task id=%s cannot become a template", task_id)
            return None

        if recurring:
            days = _clean_days(recurring_days) if recurring_days is not None else old.recurring_days
            if not days:
                logger.info("edit_task rejected: recurring task id=%s has no days", task_id)
                return None
        else:
            days = ()

        diff = Difficulty.from_raw(difficulty)
        updated = replace(
            old,
            title=title,
            description=(description or "").strip(),
            difficulty=diff,
            xp_reward=XP_REWARDS[diff],
            is_recurring=recurring,
            recurring_days=days,
            quest_type=normalize_quest_type(quest_type),
        )
        tasks[idx] = updated

        old_level = user.level
        user = self.recompute_totals(user, tasks)
        self._commit(tasks, user)
        logger.info("Task edited id=%s difficulty=%s xp_reward=%d", task_id, diff.value, updated.xp_reward)
        return TaskChange(task=updated, user=user, old_level=old_level, new_level=user.level)

    def copy_task(self, task_id: str) -> Task | None:
        tasks = self._repo.get_tasks()
        idx = _find(tasks, task_id)
        if idx < 0:
            logger.info("copy_task rejected: unknown id=%s", task_id)
            return None

        original = tasks[idx]
        if original.is_failure:
            logger.info("copy_task rejected: id=%s is a failure record", task_id)
            return None

        clone = replace(
            original,
            id=str(uuid.uuid4()),
            title=f"{original.title}{COPY_SUFFIX}",
            completed=False,
            completed_at=None,
            created_at=self._now_iso(),
            quest_status=QuestStatus.ACTIVE,
        )
        tasks.append(clone)
        self._repo.save_tasks(tasks)
        logger.debug("Task copied id=%s -> %s", task_id, clone.id)
        return clone

    def hide_task(self, task_id: str) -> bool:
        tasks = self._repo.get_tasks()
        idx = _find(tasks, task_id)
        if idx < 0 or tasks[idx].quest_status == QuestStatus.HIDDEN:
            logger.info("hide_task rejected: id=%s", task_id)
            return False
        tasks[idx] = replace(tasks[idx], quest_status=QuestStatus.HIDDEN)
        self._repo.save_tasks(tasks)
        return True

    def unhide_task(self, task_id: str) -> bool:
        tasks = self._repo.get_tasks()
        idx = _find(tasks, task_id)
        if idx < 0 or tasks[idx].quest_status != QuestStatus.HIDDEN:
            logger.info("unhide_task rejected: id=%s", task_id)
            return False
        restored = QuestStatus.COMPLETED if tasks[idx].completed else QuestStatus.ACTIVE
        tasks[idx] = replace(tasks[idx], quest_status=restored)
        self._repo.save_tasks(tasks)
        return True

    # ---- invariant repair / bulk ----

    def verify_completed_tasks(self, tasks: list[Task]) -> tuple[list[Task], int]:
        """
        Repair the completed/completed_at pairing.

        - completed without a timestamp gets created_at (or now) as a fallback
        - not completed but carrying a timestamp has it cleared
        Failure records are left alone.
        """
        out: list[Task] = []
        repaired = 0
        for t in tasks:
            if t.is_failure:
                out.append(t)
                continue
            if t.completed and not t.completed_at:
                t = replace(t, completed_at=t.created_at or self._now_iso())
                repaired += 1
            elif not t.completed and t.completed_at:
                t = replace(t, completed_at=None)
                repaired += 1
            out.append(t)
        if repaired:
            logger.warning("Repaired completion timestamps on %d tasks", repaired)
        return out, repaired

    def repair(self) -> int:
        tasks, user = self._load()
        fixed, repaired = self.verify_completed_tasks(tasks)
        user = self.recompute_totals(user, fixed)
        self._commit(fixed, user)
        return repaired

    def replace_tasks(self, tasks: list[Task]) -> User:
        """Bulk replacement (e.g. an import); always followed by verification."""
        fixed, _ = self.verify_completed_tasks(list(tasks))
        user = self._repo.get_user(today=self._clock.today())
        user = self.recompute_totals(user, fixed)
        self._commit(fixed, user)
        logger.info("Task collection replaced: %d tasks", len(fixed))
        return user

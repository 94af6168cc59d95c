# src/dailyquest/quests/engine.py

"""
Quest engine.

Single entry point for the player-facing commands. It wires the task store,
recurrence engine, streak tracker and level curve together and keeps the user
aggregate consistent after every command.

Contract for commands: expected invalid transitions (unknown id, wrong task
kind, already in the target state) return False/None and are logged; they
never raise.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from ..core.clock import SystemClock, to_utc_iso
from ..core.ports import Clock
from ..storage.repository import QuestRepository
from .level_curve import LevelCurve
from .models import (
    FAILURE_PENALTIES,
    DayOfWeek,
    Difficulty,
    Failure,
    QuestStatus,
    Task,
    User,
)
from .quest_types import QuestTypeRegistry
from .recurrence import CheckMarkers, GenerationResult, RecurrenceEngine
from .streaks import STREAK_MILESTONES, Milestone, StreakTracker, StreakUpdate
from .suggestions import QuestSuggester, QuestSuggestion
from .task_store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class LevelUp:
    old_level: int
    new_level: int


@dataclass(slots=True, frozen=True)
class FailureCheckResult:
    failed: list[Task] = field(default_factory=list)
    total_penalty: int = 0
    skipped: bool = False


@dataclass(slots=True, frozen=True)
class DaySummary:
    streak: StreakUpdate
    failures: FailureCheckResult
    generation: GenerationResult


class QuestEngine:
    def __init__(
        self,
        repository: QuestRepository,
        *,
        clock: Clock | None = None,
        curve: LevelCurve | None = None,
        milestones: tuple[Milestone, ...] = STREAK_MILESTONES,
        suggester: QuestSuggester | None = None,
    ) -> None:
        self._repo = repository
        self._clock: Clock = clock if clock is not None else SystemClock()
        self._curve = curve if curve is not None else LevelCurve()
        self._store = TaskStore(repository, clock=self._clock, curve=self._curve)
        self._recurrence = RecurrenceEngine(self._clock)
        self._streaks = StreakTracker(milestones)
        self._quest_types = QuestTypeRegistry(repository)
        self._suggester = suggester if suggester is not None else QuestSuggester(repository)

        self._level_up: LevelUp | None = None
        self._baseline_level = 1
        self.load()

    # ---- components ----

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def curve(self) -> LevelCurve:
        return self._curve

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def recurrence(self) -> RecurrenceEngine:
        return self._recurrence

    @property
    def streaks(self) -> StreakTracker:
        return self._streaks

    # ---- lifecycle ----

    def load(self) -> User:
        """
        (Re)load persisted state and repair it.

        Runs the invariant-repair pass, merges duplicate templates, drops
        future-dated stats, recomputes the user, and resets the level-up baseline.
        """
        today = self._clock.today()
        self._repo.cleanup_future_dates(today=today)

        tasks = self._repo.get_tasks()
        tasks, merged = self._recurrence.merge_duplicate_templates(tasks)
        tasks, repaired = self._store.verify_completed_tasks(tasks)

        user = self._store.recompute_totals(self._repo.get_user(today=today), tasks)
        self._repo.save_tasks(tasks)
        self._repo.save_user(user)

        self._level_up = None
        self._baseline_level = user.level
        logger.info(
            "Loaded %d tasks (merged=%d repaired=%d) level=%d total_xp=%d",
            len(tasks),
            merged,
            repaired,
            user.level,
            user.total_xp,
        )
        return user

    def start_day(self) -> DaySummary:
        """Everything that happens when the app opens: rollover, failure check, generation."""
        streak = self._roll_over_streak()
        failures = self.check_for_failed_tasks()
        generation = self.generate_for_today()
        return DaySummary(streak=streak, failures=failures, generation=generation)

    def reset(self) -> User:
        """Full data reset."""
        self._repo.clear()
        logger.warning("All progress has been reset.")
        return self.load()

    # ---- level-up notification ----

    @property
    def level_up(self) -> LevelUp | None:
        return self._level_up

    def dismiss_level_up(self) -> None:
        self._level_up = None
        self._baseline_level = self.user.level

    def _track_level(self, level: int) -> None:
        base = self._level_up.old_level if self._level_up is not None else self._baseline_level
        if level > base:
            self._level_up = LevelUp(old_level=base, new_level=level)
            logger.info("Level up %d -> %d", base, level)
        else:
            self._level_up = None
            self._baseline_level = level

    # ---- streaks ----

    def _apply_streak(self, update: StreakUpdate) -> User:
        user = update.user
        today = self._clock.today()
        if update.awarded:
            user = self._store.recompute_totals(user, self._repo.get_tasks())
            self._repo.update_daily_stats(
                tasks_completed=0,
                xp_gained=update.bonus_xp,
                day=today,
                today=today,
            )
        self._repo.save_user(user)
        self._track_level(user.level)
        return user

    def _roll_over_streak(self) -> StreakUpdate:
        today = self._clock.today()
        update = self._streaks.roll_over(self._repo.get_user(today=today), today)
        if update.rolled_over:
            user = self._apply_streak(update)
            update = replace(update, user=user)
        return update

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
        task = self._store.add_task(
            title,
            description,
            difficulty,
            is_recurring=is_recurring,
            recurring_days=recurring_days,
            quest_type=quest_type,
        )
        if task is None:
            return None

        if task.quest_type is not None and task.quest_type not in self._quest_types:
            self._quest_types.add(task.quest_type)

        # A template scheduled for today gets its instance right away.
        today = self._clock.today()
        if task.scheduled_on(today):
            tasks = self._repo.get_tasks()
            if not self._recurrence.instances_on(tasks, task.id, today):
                tasks.append(self._recurrence.make_instance(task))
                self._repo.save_tasks(tasks)
        return task

    def complete_task(self, task_id: str) -> bool:
        self._roll_over_streak()

        change = self._store.complete_task(task_id)
        if change is None:
            return False

        update = self._streaks.on_completion(change.user, self._clock.today())
        self._apply_streak(update)
        return True

    def undo_task(self, task_id: str) -> bool:
        change = self._store.undo_task(task_id)
        if change is None:
            return False

        record = change.task
        if record.failure is not None:
            today = self._clock.today()
            self._store.add_task(
                record.title,
                record.description,
                record.difficulty,
                quest_type=record.quest_type,
            )
            self._repo.update_daily_stats(
                tasks_completed=0,
                xp_gained=record.failure.applied,
                day=today,
                today=today,
            )
            logger.info(
                "Failure undone template=%s refund=+%d total=%d",
                record.failure.template_id,
                record.failure.applied,
                change.user.total_xp,
            )

        self._track_level(change.user.level)
        return True

    def delete_task(self, task_id: str) -> bool:
        change = self._store.delete_task(task_id)
        if change is None:
            return False
        self._track_level(change.user.level)
        return True

    def edit_task(
        self,
        task_id: str,
        title: str,
        description: str,
        difficulty: Difficulty | str,
        is_recurring: bool | None = None,
        recurring_days: Iterable[DayOfWeek | str] | None = None,
        quest_type: str | None = None,
    ) -> bool:
        change = self._store.edit_task(
            task_id,
            title,
            description,
            difficulty,
            is_recurring=is_recurring,
            recurring_days=recurring_days,
            quest_type=quest_type,
        )
        if change is None:
            return False
        if change.task.quest_type is not None and change.task.quest_type not in self._quest_types:
            self._quest_types.add(change.task.quest_type)
        self._track_level(change.user.level)
        return True

    def copy_task(self, task_id: str) -> Task | None:
        return self._store.copy_task(task_id)

    def hide_task(self, task_id: str) -> bool:
        return self._store.hide_task(task_id)

    def unhide_task(self, task_id: str) -> bool:
        return self._store.unhide_task(task_id)

    def add_quest_type(self, label: str) -> bool:
        return self._quest_types.add(label)

    def replace_tasks(self, tasks: list[Task]) -> User:
        """Bulk replacement of the whole collection (imports)."""
        user = self._store.replace_tasks(tasks)
        self._track_level(user.level)
        return user

    # ---- recurrence ----

    def _markers(self, user: User) -> CheckMarkers:
        return CheckMarkers(
            last_recurring_check=user.last_recurring_check,
            last_failure_check=self._repo.get_last_failure_check(),
        )

    def generate_for_today(self, *, force: bool = False) -> GenerationResult:
        today = self._clock.today()
        tasks = self._repo.get_tasks()
        user = self._repo.get_user(today=today)
        markers = self._markers(user)

        result = self._recurrence.generate_for_today(tasks, today, markers, force=force)
        if result.skipped:
            return result

        if result.created:
            tasks.extend(result.created)
            self._repo.save_tasks(tasks)
        self._repo.save_user(replace(user, last_recurring_check=markers.last_recurring_check))
        return result

    def fail_recurring_task(self, template_id: str, *, failed_on: date | None = None) -> Task | None:
        """
        Apply the failure penalty for one missed day of a template.

        The failure record replaces any uncompleted instance for that day; the
        template itself stays active. A day that already has a failure record
        is not charged again. The XP actually deducted is capped at the
        player's current total; the remainder leaves them at level 0.
        """
        today = self._clock.today()
        tasks = self._repo.get_tasks()
        user = self._repo.get_user(today=today)

        template = next((t for t in tasks if t.id == template_id), None)
        if template is None or not template.is_template:
            logger.info("fail_recurring_task rejected: id=%s is not a recurring template", template_id)
            return None

        day = failed_on if failed_on is not None else today - timedelta(days=1)
        if self._recurrence.has_failure_for(tasks, template.id, day, today):
            logger.info("fail_recurring_task rejected: template=%s already failed for %s", template.id, day)
            return None

        penalty = FAILURE_PENALTIES[template.difficulty]
        applied = min(penalty, self._store.recompute_totals(user, tasks).total_xp)
        now_iso = to_utc_iso(self._clock.now())

        record = Task(
            id=str(uuid.uuid4()),
            title=template.title,
            description=template.description,
            difficulty=template.difficulty,
            xp_reward=template.xp_reward,
            created_at=now_iso,
            parent_task_id=template.id,
            quest_type=template.quest_type,
            quest_status=QuestStatus.ACTIVE,
            failure=Failure(
                template_id=template.id,
                failed_on=day,
                penalty=penalty,
                recorded_at=now_iso,
                penalty_applied=applied,
            ),
        )

        stale = {t.id for t in self._recurrence.stale_instances(tasks, template.id, day)}
        tasks = [t for t in tasks if t.id not in stale]
        tasks.append(record)

        user = self._store.recompute_totals(user, tasks)
        self._repo.save_tasks(tasks)
        self._repo.save_user(user)
        self._repo.update_daily_stats(tasks_completed=0, xp_gained=-applied, day=today, today=today)
        self._repo.record_history(record, day=today)
        self._track_level(user.level)

        logger.info(
            "Recurring quest failed template=%s day=%s penalty=-%d applied=-%d total=%d level=%d",
            template.id,
            day,
            penalty,
            applied,
            user.total_xp,
            user.level,
        )
        return record

    def check_for_failed_tasks(self) -> FailureCheckResult:
        """Once per day: penalize templates that went unmet yesterday."""
        today = self._clock.today()
        if self._repo.get_last_failure_check() == today:
            logger.debug("Failure check already ran for %s", today)
            return FailureCheckResult(skipped=True)

        yesterday = today - timedelta(days=1)
        failed: list[Task] = []
        for template in self._recurrence.find_failed_templates(self._repo.get_tasks(), today):
            record = self.fail_recurring_task(template.id, failed_on=yesterday)
            if record is not None:
                failed.append(record)

        total = sum(r.failure.applied for r in failed if r.failure is not None)
        self._repo.set_last_failure_check(today)
        if failed:
            logger.info("Failure check %s: %d failed, total penalty -%d XP", today, len(failed), total)
        return FailureCheckResult(failed=failed, total_penalty=total, skipped=False)

    # ---- suggestions ----

    def suggest_quests(self, count: int = 3, *, recurring: bool | None = None) -> list[QuestSuggestion]:
        titles = [t.title for t in self._repo.get_tasks()]
        return self._suggester.suggest(count, existing_titles=titles, recurring=recurring)

    # ---- read model ----

    @property
    def tasks(self) -> list[Task]:
        return self._repo.get_tasks()

    @property
    def user(self) -> User:
        return self._repo.get_user(today=self._clock.today())

    @property
    def quest_types(self) -> list[str]:
        return self._quest_types.labels()

    def active_quests(self, *, show_hidden: bool = False) -> list[Task]:
        view = self._recurrence.dedupe_instances(self.tasks)
        return [
            t
            for t in view
            if not t.is_template
            and not t.is_failure
            and not t.completed
            and (show_hidden or t.quest_status != QuestStatus.HIDDEN)
        ]

    def completed_quests(self, *, show_hidden: bool = False) -> list[Task]:
        done = [
            t
            for t in self.tasks
            if t.completed and (show_hidden or t.quest_status != QuestStatus.HIDDEN)
        ]
        return sorted(done, key=lambda t: t.completed_at or "", reverse=True)

    def failed_quests(self) -> list[Task]:
        failed = [t for t in self.tasks if t.failure is not None]
        return sorted(failed, key=lambda t: t.failure.recorded_at if t.failure else "", reverse=True)

    def templates(self) -> list[Task]:
        return [t for t in self.tasks if t.is_template]

    def daily_stats(self):
        return self._repo.get_stats()

    def resolve_id(self, prefix: str) -> str | None:
        """Exact id, or a unique id prefix; None when unknown or ambiguous."""
        prefix = (prefix or "").strip()
        if not prefix:
            return None
        ids = [t.id for t in self.tasks]
        if prefix in ids:
            return prefix
        matches = [i for i in ids if i.startswith(prefix)]
        return matches[0] if len(matches) == 1 else None

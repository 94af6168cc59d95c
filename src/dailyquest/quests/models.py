# src/dailyquest/quests/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

from ..core.clock import parse_date, parse_timestamp

FAILED_PREFIX = "FAILED:"
NO_TYPE_LABEL = "No Type"


class Difficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def from_raw(cls, raw: Any) -> Difficulty:
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.EASY


# Reward for completing a task; stored on the task at creation/edit time.
XP_REWARDS: dict[Difficulty, int] = {
    Difficulty.EASY: 10,
    Difficulty.MEDIUM: 25,
    Difficulty.HARD: 50,
}

# XP lost when a recurring template's day passes without a completed instance.
FAILURE_PENALTIES: dict[Difficulty, int] = {
    Difficulty.EASY: 5,
    Difficulty.MEDIUM: 10,
    Difficulty.HARD: 15,
}


class DayOfWeek(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, day: date) -> DayOfWeek:
        return list(cls)[day.weekday()]

    @classmethod
    def parse(cls, raw: Any) -> DayOfWeek | None:
        """Accept full names and 3-letter prefixes ("mon", "Tuesday")."""
        s = str(raw or "").strip().lower()
        if not s:
            return None
        for d in cls:
            if d.value == s or (len(s) >= 3 and d.value.startswith(s)):
                return d
        return None


class QuestStatus(StrEnum):
    """
    Visibility status, independent of the `completed` flag.

    "hidden" keeps a task out of default views without deleting it.
    """

    ACTIVE = "active"
    HIDDEN = "hidden"
    COMPLETED = "completed"

    @classmethod
    def from_raw(cls, raw: Any, *, completed: bool = False) -> QuestStatus:
        if not raw:
            return cls.COMPLETED if completed else cls.ACTIVE
        try:
            return cls(str(raw))
        except ValueError:
            return cls.COMPLETED if completed else cls.ACTIVE


class TaskKind(StrEnum):
    TEMPLATE = "template"
    INSTANCE = "instance"
    STANDALONE = "standalone"
    FAILURE = "failure"


class TaskState(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


def normalize_quest_type(raw: Any) -> str | None:
    """Quest types are stored upper-case; blank and the legacy "No Type" mean none."""
    if raw is None:
        return None
    s = str(raw).strip()
    if not s or s.lower() == NO_TYPE_LABEL.lower():
        return None
    return s.upper()


@dataclass(slots=True, frozen=True)
class Failure:
    """
    Marks a task as the record of a missed recurring occurrence.

    template_id:     the template whose day was missed
    failed_on:       the calendar day that was missed
    penalty:         table penalty for the template's difficulty
    recorded_at:     UTC timestamp of when the miss was detected
    penalty_applied: XP actually deducted; less than `penalty` when the player
                     had less XP than that. Undo refunds exactly this amount.
    """

    template_id: str
    failed_on: date
    penalty: int
    recorded_at: str
    penalty_applied: int | None = None

    @property
    def applied(self) -> int:
        return self.penalty if self.penalty_applied is None else self.penalty_applied

    @property
    def unpaid(self) -> int:
        return self.penalty - self.applied

    def to_dict(self) -> dict[str, Any]:
        return {
            "templateId": self.template_id,
            "failedOn": self.failed_on.isoformat(),
            "penalty": self.penalty,
            "penaltyApplied": self.applied,
            "recordedAt": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, fallback_day: date) -> Failure:
        penalty = max(0, int(raw.get("penalty") or 0))
        applied = raw.get("penaltyApplied")
        return cls(
            template_id=str(raw.get("templateId") or ""),
            failed_on=parse_date(raw.get("failedOn")) or fallback_day,
            penalty=penalty,
            recorded_at=str(raw.get("recordedAt") or ""),
            penalty_applied=None if applied is None else min(penalty, max(0, int(applied))),
        )


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    difficulty: Difficulty
    xp_reward: int
    created_at: str

    completed: bool = False
    completed_at: str | None = None

    is_recurring: bool = False
    recurring_days: tuple[DayOfWeek, ...] = ()
    parent_task_id: str | None = None

    quest_type: str | None = None
    quest_status: QuestStatus = QuestStatus.ACTIVE

    failure: Failure | None = None

    @property
    def is_failure(self) -> bool:
        return self.failure is not None

    @property
    def is_template(self) -> bool:
        return self.is_recurring and self.parent_task_id is None and self.failure is None

    @property
    def is_instance(self) -> bool:
        return self.parent_task_id is not None and not self.is_recurring and self.failure is None

    @property
    def kind(self) -> TaskKind:
        if self.failure is not None:
            return TaskKind.FAILURE
        if self.is_recurring:
            return TaskKind.TEMPLATE
        if self.parent_task_id is not None:
            return TaskKind.INSTANCE
        return TaskKind.STANDALONE

    @property
    def state(self) -> TaskState:
        if self.failure is not None:
            return TaskState.FAILED
        return TaskState.COMPLETED if self.completed else TaskState.ACTIVE

    @property
    def display_title(self) -> str:
        if self.failure is not None:
            return f"{FAILED_PREFIX} {self.title}"
        return self.title

    def scheduled_on(self, day: date) -> bool:
        return self.is_template and DayOfWeek.of(day) in self.recurring_days

    # ---- JSON (camelCase field names) ----

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "createdAt": self.created_at,
            "difficulty": self.difficulty.value,
            "xpReward": self.xp_reward,
            "questStatus": self.quest_status.value,
        }
        if self.completed_at is not None:
            out["completedAt"] = self.completed_at
        if self.is_recurring:
            out["isRecurring"] = True
            out["recurringDays"] = [d.value for d in self.recurring_days]
        if self.parent_task_id is not None:
            out["parentTaskId"] = self.parent_task_id
        if self.quest_type is not None:
            out["questType"] = self.quest_type
        if self.failure is not None:
            out["failure"] = self.failure.to_dict()
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, today: date) -> Task:
        """
        Build a Task from stored JSON.

        Legacy failure records (title prefixed with "FAILED:" and a completion-like
        timestamp on an uncompleted task) are migrated into the explicit Failure form.
        `today` dates a failure record whose timestamps are all unreadable.
        """
        difficulty = Difficulty.from_raw(raw.get("difficulty"))
        completed = bool(raw.get("completed", False))
        title = str(raw.get("title") or "")
        created_at = str(raw.get("createdAt") or "")
        completed_at = raw.get("completedAt") or None

        try:
            xp_reward = int(raw.get("xpReward"))
        except (TypeError, ValueError):
            xp_reward = XP_REWARDS[difficulty]

        days: list[DayOfWeek] = []
        for d in raw.get("recurringDays") or []:
            parsed = DayOfWeek.parse(d)
            if parsed is not None and parsed not in days:
                days.append(parsed)

        parent_task_id = raw.get("parentTaskId") or None
        is_recurring = bool(raw.get("isRecurring", False)) and parent_task_id is None

        failure: Failure | None = None
        stamp = completed_at or created_at
        stamp_dt = parse_timestamp(stamp) or parse_timestamp(created_at)
        fallback = stamp_dt.date() if stamp_dt is not None else today

        if isinstance(raw.get("failure"), dict):
            failure = Failure.from_dict(raw["failure"], fallback_day=fallback)
        elif title.startswith(FAILED_PREFIX):
            failure = Failure(
                template_id=str(parent_task_id or ""),
                failed_on=fallback,
                penalty=FAILURE_PENALTIES[difficulty],
                recorded_at=str(stamp or ""),
            )
            title = title[len(FAILED_PREFIX):].strip()

        if failure is not None:
            completed = False
            completed_at = None
            is_recurring = False

        return cls(
            id=str(raw.get("id") or ""),
            title=title,
            description=str(raw.get("description") or ""),
            difficulty=difficulty,
            xp_reward=xp_reward,
            created_at=created_at,
            completed=completed,
            completed_at=str(completed_at) if completed_at else None,
            is_recurring=is_recurring,
            recurring_days=tuple(days) if is_recurring else (),
            parent_task_id=parent_task_id,
            quest_type=normalize_quest_type(raw.get("questType")),
            quest_status=QuestStatus.from_raw(raw.get("questStatus"), completed=completed),
            failure=failure,
        )


@dataclass(slots=True)
class User:
    level: int = 1
    xp: int = 0
    total_xp: int = 0
    xp_to_next_level: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    failed_xp: int = 0
    # Lifetime streak-milestone XP; part of the totals recompute.
    bonus_xp: int = 0
    # Day counts of streak milestones already paid out; each pays once.
    milestones_awarded: tuple[int, ...] = ()
    streak_days: int = 0
    # None until the first rollover; the streak tracker treats it as today.
    last_active: date | None = None
    last_recurring_check: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "xp": self.xp,
            "totalXp": self.total_xp,
            "xpToNextLevel": self.xp_to_next_level,
            "tasksCompleted": self.tasks_completed,
            "tasksFailed": self.tasks_failed,
            "failedXp": self.failed_xp,
            "bonusXp": self.bonus_xp,
            "completedMilestones": list(self.milestones_awarded),
            "streakDays": self.streak_days,
            "lastActive": self.last_active.isoformat() if self.last_active else None,
            "lastRecurringCheck": (
                self.last_recurring_check.isoformat() if self.last_recurring_check else None
            ),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, today: date) -> User:
        def num(key: str, default: int = 0) -> int:
            # A stored 0 is a real value (level 0 is the debt state).
            value = raw.get(key)
            if value is None or value == "":
                return default
            try:
                return int(float(value))
            except (TypeError, ValueError):
                return default

        awarded: set[int] = set()
        for d in raw.get("completedMilestones") or []:
            # The older format stored whole milestone objects.
            days = d.get("days") if isinstance(d, dict) else d
            try:
                awarded.add(int(days))
            except (TypeError, ValueError):
                continue

        return cls(
            level=max(0, num("level", 1)),
            xp=num("xp"),
            total_xp=max(0, num("totalXp")),
            xp_to_next_level=max(0, num("xpToNextLevel")),
            tasks_completed=max(0, num("tasksCompleted")),
            tasks_failed=max(0, num("tasksFailed")),
            failed_xp=max(0, num("failedXp")),
            bonus_xp=max(0, num("bonusXp")),
            milestones_awarded=tuple(sorted(awarded)),
            streak_days=max(0, num("streakDays")),
            last_active=parse_date(raw.get("lastActive")) or today,
            last_recurring_check=parse_date(raw.get("lastRecurringCheck")),
        )


@dataclass(slots=True)
class DailyStats:
    date: date
    tasks_completed: int = 0
    xp_gained: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "tasksCompleted": self.tasks_completed,
            "xpGained": self.xp_gained,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> DailyStats | None:
        day = parse_date(raw.get("date"))
        if day is None:
            return None
        try:
            return cls(
                date=day,
                tasks_completed=int(raw.get("tasksCompleted") or 0),
                xp_gained=int(raw.get("xpGained") or 0),
            )
        except (TypeError, ValueError):
            return None


@dataclass(slots=True)
class TaskHistory:
    date: date
    tasks: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "tasks": [t.to_dict() for t in self.tasks]}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TaskHistory | None:
        day = parse_date(raw.get("date"))
        if day is None:
            return None
        tasks = [Task.from_dict(t, today=day) for t in raw.get("tasks") or [] if isinstance(t, dict)]
        return cls(date=day, tasks=tasks)

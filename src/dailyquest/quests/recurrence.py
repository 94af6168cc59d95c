# src/dailyquest/quests/recurrence.py

"""
Recurring quests.

Templates carry a weekday schedule; each scheduled day gets one concrete
instance. This module decides:
- which instances to create today (idempotent within a day),
- which templates went unmet yesterday (failure candidates),
- how to read a collection that already contains duplicates.

Everything here is a pure function of (tasks, day, markers). Persisting the
results is the engine's job.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from ..core.clock import to_utc_iso
from ..core.ports import Clock
from .models import DayOfWeek, QuestStatus, Task

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CheckMarkers:
    """Idempotency markers: the day generation / failure detection last ran."""

    last_recurring_check: date | None = None
    last_failure_check: date | None = None


@dataclass(slots=True, frozen=True)
class GenerationResult:
    created: list[Task] = field(default_factory=list)
    skipped: bool = False


class RecurrenceEngine:
    def __init__(self, clock: Clock, *, id_factory: Callable[[], str] | None = None) -> None:
        self._clock = clock
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))

    # ---- queries ----

    @staticmethod
    def templates_for(tasks: list[Task], day: date) -> list[Task]:
        weekday = DayOfWeek.of(day)
        return [t for t in tasks if t.is_template and weekday in t.recurring_days]

    def _instance_days(self, task: Task) -> set[date]:
        days: set[date] = set()
        for stamp in (task.created_at, task.completed_at):
            d = self._clock.local_date(stamp)
            if d is not None:
                days.add(d)
        return days

    def instances_on(self, tasks: list[Task], template_id: str, day: date) -> list[Task]:
        """Non-failure instances of a template created or completed on `day`."""
        return [
            t
            for t in tasks
            if t.is_instance and t.parent_task_id == template_id and day in self._instance_days(t)
        ]

    def _completed_on(self, tasks: list[Task], template_id: str, day: date) -> bool:
        for t in tasks:
            if t.is_instance and t.parent_task_id == template_id and t.completed:
                if self._clock.local_date(t.completed_at) == day:
                    return True
        return False

    def has_failure_for(self, tasks: list[Task], template_id: str, day: date, today: date) -> bool:
        """A failure record for `day`, or any failure recorded on `day` or today."""
        for t in tasks:
            if t.failure is None or t.failure.template_id != template_id:
                continue
            if t.failure.failed_on == day:
                return True
            if self._clock.local_date(t.failure.recorded_at) in (day, today):
                return True
        return False

    def stale_instances(self, tasks: list[Task], template_id: str, day: date) -> list[Task]:
        """Uncompleted instances of a template that were created on `day`."""
        return [
            t
            for t in tasks
            if t.is_instance
            and t.parent_task_id == template_id
            and not t.completed
            and self._clock.local_date(t.created_at) == day
        ]

    # ---- generation ----

    def make_instance(self, template: Task) -> Task:
        return Task(
            id=self._new_id(),
            title=template.title,
            description=template.description,
            difficulty=template.difficulty,
            xp_reward=template.xp_reward,
            created_at=to_utc_iso(self._clock.now()),
            completed=False,
            completed_at=None,
            is_recurring=False,
            parent_task_id=template.id,
            quest_type=template.quest_type,
            quest_status=QuestStatus.ACTIVE,
        )

    def generate_for_today(
        self,
        tasks: list[Task],
        today: date,
        markers: CheckMarkers,
        *,
        force: bool = False,
    ) -> GenerationResult:
        """
        Create today's missing instances.

        Skipped entirely if generation already ran today (unless forced). The
        per-template existence check keeps a forced run from duplicating.
        Updates markers.last_recurring_check; the caller persists both.
        """
        if not force and markers.last_recurring_check == today:
            logger.debug("Recurring generation already ran for %s", today)
            return GenerationResult(created=[], skipped=True)

        created: list[Task] = []
        for template in self.templates_for(tasks, today):
            if self.instances_on(tasks, template.id, today):
                continue
            instance = self.make_instance(template)
            created.append(instance)
            logger.debug("Generated instance id=%s for template=%s", instance.id, template.id)

        markers.last_recurring_check = today
        if created:
            logger.info("Generated %d recurring quest instances for %s", len(created), today)
        return GenerationResult(created=created, skipped=False)

    # ---- failure detection ----

    def find_failed_templates(self, tasks: list[Task], today: date) -> list[Task]:
        """
        Templates scheduled yesterday that were not met.

        A template is NOT failed when:
        - it did not exist yet yesterday,
        - a failure record already covers it (failed yesterday, or recorded yesterday/today),
        - an instance was completed yesterday,
        - an instance was completed today (completions just after midnight count).
        """
        yesterday = today - timedelta(days=1)
        failed: list[Task] = []
        for template in self.templates_for(tasks, yesterday):
            created_on = self._clock.local_date(template.created_at)
            if created_on is not None and created_on > yesterday:
                continue
            if self.has_failure_for(tasks, template.id, yesterday, today):
                continue
            if self._completed_on(tasks, template.id, yesterday):
                continue
            if self._completed_on(tasks, template.id, today):
                continue
            failed.append(template)
        return failed

    # ---- read-model helpers ----

    def dedupe_instances(self, tasks: list[Task]) -> list[Task]:
        """
        Keep one instance per (template, day): the most recently created.

        Non-instances pass through untouched; order is preserved.
        """
        winners: dict[tuple[str, date | None], Task] = {}
        for t in tasks:
            if not t.is_instance:
                continue
            key = (t.parent_task_id or "", self._clock.local_date(t.created_at))
            best = winners.get(key)
            if best is None or t.created_at >= best.created_at:
                winners[key] = t
        keep = {id(t) for t in winners.values()}
        return [t for t in tasks if not t.is_instance or id(t) in keep]

    @staticmethod
    def merge_duplicate_templates(tasks: list[Task]) -> tuple[list[Task], int]:
        """
        Collapse templates sharing a title into the first one.

        Instances and failure records of the dropped templates are re-pointed at
        the kept template. Returns (tasks, number of templates removed).
        """
        kept_by_title: dict[str, Task] = {}
        remap: dict[str, str] = {}
        for t in tasks:
            if not t.is_template:
                continue
            first = kept_by_title.setdefault(t.title, t)
            if first is not t:
                remap[t.id] = first.id

        if not remap:
            return tasks, 0

        out: list[Task] = []
        for t in tasks:
            if t.id in remap:
                continue
            if t.parent_task_id in remap:
                new_parent = remap[t.parent_task_id]
                failure = t.failure
                if failure is not None and failure.template_id in remap:
                    failure = replace(failure, template_id=new_parent)
                t = replace(t, parent_task_id=new_parent, failure=failure)
            out.append(t)

        logger.info("Removed %d duplicate recurring templates.", len(remap))
        return out, len(remap)

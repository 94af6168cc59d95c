# tests/test_recurrence.py

from __future__ import annotations

import itertools
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from dailyquest.quests.models import DayOfWeek, Difficulty, Failure, Task
from dailyquest.quests.recurrence import CheckMarkers, RecurrenceEngine

from .fakes import FakeClock

# 2024-01-10 is a Wednesday; yesterday was a Tuesday.
TODAY = date(2024, 1, 10)
YESTERDAY = date(2024, 1, 9)


@pytest.fixture()
def recurrence(clock: FakeClock) -> RecurrenceEngine:
    counter = itertools.count(1)
    return RecurrenceEngine(clock, id_factory=lambda: f"inst-{next(counter)}")


def _template(task_id: str, *days: DayOfWeek, title: str = "Gym", created_at: str = "2024-01-01T08:00:00.000Z") -> Task:
    return Task(
        id=task_id,
        title=title,
        description="",
        difficulty=Difficulty.MEDIUM,
        xp_reward=25,
        created_at=created_at,
        is_recurring=True,
        recurring_days=tuple(days),
        quest_type="HEALTH",
    )


def _instance(task_id: str, parent: str, created_at: str, completed_at: str | None = None) -> Task:
    return Task(
        id=task_id,
        title="Gym",
        description="",
        difficulty=Difficulty.MEDIUM,
        xp_reward=25,
        created_at=created_at,
        completed=completed_at is not None,
        completed_at=completed_at,
        parent_task_id=parent,
    )


def test_generates_one_instance_per_scheduled_template(recurrence: RecurrenceEngine) -> None:
    tasks = [
        _template("mwf", DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY, DayOfWeek.FRIDAY),
        _template("tue", DayOfWeek.TUESDAY, title="Swim"),
    ]
    markers = CheckMarkers()

    result = recurrence.generate_for_today(tasks, TODAY, markers)

    assert not result.skipped
    (instance,) = result.created
    assert instance.id == "inst-1"
    assert instance.parent_task_id == "mwf"
    assert instance.is_instance
    assert (instance.title, instance.xp_reward, instance.quest_type) == ("Gym", 25, "HEALTH")
    assert instance.created_at == "2024-01-10T09:00:00.000Z"
    assert markers.last_recurring_check == TODAY


def test_generation_is_idempotent_within_a_day(recurrence: RecurrenceEngine) -> None:
    tasks = [_template("mwf", DayOfWeek.WEDNESDAY)]
    markers = CheckMarkers()

    first = recurrence.generate_for_today(tasks, TODAY, markers)
    tasks.extend(first.created)

    again = recurrence.generate_for_today(tasks, TODAY, markers)
    assert again.skipped
    assert again.created == []

    forced = recurrence.generate_for_today(tasks, TODAY, markers, force=True)
    assert not forced.skipped
    assert forced.created == []


def test_completed_instance_today_blocks_regeneration(recurrence: RecurrenceEngine) -> None:
    tasks = [
        _template("w", DayOfWeek.WEDNESDAY),
        _instance("i", "w", "2024-01-10T07:00:00.000Z", completed_at="2024-01-10T08:00:00.000Z"),
    ]
    result = recurrence.generate_for_today(tasks, TODAY, CheckMarkers(), force=True)
    assert result.created == []


def test_find_failed_templates(recurrence: RecurrenceEngine) -> None:
    tasks = [
        _template("missed", DayOfWeek.TUESDAY, title="Missed"),
        _template("done", DayOfWeek.TUESDAY, title="Done"),
        _template("late", DayOfWeek.TUESDAY, title="Late"),
        _template("new", DayOfWeek.TUESDAY, title="New", created_at="2024-01-10T06:00:00.000Z"),
        _template("recorded", DayOfWeek.TUESDAY, title="Recorded"),
        _template("other", DayOfWeek.MONDAY, title="Other"),
        _instance("i1", "missed", "2024-01-09T07:00:00.000Z"),
        _instance("i2", "done", "2024-01-09T07:00:00.000Z", completed_at="2024-01-09T20:00:00.000Z"),
        # Completed just after midnight still counts for yesterday.
        _instance("i3", "late", "2024-01-09T07:00:00.000Z", completed_at="2024-01-10T00:30:00.000Z"),
        Task(
            id="f",
            title="Recorded",
            description="",
            difficulty=Difficulty.MEDIUM,
            xp_reward=25,
            created_at="2024-01-10T08:00:00.000Z",
            parent_task_id="recorded",
            failure=Failure("recorded", YESTERDAY, 10, "2024-01-10T08:00:00.000Z"),
        ),
    ]

    failed = recurrence.find_failed_templates(tasks, TODAY)
    assert [t.id for t in failed] == ["missed"]


def test_stale_instances_are_uncompleted_ones_from_that_day(recurrence: RecurrenceEngine) -> None:
    tasks = [
        _template("t", DayOfWeek.TUESDAY),
        _instance("old", "t", "2024-01-09T07:00:00.000Z"),
        _instance("done", "t", "2024-01-09T07:00:00.000Z", completed_at="2024-01-09T08:00:00.000Z"),
        _instance("today", "t", "2024-01-10T07:00:00.000Z"),
    ]
    assert [t.id for t in recurrence.stale_instances(tasks, "t", YESTERDAY)] == ["old"]


def test_dedupe_instances_keeps_latest_per_day(recurrence: RecurrenceEngine) -> None:
    standalone = Task("s", "Solo", "", Difficulty.EASY, 10, "2024-01-10T06:00:00.000Z")
    tasks = [
        _template("t", DayOfWeek.WEDNESDAY),
        _instance("early", "t", "2024-01-10T07:00:00.000Z"),
        standalone,
        _instance("late", "t", "2024-01-10T08:00:00.000Z"),
        _instance("prev", "t", "2024-01-09T08:00:00.000Z"),
    ]
    view = recurrence.dedupe_instances(tasks)
    assert [t.id for t in view] == ["t", "s", "late", "prev"]
    assert len(tasks) == 5


def test_merge_duplicate_templates_repoints_children() -> None:
    tasks = [
        _template("a", DayOfWeek.MONDAY),
        _template("b", DayOfWeek.FRIDAY),
        _instance("i", "b", "2024-01-05T07:00:00.000Z"),
        Task(
            id="f",
            title="Gym",
            description="",
            difficulty=Difficulty.MEDIUM,
            xp_reward=25,
            created_at="2024-01-06T07:00:00.000Z",
            parent_task_id="b",
            failure=Failure("b", date(2024, 1, 5), 10, "2024-01-06T07:00:00.000Z"),
        ),
    ]
    merged, removed = RecurrenceEngine.merge_duplicate_templates(tasks)

    assert removed == 1
    assert [t.id for t in merged] == ["a", "i", "f"]
    assert merged[1].parent_task_id == "a"
    assert merged[2].failure.template_id == "a"


def test_day_boundaries_follow_the_clock_timezone() -> None:
    # 23:30 UTC on Tuesday is already Wednesday in Berlin.
    clock = FakeClock(datetime(2024, 1, 9, 23, 30, tzinfo=timezone.utc), tz=ZoneInfo("Europe/Berlin"))
    recurrence = RecurrenceEngine(clock)
    tasks = [_template("w", DayOfWeek.WEDNESDAY)]

    result = recurrence.generate_for_today(tasks, clock.today(), CheckMarkers())
    assert clock.today() == TODAY
    assert len(result.created) == 1

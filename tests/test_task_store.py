# tests/test_task_store.py

from __future__ import annotations

from dataclasses import replace
from datetime import date

from dailyquest.quests.models import DayOfWeek, Difficulty, Failure, QuestStatus, Task, User
from dailyquest.quests.task_store import TaskStore
from dailyquest.storage.repository import QuestRepository

from .fakes import FakeClock


def test_add_rejects_invalid_input(store: TaskStore) -> None:
    assert store.add_task("   ") is None
    assert store.add_task("Gym", is_recurring=True, recurring_days=[]) is None
    assert store.get_tasks() == []


def test_add_derives_reward_and_orders_days(store: TaskStore) -> None:
    task = store.add_task(
        "Gym",
        "  leg day ",
        "hard",
        is_recurring=True,
        recurring_days=["friday", "mon", "Friday"],
        quest_type="health",
    )
    assert task is not None
    assert task.xp_reward == 50
    assert task.description == "leg day"
    assert task.recurring_days == (DayOfWeek.MONDAY, DayOfWeek.FRIDAY)
    assert task.quest_type == "HEALTH"
    assert task.created_at == "2024-01-10T09:00:00.000Z"
    assert store.get_task(task.id) == task


def test_complete_updates_user_stats_and_history(
    store: TaskStore, repository: QuestRepository, clock: FakeClock
) -> None:
    task = store.add_task("Read", difficulty=Difficulty.MEDIUM)
    change = store.complete_task(task.id)

    assert change is not None
    assert change.task.completed
    assert change.task.quest_status == QuestStatus.COMPLETED
    assert change.user.total_xp == 25
    assert change.user.tasks_completed == 1

    (row,) = repository.get_stats()
    assert (row.date, row.tasks_completed, row.xp_gained) == (clock.today(), 1, 25)
    (bucket,) = repository.get_history()
    assert bucket.tasks[0].completed


def test_complete_rejects_invalid_targets(store: TaskStore) -> None:
    task = store.add_task("Read")
    template = store.add_task("Gym", is_recurring=True, recurring_days=["monday"])

    assert store.complete_task("nope") is None
    assert store.complete_task(template.id) is None
    assert store.complete_task(task.id) is not None
    assert store.complete_task(task.id) is None


def test_undo_is_the_inverse_of_complete(store: TaskStore, repository: QuestRepository) -> None:
    task = store.add_task("Read", difficulty="hard")
    store.complete_task(task.id)
    change = store.undo_task(task.id)

    assert change is not None
    reverted = store.get_task(task.id)
    assert reverted.completed is False
    assert reverted.completed_at is None
    assert reverted.quest_status == QuestStatus.ACTIVE
    assert change.user.total_xp == 0
    assert change.user.tasks_completed == 0

    (row,) = repository.get_stats()
    assert (row.tasks_completed, row.xp_gained) == (0, 0)

    assert store.undo_task(task.id) is None


def test_delete_completed_task_removes_its_xp(store: TaskStore) -> None:
    keep = store.add_task("Keep")
    drop = store.add_task("Drop", difficulty="medium")
    store.complete_task(keep.id)
    store.complete_task(drop.id)

    change = store.delete_task(drop.id)
    assert change.user.total_xp == 10
    assert [t.id for t in store.get_tasks()] == [keep.id]
    assert store.delete_task(drop.id) is None


def test_edit_recomputes_reward_of_completed_task(store: TaskStore) -> None:
    task = store.add_task("Read", quest_type="study")
    store.complete_task(task.id)

    change = store.edit_task(task.id, "Read more", "", "hard", quest_type=None)
    assert change.task.xp_reward == 50
    assert change.task.quest_type is None
    assert change.user.total_xp == 50


def test_edit_keeps_schedule_unless_told_otherwise(store: TaskStore) -> None:
    template = store.add_task("Gym", is_recurring=True, recurring_days=["monday", "friday"])

    kept = store.edit_task(template.id, "Gym", "", "easy")
    assert kept.task.is_recurring
    assert kept.task.recurring_days == (DayOfWeek.MONDAY, DayOfWeek.FRIDAY)

    changed = store.edit_task(template.id, "Gym", "", "easy", recurring_days=["sun"])
    assert changed.task.recurring_days == (DayOfWeek.SUNDAY,)

    plain = store.edit_task(template.id, "Gym", "", "easy", is_recurring=False)
    assert not plain.task.is_recurring
    assert plain.task.recurring_days == ()

    assert store.edit_task(template.id, "  ", "", "easy") is None


def test_copy_creates_fresh_active_task(store: TaskStore, clock: FakeClock) -> None:
    task = store.add_task("Read")
    store.complete_task(task.id)
    clock.advance(hours=1)

    copy = store.copy_task(task.id)
    assert copy.id != task.id
    assert copy.title == "Read (Copy)"
    assert copy.completed is False
    assert copy.quest_status == QuestStatus.ACTIVE
    assert copy.created_at == "2024-01-10T10:00:00.000Z"
    assert len(store.get_tasks()) == 2


def test_hide_and_unhide_restore_the_right_status(store: TaskStore) -> None:
    open_task = store.add_task("Open")
    done_task = store.add_task("Done")
    store.complete_task(done_task.id)

    assert store.hide_task(open_task.id)
    assert store.hide_task(done_task.id)
    assert not store.hide_task(done_task.id)

    assert store.unhide_task(open_task.id)
    assert store.unhide_task(done_task.id)
    assert store.get_task(open_task.id).quest_status == QuestStatus.ACTIVE
    assert store.get_task(done_task.id).quest_status == QuestStatus.COMPLETED
    assert not store.unhide_task(done_task.id)


def test_recompute_counts_penalties_and_bonus(store: TaskStore) -> None:
    done = Task(
        id="d",
        title="Done",
        description="",
        difficulty=Difficulty.EASY,
        xp_reward=10,
        created_at="2024-01-09T09:00:00.000Z",
        completed=True,
        completed_at="2024-01-09T10:00:00.000Z",
    )
    failed = Task(
        id="f",
        title="Gym",
        description="",
        difficulty=Difficulty.HARD,
        xp_reward=50,
        created_at="2024-01-10T09:00:00.000Z",
        parent_task_id="tpl",
        failure=Failure("tpl", date(2024, 1, 9), 15, "2024-01-10T09:00:00.000Z"),
    )

    user = store.recompute_totals(User(bonus_xp=50), [done, failed])
    assert (user.total_xp, user.level, user.xp) == (45, 1, 45)
    assert (user.tasks_completed, user.tasks_failed, user.failed_xp) == (1, 1, 15)

    in_debt = store.recompute_totals(User(), [done, failed, replace(failed, id="f2")])
    assert (in_debt.level, in_debt.total_xp, in_debt.xp) == (0, 0, 0)

    partial = replace(failed, failure=replace(failed.failure, penalty_applied=10))
    capped = store.recompute_totals(User(), [done, partial])
    assert (capped.level, capped.total_xp, capped.failed_xp) == (0, 0, 15)

    earned_back = replace(done, id="d2")
    recovered = store.recompute_totals(User(), [done, partial, earned_back])
    assert (recovered.level, recovered.total_xp) == (1, 10)


def test_verify_completed_tasks_repairs_pairing(store: TaskStore) -> None:
    broken = [
        Task("a", "A", "", Difficulty.EASY, 10, "2024-01-09T09:00:00.000Z", completed=True),
        Task("b", "B", "", Difficulty.EASY, 10, "2024-01-09T09:00:00.000Z", completed_at="2024-01-09T10:00:00.000Z"),
    ]
    fixed, repaired = store.verify_completed_tasks(broken)
    assert repaired == 2
    assert fixed[0].completed_at == "2024-01-09T09:00:00.000Z"
    assert fixed[1].completed_at is None


def test_replace_tasks_recomputes_user(store: TaskStore) -> None:
    imported = [
        Task("a", "A", "", Difficulty.HARD, 50, "2024-01-09T09:00:00.000Z", completed=True),
        Task("b", "B", "", Difficulty.MEDIUM, 25, "2024-01-09T09:00:00.000Z", completed=True),
    ]
    user = store.replace_tasks(imported)
    assert (user.total_xp, user.level, user.tasks_completed) == (75, 2, 2)
    assert all(t.completed_at for t in store.get_tasks())

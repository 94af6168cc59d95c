# tests/test_commands.py

from __future__ import annotations

from dailyquest.cli.commands import CommandRegistry, parse_task_args, registry
from dailyquest.connectors.console_connector import announce_level_up
from dailyquest.quests.models import DayOfWeek, Difficulty


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b")

    notes: list[str] = []
    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/B y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_parse_task_args() -> None:
    parsed = parse_task_args("d=hard days=mon,Fri type=work Morning run | before breakfast".split())
    assert parsed.title == "Morning run"
    assert parsed.description == "before breakfast"
    assert parsed.difficulty == Difficulty.HARD
    assert parsed.days == [DayOfWeek.MONDAY, DayOfWeek.FRIDAY]
    assert (parsed.quest_type, parsed.type_given) == ("work", True)

    # Options only count before the title starts.
    literal = parse_task_args("Read x=y".split())
    assert literal.title == "Read x=y"

    bad = parse_task_args("d=insane days=funday Oops".split())
    assert len(bad.errors) == 2


def test_add_list_done_flow(state) -> None:
    reply = registry.handle(state, "/add d=medium type=study Read a chapter | chapter 3")
    assert reply.startswith("Added:")

    (task,) = state.engine.tasks
    assert (task.title, task.description, task.xp_reward) == ("Read a chapter", "chapter 3", 25)
    assert state.engine.quest_types == ["STUDY"]

    listing = registry.handle(state, "/list")
    assert task.id[:8] in listing

    assert registry.handle(state, f"/done {task.id[:8]}").startswith("Quest complete")
    assert "none" in registry.handle(state, "/list")
    assert task.id[:8] in registry.handle(state, "/list done")

    assert registry.handle(state, f"/undo {task.id[:8]}").startswith("Undone")
    assert state.engine.user.total_xp == 0


def test_commands_reject_unknown_ids(state) -> None:
    assert registry.handle(state, "/done nope") == "Cannot complete that quest."
    assert registry.handle(state, "/fail nope").startswith("Cannot fail that quest")
    assert registry.handle(state, "/add").startswith("Usage")


def test_fail_twice_charges_once(state) -> None:
    registry.handle(state, "/add d=easy days=mon,tue,wed,thu,fri,sat,sun Stretch")
    registry.handle(state, "/add d=hard Warmup")
    warmup = next(t for t in state.engine.tasks if t.title == "Warmup")
    registry.handle(state, f"/done {warmup.id}")
    template = state.engine.templates()[0]

    assert registry.handle(state, f"/fail {template.id[:8]}") == "Failed: Stretch (-5 XP)."
    assert registry.handle(state, f"/fail {template.id[:8]}").startswith("Cannot fail that quest")

    user = state.engine.user
    assert (user.tasks_failed, user.failed_xp, user.total_xp) == (1, 5, 45)


def test_edit_keeps_unspecified_fields(state) -> None:
    registry.handle(state, "/add d=hard days=mon,wed Gym | legs")
    template = state.engine.templates()[0]

    assert registry.handle(state, f"/edit {template.id[:8]} d=easy") == "Updated."
    edited = state.engine.store.get_task(template.id)
    assert (edited.title, edited.description, edited.xp_reward) == ("Gym", "legs", 10)
    assert edited.recurring_days == (DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY)


def test_level_up_banner_is_shown_once(state) -> None:
    registry.handle(state, "/add d=hard Big quest")
    (task,) = state.engine.tasks
    registry.handle(state, f"/done {task.id}")

    assert announce_level_up(state) == "*** LEVEL UP! 1 -> 2 ***"
    assert announce_level_up(state) is None


def test_status_streak_levels_and_reset(state) -> None:
    assert "Level: 1" in registry.handle(state, "/status")
    assert "Next: 3-Day Streak" in registry.handle(state, "/streak")
    assert "110" in registry.handle(state, "/levels 3")

    registry.handle(state, "/add Read")
    assert "/reset yes" in registry.handle(state, "/reset")
    assert registry.handle(state, "/reset yes") == "All data reset."
    assert state.engine.tasks == []


def test_types_and_suggest(state) -> None:
    assert "No quest types" in registry.handle(state, "/types")
    assert registry.handle(state, "/addtype work") == "Quest type added: WORK"
    assert "WORK" in registry.handle(state, "/types")
    assert registry.handle(state, "/suggest 2").startswith("Suggestions:")

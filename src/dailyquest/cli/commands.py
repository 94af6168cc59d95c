# src/dailyquest/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import cast

from ..core.state import AppState
from ..quests.models import DayOfWeek, Difficulty, QuestStatus, Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID = 8


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument parsing ----


@dataclass(slots=True)
class TaskArgs:
    """
    Parsed form of: [d=easy|medium|hard] [days=mon,wed|none] [type=WORK|none] title words [| description]
    """

    title: str = ""
    description: str | None = None
    difficulty: Difficulty | None = None
    days: list[DayOfWeek] | None = None
    quest_type: str | None = None
    type_given: bool = False
    errors: list[str] = field(default_factory=list)


def parse_task_args(args: list[str]) -> TaskArgs:
    out = TaskArgs()
    title_words: list[str] = []
    desc_words: list[str] | None = None

    for token in args:
        if desc_words is not None:
            desc_words.append(token)
            continue
        if token == "|":
            desc_words = []
            continue

        key, sep, value = token.partition("=")
        key = key.lower()
        if not sep or title_words:
            title_words.append(token)
        elif key in ("d", "difficulty"):
            try:
                out.difficulty = Difficulty(value.lower())
            except ValueError:
                out.errors.append(f"Unknown difficulty: {value}")
        elif key == "days":
            if value.lower() in ("", "none"):
                out.days = []
                continue
            days: list[DayOfWeek] = []
            for raw in value.split(","):
                day = DayOfWeek.parse(raw)
                if day is None:
                    out.errors.append(f"Unknown day: {raw}")
                elif day not in days:
                    days.append(day)
            out.days = days
        elif key == "type":
            out.type_given = True
            out.quest_type = None if value.lower() in ("", "none") else value
        else:
            title_words.append(token)

    out.title = " ".join(title_words).strip()
    if desc_words is not None:
        out.description = " ".join(desc_words).strip()
    return out


def _resolve(state: AppState, args: list[str]) -> str | None:
    if not args:
        return None
    return state.engine.resolve_id(args[0])


# ---- formatting ----


def fmt_task(task: Task) -> str:
    mark = "[x]" if task.completed else "[!]" if task.is_failure else "[ ]"
    parts = [f"{mark} {task.id[:SHORT_ID]} {task.display_title}"]
    if task.is_failure and task.failure is not None:
        parts.append(f"({task.difficulty.value}, -{task.failure.applied} XP, missed {task.failure.failed_on})")
    else:
        parts.append(f"({task.difficulty.value}, +{task.xp_reward} XP)")
    if task.quest_type:
        parts.append(f"<{task.quest_type}>")
    if task.is_template:
        parts.append("every " + ",".join(d.value[:3].title() for d in task.recurring_days))
    if task.quest_status == QuestStatus.HIDDEN:
        parts.append("(hidden)")
    return " ".join(parts)


def _fmt_list(title: str, tasks: list[Task]) -> str:
    if not tasks:
        return f"{title}: none."
    return "\n".join([f"{title}:"] + [f"  {fmt_task(t)}" for t in tasks])


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    user = state.engine.user
    status = state.repository.storage_status()
    storage = "OK" if status.available else "UNAVAILABLE"
    return (
        "Status:\n"
        f"  Level: {user.level}  XP: {user.xp}/{user.xp + user.xp_to_next_level}  Total: {user.total_xp}\n"
        f"  Quests completed: {user.tasks_completed}  failed: {user.tasks_failed} (-{user.failed_xp} XP)\n"
        f"  Streak: {user.streak_days} day(s)  Bonus XP: {user.bonus_xp}\n"
        f"  Storage: {storage} ({status.size} bytes, {len(status.keys)} keys)"
    )


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> active quests
    /list all        -> active quests including hidden ones
    /list done       -> completed quests
    /list hidden     -> completed quests including hidden ones
    /list failed     -> failure records
    /list templates  -> recurring templates
    """
    engine = state.engine
    sub = args[0].lower() if args else ""

    if sub == "":
        return _fmt_list("Active quests", engine.active_quests())
    if sub == "all":
        return _fmt_list("Active quests (incl. hidden)", engine.active_quests(show_hidden=True))
    if sub == "done":
        return _fmt_list("Completed quests", engine.completed_quests())
    if sub == "hidden":
        return _fmt_list("Completed quests (incl. hidden)", engine.completed_quests(show_hidden=True))
    if sub == "failed":
        return _fmt_list("Failed quests", engine.failed_quests())
    if sub == "templates":
        return _fmt_list("Recurring templates", engine.templates())
    return "Usage: /list [all|done|hidden|failed|templates]"


def cmd_add(state: AppState, args: list[str]) -> str:
    parsed = parse_task_args(args)
    if parsed.errors:
        return "\n".join(parsed.errors)
    if not parsed.title:
        return "Usage: /add [d=easy|medium|hard] [days=mon,wed] [type=WORK] title [| description]"

    task = state.engine.add_task(
        parsed.title,
        parsed.description or "",
        parsed.difficulty or Difficulty.EASY,
        is_recurring=bool(parsed.days),
        recurring_days=parsed.days,
        quest_type=parsed.quest_type,
    )
    if task is None:
        return "Quest not added."
    return f"Added: {fmt_task(task)}"


def cmd_done(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None or not state.engine.complete_task(task_id):
        return "Cannot complete that quest."
    user = state.engine.user
    return f"Quest complete. Level {user.level}, {user.xp}/{user.xp + user.xp_to_next_level} XP."


def cmd_undo(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None or not state.engine.undo_task(task_id):
        return "Nothing to undo for that quest."
    return f"Undone. Total XP: {state.engine.user.total_xp}."


def cmd_delete(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None or not state.engine.delete_task(task_id):
        return "Unknown quest."
    return "Deleted."


def cmd_edit(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None:
        return "Usage: /edit <id> [d=...] [days=...|none] [type=...|none] [title] [| description]"

    current = state.engine.store.get_task(task_id)
    if current is None:
        return "Unknown quest."

    parsed = parse_task_args(args[1:])
    if parsed.errors:
        return "\n".join(parsed.errors)

    ok = state.engine.edit_task(
        task_id,
        parsed.title or current.title,
        parsed.description if parsed.description is not None else current.description,
        parsed.difficulty or current.difficulty,
        is_recurring=None if parsed.days is None else bool(parsed.days),
        recurring_days=parsed.days if parsed.days else current.recurring_days,
        quest_type=parsed.quest_type if parsed.type_given else current.quest_type,
    )
    return "Updated." if ok else "Quest not updated."


def cmd_copy(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    copy = state.engine.copy_task(task_id) if task_id else None
    if copy is None:
        return "Cannot copy that quest."
    return f"Copied: {fmt_task(copy)}"


def cmd_hide(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None or not state.engine.hide_task(task_id):
        return "Cannot hide that quest."
    return "Hidden."


def cmd_unhide(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    if task_id is None or not state.engine.unhide_task(task_id):
        return "Cannot unhide that quest."
    return "Visible again."


def cmd_fail(state: AppState, args: list[str]) -> str:
    task_id = _resolve(state, args)
    record = state.engine.fail_recurring_task(task_id) if task_id else None
    if record is None or record.failure is None:
        return "Cannot fail that quest: not a recurring template, or that day already failed."
    return f"Failed: {record.title} (-{record.failure.applied} XP)."


def cmd_check(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    engine = state.engine
    result = engine.check_for_failed_tasks()
    if emit and result.failed:
        with contextlib.suppress(Exception):
            emit(_fmt_list("Missed yesterday", result.failed))
    gen = engine.generate_for_today(force=True)

    lines = []
    if result.skipped:
        lines.append("Failure check already ran today.")
    else:
        lines.append(f"Failed quests: {len(result.failed)} (-{result.total_penalty} XP).")
    lines.append(f"New recurring quests for today: {len(gen.created)}.")
    return "\n".join(lines)


def cmd_types(state: AppState, args: list[str]) -> str:
    types = state.engine.quest_types
    if not types:
        return "No quest types yet. Add one with /addtype NAME."
    return "Quest types: " + ", ".join(types)


def cmd_addtype(state: AppState, args: list[str]) -> str:
    label = " ".join(args).strip()
    if not label:
        return "Usage: /addtype NAME"
    if not state.engine.add_quest_type(label):
        return "Quest type not added (empty or already exists)."
    return f"Quest type added: {label.upper()}"


def cmd_levels(state: AppState, args: list[str]) -> str:
    """/levels [n] -> first n rows of the progression table (default 10)."""
    try:
        limit = int(args[0]) if args else 10
    except ValueError:
        return "Usage: /levels [count]"

    user = state.engine.user
    lines = ["Level  Total XP  Span"]
    for level, required, span in state.engine.curve.progression_table()[: max(1, limit)]:
        marker = " <" if level == user.level else ""
        lines.append(f"{level:>5}  {required:>8}  {span:>4}{marker}")
    return "\n".join(lines)


def cmd_streak(state: AppState, args: list[str]) -> str:
    streaks = state.engine.streaks
    days = state.engine.user.streak_days
    lines = [f"Streak: {days} day(s)."]
    achieved = streaks.achieved(days)
    if achieved:
        lines.append("Achieved: " + ", ".join(m.name for m in achieved))
    nxt = streaks.next_milestone(days)
    if nxt is None:
        lines.append("Every milestone reached.")
    else:
        lines.append(
            f"Next: {nxt.name} at {nxt.days} days (+{nxt.xp_reward} XP), "
            f"{streaks.progress_to_next(days)}% of the way."
        )
    return "\n".join(lines)


def cmd_suggest(state: AppState, args: list[str]) -> str:
    """
    /suggest [n] [recurring|oneoff]
    """
    count = 3
    recurring: bool | None = None
    for arg in args:
        if arg.isdigit():
            count = int(arg)
        elif arg.lower() in ("recurring", "daily"):
            recurring = True
        elif arg.lower() in ("oneoff", "once"):
            recurring = False

    picks = state.engine.suggest_quests(count, recurring=recurring)
    if not picks:
        return "No suggestions left."
    lines = ["Suggestions:"]
    for s in picks:
        lines.append(f"  {s.title} ({s.difficulty.value}, {s.category}) - {s.description}")
    return "\n".join(lines)


def cmd_reset(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() != "yes":
        return "This deletes all quests and progress. Type /reset yes to confirm."
    state.engine.reset()
    return "All data reset."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show level, XP, streak and storage status.")
registry.register("list", cmd_list, help_text="List quests: /list [all|done|hidden|failed|templates].", aliases=["ls"])
registry.register(
    "add",
    cmd_add,
    help_text="Add a quest: /add [d=medium] [days=mon,fri] [type=WORK] title [| description].",
)
registry.register("done", cmd_done, help_text="Complete a quest: /done <id>.", aliases=["complete"])
registry.register("undo", cmd_undo, help_text="Undo a completion or a failure: /undo <id>.")
registry.register("delete", cmd_delete, help_text="Delete a quest: /delete <id>.", aliases=["rm"])
registry.register("edit", cmd_edit, help_text="Edit a quest: /edit <id> [d=...] [days=...] [type=...] [title] [| desc].")
registry.register("copy", cmd_copy, help_text="Duplicate a quest: /copy <id>.")
registry.register("hide", cmd_hide, help_text="Hide a quest from the default lists: /hide <id>.")
registry.register("unhide", cmd_unhide, help_text="Show a hidden quest again: /unhide <id>.")
registry.register("fail", cmd_fail, help_text="Fail yesterday's occurrence of a template: /fail <id>.")
registry.register("check", cmd_check, help_text="Run the failure check and today's recurring generation.")
registry.register("types", cmd_types, help_text="List quest types.")
registry.register("addtype", cmd_addtype, help_text="Register a quest type: /addtype NAME.")
registry.register("levels", cmd_levels, help_text="Show the level table: /levels [count].")
registry.register("streak", cmd_streak, help_text="Show the streak and milestones.")
registry.register("suggest", cmd_suggest, help_text="Suggest quests: /suggest [n] [recurring|oneoff].")
registry.register("reset", cmd_reset, help_text="Delete all data: /reset yes.")

# src/dailyquest/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..quests.engine import DaySummary

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def describe_day(summary: DaySummary) -> list[str]:
    """Player-facing lines for what happened at day start."""
    lines: list[str] = []
    streak = summary.streak
    if streak.rolled_over and streak.new_streak == 0 and streak.old_streak > 0:
        lines.append(f"Your {streak.old_streak}-day streak was broken.")
    for m in streak.awarded:
        lines.append(f"Milestone reached: {m.name} (+{m.xp_reward} XP)")
    if summary.failures.failed:
        lines.append(
            f"Missed yesterday: {len(summary.failures.failed)} recurring quest(s), "
            f"-{summary.failures.total_penalty} XP."
        )
    if summary.generation.created:
        lines.append(f"{len(summary.generation.created)} recurring quest(s) ready for today.")
    return lines


def announce_level_up(state: AppState) -> str | None:
    """Return the level-up banner (if any) and dismiss it."""
    event = state.engine.level_up
    if event is None:
        return None
    state.engine.dismiss_level_up()
    return f"*** LEVEL UP! {event.old_level} -> {event.new_level} ***"


def run_console_loop(state: AppState, summary: DaySummary | None = None) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    if summary is not None:
        for line in describe_day(summary):
            _print_ts(line)

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Use /help to list them.")
            continue

        try:
            with state.lock:
                reply = command_registry.handle(state, user_input, emit=emit)
                banner = announce_level_up(state)
        except Exception:
            logger.exception("Command handler crashed.")
            reply, banner = "Internal error while handling a command.", None

        if reply is not None:
            _print_ts(reply)
        if banner is not None:
            _print_ts(banner)

    logger.info("Console connector finished.")

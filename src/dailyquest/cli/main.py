# src/dailyquest/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, runs the day-start pass (streak rollover,
failure check, recurring generation), then starts the console REPL.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        kv = getattr(state, "kv", None)
        if kv is not None and hasattr(kv, "close"):
            kv.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    log_dir = getattr(settings, "data_dir", ".local/dailyquest")
    log_file = setup_logging(log_dir=log_dir, console_level=getattr(settings, "log_level", "INFO"))

    logger.info("Starting %s (log file %s)...", getattr(settings, "app_name", "dailyquest"), log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    with state.lock:
        summary = state.engine.start_day()

    try:
        if settings.console_enabled:
            run_console_loop(state, summary)
        else:
            logger.info("Console disabled; day-start pass done, exiting.")
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()

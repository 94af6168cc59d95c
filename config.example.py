# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
See src/dailyquest/config.py for parsing and defaults.

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "DAILYQUEST_APP_NAME": "App display name (default: dailyquest).",
    "DAILYQUEST_LOG_LEVEL": "Console logging level (default: INFO). The log file always records DEBUG.",
    # Connectors
    "DAILYQUEST_CONSOLE_ENABLED": "Start the console REPL after the day-start pass (true/false, default: true).",
    # Paths (gitignored)
    "DAILYQUEST_DATA_DIR": "Local data directory for the database and logs (default: .local/dailyquest).",
    "DAILYQUEST_DB_PATH": "SQLite path (default: <data_dir>/dailyquest.sqlite3).",
    # Calendar
    "DAILYQUEST_TIMEZONE": "IANA zone for day boundaries, e.g. Europe/Berlin (default: system local).",
    # Level curve
    "DAILYQUEST_MAX_LEVEL": "Highest level in the table (default: 100, minimum 2).",
    "DAILYQUEST_LEVEL_BASE_XP": "XP needed to go from level 1 to 2 (default: 50).",
    "DAILYQUEST_LEVEL_GROWTH": "Per-level growth factor of the XP step (default: 1.2).",
    # Suggestions
    "DAILYQUEST_RECENT_SUGGESTIONS": "How many recent suggestion titles to avoid repeating (default: 15).",
}

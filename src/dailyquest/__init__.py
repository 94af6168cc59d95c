"""
DailyQuest: a gamified task tracker core.

Components:
- quests/: level curve, task store, recurrence engine, streaks, quest engine
- storage/: SQLite-backed key/value store + typed repository over it
- cli/, connectors/: console front-end wired in cli/bootstrap.py
"""

__version__ = "0.1.0"

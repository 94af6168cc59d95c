# src/dailyquest/quests/suggestions.py

"""
Quest suggestions.

A fixed catalog of ready-made quests. Suggestions skip titles the player
already has and titles suggested recently, falling back to the wider pool
when the filters leave too little.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass

from ..storage.repository import QuestRepository
from .models import Difficulty

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class QuestSuggestion:
    title: str
    description: str
    difficulty: Difficulty
    category: str
    recurring: bool = False


def _q(title: str, description: str, difficulty: str, category: str, recurring: bool = False) -> QuestSuggestion:
    return QuestSuggestion(title, description, Difficulty(difficulty), category, recurring)


CATALOG: tuple[QuestSuggestion, ...] = (
    # Health & fitness
    _q("Morning Workout", "Complete a 30-minute morning workout session.", "medium", "HEALTH"),
    _q("Take a Walk", "Go for a 20-minute walk outside.", "easy", "HEALTH"),
    _q("Run 5K", "Run five kilometres at any pace.", "hard", "HEALTH"),
    _q("Stretch Session", "Spend 10 minutes stretching.", "easy", "HEALTH"),
    # Productivity
    _q("Inbox Zero", "Process every email in your inbox.", "medium", "PRODUCTIVITY"),
    _q("Deep Work Block", "Work two hours without distractions.", "hard", "PRODUCTIVITY"),
    _q("Plan Tomorrow", "Write down the three most important tasks for tomorrow.", "easy", "PRODUCTIVITY"),
    # Personal growth
    _q("Read 20 Pages", "Read at least 20 pages of a book.", "medium", "PERSONAL"),
    _q("Journal Entry", "Write a short journal entry about your day.", "easy", "PERSONAL"),
    _q("Learn Something New", "Spend 30 minutes on a course or tutorial.", "medium", "PERSONAL"),
    # Home
    _q("Declutter a Drawer", "Empty, sort and tidy one drawer.", "easy", "HOME"),
    _q("Deep Clean the Kitchen", "Clean counters, appliances and floor.", "hard", "HOME"),
    _q("Do the Laundry", "Wash, dry and fold a load of laundry.", "medium", "HOME"),
    # Tech
    _q("Back Up Your Files", "Make a fresh backup of important files.", "medium", "TECH"),
    _q("Update Your Software", "Install pending updates on your devices.", "easy", "TECH"),
    # Social
    _q("Call a Friend", "Catch up with a friend or family member.", "easy", "SOCIAL"),
    _q("Write a Thank-You Note", "Thank someone who helped you recently.", "easy", "SOCIAL"),
    # Recurring-friendly
    _q("Drink Water", "Drink eight glasses of water today.", "easy", "HEALTH", recurring=True),
    _q("Meditate", "Meditate for 10 minutes.", "easy", "PERSONAL", recurring=True),
    _q("Practice an Instrument", "Practice for 30 minutes.", "medium", "PERSONAL", recurring=True),
    _q("Weekly Review", "Review the past week and plan the next.", "medium", "PRODUCTIVITY", recurring=True),
)


class QuestSuggester:
    def __init__(
        self,
        repository: QuestRepository,
        *,
        catalog: tuple[QuestSuggestion, ...] = CATALOG,
        recent_limit: int = 15,
        rng: random.Random | None = None,
    ) -> None:
        self._repo = repository
        self._catalog = catalog
        self._recent_limit = max(0, int(recent_limit))
        self._rng = rng or random.Random()

    def _remember(self, titles: Iterable[str]) -> None:
        if self._recent_limit == 0:
            return
        recent = self._repo.get_recently_suggested()
        for title in titles:
            if title in recent:
                continue
            recent.insert(0, title)
        self._repo.save_recently_suggested(recent[: self._recent_limit])

    def suggest(
        self,
        count: int = 3,
        *,
        existing_titles: Iterable[str] = (),
        recurring: bool | None = None,
    ) -> list[QuestSuggestion]:
        """
        Pick up to `count` distinct suggestions.

        recurring=True/False restricts to recurring-friendly / one-off quests.
        """
        if count <= 0:
            return []

        existing = set(existing_titles)
        recent = set(self._repo.get_recently_suggested())

        pool = [s for s in self._catalog if s.title not in existing]
        if recurring is not None:
            pool = [s for s in pool if s.recurring == recurring]

        fresh = [s for s in pool if s.title not in recent]
        candidates = fresh if len(fresh) >= count else pool
        if not candidates:
            return []

        picked = self._rng.sample(candidates, k=min(count, len(candidates)))
        self._remember(s.title for s in picked)
        logger.debug("Suggested quests: %s", [s.title for s in picked])
        return picked

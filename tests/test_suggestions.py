# tests/test_suggestions.py

from __future__ import annotations

import random

from dailyquest.quests.models import Difficulty
from dailyquest.quests.quest_types import QuestTypeRegistry
from dailyquest.quests.suggestions import CATALOG, QuestSuggester, QuestSuggestion
from dailyquest.storage.repository import QuestRepository

SMALL = (
    QuestSuggestion("A", "a", Difficulty.EASY, "X"),
    QuestSuggestion("B", "b", Difficulty.EASY, "X"),
    QuestSuggestion("C", "c", Difficulty.EASY, "X"),
    QuestSuggestion("D", "d", Difficulty.EASY, "X", recurring=True),
)


def test_catalog_titles_are_unique() -> None:
    titles = [s.title for s in CATALOG]
    assert len(titles) == len(set(titles))


def test_suggest_skips_existing_titles(repository: QuestRepository) -> None:
    suggester = QuestSuggester(repository, catalog=SMALL, rng=random.Random(0))
    picks = suggester.suggest(10, existing_titles=["A", "B"])
    assert sorted(s.title for s in picks) == ["C", "D"]


def test_suggest_filters_by_recurrence(repository: QuestRepository) -> None:
    suggester = QuestSuggester(repository, catalog=SMALL, rng=random.Random(0))
    assert [s.title for s in suggester.suggest(3, recurring=True)] == ["D"]
    assert "D" not in {s.title for s in suggester.suggest(3, recurring=False)}


def test_recent_suggestions_are_avoided(repository: QuestRepository) -> None:
    suggester = QuestSuggester(repository, catalog=SMALL, rng=random.Random(1))
    first = {s.title for s in suggester.suggest(2)}
    second = {s.title for s in suggester.suggest(2)}

    assert first.isdisjoint(second)
    assert set(repository.get_recently_suggested()) == first | second


def test_recent_list_is_capped(repository: QuestRepository) -> None:
    suggester = QuestSuggester(repository, catalog=SMALL, recent_limit=2, rng=random.Random(2))
    suggester.suggest(3)
    assert len(repository.get_recently_suggested()) == 2
    assert suggester.suggest(0) == []


def test_quest_types_are_normalized_and_unique(repository: QuestRepository) -> None:
    registry = QuestTypeRegistry(repository)
    assert registry.add("work")
    assert not registry.add("WORK")
    assert not registry.add("  ")
    assert not registry.add("No Type")
    assert registry.add("Health")

    assert registry.labels() == ["WORK", "HEALTH"]
    assert "health" in registry

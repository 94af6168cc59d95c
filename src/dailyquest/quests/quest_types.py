# src/dailyquest/quests/quest_types.py

from __future__ import annotations

import logging

from ..storage.repository import QuestRepository
from .models import normalize_quest_type

logger = logging.getLogger(__name__)


class QuestTypeRegistry:
    """Growing allow-list of quest-type labels, stored upper-case in insertion order."""

    def __init__(self, repository: QuestRepository) -> None:
        self._repo = repository

    def labels(self) -> list[str]:
        seen: list[str] = []
        for raw in self._repo.get_quest_types():
            label = normalize_quest_type(raw)
            if label is not None and label not in seen:
                seen.append(label)
        return seen

    def __contains__(self, label: object) -> bool:
        return normalize_quest_type(label) in set(self.labels())

    def add(self, label: str) -> bool:
        norm = normalize_quest_type(label)
        if norm is None:
            logger.info("add_quest_type rejected: empty label")
            return False
        types = self.labels()
        if norm in types:
            logger.info("add_quest_type rejected: %s already registered", norm)
            return False
        types.append(norm)
        self._repo.save_quest_types(types)
        logger.info("Quest type added: %s", norm)
        return True

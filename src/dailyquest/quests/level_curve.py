# src/dailyquest/quests/level_curve.py

"""
Level curve: cumulative XP <-> level.

Thresholds follow progressive scaling: level 2 needs `base_xp`, and each later
level needs the previous step grown by `growth` (rounded half-up).
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass

DEFAULT_MAX_LEVEL = 100
DEFAULT_BASE_XP = 50
DEFAULT_GROWTH = 1.2

# Level reported while failure penalties exceed all earned XP.
DEBT_LEVEL = 0


@dataclass(slots=True, frozen=True)
class LevelThreshold:
    level: int
    xp_required: int


@dataclass(slots=True, frozen=True)
class LevelProgress:
    level: int
    xp: int
    total_xp: int
    xp_to_next_level: int


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def build_thresholds(
    *,
    max_level: int = DEFAULT_MAX_LEVEL,
    base_xp: int = DEFAULT_BASE_XP,
    growth: float = DEFAULT_GROWTH,
) -> tuple[LevelThreshold, ...]:
    if max_level < 2:
        raise ValueError("max_level must be >= 2")
    if base_xp < 1:
        raise ValueError("base_xp must be >= 1")
    if growth < 1.0:
        raise ValueError("growth must be >= 1.0")

    thresholds = [LevelThreshold(level=1, xp_required=0)]
    step = base_xp
    total = 0
    for level in range(2, max_level + 1):
        total += step
        thresholds.append(LevelThreshold(level=level, xp_required=total))
        step = _round_half_up(step * growth)
    return tuple(thresholds)


def _coerce(total_xp: float | int | None) -> int:
    if total_xp is None:
        return 0
    try:
        v = int(total_xp)
    except (TypeError, ValueError):
        return 0
    return max(0, v)


class LevelCurve:
    def __init__(self, thresholds: tuple[LevelThreshold, ...] | None = None) -> None:
        self._thresholds = thresholds if thresholds is not None else build_thresholds()
        self._required = [t.xp_required for t in self._thresholds]

    @classmethod
    def from_settings(cls, settings) -> LevelCurve:
        return cls(
            build_thresholds(
                max_level=int(getattr(settings, "max_level", DEFAULT_MAX_LEVEL)),
                base_xp=int(getattr(settings, "level_base_xp", DEFAULT_BASE_XP)),
                growth=float(getattr(settings, "level_growth", DEFAULT_GROWTH)),
            )
        )

    @property
    def thresholds(self) -> tuple[LevelThreshold, ...]:
        return self._thresholds

    @property
    def max_level(self) -> int:
        return self._thresholds[-1].level

    def threshold(self, level: int) -> LevelThreshold | None:
        if 1 <= level <= self.max_level:
            return self._thresholds[level - 1]
        return None

    def level_for(self, total_xp: float | int | None) -> int:
        xp = _coerce(total_xp)
        return bisect.bisect_right(self._required, xp)

    def xp_to_next_level(self, total_xp: float | int | None) -> int:
        xp = _coerce(total_xp)
        nxt = self.threshold(self.level_for(xp) + 1)
        if nxt is None:
            return 0
        return nxt.xp_required - xp

    def xp_within_level(self, total_xp: float | int | None) -> int:
        xp = _coerce(total_xp)
        cur = self._thresholds[self.level_for(xp) - 1]
        return xp - cur.xp_required

    def xp_span_of_level(self, total_xp: float | int | None) -> int:
        level = self.level_for(total_xp)
        nxt = self.threshold(level + 1)
        if nxt is None:
            return 0
        return nxt.xp_required - self._thresholds[level - 1].xp_required

    def progress_for(self, raw_total: int, *, unpaid: int = 0) -> LevelProgress:
        """
        Derive level state from a net XP total.

        The "debt" state: a negative net total, or a net of 0 while part of a
        failure penalty could not be deducted (`unpaid`). XP is floored at 0 and
        the level is pinned to DEBT_LEVEL instead of following the curve.
        """
        if raw_total < 0 or (raw_total == 0 and unpaid > 0):
            second = self.threshold(2)
            return LevelProgress(
                level=DEBT_LEVEL,
                xp=0,
                total_xp=0,
                xp_to_next_level=second.xp_required if second is not None else 0,
            )
        return LevelProgress(
            level=self.level_for(raw_total),
            xp=self.xp_within_level(raw_total),
            total_xp=int(raw_total),
            xp_to_next_level=self.xp_to_next_level(raw_total),
        )

    def progression_table(self) -> list[tuple[int, int, int]]:
        """Rows of (level, cumulative xp required, xp needed from the previous level)."""
        rows: list[tuple[int, int, int]] = []
        prev = 0
        for t in self._thresholds:
            rows.append((t.level, t.xp_required, t.xp_required - prev))
            prev = t.xp_required
        return rows

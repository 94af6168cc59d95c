# src/dailyquest/quests/streaks.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date

from .models import User

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Milestone:
    days: int
    xp_reward: int
    name: str


STREAK_MILESTONES: tuple[Milestone, ...] = (
    Milestone(days=3, xp_reward=50, name="3-Day Streak"),
    Milestone(days=7, xp_reward=100, name="Weekly Warrior"),
    Milestone(days=14, xp_reward=250, name="Fortnight Fighter"),
    Milestone(days=30, xp_reward=500, name="Monthly Master"),
    Milestone(days=60, xp_reward=1000, name="Bimonthly Boss"),
    Milestone(days=100, xp_reward=2000, name="Century Champion"),
    Milestone(days=365, xp_reward=5000, name="Year-Long Legend"),
)


@dataclass(slots=True, frozen=True)
class StreakUpdate:
    user: User
    old_streak: int
    new_streak: int
    rolled_over: bool = False
    awarded: tuple[Milestone, ...] = field(default_factory=tuple)

    @property
    def bonus_xp(self) -> int:
        return sum(m.xp_reward for m in self.awarded)


class StreakTracker:
    """
    Consecutive-day activity.

    Policy: a gap of exactly one day extends the streak; a longer gap resets it
    to 0, and the next completion restarts it at 1.
    """

    def __init__(self, milestones: tuple[Milestone, ...] = STREAK_MILESTONES) -> None:
        days = [m.days for m in milestones]
        if days != sorted(set(days)):
            raise ValueError("milestones must be strictly increasing in days")
        self._milestones = tuple(milestones)

    @property
    def milestones(self) -> tuple[Milestone, ...]:
        return self._milestones

    def newly_crossed(
        self,
        old_streak: int,
        new_streak: int,
        *,
        already_awarded: tuple[int, ...] = (),
    ) -> tuple[Milestone, ...]:
        """Milestones crossed going from old_streak to new_streak, minus any paid out before."""
        return tuple(
            m
            for m in self._milestones
            if old_streak < m.days <= new_streak and m.days not in already_awarded
        )

    def _apply(self, user: User, new_streak: int, *, today: date, rolled_over: bool) -> StreakUpdate:
        old = user.streak_days
        awarded = self.newly_crossed(old, new_streak, already_awarded=user.milestones_awarded)
        bonus = sum(m.xp_reward for m in awarded)
        updated = replace(
            user,
            streak_days=new_streak,
            last_active=today,
            bonus_xp=user.bonus_xp + bonus,
            milestones_awarded=tuple(sorted({*user.milestones_awarded, *(m.days for m in awarded)})),
        )
        for m in awarded:
            logger.info("Streak milestone reached: %s (+%d XP)", m.name, m.xp_reward)
        return StreakUpdate(
            user=updated,
            old_streak=old,
            new_streak=new_streak,
            rolled_over=rolled_over,
            awarded=awarded,
        )

    def roll_over(self, user: User, today: date) -> StreakUpdate:
        """
        Day rollover: compare last_active with today.

        gap == 1 -> streak + 1; gap > 1 -> 0; gap <= 0 -> nothing happens.
        """
        last_active = user.last_active if user.last_active is not None else today
        gap = (today - last_active).days
        if gap <= 0:
            return StreakUpdate(user=user, old_streak=user.streak_days, new_streak=user.streak_days)

        new_streak = user.streak_days + 1 if gap == 1 else 0
        logger.info("Day rollover gap=%d streak %d -> %d", gap, user.streak_days, new_streak)
        return self._apply(user, new_streak, today=today, rolled_over=True)

    def on_completion(self, user: User, today: date) -> StreakUpdate:
        """Keep last_active fresh on activity; a broken (0) streak restarts at 1."""
        new_streak = user.streak_days if user.streak_days > 0 else 1
        return self._apply(user, new_streak, today=today, rolled_over=False)

    # ---- read model ----

    def next_milestone(self, streak: int) -> Milestone | None:
        return next((m for m in self._milestones if m.days > streak), None)

    def achieved(self, streak: int) -> tuple[Milestone, ...]:
        return tuple(m for m in self._milestones if m.days <= streak)

    def progress_to_next(self, streak: int) -> int:
        """Percent (0-100) of the way from the previous milestone to the next one."""
        nxt = self.next_milestone(streak)
        if nxt is None:
            return 100
        reached = self.achieved(streak)
        prev_days = reached[-1].days if reached else 0
        span = nxt.days - prev_days
        return round((streak - prev_days) / span * 100)

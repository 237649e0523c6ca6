"""Progression engine: streak, time, level, token and achievement computation.

Pure functions over immutable snapshots; persistence lives in
``skillforge.progression.service``.

Day rules (calendar dates, no time of day):
  - first event: streak starts at 1
  - same day (or an event dated before the stored date): streak unchanged
  - next day: streak +1, streak achievements evaluated, a token every Nth day
  - gap > 1 day: streak resets to 1
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from skillforge.progression.achievements import AchievementIndex, AchievementType
from skillforge.progression.thresholds import DEFAULT_THRESHOLDS, SkillLevel, ThresholdTable, compute_level

TOKEN_REWARD_INTERVAL = 5


class StreakOutcome(str, Enum):
    STARTED = "started"
    CONTINUED = "continued"
    SAME_DAY = "same_day"
    RESET = "reset"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Immutable copy of one user x skill category progress record."""

    current_streak: int = 0
    longest_streak: int = 0
    total_practice_time: int = 0
    last_practice_date: date | None = None
    level: SkillLevel = SkillLevel.BEGINNER
    redeem_tokens: int = 0


@dataclass(frozen=True)
class ProgressionResult:
    record: ProgressSnapshot
    outcome: StreakOutcome
    unlocked: frozenset[int]
    tokens_awarded: int
    previous_level: SkillLevel

    @property
    def level_changed(self) -> bool:
        return self.record.level != self.previous_level


def day_difference(last: date, current: date) -> int:
    """Whole calendar days from ``last`` to ``current`` (negative if current is earlier)."""
    return (current - last).days


def advance(
    record: ProgressSnapshot,
    duration_minutes: int,
    event_date: date,
    thresholds: ThresholdTable = DEFAULT_THRESHOLDS,
    *,
    catalog: AchievementIndex | None = None,
    category_id: int | None = None,
    unlocked: Iterable[int] = (),
    token_interval: int = TOKEN_REWARD_INTERVAL,
) -> ProgressionResult:
    """Apply one qualifying practice event to a progress record.

    Returns the new record together with the achievement ids the event
    unlocks (excluding ``unlocked``) and the number of tokens awarded.
    Raises ValueError on a non-positive duration.
    """
    if duration_minutes <= 0:
        raise ValueError(f"Practice duration must be positive, got {duration_minutes}")
    if token_interval <= 0:
        raise ValueError(f"Token interval must be positive, got {token_interval}")

    already = set(unlocked)
    newly: set[int] = set()
    streak = record.current_streak
    longest = record.longest_streak
    tokens = record.redeem_tokens
    last_date = record.last_practice_date

    if last_date is None:
        outcome = StreakOutcome.STARTED
        streak = 1
        longest = max(longest, 1)
        last_date = event_date
    else:
        gap = day_difference(last_date, event_date)
        if gap <= 0:
            # Late submissions never move the stored date backwards
            outcome = StreakOutcome.SAME_DAY
        elif gap == 1:
            outcome = StreakOutcome.CONTINUED
            streak += 1
            longest = max(longest, streak)
            if catalog is not None:
                newly |= catalog.evaluate(AchievementType.STREAK, streak, category_id, already)
            if streak % token_interval == 0:
                tokens += 1
            last_date = event_date
        else:
            outcome = StreakOutcome.RESET
            streak = 1
            longest = max(longest, 1)
            last_date = event_date

    total = record.total_practice_time + duration_minutes
    level = compute_level(total, thresholds)

    if catalog is not None:
        newly |= catalog.evaluate(AchievementType.PRACTICE_TIME, total, category_id, already)

    updated = replace(
        record,
        current_streak=streak,
        longest_streak=longest,
        total_practice_time=total,
        last_practice_date=last_date,
        level=level,
        redeem_tokens=tokens,
    )
    return ProgressionResult(
        record=updated,
        outcome=outcome,
        unlocked=frozenset(newly - already),
        tokens_awarded=tokens - record.redeem_tokens,
        previous_level=record.level,
    )

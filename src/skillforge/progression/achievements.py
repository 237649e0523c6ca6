"""Achievement catalog evaluation.

Rules are indexed by (type, skill_category_id | None) and kept sorted by
threshold, so an evaluation only walks the rules that can match the trigger.
"""

from __future__ import annotations

import bisect
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class AchievementType(str, Enum):
    STREAK = "streak"
    PRACTICE_TIME = "practice_time"
    MILESTONES = "milestones"
    SPECIAL = "special"


@dataclass(frozen=True)
class AchievementRule:
    id: int
    type: AchievementType
    threshold: int
    skill_specific: bool = False
    skill_category_id: int | None = None

    @classmethod
    def from_model(cls, achievement: Any) -> AchievementRule:
        return cls(
            id=achievement.id,
            type=AchievementType(achievement.type),
            threshold=achievement.threshold,
            skill_specific=bool(achievement.skill_specific),
            skill_category_id=achievement.skill_category_id,
        )


class AchievementIndex:
    """Catalog of unlock rules keyed by (type, bound category)."""

    def __init__(self, rules: Iterable[AchievementRule] = ()) -> None:
        buckets: dict[tuple[AchievementType, int | None], list[AchievementRule]] = defaultdict(list)
        for rule in rules:
            key = (rule.type, rule.skill_category_id if rule.skill_specific else None)
            buckets[key].append(rule)
        self._buckets = {key: sorted(items, key=lambda r: r.threshold) for key, items in buckets.items()}
        self._thresholds = {key: [r.threshold for r in items] for key, items in self._buckets.items()}

    @classmethod
    def from_models(cls, achievements: Iterable[Any]) -> AchievementIndex:
        return cls(AchievementRule.from_model(a) for a in achievements)

    def __len__(self) -> int:
        return sum(len(items) for items in self._buckets.values())

    def _candidates(self, key: tuple[AchievementType, int | None], value: int) -> list[AchievementRule]:
        rules = self._buckets.get(key)
        if not rules:
            return []
        cut = bisect.bisect_right(self._thresholds[key], value)
        return rules[:cut]

    def evaluate(
        self,
        trigger: AchievementType | str,
        value: int,
        category_id: int | None,
        unlocked: Iterable[int] = (),
    ) -> set[int]:
        """Return ids of rules of this type with threshold <= value not yet unlocked.

        Skill-specific rules only match when bound to ``category_id``.
        """
        kind = AchievementType(trigger)
        already = set(unlocked)
        matched = self._candidates((kind, None), value)
        if category_id is not None:
            matched = matched + self._candidates((kind, category_id), value)
        return {rule.id for rule in matched if rule.id not in already}

"""Skill levels and per-category threshold tables.

Thresholds are cumulative practice minutes. Beginner is the implicit floor (0).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SkillLevel(str, Enum):
    BEGINNER = "Beginner"
    ROOKIE = "Rookie"
    APPRENTICE = "Apprentice"
    MASTER = "Master"
    GRAND_MASTER = "Grand Master"

    @property
    def rank(self) -> int:
        return LEVEL_ORDER.index(self)


LEVEL_ORDER: list[SkillLevel] = [
    SkillLevel.BEGINNER,
    SkillLevel.ROOKIE,
    SkillLevel.APPRENTICE,
    SkillLevel.MASTER,
    SkillLevel.GRAND_MASTER,
]


@dataclass(frozen=True)
class ThresholdTable:
    """Minimum cumulative minutes for each level above Beginner."""

    rookie: int = 300
    apprentice: int = 1800
    master: int = 6000
    grand_master: int = 18000

    def __post_init__(self) -> None:
        if not 0 < self.rookie < self.apprentice < self.master < self.grand_master:
            raise ValueError(
                "Level thresholds must be positive and strictly increasing: "
                f"rookie={self.rookie}, apprentice={self.apprentice}, "
                f"master={self.master}, grand_master={self.grand_master}"
            )

    @classmethod
    def from_category(cls, category: Any) -> ThresholdTable:
        """Build a table from a SkillCategory row (or anything with threshold_* attributes)."""
        return cls(
            rookie=category.threshold_rookie,
            apprentice=category.threshold_apprentice,
            master=category.threshold_master,
            grand_master=category.threshold_grand_master,
        )

    def entries(self) -> list[tuple[SkillLevel, int]]:
        """Ordered (level, minimum minutes) pairs, Beginner first."""
        return [
            (SkillLevel.BEGINNER, 0),
            (SkillLevel.ROOKIE, self.rookie),
            (SkillLevel.APPRENTICE, self.apprentice),
            (SkillLevel.MASTER, self.master),
            (SkillLevel.GRAND_MASTER, self.grand_master),
        ]


DEFAULT_THRESHOLDS = ThresholdTable()


def compute_level(total_minutes: int, table: ThresholdTable = DEFAULT_THRESHOLDS) -> SkillLevel:
    """Highest level whose minimum is <= total_minutes.

    Reaching a threshold exactly counts as reaching the level.
    """
    current = SkillLevel.BEGINNER
    for level, minimum in table.entries():
        if total_minutes >= minimum:
            current = level
    return current


def level_info(total_minutes: int, table: ThresholdTable = DEFAULT_THRESHOLDS) -> dict:
    """Level plus progress toward the next one, for display."""
    entries = table.entries()
    level = compute_level(total_minutes, table)
    idx = level.rank
    current_min = entries[idx][1]

    # At max level there is no next step
    if idx == len(entries) - 1:
        next_level, next_min = level, current_min
    else:
        next_level, next_min = entries[idx + 1]

    minutes_for_level = max(next_min - current_min, 1)
    return {
        "level": level.value,
        "minutes_into_level": total_minutes - current_min,
        "minutes_for_level": minutes_for_level,
        "next_level": next_level.value,
        "minutes_to_next": max(next_min - total_minutes, 0),
    }

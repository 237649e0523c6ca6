"""Progression engine tests: streak rules, tokens, levels and unlocks."""

from datetime import date, timedelta

import pytest

from skillforge.progression.achievements import AchievementIndex, AchievementRule, AchievementType
from skillforge.progression.engine import ProgressSnapshot, StreakOutcome, advance, day_difference
from skillforge.progression.thresholds import SkillLevel, ThresholdTable, compute_level

DAY_N = date(2026, 3, 10)


def _record(**overrides) -> ProgressSnapshot:
    base = {
        "current_streak": 4,
        "longest_streak": 6,
        "total_practice_time": 290,
        "last_practice_date": DAY_N,
        "level": SkillLevel.BEGINNER,
        "redeem_tokens": 0,
    }
    base.update(overrides)
    return ProgressSnapshot(**base)


class TestScenarios:
    def test_next_day_reaches_token_and_rookie(self):
        """4-day streak + next-day event: streak 5, token awarded, Rookie at 310 minutes."""
        result = advance(_record(), 20, DAY_N + timedelta(days=1))
        assert result.record.current_streak == 5
        assert result.record.longest_streak == 6
        assert result.record.total_practice_time == 310
        assert result.record.redeem_tokens == 1
        assert result.tokens_awarded == 1
        assert result.record.level is SkillLevel.ROOKIE
        assert result.outcome is StreakOutcome.CONTINUED
        assert result.level_changed

    def test_gap_of_three_days_resets(self):
        result = advance(_record(), 20, DAY_N + timedelta(days=3))
        assert result.record.current_streak == 1
        assert result.record.longest_streak == 6
        assert result.record.total_practice_time == 310
        assert result.tokens_awarded == 0
        assert result.outcome is StreakOutcome.RESET
        assert result.record.last_practice_date == DAY_N + timedelta(days=3)


class TestStreakRules:
    def test_first_event_starts_streak(self):
        result = advance(ProgressSnapshot(), 30, DAY_N)
        assert result.outcome is StreakOutcome.STARTED
        assert result.record.current_streak == 1
        assert result.record.longest_streak == 1
        assert result.record.last_practice_date == DAY_N
        assert result.record.total_practice_time == 30

    def test_same_day_keeps_streak_and_adds_time(self):
        first = advance(_record(current_streak=2, longest_streak=2), 15, DAY_N)
        second = advance(first.record, 25, DAY_N)
        assert first.outcome is StreakOutcome.SAME_DAY
        assert second.record.current_streak == 2
        assert second.record.longest_streak == 2
        assert second.record.total_practice_time == 290 + 15 + 25

    def test_earlier_date_counts_as_same_day(self):
        result = advance(_record(), 10, DAY_N - timedelta(days=2))
        assert result.outcome is StreakOutcome.SAME_DAY
        assert result.record.current_streak == 4
        assert result.record.last_practice_date == DAY_N

    def test_gap_of_one_increments_by_exactly_one(self):
        result = advance(_record(current_streak=9, longest_streak=9), 10, DAY_N + timedelta(days=1))
        assert result.record.current_streak == 10
        assert result.record.longest_streak == 10

    def test_gap_of_two_resets(self):
        result = advance(_record(), 10, DAY_N + timedelta(days=2))
        assert result.record.current_streak == 1

    def test_month_boundary_is_consecutive(self):
        record = _record(last_practice_date=date(2026, 2, 28))
        result = advance(record, 10, date(2026, 3, 1))
        assert result.outcome is StreakOutcome.CONTINUED

    def test_longest_never_below_current(self):
        record = ProgressSnapshot()
        day = DAY_N
        for offset in [0, 1, 2, 2, 5, 6, 7, 8, 20, 21]:
            record = advance(record, 15, day + timedelta(days=offset)).record
            assert record.longest_streak >= record.current_streak

    def test_day_difference(self):
        assert day_difference(DAY_N, DAY_N) == 0
        assert day_difference(DAY_N, DAY_N + timedelta(days=1)) == 1
        assert day_difference(DAY_N, DAY_N - timedelta(days=1)) == -1


class TestTokens:
    def test_tokens_every_fifth_consecutive_day(self):
        record = ProgressSnapshot()
        awarded = []
        for offset in range(11):
            result = advance(record, 15, DAY_N + timedelta(days=offset))
            awarded.append(result.tokens_awarded)
            record = result.record
        assert record.current_streak == 11
        assert record.redeem_tokens == 2
        assert [i + 1 for i, t in enumerate(awarded) if t] == [5, 10]

    def test_no_token_on_same_day(self):
        record = _record(current_streak=5, longest_streak=6)
        result = advance(record, 15, DAY_N)
        assert result.tokens_awarded == 0

    def test_no_token_on_reset(self):
        result = advance(_record(current_streak=5), 15, DAY_N + timedelta(days=4))
        assert result.tokens_awarded == 0

    def test_custom_interval(self):
        result = advance(_record(current_streak=2), 15, DAY_N + timedelta(days=1), token_interval=3)
        assert result.tokens_awarded == 1


class TestLevels:
    def test_level_depends_only_on_total(self):
        """Two different paths to the same total yield the same level."""
        table = ThresholdTable()
        path_a = ProgressSnapshot()
        for minutes in [100, 100, 100, 100]:
            path_a = advance(path_a, minutes, DAY_N).record
        path_b = advance(ProgressSnapshot(), 400, DAY_N + timedelta(days=9)).record
        assert path_a.total_practice_time == path_b.total_practice_time == 400
        assert path_a.level == path_b.level == compute_level(400, table)

    def test_custom_thresholds(self):
        table = ThresholdTable(rookie=10, apprentice=20, master=30, grand_master=40)
        result = advance(ProgressSnapshot(), 35, DAY_N, table)
        assert result.record.level is SkillLevel.MASTER


class TestUnlocks:
    @pytest.fixture
    def catalog(self) -> AchievementIndex:
        return AchievementIndex([
            AchievementRule(1, AchievementType.STREAK, 3),
            AchievementRule(2, AchievementType.STREAK, 7),
            AchievementRule(3, AchievementType.PRACTICE_TIME, 60),
            AchievementRule(4, AchievementType.PRACTICE_TIME, 300),
            AchievementRule(5, AchievementType.STREAK, 3, skill_specific=True, skill_category_id=9),
        ])

    def test_streak_unlock_on_consecutive_day(self, catalog):
        record = _record(current_streak=2, total_practice_time=0)
        result = advance(record, 10, DAY_N + timedelta(days=1), catalog=catalog, category_id=1)
        assert result.unlocked == {1}

    def test_streak_rules_not_evaluated_on_same_day(self, catalog):
        record = _record(current_streak=3, total_practice_time=0)
        result = advance(record, 10, DAY_N, catalog=catalog, category_id=1)
        assert result.unlocked == frozenset()

    def test_skill_specific_rule_only_for_its_category(self, catalog):
        record = _record(current_streak=2, total_practice_time=0)
        result = advance(record, 10, DAY_N + timedelta(days=1), catalog=catalog, category_id=9)
        assert result.unlocked == {1, 5}

    def test_practice_time_unlocks_every_threshold_passed(self, catalog):
        result = advance(ProgressSnapshot(), 400, DAY_N, catalog=catalog, category_id=1)
        assert result.unlocked == {3, 4}

    def test_already_unlocked_excluded(self, catalog):
        result = advance(ProgressSnapshot(), 400, DAY_N, catalog=catalog, category_id=1, unlocked={3})
        assert result.unlocked == {4}

    def test_no_catalog_no_unlocks(self):
        result = advance(ProgressSnapshot(), 400, DAY_N)
        assert result.unlocked == frozenset()


class TestPreconditions:
    @pytest.mark.parametrize("duration", [0, -5])
    def test_non_positive_duration_rejected(self, duration):
        with pytest.raises(ValueError):
            advance(ProgressSnapshot(), duration, DAY_N)

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValueError):
            advance(ProgressSnapshot(), 10, DAY_N, token_interval=0)

    def test_input_record_unchanged(self):
        record = _record()
        advance(record, 20, DAY_N + timedelta(days=1))
        assert record.current_streak == 4
        assert record.total_practice_time == 290

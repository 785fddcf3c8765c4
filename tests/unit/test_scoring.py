"""Unit tests for learning XP and ranked scoring formulas."""

from __future__ import annotations

import pytest

from quizecon.gamification.scoring import (
    MAX_ELAPSED_MS,
    apply_xp_boost,
    compute_accuracy,
    compute_average_time,
    compute_learning_xp,
    compute_ranked_delta,
    ranked_time_bonus,
)


class TestLearningXp:
    """base = difficulty*10 - 5*hints, plus up to 20% for speed inside 30s."""

    def test_instant_answer_gets_full_bonus(self):
        assert compute_learning_xp(difficulty=3, hints_used=0, elapsed_ms=0) == 36

    def test_max_difficulty_instant(self):
        assert compute_learning_xp(difficulty=5, hints_used=0, elapsed_ms=0) == 60

    def test_no_bonus_at_window_end(self):
        assert compute_learning_xp(difficulty=3, hints_used=0, elapsed_ms=30_000) == 30

    def test_no_bonus_past_window(self):
        assert compute_learning_xp(difficulty=3, hints_used=0, elapsed_ms=90_000) == 30

    def test_partial_bonus_is_floored(self):
        """15 * 1.1 = 16.5 -> 16."""
        assert compute_learning_xp(difficulty=2, hints_used=1, elapsed_ms=15_000) == 16

    def test_hint_penalty(self):
        """35 * (1 + 0.2 * 20/30) = 39.67 -> 39."""
        assert compute_learning_xp(difficulty=4, hints_used=1, elapsed_ms=10_000) == 39

    def test_zero_base_floors_to_one(self):
        assert compute_learning_xp(difficulty=1, hints_used=2, elapsed_ms=0) == 1

    def test_negative_base_floors_to_one(self):
        assert compute_learning_xp(difficulty=1, hints_used=5, elapsed_ms=0) == 1

    def test_never_below_one(self):
        for difficulty in range(1, 6):
            for hints in range(0, 12):
                for elapsed in (0, 5_000, 29_999, 30_000, 120_000):
                    assert compute_learning_xp(difficulty, hints, elapsed) >= 1

    @pytest.mark.parametrize(
        ("difficulty", "hints", "elapsed"),
        [(0, 0, 0), (6, 0, 0), (3, -1, 0), (3, 0, -1), (3, 0, MAX_ELAPSED_MS + 1)],
    )
    def test_rejects_invalid_input(self, difficulty, hints, elapsed):
        with pytest.raises(ValueError):
            compute_learning_xp(difficulty, hints, elapsed)


class TestRankedDelta:
    """Correct: d*100 + time bonus (100 -> 0 over 20s) - 25/hint. Wrong: -50*d."""

    def test_fast_correct_answer(self):
        assert compute_ranked_delta(difficulty=3, elapsed_ms=0, hints_used=0, correct=True) == 400

    def test_half_window(self):
        assert compute_ranked_delta(difficulty=3, elapsed_ms=10_000, hints_used=0, correct=True) == 350

    def test_no_bonus_after_window(self):
        assert compute_ranked_delta(difficulty=3, elapsed_ms=25_000, hints_used=0, correct=True) == 300

    def test_hint_penalty(self):
        assert compute_ranked_delta(difficulty=2, elapsed_ms=20_000, hints_used=1, correct=True) == 175

    def test_rounds_half_up(self):
        """100 + 0.5 rounds to 101, not to the even 100."""
        assert compute_ranked_delta(difficulty=1, elapsed_ms=19_900, hints_used=0, correct=True) == 101

    def test_rounds_below_half_down(self):
        assert compute_ranked_delta(difficulty=1, elapsed_ms=19_999, hints_used=0, correct=True) == 100

    def test_wrong_answer_penalty(self):
        assert compute_ranked_delta(difficulty=4, elapsed_ms=1_000, hints_used=0, correct=False) == -200

    def test_wrong_answer_ignores_time_and_hints(self):
        assert compute_ranked_delta(1, 0, 3, False) == compute_ranked_delta(1, 50_000, 0, False) == -50

    def test_monotone_in_hints_and_time(self):
        for difficulty in range(1, 6):
            for hints in range(0, 5):
                for elapsed in range(0, 24_000, 1_500):
                    base = compute_ranked_delta(difficulty, elapsed, hints, True)
                    assert compute_ranked_delta(difficulty, elapsed, hints + 1, True) <= base
                    assert compute_ranked_delta(difficulty, elapsed + 1_500, hints, True) <= base

    def test_time_bonus_bounds(self):
        assert ranked_time_bonus(0) == 100
        assert ranked_time_bonus(20_000) == 0
        assert ranked_time_bonus(60_000) == 0


class TestBoostAndAggregates:
    def test_boost_floors(self):
        assert apply_xp_boost(36, 1.5) == 54
        assert apply_xp_boost(7, 1.3) == 9

    def test_boost_exact_float_product(self):
        assert apply_xp_boost(10, 1.3) == 13

    def test_boost_never_below_one(self):
        assert apply_xp_boost(1, 0.5) == 1

    def test_boost_rejects_non_positive(self):
        with pytest.raises(ValueError):
            apply_xp_boost(10, 0)

    def test_accuracy(self):
        assert compute_accuracy(2, 3) == 66.67
        assert compute_accuracy(1, 8) == 12.5
        assert compute_accuracy(0, 0) == 0.0

    def test_average_time(self):
        assert compute_average_time(1_000, 3) == 333
        assert compute_average_time(5, 2) == 3
        assert compute_average_time(0, 0) == 0

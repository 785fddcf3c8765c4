"""Pure scoring rules for learning XP and ranked points.

No I/O and no clock: identical inputs always give identical outputs, which is
what the XP flow, ranked sessions and the tests all build on.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
MAX_ELAPSED_MS = 3_600_000

# Learning mode
XP_PER_DIFFICULTY = 10
XP_HINT_PENALTY = 5
XP_MAX_TIME_BONUS = 0.20
XP_TIME_BONUS_WINDOW_MS = 30_000
MIN_LEARNING_XP = 1

# Ranked mode
RANKED_POINTS_PER_DIFFICULTY = 100
RANKED_MAX_TIME_BONUS = 100
RANKED_TIME_BONUS_WINDOW_MS = 20_000
RANKED_HINT_PENALTY = 25
RANKED_WRONG_PER_DIFFICULTY = RANKED_POINTS_PER_DIFFICULTY // 2


def validate_answer(difficulty: int, hints_used: int, elapsed_ms: int) -> None:
    if not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
        raise ValueError(f"difficulty must be in [{MIN_DIFFICULTY}, {MAX_DIFFICULTY}], got {difficulty}")
    if hints_used < 0:
        raise ValueError(f"hints_used must be >= 0, got {hints_used}")
    if not 0 <= elapsed_ms <= MAX_ELAPSED_MS:
        raise ValueError(f"elapsed_ms must be in [0, {MAX_ELAPSED_MS}], got {elapsed_ms}")


def _round_half_up(value: Decimal | float) -> int:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_learning_xp(difficulty: int, hints_used: int, elapsed_ms: int) -> int:
    """XP for a correct learning-mode answer. Never below 1.

    Base is difficulty x 10 minus 5 per hint. A positive base gets up to +20%
    for speed, decaying linearly to nothing at 30 seconds.
    """
    validate_answer(difficulty, hints_used, elapsed_ms)
    base = difficulty * XP_PER_DIFFICULTY - hints_used * XP_HINT_PENALTY
    if base <= 0:
        return MIN_LEARNING_XP
    remaining = max(0, XP_TIME_BONUS_WINDOW_MS - elapsed_ms)
    # base * (1 + 0.20 * remaining / window), in exact integer arithmetic
    scale = round(XP_TIME_BONUS_WINDOW_MS / XP_MAX_TIME_BONUS)
    xp = base * (scale + remaining) // scale
    return max(MIN_LEARNING_XP, xp)


def ranked_time_bonus(elapsed_ms: int) -> Decimal:
    """Up to 100 points, linear decay to zero at 20 seconds."""
    remaining = max(0, RANKED_TIME_BONUS_WINDOW_MS - elapsed_ms)
    return Decimal(RANKED_MAX_TIME_BONUS * remaining) / Decimal(RANKED_TIME_BONUS_WINDOW_MS)


def compute_ranked_delta(difficulty: int, elapsed_ms: int, hints_used: int, correct: bool) -> int:
    """Signed score change for one ranked answer. Wrong answers always cost points."""
    validate_answer(difficulty, hints_used, elapsed_ms)
    if not correct:
        return -difficulty * RANKED_WRONG_PER_DIFFICULTY
    raw = (
        difficulty * RANKED_POINTS_PER_DIFFICULTY
        + ranked_time_bonus(elapsed_ms)
        - hints_used * RANKED_HINT_PENALTY
    )
    return _round_half_up(raw)


def apply_xp_boost(xp: int, multiplier: float) -> int:
    """Scale awarded XP by an active boost multiplier, floored, never below 1."""
    if multiplier <= 0:
        raise ValueError(f"multiplier must be > 0, got {multiplier}")
    return max(MIN_LEARNING_XP, math.floor(xp * multiplier))


def compute_accuracy(correct: int, answered: int) -> float:
    """Percentage of correct answers, two decimal places; 0 when nothing answered."""
    if answered <= 0:
        return 0.0
    percent = Decimal(correct * 100) / Decimal(answered)
    return float(percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def compute_average_time(total_ms: int, answered: int) -> int:
    if answered <= 0:
        return 0
    return _round_half_up(total_ms / answered)

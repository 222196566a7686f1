import math
from dataclasses import dataclass, asdict
from typing import Optional

from .errors import InvalidPrediction
from .rounds import CHALLENGE_TYPES

DIRECTIONS = ('up', 'down')

SCORING = {
    'quick': {'base_score': 50, 'max_score': 200, 'max_streak_multiplier': 4.0},
    'big': {'base_score': 200, 'max_score': 1000, 'max_streak_multiplier': 5.0},
}

# (minimum streak, multiplier), highest threshold first
STREAK_MULTIPLIERS = (
    (10, 4.0),
    (5, 2.0),
    (3, 1.5),
    (0, 1.0),
)


@dataclass(frozen=True)
class ScoreResult:
    total_score: int
    base_score: int
    streak_multiplier: float
    streak_bonus: int
    accuracy: float
    is_win: bool

    def to_dict(self):
        return asdict(self)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _validate(challenge_type, direction, start_price, end_price, current_streak) -> None:
    if challenge_type not in CHALLENGE_TYPES:
        raise InvalidPrediction(f"Unknown challenge type: {challenge_type!r}")
    if direction not in DIRECTIONS:
        raise InvalidPrediction(f"Direction must be 'up' or 'down', got {direction!r}")
    for label, price in (('start_price', start_price), ('end_price', end_price)):
        if price is None or price <= 0:
            raise InvalidPrediction(f"{label} must be positive")
    if current_streak is None or current_streak < 0:
        raise InvalidPrediction("current_streak cannot be negative")


def is_direction_correct(direction: str, start_price: float, end_price: float) -> bool:
    """An unchanged price loses for both directions."""
    if direction not in DIRECTIONS:
        raise InvalidPrediction(f"Direction must be 'up' or 'down', got {direction!r}")
    change = end_price - start_price
    return change > 0 if direction == 'up' else change < 0


def calculate_accuracy(predicted_price: float, actual_price: float) -> float:
    if actual_price <= 0:
        raise InvalidPrediction("actual price must be positive")
    percentage_diff = abs(predicted_price - actual_price) / actual_price * 100
    return round(max(0.0, 100 - percentage_diff), 2)


def get_streak_multiplier(streak: int) -> float:
    for threshold, multiplier in STREAK_MULTIPLIERS:
        if streak >= threshold:
            return multiplier
    return 1.0


def calculate_streak_score(challenge_type: str, streak: int) -> int:
    """Points for a win that brings the user's streak to ``streak``."""
    config = SCORING[challenge_type]
    multiplier = get_streak_multiplier(streak)
    if multiplier >= STREAK_MULTIPLIERS[0][1]:
        multiplier = config['max_streak_multiplier']
    return min(_round_half_up(config['base_score'] * multiplier), config['max_score'])


def calculate_total_score(
    challenge_type: str,
    direction: str,
    start_price: float,
    end_price: float,
    current_streak: int,
    predicted_price: Optional[float] = None,
) -> ScoreResult:
    """Score a settled prediction.

    ``current_streak`` is the owner's streak before this result. A win is
    scored on the streak it produces (``current_streak + 1``); a loss scores
    nothing and the caller must reset the streak to 0.
    """
    _validate(challenge_type, direction, start_price, end_price, current_streak)
    accuracy = calculate_accuracy(predicted_price, end_price) if predicted_price else 0.0

    if not is_direction_correct(direction, start_price, end_price):
        return ScoreResult(
            total_score=0,
            base_score=0,
            streak_multiplier=1.0,
            streak_bonus=0,
            accuracy=accuracy,
            is_win=False,
        )

    new_streak = current_streak + 1
    base = SCORING[challenge_type]['base_score']
    total = calculate_streak_score(challenge_type, new_streak)
    multiplier = get_streak_multiplier(new_streak)
    if challenge_type == 'big' and multiplier >= STREAK_MULTIPLIERS[0][1]:
        multiplier = SCORING['big']['max_streak_multiplier']
    return ScoreResult(
        total_score=total,
        base_score=base,
        streak_multiplier=multiplier,
        streak_bonus=total - base,
        accuracy=accuracy,
        is_win=True,
    )


def get_score_breakdown(result: ScoreResult) -> list[str]:
    lines = []
    if result.base_score > 0:
        lines.append(f"Base: {result.base_score}")
    if result.streak_multiplier > 1:
        lines.append(f"{result.streak_multiplier:g}x Streak: +{result.streak_bonus}")
    if result.accuracy > 0:
        lines.append(f"Accuracy: {result.accuracy:.2f}%")
    return lines

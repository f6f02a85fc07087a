"""
Sustainability Scorer

Score = round((avg recycled content + avg recyclability) / 2), 0-100.
"""
import math
from typing import Union

from ...models.lca import StageAggregate, SummaryMetrics


# Dashboard colour bands
GOOD_SCORE_THRESHOLD = 70
MODERATE_SCORE_THRESHOLD = 40


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with halves rounding up (2.5 -> 3).

    Compares the fractional part directly; floor(value + 0.5) would round
    0.49999999999999994 up because the addition itself rounds to 1.0.
    """
    whole = math.floor(value)
    return int(whole) + 1 if value - whole >= 0.5 else int(whole)


def sustainability_score(aggregate: Union[StageAggregate, SummaryMetrics]) -> int:
    """
    Compute the 0-100 sustainability score of an aggregate.

    Uses the averaged (unrounded) fractions. Aggregates with no measurements
    have zero averages and therefore score 0.
    """
    return round_half_up((aggregate.avg_recycled_content + aggregate.avg_recyclability) / 2)


def score_band(score: int) -> str:
    """Classify a score as good, moderate or poor."""
    if score >= GOOD_SCORE_THRESHOLD:
        return "good"
    if score >= MODERATE_SCORE_THRESHOLD:
        return "moderate"
    return "poor"

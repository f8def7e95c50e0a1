"""Scoring — the probability model over candidate works.

Design principles:
    1. Pure functions: weight / probability mappings in, numbers out.
    2. No side effects, no I/O, never NaN.
    3. Every ordering is total: probability desc, then item_id asc.

Formulas:
    p(w)                 = W(w) / Σ W            (uniform 1/n when Σ W == 0)
    confidence           = p(top1)
    effective_candidates = 1 / Σ p(w)²           (inverse Simpson index)
    base_prior(w)        = exp(alpha · (popularity_base + play_bonus))
"""

from __future__ import annotations

import math
from collections.abc import Mapping

WeightVector = Mapping[str, float]
ProbabilityVector = Mapping[str, float]


def normalize_weights(weights: WeightVector) -> dict[str, float]:
    """Convert non-negative weights into a probability distribution.

    Falls back to a uniform distribution when the total weight is zero,
    and returns an empty mapping for an empty input.
    """
    n = len(weights)
    if n == 0:
        return {}

    total = sum(weights.values())
    if total <= 0.0:
        return {item_id: 1.0 / n for item_id in weights}

    return {item_id: w / total for item_id, w in weights.items()}


def rank_candidates(probabilities: ProbabilityVector) -> list[tuple[str, float]]:
    """All candidates ordered by probability desc, ties by item_id asc."""
    return sorted(probabilities.items(), key=lambda kv: (-kv[1], kv[0]))


def top_candidate(probabilities: ProbabilityVector) -> tuple[str, float] | None:
    """The leading ``(item_id, probability)`` pair, or None when empty."""
    if not probabilities:
        return None
    return min(probabilities.items(), key=lambda kv: (-kv[1], kv[0]))


def confidence(probabilities: ProbabilityVector) -> float:
    """Probability of the top candidate (0.0 for an empty distribution)."""
    top = top_candidate(probabilities)
    return top[1] if top else 0.0


def effective_candidates(probabilities: ProbabilityVector) -> float:
    """Participation ratio 1 / Σ p².

    1.0 for a one-hot distribution, n for uniform over n.  Returns 0.0 when
    there is nothing to measure.
    """
    if not probabilities:
        return 0.0
    sum_squared = sum(p * p for p in probabilities.values())
    if sum_squared == 0.0:
        return 0.0
    return 1.0 / sum_squared


def base_prior(popularity_base: float, popularity_play_bonus: float, alpha: float) -> float:
    """Popularity-seeded initial weight for one work."""
    return math.exp(alpha * (popularity_base + popularity_play_bonus))


def effective_confirm_threshold(total_works: int, minimum: int, maximum: int, divisor: int) -> int:
    """Scale the confirm threshold with catalog size, clamped to [minimum, maximum]."""
    # Half-up rounding: round() would send 2.5 to 2.
    scaled = math.floor(total_works / max(divisor, 1) + 0.5)
    return min(maximum, max(minimum, scaled))

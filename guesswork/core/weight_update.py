"""Weight updates — how an answer reshapes the candidate weights.

Two update forms are supported:

Bayesian (default):
    W(w) *= L(has_feature(w), answer, epsilon)

    answer         has feature     lacks feature
    YES            1 - eps         eps
    PROBABLY_YES   0.7             0.3            (clamped into [eps, 1 - eps])
    PROBABLY_NO    0.3             0.7            (clamped into [eps, 1 - eps])
    NO             eps             1 - eps
    UNKNOWN        1               1
    DONT_CARE      1               1

Exponential strength:
    W(w) *= exp(+beta * s)   if the work has the feature
    W(w) *= exp(-beta * s)   otherwise

    where s is a signed answer strength.  Strength scales above 1 amplify
    the swing; the only ceiling is keeping exp() finite.

Normalisation is never done here. Callers pass the result through
``scoring.normalize_weights``.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping

from guesswork.domain.engine_config import AlgoConfig
from guesswork.domain.enums import AnswerChoice, QuestionKind

FeaturePredicate = Callable[[str], bool]

# exp() overflows a double a little above 709.
_MAX_EXPONENT = 700.0

_BASE_STRENGTH: dict[AnswerChoice, float] = {
    AnswerChoice.YES: 1.0,
    AnswerChoice.PROBABLY_YES: 0.6,
    AnswerChoice.UNKNOWN: 0.0,
    AnswerChoice.PROBABLY_NO: -0.6,
    AnswerChoice.NO: -1.0,
    AnswerChoice.DONT_CARE: 0.0,
}


def likelihood(has_feature: bool, answer: AnswerChoice | str, epsilon: float) -> float:
    """P(answer | work, question) with an epsilon noise floor."""
    answer = AnswerChoice(answer)
    eps = max(0.0, min(0.5, epsilon))
    high, low = 1.0 - eps, eps

    if answer == AnswerChoice.YES:
        return high if has_feature else low
    if answer == AnswerChoice.NO:
        return low if has_feature else high
    if answer == AnswerChoice.PROBABLY_YES:
        return max(low, min(high, 0.7 if has_feature else 0.3))
    if answer == AnswerChoice.PROBABLY_NO:
        return max(low, min(high, 0.3 if has_feature else 0.7))
    return 1.0


def update_weights_bayesian(
    weights: Mapping[str, float],
    has_feature: FeaturePredicate,
    answer: AnswerChoice | str,
    epsilon: float = 0.02,
) -> dict[str, float]:
    """Multiply every weight by the answer likelihood.  Returns a new mapping."""
    return {
        item_id: w * likelihood(has_feature(item_id), answer, epsilon)
        for item_id, w in weights.items()
    }


def update_weights_exponential(
    weights: Mapping[str, float],
    has_feature: FeaturePredicate,
    strength: float,
    beta: float,
) -> dict[str, float]:
    """Multiply by exp(±beta·strength) depending on feature presence.

    If every weight would underflow to zero, the update is redone in log
    space and rescaled so the largest weight is 1; the relative weights
    then survive normalisation instead of collapsing to uniform.
    """
    exponent = max(-_MAX_EXPONENT, min(_MAX_EXPONENT, beta * strength))
    boost = math.exp(exponent)
    damp = math.exp(-exponent)
    updated = {
        item_id: w * (boost if has_feature(item_id) else damp)
        for item_id, w in weights.items()
    }
    if any(v > 0.0 for v in updated.values()) or not any(w > 0.0 for w in weights.values()):
        return updated

    logs = {
        item_id: math.log(w) + (exponent if has_feature(item_id) else -exponent)
        for item_id, w in weights.items()
        if w > 0.0
    }
    top = max(logs.values())
    return {
        item_id: math.exp(logs[item_id] - top) if item_id in logs else 0.0
        for item_id in weights
    }


def answer_strength(
    answer: AnswerChoice | str,
    kind: QuestionKind,
    is_summary: bool,
    algo: AlgoConfig,
) -> float:
    """Signed strength for the exponential form, scaled per question kind.

    Summary questions collapse to ±scale so "probably" carries the same
    weight as a firm answer on a grouped question.
    """
    strength = _BASE_STRENGTH[AnswerChoice(answer)]
    if is_summary:
        sign = (strength > 0) - (strength < 0)
        return sign * algo.summary_question_strength_scale
    if kind == QuestionKind.EXPLORE_TAG:
        return strength * algo.explore_tag_strength_scale
    if kind == QuestionKind.SOFT_CONFIRM:
        return strength * algo.soft_confirm_strength_scale
    return strength


def apply_reveal_penalty(
    weights: Mapping[str, float],
    item_id: str,
    penalty: float,
) -> dict[str, float]:
    """One-shot penalty for a rejected reveal: W(item) *= penalty."""
    return {
        wid: (w * penalty if wid == item_id else w)
        for wid, w in weights.items()
    }


def has_derived_feature(derived_confidence: float | None, threshold: float) -> bool:
    """Binarise a DERIVED tag's confidence score."""
    if derived_confidence is None:
        return False
    return derived_confidence >= threshold

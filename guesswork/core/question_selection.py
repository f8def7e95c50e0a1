"""Question selection — which kind of question to ask next, and about what.

Every function here is pure and deterministic except ``select_confirm_type``,
whose 50/50 fallback draws from an injected random source.

Explore scoring:
    coverage(tag) = Σ p(w) over works carrying the tag

    default:       minimise |coverage - 0.5|   (split the remaining mass)
    seek-a-hit:    maximise coverage           (after a run of NO answers)
    IG (optional): minimise expected posterior entropy

Ties always resolve by ascending tag_key.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Protocol

from guesswork.domain.enums import AnswerChoice, HardConfirmType, QuestionKind
from guesswork.domain.errors import NoCandidateError
from guesswork.domain.question import QuestionHistoryEntry
from guesswork.domain.tag import TagInfo

logger = logging.getLogger(__name__)

TagPredicate = Callable[[str, str], bool]
PValueBand = tuple[float, float]

HARD_CONFIRM_ORDER: tuple[HardConfirmType, ...] = (
    HardConfirmType.TITLE_INITIAL,
    HardConfirmType.AUTHOR,
)

# P(YES | has tag) and P(YES | lacks tag) assumed by the IG scorer.
_IG_YES_HAS = 0.9
_IG_YES_LACKS = 0.1


class RandomSource(Protocol):
    def random(self) -> float: ...


# ── Confirm insertion ────────────────────────────────────────────────────────


def should_insert_confirm(
    q_index: int,
    confidence: float,
    effective_candidates: float,
    *,
    q_forced_indices: Iterable[int],
    confidence_confirm_band: tuple[float, float],
    effective_confirm_threshold: float,
) -> bool:
    """True if this round should be a confirmation question.

    Any one of: forced question number, confidence inside the band, or a
    distribution already concentrated below the effective threshold.
    """
    if q_index in set(q_forced_indices):
        return True

    band_min, band_max = confidence_confirm_band
    if band_min <= confidence <= band_max:
        return True

    return effective_candidates <= effective_confirm_threshold


# ── Explore tag ──────────────────────────────────────────────────────────────


def tag_coverage(
    tag_key: str,
    probabilities: Mapping[str, float],
    has_tag: TagPredicate,
) -> float:
    """Probability mass of the works carrying *tag_key*."""
    return sum(p for item_id, p in probabilities.items() if has_tag(item_id, tag_key))


def _in_band(value: float, band: PValueBand | None) -> bool:
    return band is None or band[0] <= value <= band[1]


def select_explore_tag(
    tags: Sequence[TagInfo],
    probabilities: Mapping[str, float],
    has_tag: TagPredicate,
    p_value_band: PValueBand | None = None,
    prefer_high_p: bool = False,
) -> str | None:
    """Pick the explore tag, or None if no tag is usable.

    Args:
        tags: Candidate tags (already coverage-gated by the caller).
        probabilities: Current normalised distribution.
        has_tag: ``has_tag(item_id, tag_key)`` predicate.
        p_value_band: If set, only tags whose coverage lies inside it count.
        prefer_high_p: Seek-a-hit mode: highest coverage wins.
    """
    if not tags:
        return None

    scored = [
        (tag.tag_key, tag_coverage(tag.tag_key, probabilities, has_tag))
        for tag in tags
    ]
    scored = [(key, cov) for key, cov in scored if _in_band(cov, p_value_band)]
    if not scored:
        logger.debug("No explore tag with coverage inside %s", p_value_band)
        return None

    if prefer_high_p:
        key, cov = min(scored, key=lambda kc: (-kc[1], kc[0]))
    else:
        key, cov = min(scored, key=lambda kc: (abs(kc[1] - 0.5), kc[0]))

    logger.debug(
        "Explore tag %s (coverage=%.3f, mode=%s)",
        key, cov, "seek-hit" if prefer_high_p else "split",
    )
    return key


def _entropy(masses: Iterable[float]) -> float:
    values = list(masses)
    total = sum(values)
    if total <= 0.0:
        return 0.0
    h = 0.0
    for m in values:
        q = m / total
        if q > 0.0:
            h -= q * math.log2(q)
    return h


def expected_posterior_entropy(
    tag_key: str,
    probabilities: Mapping[str, float],
    has_tag: TagPredicate,
) -> tuple[float, float]:
    """Return ``(E[H after answer], P(YES))`` for asking about *tag_key*."""
    items = list(probabilities.items())
    carries = [has_tag(item_id, tag_key) for item_id, _ in items]

    post_yes = [p * (_IG_YES_HAS if c else _IG_YES_LACKS) for (_, p), c in zip(items, carries)]
    post_no = [p * (_IG_YES_LACKS if c else _IG_YES_HAS) for (_, p), c in zip(items, carries)]
    p_yes = sum(post_yes)
    p_no = 1.0 - p_yes

    return p_yes * _entropy(post_yes) + p_no * _entropy(post_no), p_yes


def select_explore_tag_by_ig(
    tags: Sequence[TagInfo],
    probabilities: Mapping[str, float],
    has_tag: TagPredicate,
    p_value_band: PValueBand | None = None,
) -> str | None:
    """Pick the tag whose answer is expected to leave the least entropy.

    The band filters on P(YES) under the noisy likelihoods.
    """
    if not tags:
        return None

    scored = []
    for tag in tags:
        expected_h, p_yes = expected_posterior_entropy(tag.tag_key, probabilities, has_tag)
        if _in_band(p_yes, p_value_band):
            scored.append((expected_h, tag.tag_key, p_yes))

    if not scored:
        logger.debug("No IG explore tag with P(YES) inside %s", p_value_band)
        return None

    expected_h, key, p_yes = min(scored)
    logger.debug("IG explore tag %s (E[H]=%.3f, P(YES)=%.2f)", key, expected_h, p_yes)
    return key


def require_explore_tag(
    tags: Sequence[TagInfo],
    probabilities: Mapping[str, float],
    has_tag: TagPredicate,
    p_value_band: PValueBand | None = None,
    prefer_high_p: bool = False,
    use_ig: bool = False,
) -> str:
    """Like the selectors above, but raise instead of returning None.

    IG scoring never applies in seek-a-hit mode.

    Raises:
        NoCandidateError: If no tag survives the filters.
    """
    if use_ig and not prefer_high_p:
        key = select_explore_tag_by_ig(tags, probabilities, has_tag, p_value_band)
    else:
        key = select_explore_tag(tags, probabilities, has_tag, p_value_band, prefer_high_p)
    if key is None:
        raise NoCandidateError(
            f"No explore tag among {len(tags)} candidate(s) (band={p_value_band})"
        )
    return key


def consecutive_no_count(history: Sequence[QuestionHistoryEntry]) -> int:
    """Length of the trailing run of NO answers (unanswered entries skipped)."""
    count = 0
    for entry in reversed(history):
        if entry.answer is None:
            continue
        if entry.answer != AnswerChoice.NO:
            break
        count += 1
    return count


# ── Confirm type ─────────────────────────────────────────────────────────────


def select_confirm_type(
    confidence: float,
    has_soft_confirm_data: bool,
    *,
    soft_confidence_min: float,
    hard_confidence_min: float,
    rng: RandomSource,
) -> QuestionKind:
    """SOFT_CONFIRM or HARD_CONFIRM.

    Near-certain → HARD.  Moderately confident with soft data → SOFT.
    Otherwise, with soft data, a coin flip keeps the pattern from going
    monotonous; without soft data → HARD.
    """
    if confidence >= hard_confidence_min:
        return QuestionKind.HARD_CONFIRM

    if confidence >= soft_confidence_min and has_soft_confirm_data:
        return QuestionKind.SOFT_CONFIRM

    if has_soft_confirm_data:
        return QuestionKind.SOFT_CONFIRM if rng.random() < 0.5 else QuestionKind.HARD_CONFIRM

    return QuestionKind.HARD_CONFIRM


# ── Hard confirm order ───────────────────────────────────────────────────────


def get_next_hard_confirm_type(
    used_types: Iterable[HardConfirmType | str],
) -> HardConfirmType | None:
    """First unused type in TITLE_INITIAL → AUTHOR order, or None."""
    used = {HardConfirmType(t) for t in used_types}
    for confirm_type in HARD_CONFIRM_ORDER:
        if confirm_type not in used:
            return confirm_type
    return None

"""QuestionEngine — per-round decisions over a session's weights.

Design principles:
    1. Stateless: every method takes the session's weights / history and
       returns a value.  Mutating the SessionState is the caller's job.
    2. Deterministic, except the SOFT/HARD coin flip, which draws from the
       injected random source.
    3. Catalog lookups are synchronous and never reorder candidates.

Round selection:
    1. Confirm check (forced index, confidence band, low effective count).
       On a confirm round, SOFT vs HARD is chosen by ``select_confirm_type``;
       a kind that cannot be produced falls through to the other one.
    2. Explore: coverage-gated tags plus summary questions, scored on the
       current distribution.  An empty p-value band is retried without
       the band when the config allows it.
    3. Hard confirm, unless the previous question already was one.
    4. Emergency pick: first unused tag any candidate carries.
    5. Nothing left → None (the flow moves to the fail list).
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence

from guesswork.catalog.base import Catalog
from guesswork.core.coverage import passes_coverage_gate
from guesswork.core.question_selection import (
    HARD_CONFIRM_ORDER,
    RandomSource,
    consecutive_no_count,
    get_next_hard_confirm_type,
    require_explore_tag,
    select_confirm_type,
    should_insert_confirm,
    tag_coverage,
)
from guesswork.core.scoring import (
    base_prior,
    confidence,
    effective_candidates,
    effective_confirm_threshold,
    normalize_weights,
    rank_candidates,
    top_candidate,
)
from guesswork.core.title import UNKNOWN_INITIAL, normalize_title_for_initial
from guesswork.core.weight_update import (
    FeaturePredicate,
    answer_strength,
    has_derived_feature,
    update_weights_bayesian,
    update_weights_exponential,
)
from guesswork.domain.engine_config import EngineConfig
from guesswork.domain.enums import AiGateChoice, AnswerChoice, HardConfirmType, QuestionKind, TagType
from guesswork.domain.errors import NoCandidateError
from guesswork.domain.question import QuestionCandidate, QuestionHistoryEntry
from guesswork.domain.session import SessionState
from guesswork.domain.tag import TagInfo, summary_id_from_key

logger = logging.getLogger(__name__)

_EXPLORE_TAG_TYPES = frozenset({TagType.OFFICIAL, TagType.DERIVED})
_SOFT_CONFIRM_TAG_TYPES = frozenset({TagType.DERIVED})

# Soft confirm coverage band when no explore p-value band is configured.
_DEFAULT_SOFT_CONFIRM_BAND = (0.05, 0.95)


class QuestionEngine:
    """Chooses questions and applies answers for one catalog + config.

    Args:
        catalog: Read-only tag / work reference data.
        config: Validated engine thresholds.
        rng: Random source for the SOFT/HARD coin flip.  Defaults to an
             unseeded ``random.Random``.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: EngineConfig,
        rng: RandomSource | None = None,
    ) -> None:
        self._catalog = catalog
        self._config = config
        self._rng = rng or random.Random()

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ── Priors ───────────────────────────────────────────────────────────

    def initial_weights(self, ai_gate_choice: AiGateChoice) -> dict[str, float]:
        """Popularity-seeded weights for the works the AI gate lets through."""
        alpha = self._config.algo.alpha
        weights: dict[str, float] = {}
        for work in self._catalog.list_works():
            if ai_gate_choice == AiGateChoice.YES and not work.is_ai:
                continue
            if ai_gate_choice == AiGateChoice.NO and work.is_ai:
                continue
            weights[work.item_id] = base_prior(
                work.popularity_base, work.popularity_play_bonus, alpha
            )
        logger.debug("AI gate %s → %d candidate(s)", ai_gate_choice.value, len(weights))
        return weights

    # ── Question selection ───────────────────────────────────────────────

    def select_next_question(self, state: SessionState) -> QuestionCandidate | None:
        """The question for round ``state.next_q_index``, or None if none can be asked."""
        probabilities = normalize_weights(state.weights)
        if not probabilities:
            return None

        q_index = state.next_q_index
        conf = confidence(probabilities)
        eff = effective_candidates(probabilities)
        previous = state.current_question
        allow_hard = previous is None or previous.kind != QuestionKind.HARD_CONFIRM

        params = self._config.flow.effective_confirm_threshold_params
        threshold = effective_confirm_threshold(
            len(probabilities), params.min, params.max, params.divisor
        )
        confirm_cfg = self._config.confirm

        if should_insert_confirm(
            q_index,
            conf,
            eff,
            q_forced_indices=confirm_cfg.q_forced_indices,
            confidence_confirm_band=confirm_cfg.confidence_confirm_band,
            effective_confirm_threshold=threshold,
        ):
            question = self._confirm_question(state, probabilities, conf, allow_hard)
            if question is not None:
                return question
            logger.debug("Q%d: no confirm question available, exploring", q_index)

        question = self._explore_question(state, probabilities)
        if question is not None:
            return question

        if allow_hard:
            question = self._hard_confirm_question(state, probabilities)
            if question is not None:
                logger.info("Q%d: explore exhausted, falling back to hard confirm", q_index)
                return question

        question = self._emergency_question(state, probabilities)
        if question is not None:
            logger.warning("Q%d: emergency tag pick %s", q_index, question.tag_key)
        return question

    def has_soft_confirm_data(self, state: SessionState, probabilities: Mapping[str, float]) -> bool:
        """True if any unused DERIVED tag is confidently carried by a candidate."""
        return bool(self._soft_confirm_pool(state, probabilities))

    # ── Answers ──────────────────────────────────────────────────────────

    def apply_answer(
        self,
        weights: Mapping[str, float],
        question: QuestionCandidate,
        answer: AnswerChoice,
    ) -> dict[str, float]:
        """Update and renormalise *weights* for *answer* to *question*."""
        predicate = self._feature_predicate(question)
        algo = self._config.algo

        if question.is_summary or not algo.use_bayesian_update:
            strength = answer_strength(answer, question.kind, question.is_summary, algo)
            updated = update_weights_exponential(weights, predicate, strength, algo.beta)
        else:
            updated = update_weights_bayesian(weights, predicate, answer, algo.bayesian_epsilon)
        return normalize_weights(updated)

    def reveal_candidate(
        self,
        weights: Mapping[str, float],
        rejected: Sequence[str],
    ) -> str | None:
        """The work to reveal, if confidence crossed the threshold on a fresh top1."""
        top = top_candidate(normalize_weights(weights))
        if top is None:
            return None
        item_id, p = top
        if p < self._config.confirm.reveal_threshold or item_id in rejected:
            return None
        return item_id

    def fail_list(
        self,
        weights: Mapping[str, float],
        rejected: Sequence[str],
    ) -> list[tuple[str, float]]:
        """Top ``flow.fail_list_n`` candidates, excluding rejected reveals."""
        ranked = rank_candidates(normalize_weights(weights))
        kept = [(item_id, p) for item_id, p in ranked if item_id not in rejected]
        return kept[: self._config.flow.fail_list_n]

    # ── Confirm questions ────────────────────────────────────────────────

    def _confirm_question(
        self,
        state: SessionState,
        probabilities: Mapping[str, float],
        conf: float,
        allow_hard: bool,
    ) -> QuestionCandidate | None:
        confirm_cfg = self._config.confirm
        has_soft = self.has_soft_confirm_data(state, probabilities)
        kind = select_confirm_type(
            conf,
            has_soft,
            soft_confidence_min=confirm_cfg.soft_confidence_min,
            hard_confidence_min=confirm_cfg.hard_confidence_min,
            rng=self._rng,
        )

        if kind == QuestionKind.HARD_CONFIRM and allow_hard:
            question = self._hard_confirm_question(state, probabilities)
            if question is not None:
                return question
        if has_soft:
            return self._soft_confirm_question(state, probabilities)
        return None

    def _soft_confirm_pool(
        self,
        state: SessionState,
        probabilities: Mapping[str, float],
    ) -> list[tuple[str, float]]:
        """(tag_key, coverage) for unused DERIVED tags some candidate confidently carries."""
        tags = self._catalog.list_candidate_tags(
            item_ids=probabilities.keys(),
            exclude=state.used_tag_keys,
            tag_types=_SOFT_CONFIRM_TAG_TYPES,
        )
        pool = []
        for tag in tags:
            cov = tag_coverage(tag.tag_key, probabilities, self._soft_carries)
            if cov > 0.0:
                pool.append((tag.tag_key, cov))
        return pool

    def _soft_confirm_question(
        self,
        state: SessionState,
        probabilities: Mapping[str, float],
    ) -> QuestionCandidate | None:
        """Prefer in-band tags the leader carries, then any in-band tag.

        None when nothing lies in the band; the round then explores.
        """
        top = top_candidate(probabilities)
        if top is None:
            return None
        top_id = top[0]

        lo, hi = self._config.algo.p_value_band or _DEFAULT_SOFT_CONFIRM_BAND
        in_band = [
            (key, cov)
            for key, cov in self._soft_confirm_pool(state, probabilities)
            if lo <= cov <= hi
        ]
        leader_held = [(key, cov) for key, cov in in_band if self._soft_carries(top_id, key)]
        usable = leader_held or in_band
        if not usable:
            logger.debug("Soft confirm: no tag with coverage in [%.2f, %.2f]", lo, hi)
            return None

        key, cov = min(usable, key=lambda kc: (abs(kc[1] - 0.5), kc[0]))
        logger.debug(
            "Soft confirm %s (%s, coverage=%.3f)",
            key, f"held by {top_id}" if leader_held else "fallback", cov,
        )
        return QuestionCandidate(
            kind=QuestionKind.SOFT_CONFIRM,
            tag_key=key,
            display_text=self._catalog.question_text(key),
        )

    def _hard_confirm_question(
        self,
        state: SessionState,
        probabilities: Mapping[str, float],
    ) -> QuestionCandidate | None:
        values = self._available_hard_confirm_values(state, probabilities)
        exhausted = [t for t in HARD_CONFIRM_ORDER if not values[t]]
        confirm_type = get_next_hard_confirm_type(exhausted)
        if confirm_type is None:
            return None

        value = values[confirm_type][0]
        logger.debug("Hard confirm %s=%r", confirm_type.value, value)
        return QuestionCandidate(
            kind=QuestionKind.HARD_CONFIRM,
            hard_confirm_type=confirm_type,
            hard_confirm_value=value,
            display_text=_hard_confirm_text(confirm_type, value),
        )

    def _available_hard_confirm_values(
        self,
        state: SessionState,
        probabilities: Mapping[str, float],
    ) -> dict[HardConfirmType, list[str]]:
        """Unasked values per type, drawn from the top-N non-rejected candidates."""
        ranked = [
            item_id for item_id, _ in rank_candidates(probabilities)
            if not state.is_rejected(item_id)
        ][: self._config.flow.title_initial_top_n]

        available: dict[HardConfirmType, list[str]] = {t: [] for t in HARD_CONFIRM_ORDER}
        for confirm_type in HARD_CONFIRM_ORDER:
            used = state.used_hard_confirm_values(confirm_type)
            for item_id in ranked:
                value = self._hard_confirm_value(item_id, confirm_type)
                if value and value not in used and value not in available[confirm_type]:
                    available[confirm_type].append(value)
        return available

    def _hard_confirm_value(self, item_id: str, confirm_type: HardConfirmType) -> str | None:
        work = self._catalog.get_work(item_id)
        if work is None:
            return None
        if confirm_type == HardConfirmType.TITLE_INITIAL:
            initial = normalize_title_for_initial(work.title)
            return None if initial == UNKNOWN_INITIAL else initial
        author = work.author_name.strip()
        return author or None

    # ── Explore questions ────────────────────────────────────────────────

    def _explore_pool(self, state: SessionState, probabilities: Mapping[str, float]) -> list[TagInfo]:
        """Coverage-gated tags and summary pseudo-tags not asked yet."""
        dq = self._config.data_quality
        total = self._catalog.total_candidate_count()
        used_tags = state.used_tag_keys

        tags = self._catalog.list_candidate_tags(
            item_ids=probabilities.keys(),
            exclude=used_tags,
            tag_types=_EXPLORE_TAG_TYPES,
        )
        used_summaries = state.used_summary_ids
        for summary in self._catalog.list_summary_questions():
            if summary.summary_id in used_summaries:
                continue
            tags.append(TagInfo(
                tag_key=summary.pseudo_tag_key,
                display_name=summary.label,
                tag_type=TagType.DERIVED,
                work_count=self._catalog.tag_work_count(summary.pseudo_tag_key),
                question_text=summary.question_text,
            ))

        return [
            tag for tag in tags
            if passes_coverage_gate(
                self._catalog.tag_work_count(tag.tag_key),
                total,
                dq.min_coverage_mode,
                dq.min_coverage_ratio,
                dq.min_coverage_works,
                dq.max_coverage_ratio,
            )
        ]

    def _explore_question(
        self,
        state: SessionState,
        probabilities: Mapping[str, float],
    ) -> QuestionCandidate | None:
        algo = self._config.algo
        tags = self._explore_pool(state, probabilities)
        prefer_high_p = (
            consecutive_no_count(state.question_history)
            >= self._config.flow.consecutive_no_for_atari
        )

        bands = [algo.p_value_band]
        if algo.p_value_band is not None and algo.explore_p_value_fallback_enabled:
            bands.append(None)

        for band in bands:
            try:
                key = require_explore_tag(
                    tags,
                    probabilities,
                    self._carries,
                    p_value_band=band,
                    prefer_high_p=prefer_high_p,
                    use_ig=algo.use_ig_for_explore_selection,
                )
            except NoCandidateError as exc:
                logger.debug("Explore selection failed: %s", exc)
                continue
            return self._explore_candidate(key)
        return None

    def _emergency_question(
        self,
        state: SessionState,
        probabilities: Mapping[str, float],
    ) -> QuestionCandidate | None:
        tags = self._catalog.list_candidate_tags(
            item_ids=probabilities.keys(),
            exclude=state.used_tag_keys,
            tag_types=_EXPLORE_TAG_TYPES,
        )
        for tag in tags:
            if any(self._carries(item_id, tag.tag_key) for item_id in probabilities):
                return self._explore_candidate(tag.tag_key)
        return None

    def _explore_candidate(self, tag_key: str) -> QuestionCandidate:
        summary_id = summary_id_from_key(tag_key)
        summary = self._catalog.get_summary_question(summary_id) if summary_id else None
        if summary is not None:
            return QuestionCandidate(
                kind=QuestionKind.EXPLORE_TAG,
                tag_key=tag_key,
                summary_id=summary.summary_id,
                display_text=summary.question_text,
            )
        return QuestionCandidate(
            kind=QuestionKind.EXPLORE_TAG,
            tag_key=tag_key,
            display_text=self._catalog.question_text(tag_key),
        )

    # ── Feature predicates ───────────────────────────────────────────────

    def _carries(self, item_id: str, tag_key: str) -> bool:
        """Explore semantics: official links count, DERIVED links need confidence."""
        if not self._catalog.has_tag(item_id, tag_key):
            return False
        score = self._catalog.derived_confidence(item_id, tag_key)
        return score is None or score >= self._config.algo.derived_confidence_threshold

    def _soft_carries(self, item_id: str, tag_key: str) -> bool:
        return has_derived_feature(
            self._catalog.derived_confidence(item_id, tag_key),
            self._config.algo.derived_confidence_threshold,
        )

    def _feature_predicate(self, question: QuestionCandidate) -> FeaturePredicate:
        if question.kind == QuestionKind.HARD_CONFIRM:
            confirm_type = question.hard_confirm_type
            expected = question.hard_confirm_value
            return lambda item_id: self._hard_confirm_value(item_id, confirm_type) == expected

        tag_key = question.tag_key or ""
        if question.kind == QuestionKind.SOFT_CONFIRM:
            return lambda item_id: self._soft_carries(item_id, tag_key)
        return lambda item_id: self._carries(item_id, tag_key)


def _hard_confirm_text(confirm_type: HardConfirmType, value: str) -> str:
    if confirm_type == HardConfirmType.TITLE_INITIAL:
        return f'Does the title start with "{value}"?'
    return f"Is it by {value}?"


def describe_question(entry: QuestionHistoryEntry) -> str:
    """Short log label: ``Q3 EXPLORE_TAG fantasy``."""
    subject = entry.tag_key or f"{entry.hard_confirm_type.value}={entry.hard_confirm_value}"
    return f"Q{entry.q_index} {entry.kind.value} {subject}"

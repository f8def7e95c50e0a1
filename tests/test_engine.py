"""Tests for the QuestionEngine round decisions."""

from __future__ import annotations

import math

import pytest

from guesswork.core.engine import QuestionEngine
from guesswork.domain.engine_config import EngineConfig
from guesswork.domain.enums import (
    AiGateChoice,
    AnswerChoice,
    GamePhase,
    HardConfirmType,
    QuestionKind,
)
from guesswork.domain.question import QuestionCandidate, QuestionHistoryEntry
from guesswork.domain.session import SessionState

from tests.test_catalog import _catalog

# ── Helpers ──────────────────────────────────────────────────────────────────

_UNIFORM = {"w1": 0.25, "w2": 0.25, "w3": 0.25, "w4": 0.25}


def _config(**sections: dict) -> EngineConfig:
    """Small-catalog friendly defaults, with per-section overrides."""
    raw: dict = {
        "confirm": {"q_forced_indices": [6, 10]},
        "algo": {},
        "flow": {"effective_confirm_threshold_params": {"min": 1, "max": 50, "divisor": 20}},
        "data_quality": {"min_coverage_mode": "RATIO", "min_coverage_ratio": 0.1},
    }
    for name, values in sections.items():
        raw.setdefault(name, {}).update(values)
    return EngineConfig.model_validate(raw)


class _FixedRandom:
    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


def _engine(rng_value: float = 0.0, **sections: dict) -> QuestionEngine:
    return QuestionEngine(_catalog(), _config(**sections), rng=_FixedRandom(rng_value))


def _entry(q_index: int, answer: AnswerChoice | None = AnswerChoice.YES, **kw) -> QuestionHistoryEntry:
    kw.setdefault("kind", QuestionKind.EXPLORE_TAG)
    return QuestionHistoryEntry(q_index=q_index, answer=answer, **kw)


def _state(weights: dict[str, float] | None = None, history: list[QuestionHistoryEntry] | None = None) -> SessionState:
    history = history or []
    return SessionState(
        session_id="s1",
        phase=GamePhase.QUIZ,
        weights=dict(_UNIFORM if weights is None else weights),
        question_history=history,
        question_count=sum(1 for q in history if q.answer is not None),
    )


# ── Priors ───────────────────────────────────────────────────────────────────


class TestInitialWeights:
    @pytest.mark.parametrize(
        "choice, expected",
        [
            (AiGateChoice.YES, {"w4"}),
            (AiGateChoice.NO, {"w1", "w2", "w3"}),
            (AiGateChoice.DONT_CARE, {"w1", "w2", "w3", "w4"}),
        ],
    )
    def test_ai_gate_filter(self, choice: AiGateChoice, expected: set[str]) -> None:
        assert set(_engine().initial_weights(choice)) == expected

    def test_popularity_seeds_prior(self) -> None:
        catalog = _catalog(works=[
            {"item_id": "w1", "title": "A", "popularity_base": 10},
            {"item_id": "w2", "title": "B"},
        ], work_tags=[], summary_questions=[])
        engine = QuestionEngine(catalog, _config(algo={"alpha": 0.1}))
        weights = engine.initial_weights(AiGateChoice.DONT_CARE)
        assert weights["w1"] == pytest.approx(math.e)
        assert weights["w2"] == 1.0


# ── Explore ──────────────────────────────────────────────────────────────────


class TestExplore:
    def test_first_question_splits_mass(self) -> None:
        question = _engine().select_next_question(_state())
        assert question.kind == QuestionKind.EXPLORE_TAG
        assert question.tag_key == "fantasy"
        assert question.display_text == "Is Fantasy part of it?"

    def test_asked_tags_not_repeated(self) -> None:
        state = _state(history=[_entry(1, tag_key="fantasy", answer=AnswerChoice.UNKNOWN)])
        assert _engine().select_next_question(state).tag_key == "scifi"

    def test_seek_hit_after_no_streak(self) -> None:
        history = [
            _entry(1, AnswerChoice.NO, tag_key="magic"),
            _entry(2, AnswerChoice.NO, tag_key="space"),
            _entry(3, AnswerChoice.NO, tag_key="romance"),
        ]
        question = _engine().select_next_question(_state(history=history))
        assert question.tag_key == "summary:genre"
        assert question.summary_id == "genre"
        assert question.display_text == "Is it fantasy or science fiction?"

    def test_p_value_band(self) -> None:
        engine = _engine(algo={"explore_p_value_min": 0.1, "explore_p_value_max": 0.3})
        assert engine.select_next_question(_state()).tag_key == "magic"

    def test_empty_band_retries_without_band(self) -> None:
        engine = _engine(algo={"explore_p_value_min": 0.7, "explore_p_value_max": 0.8})
        assert engine.select_next_question(_state()).tag_key == "fantasy"

    def test_empty_band_without_fallback_goes_to_hard_confirm(self) -> None:
        engine = _engine(algo={
            "explore_p_value_min": 0.7,
            "explore_p_value_max": 0.8,
            "explore_p_value_fallback_enabled": False,
        })
        question = engine.select_next_question(_state())
        assert question.kind == QuestionKind.HARD_CONFIRM
        assert question.hard_confirm_type == HardConfirmType.TITLE_INITIAL
        assert question.hard_confirm_value == "Alp"

    def test_emergency_pick_when_gate_blocks_everything(self) -> None:
        engine = _engine(data_quality={"max_coverage_ratio": 0.0})
        history = [_entry(
            1, kind=QuestionKind.HARD_CONFIRM,
            hard_confirm_type=HardConfirmType.TITLE_INITIAL, hard_confirm_value="Alp",
            answer=AnswerChoice.NO,
        )]
        question = engine.select_next_question(_state(history=history))
        assert question.kind == QuestionKind.EXPLORE_TAG
        assert question.tag_key == "fantasy"

    def test_ig_selection(self) -> None:
        # fantasy and scifi split the mass identically
        engine = _engine(algo={"use_ig_for_explore_selection": True})
        assert engine.select_next_question(_state()).tag_key in {"fantasy", "scifi"}

    def test_no_candidates(self) -> None:
        assert _engine().select_next_question(_state(weights={})) is None


# ── Confirm ──────────────────────────────────────────────────────────────────


class TestConfirm:
    def test_forced_index_hard_confirm(self) -> None:
        history = [_entry(i, tag_key=f"x{i}") for i in range(1, 6)]
        weights = {"w1": 0.7, "w2": 0.1, "w3": 0.1, "w4": 0.1}
        question = _engine().select_next_question(_state(weights, history))
        assert question.kind == QuestionKind.HARD_CONFIRM
        assert question.hard_confirm_value == "Alp"
        assert question.display_text == 'Does the title start with "Alp"?'

    def test_author_after_title_initial(self) -> None:
        history = [
            _entry(1, kind=QuestionKind.HARD_CONFIRM, hard_confirm_type=HardConfirmType.TITLE_INITIAL,
                   hard_confirm_value="Alp"),
            _entry(2, tag_key="fantasy"),
        ]
        weights = {"w1": 0.55, "w2": 0.15, "w3": 0.15, "w4": 0.15}
        question = _engine().select_next_question(_state(weights, history))
        assert question.hard_confirm_type == HardConfirmType.AUTHOR
        assert question.hard_confirm_value == "Ann"

    def test_no_two_hard_confirms_in_a_row(self) -> None:
        history = [_entry(
            1, kind=QuestionKind.HARD_CONFIRM, hard_confirm_type=HardConfirmType.TITLE_INITIAL,
            hard_confirm_value="Gam",
        )]
        weights = {"w1": 0.1, "w2": 0.1, "w3": 0.55, "w4": 0.25}
        question = _engine().select_next_question(_state(weights, history))
        assert question.kind == QuestionKind.SOFT_CONFIRM
        assert question.tag_key == "romance"

    def test_soft_confirm_on_leader_tag(self) -> None:
        weights = {"w1": 0.2, "w2": 0.2, "w3": 0.4, "w4": 0.2}
        question = _engine(rng_value=0.0).select_next_question(_state(weights))
        assert question.kind == QuestionKind.SOFT_CONFIRM
        assert question.tag_key == "romance"
        assert question.display_text == "Is there a love story?"

    def test_soft_confirm_falls_back_when_leader_holds_no_tag(self) -> None:
        history = [_entry(i, tag_key=f"x{i}") for i in range(1, 6)]
        weights = {"w1": 0.2, "w2": 0.2, "w3": 0.2, "w4": 0.4}
        question = _engine().select_next_question(_state(weights, history))
        assert question.kind == QuestionKind.SOFT_CONFIRM
        assert question.tag_key == "magic"

    def test_soft_confirm_respects_configured_band(self) -> None:
        history = [_entry(i, tag_key=f"x{i}") for i in range(1, 6)]
        weights = {"w1": 0.85, "w2": 0.05, "w3": 0.05, "w4": 0.05}
        engine = _engine(
            confirm={"hard_confidence_min": 0.9},
            algo={"explore_p_value_min": 0.3, "explore_p_value_max": 0.7},
        )
        question = engine.select_next_question(_state(weights, history))
        # magic sits at 0.85, outside the band, so the round explores instead
        assert question.kind == QuestionKind.EXPLORE_TAG
        assert question.tag_key == "magic"

    def test_has_soft_confirm_data(self) -> None:
        engine = _engine()
        assert engine.has_soft_confirm_data(_state(), _UNIFORM) is True
        history = [_entry(i, tag_key=k) for i, k in enumerate(["magic", "space", "romance"], start=1)]
        assert engine.has_soft_confirm_data(_state(history=history), _UNIFORM) is False


# ── Answers ──────────────────────────────────────────────────────────────────


class TestApplyAnswer:
    def test_bayesian_yes(self) -> None:
        question = QuestionCandidate(kind=QuestionKind.EXPLORE_TAG, tag_key="fantasy")
        weights = _engine().apply_answer(_UNIFORM, question, AnswerChoice.YES)
        assert weights["w1"] == pytest.approx(0.49)
        assert weights["w2"] == pytest.approx(0.01)
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_low_confidence_derived_link_counts_as_absent(self) -> None:
        question = QuestionCandidate(kind=QuestionKind.EXPLORE_TAG, tag_key="romance")
        weights = _engine().apply_answer(_UNIFORM, question, AnswerChoice.YES)
        assert weights["w3"] > weights["w4"]
        assert weights["w4"] == pytest.approx(weights["w1"])

    def test_exponential_mode(self) -> None:
        question = QuestionCandidate(kind=QuestionKind.EXPLORE_TAG, tag_key="fantasy")
        engine = _engine(algo={"use_bayesian_update": False, "beta": 1.0})
        weights = engine.apply_answer(_UNIFORM, question, AnswerChoice.YES)
        assert weights["w1"] / weights["w2"] == pytest.approx(math.exp(2.0))

    def test_summary_uses_exponential_scale(self) -> None:
        question = QuestionCandidate(
            kind=QuestionKind.EXPLORE_TAG, tag_key="summary:genre", summary_id="genre"
        )
        weights = {"w1": 0.5, "w2": 0.5}
        updated = _engine().apply_answer(weights, question, AnswerChoice.NO)
        # every work carries a member tag, so all move together
        assert updated == pytest.approx({"w1": 0.5, "w2": 0.5})

    def test_hard_confirm_author(self) -> None:
        question = QuestionCandidate(
            kind=QuestionKind.HARD_CONFIRM,
            hard_confirm_type=HardConfirmType.AUTHOR,
            hard_confirm_value="Ann",
        )
        weights = _engine().apply_answer(_UNIFORM, question, AnswerChoice.NO)
        assert weights["w2"] > weights["w1"]
        assert weights["w1"] == pytest.approx(weights["w3"])

    def test_unknown_changes_nothing(self) -> None:
        question = QuestionCandidate(kind=QuestionKind.SOFT_CONFIRM, tag_key="magic")
        assert _engine().apply_answer(_UNIFORM, question, AnswerChoice.UNKNOWN) == _UNIFORM


class TestRevealAndFailList:
    def test_reveal_above_threshold(self) -> None:
        assert _engine().reveal_candidate({"w1": 0.8, "w2": 0.2}, []) == "w1"

    def test_no_reveal_below_threshold(self) -> None:
        assert _engine().reveal_candidate({"w1": 0.6, "w2": 0.4}, []) is None

    def test_rejected_not_revealed_again(self) -> None:
        assert _engine().reveal_candidate({"w1": 0.8, "w2": 0.2}, ["w1"]) is None

    def test_fail_list_excludes_rejected_and_truncates(self) -> None:
        engine = _engine(flow={"fail_list_n": 2})
        ranked = engine.fail_list({"w1": 0.4, "w2": 0.3, "w3": 0.2, "w4": 0.1}, ["w2"])
        assert [item_id for item_id, _ in ranked] == ["w1", "w3"]

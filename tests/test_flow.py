"""Tests for the GameFlow session state machine."""

from __future__ import annotations

import asyncio

import pytest

from guesswork.catalog.memory import InMemoryCatalog
from guesswork.core.engine import QuestionEngine
from guesswork.core.flow import GameFlow
from guesswork.domain.enums import (
    AiGateChoice,
    AnswerChoice,
    GamePhase,
    PlayOutcome,
    QuestionKind,
    RevealAnswer,
)
from guesswork.domain.errors import (
    InvalidSelectionError,
    InvalidTransitionError,
    SessionNotFoundError,
)
from guesswork.store.play_history import PlayHistory
from guesswork.store.session_store import SessionStore

from tests.test_catalog import _catalog
from tests.test_engine import _FixedRandom, _config

# ── Helpers ──────────────────────────────────────────────────────────────────


class _Game:
    """A GameFlow plus the collaborators tests want to inspect."""

    def __init__(self, catalog: InMemoryCatalog | None = None, **sections: dict) -> None:
        self.catalog = catalog or _catalog()
        self.store = SessionStore()
        self.history = PlayHistory()
        engine = QuestionEngine(self.catalog, _config(**sections), rng=_FixedRandom(0.0))
        self.flow = GameFlow(engine, self.catalog, self.store, self.history)


def _quick_reveal(**sections: dict) -> _Game:
    """One YES on "fantasy" is enough to reveal w1."""
    confirm = {"reveal_threshold": 0.4}
    confirm.update(sections.pop("confirm", {}))
    return _Game(confirm=confirm, **sections)


# ── Start ────────────────────────────────────────────────────────────────────


class TestStart:
    @pytest.mark.asyncio
    async def test_start_emits_first_question(self) -> None:
        game = _Game()
        turn = await game.flow.start(AiGateChoice.DONT_CARE)

        assert turn.phase == GamePhase.QUIZ
        assert turn.question.q_index == 1
        assert turn.question.tag_key == "fantasy"
        assert turn.confidence == pytest.approx(0.25)

        state = await game.store.load(turn.session_id)
        assert state.ai_gate_choice == AiGateChoice.DONT_CARE
        assert [s.q_index for s in state.weights_history] == [0]

    @pytest.mark.asyncio
    async def test_ai_gate_single_candidate_asks_hard_confirm(self) -> None:
        turn = await _Game().flow.start(AiGateChoice.YES)
        assert turn.question.kind == QuestionKind.HARD_CONFIRM
        assert turn.question.hard_confirm_value == "Del"

    @pytest.mark.asyncio
    async def test_empty_pool_goes_to_fail_list(self) -> None:
        catalog = _catalog(works=[{"item_id": "w1", "title": "A"}], work_tags=[])
        game = _Game(catalog=catalog)
        turn = await game.flow.start(AiGateChoice.YES)
        assert turn.phase == GamePhase.FAIL_LIST
        assert turn.fail_list == []

    @pytest.mark.asyncio
    async def test_restart_requires_ai_gate(self) -> None:
        game = _Game()
        turn = await game.flow.start(AiGateChoice.DONT_CARE)
        with pytest.raises(InvalidTransitionError):
            await game.flow.start(AiGateChoice.NO, session_id=turn.session_id)


# ── Answer & rollback ────────────────────────────────────────────────────────


class TestAnswerAndBack:
    @pytest.mark.asyncio
    async def test_answer_advances(self) -> None:
        game = _Game()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        turn = await game.flow.answer(sid, AnswerChoice.YES)

        assert turn.phase == GamePhase.QUIZ
        assert turn.question_count == 1
        assert turn.question.q_index == 2
        assert turn.confidence == pytest.approx(0.49)

    @pytest.mark.asyncio
    async def test_back_then_replay_reproduces_weights(self) -> None:
        game = _Game()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        await game.flow.answer(sid, AnswerChoice.YES)
        await game.flow.answer(sid, AnswerChoice.NO)
        before = await game.store.load(sid)

        turn = await game.flow.back(sid)
        assert turn.question.q_index == 2
        assert turn.question_count == 1
        rolled = await game.store.load(sid)
        assert rolled.weights == next(s.weights for s in before.weights_history if s.q_index == 2)

        await game.flow.answer(sid, AnswerChoice.NO)
        after = await game.store.load(sid)
        assert after.weights == before.weights
        assert after.question_count == before.question_count

    @pytest.mark.asyncio
    async def test_back_on_first_question_returns_to_ai_gate(self) -> None:
        game = _Game()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        turn = await game.flow.back(sid)
        assert turn.phase == GamePhase.AI_GATE
        assert turn.question is None

        again = await game.flow.start(AiGateChoice.NO, session_id=sid)
        assert again.session_id == sid
        assert again.phase == GamePhase.QUIZ

    @pytest.mark.asyncio
    async def test_back_from_ai_gate_rejected(self) -> None:
        game = _Game()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        await game.flow.back(sid)
        with pytest.raises(InvalidTransitionError):
            await game.flow.back(sid)

    @pytest.mark.asyncio
    async def test_question_limit_goes_to_fail_list(self) -> None:
        game = _Game(flow={"max_questions": 1})
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        turn = await game.flow.answer(sid, AnswerChoice.UNKNOWN)
        assert turn.phase == GamePhase.FAIL_LIST
        assert len(turn.fail_list) == 4
        record = await game.history.get(sid)
        assert record.outcome == PlayOutcome.FAIL_LIST

    @pytest.mark.asyncio
    async def test_unknown_session(self) -> None:
        with pytest.raises(SessionNotFoundError):
            await _Game().flow.answer("ghost", AnswerChoice.YES)

    @pytest.mark.asyncio
    async def test_concurrent_answers_are_serialised(self) -> None:
        game = _Game()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        turns = await asyncio.gather(
            game.flow.answer(sid, AnswerChoice.YES),
            game.flow.answer(sid, AnswerChoice.YES),
        )
        assert sorted(t.question_count for t in turns) == [1, 2]

        state = await game.store.load(sid)
        assert state.question_count == 2
        assert [s.q_index for s in state.weights_history] == [0, 1, 2]
        assert [q.q_index for q in state.question_history][:2] == [1, 2]

    @pytest.mark.asyncio
    async def test_failed_round_leaves_state_untouched(self) -> None:
        game = _quick_reveal()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        await game.flow.answer(sid, AnswerChoice.YES)
        before = await game.store.load(sid)
        with pytest.raises(InvalidTransitionError):
            await game.flow.answer(sid, AnswerChoice.YES)
        after = await game.store.load(sid)
        assert after.weights == before.weights
        assert after.phase == GamePhase.REVEAL


# ── Reveal ───────────────────────────────────────────────────────────────────


class TestReveal:
    @pytest.mark.asyncio
    async def test_reveal_and_success(self) -> None:
        game = _quick_reveal()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        turn = await game.flow.answer(sid, AnswerChoice.YES)
        assert turn.phase == GamePhase.REVEAL
        assert turn.reveal.item_id == "w1"

        turn = await game.flow.reveal(sid, RevealAnswer.YES)
        assert turn.phase == GamePhase.SUCCESS
        assert turn.result.item_id == "w1"
        assert game.catalog.get_work("w1").popularity_play_bonus == 1.0
        record = await game.history.get(sid)
        assert record.outcome == PlayOutcome.SUCCESS
        assert record.result_item_id == "w1"

    @pytest.mark.asyncio
    async def test_rejected_reveal_penalises_and_continues(self) -> None:
        game = _quick_reveal()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        await game.flow.answer(sid, AnswerChoice.YES)

        turn = await game.flow.reveal(sid, RevealAnswer.NO)
        assert turn.phase == GamePhase.QUIZ
        state = await game.store.load(sid)
        assert state.reveal_rejected_item_ids == ["w1"]
        assert state.reveal_miss_count == 1
        assert state.weights["w1"] < state.weights["w3"]

        turn = await game.flow.answer(sid, AnswerChoice.UNKNOWN)
        assert turn.phase == GamePhase.REVEAL
        assert turn.reveal.item_id == "w3"

    @pytest.mark.asyncio
    async def test_reveal_outside_reveal_phase(self) -> None:
        game = _Game()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        with pytest.raises(InvalidTransitionError):
            await game.flow.reveal(sid, RevealAnswer.YES)

    @pytest.mark.asyncio
    async def test_back_from_reveal_reopens_question(self) -> None:
        game = _quick_reveal()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        await game.flow.answer(sid, AnswerChoice.YES)
        turn = await game.flow.back(sid)
        assert turn.phase == GamePhase.QUIZ
        assert turn.question.q_index == 1
        assert turn.reveal is None


# ── Fail list ────────────────────────────────────────────────────────────────


class TestFailList:
    async def _to_fail_list(self, game: _Game) -> str:
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        await game.flow.answer(sid, AnswerChoice.YES)
        await game.flow.reveal(sid, RevealAnswer.NO)
        return sid

    @pytest.mark.asyncio
    async def test_misses_exhausted_lists_without_rejected(self) -> None:
        game = _quick_reveal(flow={"max_reveal_misses": 1})
        sid = await self._to_fail_list(game)
        turn = await game.flow.fail_list(sid)
        assert turn.phase == GamePhase.FAIL_LIST
        ids = [entry.item_id for entry in turn.fail_list]
        assert ids[0] == "w3"
        assert "w1" not in ids
        assert turn.fail_list[0].title == "Gamma Garden"

    @pytest.mark.asyncio
    async def test_select_from_fail_list(self) -> None:
        game = _quick_reveal(flow={"max_reveal_misses": 1})
        sid = await self._to_fail_list(game)
        turn = await game.flow.select_from_fail_list(sid, "w3")
        assert turn.phase == GamePhase.ALMOST_SUCCESS
        assert turn.result.item_id == "w3"
        record = await game.history.get(sid)
        assert record.outcome == PlayOutcome.ALMOST_SUCCESS

    @pytest.mark.asyncio
    async def test_select_rejected_work(self) -> None:
        game = _quick_reveal(flow={"max_reveal_misses": 1})
        sid = await self._to_fail_list(game)
        with pytest.raises(InvalidSelectionError):
            await game.flow.select_from_fail_list(sid, "w1")

    @pytest.mark.asyncio
    async def test_not_in_list(self) -> None:
        game = _quick_reveal(flow={"max_reveal_misses": 1})
        sid = await self._to_fail_list(game)
        turn = await game.flow.submit_not_in_list(sid, "  The Missing One ")
        assert turn.phase == GamePhase.NOT_IN_LIST
        record = await game.history.get(sid)
        assert record.outcome == PlayOutcome.NOT_IN_LIST
        assert record.submitted_title_text == "The Missing One"

    @pytest.mark.asyncio
    async def test_fail_list_outside_phase(self) -> None:
        game = _Game()
        sid = (await game.flow.start(AiGateChoice.DONT_CARE)).session_id
        with pytest.raises(InvalidTransitionError):
            await game.flow.fail_list(sid)

    @pytest.mark.asyncio
    async def test_terminal_phase_blocks_back(self) -> None:
        game = _quick_reveal(flow={"max_reveal_misses": 1})
        sid = await self._to_fail_list(game)
        await game.flow.select_from_fail_list(sid, "w3")
        with pytest.raises(InvalidTransitionError):
            await game.flow.back(sid)

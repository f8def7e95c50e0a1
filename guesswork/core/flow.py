"""GameFlow — the session state machine.

Phases::

    AI_GATE ─start─▶ QUIZ ─answer─▶ QUIZ ...
                      │
                      ├─▶ REVEAL ─YES─▶ SUCCESS
                      │      └──NO──▶ QUIZ  (penalty on the rejected work)
                      │
                      └─▶ FAIL_LIST ─select─▶ ALMOST_SUCCESS
                                    └─title──▶ NOT_IN_LIST

Every operation runs inside ``SessionStore.session()``, so one session's
rounds are serialised and a failed round leaves the stored state untouched.

Round bookkeeping:
    The weights seen *before* the answer to question ``q`` are snapshotted
    under ``q``.  ``back`` restores such a snapshot and re-opens ``q``, so
    replaying the same answer reproduces the same weights exactly.
"""

from __future__ import annotations

import logging

from guesswork.catalog.base import Catalog
from guesswork.core.engine import QuestionEngine, describe_question
from guesswork.core.scoring import confidence, effective_candidates, normalize_weights
from guesswork.core.weight_update import apply_reveal_penalty
from guesswork.domain.enums import (
    AiGateChoice,
    AnswerChoice,
    GamePhase,
    PlayOutcome,
    RevealAnswer,
)
from guesswork.domain.errors import InvalidSelectionError, InvalidTransitionError
from guesswork.domain.play import PlayRecord
from guesswork.domain.session import SessionState
from guesswork.domain.turn import FailListEntry, GameTurn
from guesswork.foundation.identifiers import new_session_id
from guesswork.store.play_history import PlayHistory
from guesswork.store.session_store import SessionStore

logger = logging.getLogger(__name__)

_BACK_PHASES = (GamePhase.QUIZ, GamePhase.REVEAL, GamePhase.FAIL_LIST)


class GameFlow:
    """Drives sessions through the game phases.

    Args:
        engine: Per-round question / update decisions.
        catalog: Work lookups for reveals, fail lists and the play bonus.
        store: Session persistence with per-session locking.
        history: Where finished plays are recorded.
    """

    def __init__(
        self,
        engine: QuestionEngine,
        catalog: Catalog,
        store: SessionStore,
        history: PlayHistory,
    ) -> None:
        self._engine = engine
        self._catalog = catalog
        self._store = store
        self._history = history
        self._config = engine.config

    # ── Public API ───────────────────────────────────────────────────────

    async def start(
        self,
        ai_gate_choice: AiGateChoice,
        session_id: str | None = None,
    ) -> GameTurn:
        """Pass the AI gate and emit question 1.

        With *session_id*, restarts a session that was rolled back to the
        AI gate; otherwise a new session is created.
        """
        if session_id is None:
            state = SessionState(session_id=new_session_id())
            await self._begin(state, ai_gate_choice)
            await self._store.create(state)
            return self._turn(state)

        async with self._store.session(session_id) as state:
            if state.phase != GamePhase.AI_GATE:
                raise InvalidTransitionError("start", state.phase)
            await self._begin(state, ai_gate_choice)
            return self._turn(state)

    async def answer(self, session_id: str, choice: AnswerChoice) -> GameTurn:
        """Apply *choice* to the pending question and move on."""
        async with self._store.session(session_id) as state:
            question = state.pending_question
            if state.phase != GamePhase.QUIZ or question is None:
                raise InvalidTransitionError("answer", state.phase)

            state.snapshot_weights(question.q_index)
            state.weights = self._engine.apply_answer(state.weights, question, choice)
            state.record_answer(choice)
            state.question_count += 1
            logger.debug("Session %s: %s → %s", session_id, describe_question(question), choice.value)

            flow_cfg = self._config.flow
            reveal_id = self._engine.reveal_candidate(state.weights, state.reveal_rejected_item_ids)
            if reveal_id is not None:
                state.phase = GamePhase.REVEAL
                state.revealed_item_id = reveal_id
                logger.info("Session %s: revealing %s after %d question(s)",
                            session_id, reveal_id, state.question_count)
            elif (
                state.question_count >= flow_cfg.max_questions
                or state.reveal_miss_count >= flow_cfg.max_reveal_misses
            ):
                await self._enter_fail_list(state, "question limit reached")
            else:
                await self._advance(state)
            return self._turn(state)

    async def back(self, session_id: str) -> GameTurn:
        """Undo the last answer.  Before question 1 this returns to the AI gate."""
        async with self._store.session(session_id) as state:
            if state.phase not in _BACK_PHASES:
                raise InvalidTransitionError("go back", state.phase)

            current = state.current_question
            if current is None:
                target = 0
            elif current.answer is not None:
                target = current.q_index
            else:
                target = current.q_index - 1

            if target < 1:
                state.reset()
                logger.info("Session %s: back to AI gate", session_id)
            else:
                state.rollback_to(target)
                logger.info("Session %s: rolled back to Q%d", session_id, target)
            return self._turn(state)

    async def reveal(self, session_id: str, answer: RevealAnswer) -> GameTurn:
        """Player's verdict on the revealed guess."""
        async with self._store.session(session_id) as state:
            item_id = state.revealed_item_id
            if state.phase != GamePhase.REVEAL or item_id is None:
                raise InvalidTransitionError("answer reveal", state.phase)

            if answer == RevealAnswer.YES:
                state.phase = GamePhase.SUCCESS
                state.result_item_id = item_id
                self._catalog.add_play_bonus(item_id, self._config.popularity.play_bonus_on_success)
                await self._record(state, PlayOutcome.SUCCESS)
                return self._turn(state)

            state.weights = normalize_weights(
                apply_reveal_penalty(state.weights, item_id, self._config.algo.reveal_penalty)
            )
            state.reject_item(item_id)
            state.reveal_miss_count += 1
            state.revealed_item_id = None
            logger.info("Session %s: reveal %s rejected (miss %d)",
                        session_id, item_id, state.reveal_miss_count)

            flow_cfg = self._config.flow
            if (
                state.reveal_miss_count >= flow_cfg.max_reveal_misses
                or state.question_count >= flow_cfg.max_questions
            ):
                await self._enter_fail_list(state, "reveal misses exhausted")
            else:
                await self._advance(state)
            return self._turn(state)

    async def fail_list(self, session_id: str) -> GameTurn:
        async with self._store.session(session_id) as state:
            if state.phase != GamePhase.FAIL_LIST:
                raise InvalidTransitionError("show the fail list", state.phase)
            return self._turn(state)

    async def select_from_fail_list(self, session_id: str, item_id: str) -> GameTurn:
        """The player found their work on the fail list."""
        async with self._store.session(session_id) as state:
            if state.phase != GamePhase.FAIL_LIST:
                raise InvalidTransitionError("select from the fail list", state.phase)
            offered = {
                wid for wid, _ in self._engine.fail_list(state.weights, state.reveal_rejected_item_ids)
            }
            if item_id not in offered:
                raise InvalidSelectionError(item_id)

            state.phase = GamePhase.ALMOST_SUCCESS
            state.result_item_id = item_id
            await self._record(state, PlayOutcome.ALMOST_SUCCESS)
            return self._turn(state)

    async def submit_not_in_list(self, session_id: str, title_text: str) -> GameTurn:
        """The player's work was not on the list; keep the title they typed."""
        async with self._store.session(session_id) as state:
            if state.phase != GamePhase.FAIL_LIST:
                raise InvalidTransitionError("submit a missing title", state.phase)

            state.phase = GamePhase.NOT_IN_LIST
            await self._record(state, PlayOutcome.NOT_IN_LIST, submitted_title_text=title_text.strip())
            return self._turn(state)

    # ── Internals ────────────────────────────────────────────────────────

    async def _begin(self, state: SessionState, ai_gate_choice: AiGateChoice) -> None:
        state.reset()
        state.ai_gate_choice = ai_gate_choice
        state.weights = normalize_weights(self._engine.initial_weights(ai_gate_choice))
        state.snapshot_weights(0)
        logger.info("Session %s: started (ai_gate=%s, candidates=%d)",
                    state.session_id, ai_gate_choice.value, len(state.weights))
        await self._advance(state)

    async def _advance(self, state: SessionState) -> None:
        """Ask the next question, or drop to the fail list if there is none."""
        candidate = self._engine.select_next_question(state)
        if candidate is None:
            await self._enter_fail_list(state, "no question available")
            return
        entry = state.ask(candidate)
        state.phase = GamePhase.QUIZ
        logger.debug("Session %s: asking %s", state.session_id, describe_question(entry))

    async def _enter_fail_list(self, state: SessionState, reason: str) -> None:
        state.phase = GamePhase.FAIL_LIST
        state.revealed_item_id = None
        logger.info("Session %s: fail list (%s)", state.session_id, reason)
        await self._record(state, PlayOutcome.FAIL_LIST)

    async def _record(
        self,
        state: SessionState,
        outcome: PlayOutcome,
        submitted_title_text: str | None = None,
    ) -> None:
        logger.debug("Session %s closing as %s: %s", state.session_id, outcome.value, state.summary())
        top = self._engine.fail_list(state.weights, state.reveal_rejected_item_ids)
        await self._history.record(PlayRecord(
            session_id=state.session_id,
            outcome=outcome,
            ai_gate_choice=state.ai_gate_choice,
            question_count=state.question_count,
            reveal_miss_count=state.reveal_miss_count,
            result_item_id=state.result_item_id,
            submitted_title_text=submitted_title_text,
            top_candidates=[item_id for item_id, _ in top],
        ))

    def _turn(self, state: SessionState) -> GameTurn:
        probabilities = normalize_weights(state.weights)
        turn = {
            "session_id": state.session_id,
            "phase": state.phase,
            "question_count": state.question_count,
            "confidence": confidence(probabilities),
            "effective_candidates": effective_candidates(probabilities),
        }
        if state.phase == GamePhase.QUIZ:
            turn["question"] = state.pending_question
        elif state.phase == GamePhase.REVEAL and state.revealed_item_id:
            turn["reveal"] = self._catalog.get_work(state.revealed_item_id)
        elif state.phase == GamePhase.FAIL_LIST:
            turn["fail_list"] = self._fail_list_entries(state)
        if state.result_item_id:
            turn["result"] = self._catalog.get_work(state.result_item_id)
        return GameTurn(**turn)

    def _fail_list_entries(self, state: SessionState) -> list[FailListEntry]:
        entries = []
        for item_id, p in self._engine.fail_list(state.weights, state.reveal_rejected_item_ids):
            work = self._catalog.get_work(item_id)
            entries.append(FailListEntry(
                item_id=item_id,
                title=work.title if work else "",
                author_name=work.author_name if work else "",
                probability=min(1.0, max(0.0, p)),
            ))
        return entries


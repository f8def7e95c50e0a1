"""SessionState — the per-session mutable record of one play.

Histories are append-only lists indexed by ``q_index``; rollback is
truncation plus restore, so the whole state stays trivially serialisable
(``model_dump_json`` / ``model_validate_json``).

Index conventions:
    - ``question_count`` is the number of answered questions.
    - The question currently on screen has ``q_index == question_count + 1``.
    - ``weights_history`` holds the weights as they were *before* the
      answer to ``q_index`` was applied.  ``q_index == 0`` is the prior
      seeded at game start.

Thread-safety note:
    A SessionState is mutated only while the caller holds the
    SessionStore's per-session lock.  It is not itself locked.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from guesswork.domain.enums import AiGateChoice, AnswerChoice, GamePhase, HardConfirmType, QuestionKind
from guesswork.domain.question import QuestionCandidate, QuestionHistoryEntry
from guesswork.foundation.clock import utc_now


class WeightSnapshot(BaseModel):
    """Weights captured before the answer to question ``q_index`` was applied."""

    q_index: int = Field(..., ge=0)
    weights: dict[str, float]

    model_config = {"frozen": True}


class SessionState(BaseModel):
    """Everything the engine knows about one session."""

    session_id: str
    phase: GamePhase = GamePhase.AI_GATE
    ai_gate_choice: Optional[AiGateChoice] = None
    weights: dict[str, float] = Field(default_factory=dict)
    weights_history: list[WeightSnapshot] = Field(default_factory=list)
    question_history: list[QuestionHistoryEntry] = Field(default_factory=list)
    question_count: int = Field(default=0, ge=0)
    reveal_miss_count: int = Field(default=0, ge=0)
    reveal_rejected_item_ids: list[str] = Field(default_factory=list)
    revealed_item_id: Optional[str] = None
    result_item_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def current_question(self) -> QuestionHistoryEntry | None:
        """The most recently asked question (answered or not)."""
        if not self.question_history:
            return None
        return self.question_history[-1]

    @property
    def pending_question(self) -> QuestionHistoryEntry | None:
        """The question awaiting an answer, if any."""
        current = self.current_question
        if current is None or current.answer is not None:
            return None
        return current

    @property
    def next_q_index(self) -> int:
        return self.question_count + 1

    @property
    def used_hard_confirm_types(self) -> set[HardConfirmType]:
        return {
            q.hard_confirm_type
            for q in self.question_history
            if q.kind == QuestionKind.HARD_CONFIRM and q.hard_confirm_type is not None
        }

    @property
    def used_tag_keys(self) -> set[str]:
        return {q.tag_key for q in self.question_history if q.tag_key}

    @property
    def used_summary_ids(self) -> set[str]:
        return {q.summary_id for q in self.question_history if q.summary_id}

    def used_hard_confirm_values(self, confirm_type: HardConfirmType) -> set[str]:
        return {
            q.hard_confirm_value
            for q in self.question_history
            if q.hard_confirm_type == confirm_type and q.hard_confirm_value
        }

    def is_rejected(self, item_id: str) -> bool:
        return item_id in self.reveal_rejected_item_ids

    # ── Mutation ─────────────────────────────────────────────────────────

    def touch(self) -> None:
        self.last_updated = utc_now()

    def reset(self) -> None:
        """Return to the AI gate with an empty play."""
        self.phase = GamePhase.AI_GATE
        self.ai_gate_choice = None
        self.weights = {}
        self.weights_history = []
        self.question_history = []
        self.question_count = 0
        self.reveal_miss_count = 0
        self.reveal_rejected_item_ids = []
        self.revealed_item_id = None
        self.result_item_id = None
        self.touch()

    def snapshot_weights(self, q_index: int) -> None:
        """Record a copy of the current weights under *q_index*."""
        self.weights_history.append(WeightSnapshot(q_index=q_index, weights=dict(self.weights)))

    def ask(self, candidate: QuestionCandidate) -> QuestionHistoryEntry:
        """Append *candidate* as the next question on screen."""
        entry = QuestionHistoryEntry.from_candidate(candidate, self.next_q_index)
        self.question_history.append(entry)
        self.touch()
        return entry

    def record_answer(self, answer: AnswerChoice) -> None:
        """Attach *answer* to the pending question."""
        pending = self.pending_question
        if pending is None:
            raise ValueError("No pending question to answer")
        self.question_history[-1] = pending.model_copy(update={"answer": answer})

    def reject_item(self, item_id: str) -> None:
        if item_id not in self.reveal_rejected_item_ids:
            self.reveal_rejected_item_ids.append(item_id)

    def rollback_to(self, q_index: int) -> QuestionHistoryEntry:
        """Re-open question *q_index* as if it had never been answered.

        Restores the weights captured before its answer, drops every later
        question and snapshot, and sets ``question_count`` to ``q_index - 1``.

        Raises:
            LookupError: If no question or snapshot exists for *q_index*.
        """
        snapshot = next((s for s in self.weights_history if s.q_index == q_index), None)
        target = next((q for q in self.question_history if q.q_index == q_index), None)
        if snapshot is None or target is None:
            raise LookupError(f"No history recorded for question {q_index}")

        reopened = target.model_copy(update={"answer": None})
        self.question_history = [q for q in self.question_history if q.q_index < q_index]
        self.question_history.append(reopened)
        self.weights_history = [s for s in self.weights_history if s.q_index < q_index]
        self.weights = dict(snapshot.weights)
        self.question_count = q_index - 1
        self.revealed_item_id = None
        self.phase = GamePhase.QUIZ
        self.touch()
        return reopened

    # ── Summary ──────────────────────────────────────────────────────────

    def summary(self) -> dict:
        """Lightweight structural facts for logging.  No weights."""
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "question_count": self.question_count,
            "reveal_miss_count": self.reveal_miss_count,
            "candidates": len(self.weights),
            "last_updated": self.last_updated.isoformat(),
        }

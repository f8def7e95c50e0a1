"""Pydantic response bodies for the game HTTP API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from guesswork.domain.enums import GamePhase, HardConfirmType, QuestionKind
from guesswork.domain.question import QuestionHistoryEntry
from guesswork.domain.turn import FailListEntry, GameTurn
from guesswork.domain.work import WorkInfo


class QuestionView(BaseModel):
    q_index: int
    kind: QuestionKind
    text: str
    tag_key: Optional[str] = None
    hard_confirm_type: Optional[HardConfirmType] = None

    @classmethod
    def from_entry(cls, entry: QuestionHistoryEntry) -> "QuestionView":
        return cls(
            q_index=entry.q_index,
            kind=entry.kind,
            text=entry.display_text,
            tag_key=entry.tag_key,
            hard_confirm_type=entry.hard_confirm_type,
        )


class WorkView(BaseModel):
    item_id: str
    title: str
    author_name: str

    @classmethod
    def from_work(cls, work: WorkInfo) -> "WorkView":
        return cls(item_id=work.item_id, title=work.title, author_name=work.author_name)


class TurnResponse(BaseModel):
    """Everything the client needs to render the next screen."""

    session_id: str
    phase: GamePhase
    finished: bool = Field(default=False, description="True once the play has reached a final outcome")
    question_count: int
    confidence: float = Field(..., ge=0.0, le=1.0)
    effective_candidates: float = Field(..., ge=0.0)
    question: Optional[QuestionView] = None
    reveal: Optional[WorkView] = None
    fail_list: list[FailListEntry] = Field(default_factory=list)
    result: Optional[WorkView] = None

    @classmethod
    def from_turn(cls, turn: GameTurn) -> "TurnResponse":
        return cls(
            session_id=turn.session_id,
            phase=turn.phase,
            finished=turn.phase.is_terminal,
            question_count=turn.question_count,
            confidence=round(turn.confidence, 4),
            effective_candidates=round(turn.effective_candidates, 4),
            question=QuestionView.from_entry(turn.question) if turn.question else None,
            reveal=WorkView.from_work(turn.reveal) if turn.reveal else None,
            fail_list=turn.fail_list,
            result=WorkView.from_work(turn.result) if turn.result else None,
        )

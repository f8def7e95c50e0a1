"""Question values produced by the selector and recorded in session history."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from guesswork.domain.enums import AnswerChoice, HardConfirmType, QuestionKind


class QuestionCandidate(BaseModel):
    """The question chosen for one round.  Ephemeral; never persisted alone."""

    kind: QuestionKind
    display_text: str = ""
    tag_key: Optional[str] = None
    hard_confirm_type: Optional[HardConfirmType] = None
    hard_confirm_value: Optional[str] = Field(
        default=None,
        description="Concrete title initial or author name being asked",
    )
    summary_id: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def is_summary(self) -> bool:
        return self.summary_id is not None


class QuestionHistoryEntry(QuestionCandidate):
    """A question as asked: its 1-based index and, once given, the answer."""

    q_index: int = Field(..., ge=1)
    answer: Optional[AnswerChoice] = None

    model_config = {"frozen": True}

    @classmethod
    def from_candidate(cls, candidate: QuestionCandidate, q_index: int) -> "QuestionHistoryEntry":
        return cls(q_index=q_index, **candidate.model_dump())

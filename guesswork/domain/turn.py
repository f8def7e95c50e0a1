"""GameTurn — what the flow hands back to the transport layer after each operation."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from guesswork.domain.enums import GamePhase
from guesswork.domain.question import QuestionHistoryEntry
from guesswork.domain.work import WorkInfo


class FailListEntry(BaseModel):
    item_id: str
    title: str = ""
    author_name: str = ""
    probability: float = Field(..., ge=0.0, le=1.0)

    model_config = {"frozen": True}


class GameTurn(BaseModel):
    """Immutable view of a session right after an operation."""

    session_id: str
    phase: GamePhase
    question_count: int = 0
    confidence: float = 0.0
    effective_candidates: float = 0.0
    question: Optional[QuestionHistoryEntry] = Field(
        default=None, description="The question awaiting an answer (QUIZ only)"
    )
    reveal: Optional[WorkInfo] = Field(
        default=None, description="The guessed work (REVEAL only)"
    )
    fail_list: list[FailListEntry] = Field(default_factory=list)
    result: Optional[WorkInfo] = None

    model_config = {"frozen": True}

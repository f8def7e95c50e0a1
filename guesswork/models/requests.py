"""Pydantic request bodies for the game HTTP API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from guesswork.domain.enums import AiGateChoice, AnswerChoice, RevealAnswer


class StartRequest(BaseModel):
    """Pass the AI gate.  Omit ``session_id`` to open a new session."""

    ai_gate_choice: AiGateChoice = Field(..., description="YES: AI works only, NO: hand-made only")
    session_id: Optional[str] = Field(
        default=None, description="Restart a session that went back to the AI gate"
    )


class SessionRequest(BaseModel):
    session_id: str = Field(..., min_length=1)


class AnswerRequest(SessionRequest):
    choice: AnswerChoice


class RevealRequest(SessionRequest):
    answer: RevealAnswer


class SelectRequest(SessionRequest):
    item_id: str = Field(..., min_length=1, description="A work from the offered fail list")


class NotInListRequest(SessionRequest):
    title_text: str = Field(..., min_length=1, max_length=200, description="The title the player had in mind")

    @field_validator("title_text")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title_text must not be blank")
        return v.strip()

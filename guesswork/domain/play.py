"""PlayRecord — the archived outcome of one finished play."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from guesswork.domain.enums import AiGateChoice, PlayOutcome
from guesswork.foundation.clock import utc_now


class PlayRecord(BaseModel):
    """One record per session; a later outcome replaces an earlier one."""

    session_id: str
    outcome: PlayOutcome
    ai_gate_choice: Optional[AiGateChoice] = None
    question_count: int = Field(default=0, ge=0)
    reveal_miss_count: int = Field(default=0, ge=0)
    result_item_id: Optional[str] = None
    submitted_title_text: Optional[str] = None
    top_candidates: list[str] = Field(
        default_factory=list,
        description="Leading item ids when the play ended, best first",
    )
    recorded_at: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}

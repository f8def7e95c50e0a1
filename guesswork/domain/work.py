"""Catalog reference data for candidate works."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WorkInfo(BaseModel):
    """A candidate the game may ultimately guess.

    The engine only needs the id for inference; title and author feed the
    hard-confirm questions, popularity seeds the prior, and ``is_ai`` drives
    the opening AI gate filter.
    """

    item_id: str = Field(..., min_length=1)
    title: str = ""
    author_name: str = ""
    popularity_base: float = 0.0
    popularity_play_bonus: float = Field(default=0.0, ge=0.0)
    is_ai: bool = False

    model_config = {"frozen": True}

"""Catalog reference data for tags.

Read-only from the engine's point of view: the core never mutates a tag.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from guesswork.domain.enums import TagType

SUMMARY_KEY_PREFIX = "summary:"


class TagInfo(BaseModel):
    """One askable tag and the number of candidate works carrying it."""

    tag_key: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    tag_type: TagType = TagType.DERIVED
    work_count: int = Field(default=0, ge=0)
    question_text: Optional[str] = Field(
        default=None,
        description="Curated question wording; a default pattern is used when absent",
    )

    model_config = {"frozen": True}


class SummaryQuestion(BaseModel):
    """A grouped question: an item "has" it when it carries any member tag."""

    summary_id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    question_text: str = Field(..., min_length=1)
    tag_keys: list[str] = Field(..., min_length=1)

    model_config = {"frozen": True}

    @property
    def pseudo_tag_key(self) -> str:
        return f"{SUMMARY_KEY_PREFIX}{self.summary_id}"


def summary_id_from_key(tag_key: str) -> str | None:
    """Return the summary id encoded in a pseudo tag key, or None."""
    if tag_key.startswith(SUMMARY_KEY_PREFIX):
        return tag_key[len(SUMMARY_KEY_PREFIX):]
    return None

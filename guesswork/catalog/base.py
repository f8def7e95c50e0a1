"""Abstract catalog — the read-only content store the engine queries.

Architectural rules:
    1. The engine never mutates tags or works; the only write is the
       popularity play bonus on a successful guess, owned by the catalog.
    2. All queries are fast and synchronous from the engine's view.
    3. Caches, if any, belong to the catalog implementation and are scoped
       to the catalog instance, never module-level globals.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable

from guesswork.domain.enums import TagType
from guesswork.domain.tag import SummaryQuestion, TagInfo
from guesswork.domain.work import WorkInfo

_DEFAULT_QUESTION = "Is {name} part of it?"
_CHARACTER_QUESTION = "Does a character called {name} appear?"


class Catalog(ABC):
    """Capability contract for tag / work reference data."""

    # ── Works ────────────────────────────────────────────────────────────

    @abstractmethod
    def list_works(self) -> list[WorkInfo]:
        """Every work in the catalog, ordered by item_id."""
        ...

    @abstractmethod
    def get_work(self, item_id: str) -> WorkInfo | None:
        ...

    @abstractmethod
    def total_candidate_count(self) -> int:
        ...

    @abstractmethod
    def add_play_bonus(self, item_id: str, amount: float) -> None:
        """Raise a work's popularity after it was guessed successfully."""
        ...

    # ── Tags ─────────────────────────────────────────────────────────────

    @abstractmethod
    def get_tag(self, tag_key: str) -> TagInfo | None:
        ...

    @abstractmethod
    def list_candidate_tags(
        self,
        item_ids: Collection[str] | None = None,
        exclude: Iterable[str] = (),
        tag_types: Collection[TagType] | None = None,
    ) -> list[TagInfo]:
        """Tags carried by at least one of *item_ids* (all works if None).

        ``work_count`` on each returned TagInfo is counted within
        *item_ids*.  Ordered by tag_key.
        """
        ...

    @abstractmethod
    def has_tag(self, item_id: str, tag_key: str) -> bool:
        ...

    @abstractmethod
    def derived_confidence(self, item_id: str, tag_key: str) -> float | None:
        """Confidence of a DERIVED tag on a work; None for official tags or absence."""
        ...

    @abstractmethod
    def tag_work_count(self, tag_key: str, item_ids: Collection[str] | None = None) -> int:
        ...

    # ── Summary questions ────────────────────────────────────────────────

    @abstractmethod
    def list_summary_questions(self) -> list[SummaryQuestion]:
        ...

    def get_summary_question(self, summary_id: str) -> SummaryQuestion | None:
        for summary in self.list_summary_questions():
            if summary.summary_id == summary_id:
                return summary
        return None

    # ── Display text ─────────────────────────────────────────────────────

    def question_text(self, tag_key: str) -> str:
        """Display string for a tag question: curated text or a default pattern."""
        tag = self.get_tag(tag_key)
        if tag is None:
            return _DEFAULT_QUESTION.format(name=tag_key)
        if tag.question_text and tag.question_text.strip():
            return tag.question_text.strip()
        if tag.tag_type == TagType.STRUCTURAL:
            return _CHARACTER_QUESTION.format(name=tag.display_name)
        return _DEFAULT_QUESTION.format(name=tag.display_name)

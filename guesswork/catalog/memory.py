"""In-memory catalog loaded from a JSON document.

Document layout::

    {
      "works":     [{"item_id": "w1", "title": "...", "author_name": "...",
                     "popularity_base": 3.0, "is_ai": false}, ...],
      "tags":      [{"tag_key": "fantasy", "display_name": "Fantasy",
                     "tag_type": "OFFICIAL"}, ...],
      "work_tags": [{"item_id": "w1", "tag_key": "fantasy",
                     "derived_confidence": null}, ...],
      "summary_questions": [{"summary_id": "setting", "label": "...",
                             "question_text": "...", "tag_keys": [...]}]
    }

The tag → works index is built lazily on first use and kept for the life
of the catalog instance.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Collection, Iterable
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from guesswork.catalog.base import Catalog
from guesswork.domain.enums import TagType
from guesswork.domain.errors import ConfigurationError
from guesswork.domain.tag import SummaryQuestion, TagInfo, summary_id_from_key
from guesswork.domain.work import WorkInfo

logger = logging.getLogger(__name__)


class WorkTagLink(BaseModel):
    """A work carrying a tag; DERIVED links carry a confidence score."""

    item_id: str = Field(..., min_length=1)
    tag_key: str = Field(..., min_length=1)
    derived_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    model_config = {"frozen": True}


class CatalogDocument(BaseModel):
    works: list[WorkInfo] = Field(default_factory=list)
    tags: list[TagInfo] = Field(default_factory=list)
    work_tags: list[WorkTagLink] = Field(default_factory=list)
    summary_questions: list[SummaryQuestion] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class InMemoryCatalog(Catalog):
    """Catalog backed by plain dictionaries.

    Args:
        works: Candidate works.
        tags: Askable tags.  ``work_count`` is recomputed from *links*.
        links: Work ↔ tag associations.
        summary_questions: Grouped questions over several tags.

    Raises:
        ConfigurationError: If a link or summary references an unknown
            work or tag.
    """

    def __init__(
        self,
        works: Iterable[WorkInfo],
        tags: Iterable[TagInfo],
        links: Iterable[WorkTagLink],
        summary_questions: Iterable[SummaryQuestion] = (),
    ) -> None:
        self._works: dict[str, WorkInfo] = {w.item_id: w for w in works}
        self._tags: dict[str, TagInfo] = {t.tag_key: t for t in tags}
        self._links: dict[tuple[str, str], WorkTagLink] = {}
        for link in links:
            if link.item_id not in self._works:
                raise ConfigurationError(f"Link references unknown work {link.item_id!r}")
            if link.tag_key not in self._tags:
                raise ConfigurationError(f"Link references unknown tag {link.tag_key!r}")
            self._links[(link.item_id, link.tag_key)] = link

        self._summaries: dict[str, SummaryQuestion] = {}
        for summary in summary_questions:
            unknown = [k for k in summary.tag_keys if k not in self._tags]
            if unknown:
                raise ConfigurationError(
                    f"Summary {summary.summary_id!r} references unknown tag(s) {unknown}"
                )
            self._summaries[summary.summary_id] = summary

        self._lock = threading.Lock()
        self._items_by_tag: dict[str, frozenset[str]] | None = None

    # ── Construction ─────────────────────────────────────────────────────

    @classmethod
    def from_document(cls, raw: dict) -> "InMemoryCatalog":
        try:
            doc = CatalogDocument.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(f"Catalog validation failed: {exc}") from exc
        return cls(doc.works, doc.tags, doc.work_tags, doc.summary_questions)

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryCatalog":
        """Load a catalog document from disk.

        Raises:
            ConfigurationError: If the file is unreadable or invalid.
        """
        catalog_path = Path(path)
        try:
            raw = json.loads(catalog_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Failed to read catalog from {catalog_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Catalog in {catalog_path} must be a JSON object")

        catalog = cls.from_document(raw)
        logger.info(
            "Loaded catalog from %s (%d works, %d tags, %d summaries)",
            catalog_path, len(catalog._works), len(catalog._tags), len(catalog._summaries),
        )
        return catalog

    # ── Works ────────────────────────────────────────────────────────────

    def list_works(self) -> list[WorkInfo]:
        with self._lock:
            return [self._works[k] for k in sorted(self._works)]

    def get_work(self, item_id: str) -> WorkInfo | None:
        with self._lock:
            return self._works.get(item_id)

    def total_candidate_count(self) -> int:
        return len(self._works)

    def add_play_bonus(self, item_id: str, amount: float) -> None:
        with self._lock:
            work = self._works.get(item_id)
            if work is None:
                logger.warning("Play bonus for unknown work %s ignored", item_id)
                return
            self._works[item_id] = work.model_copy(
                update={"popularity_play_bonus": work.popularity_play_bonus + amount}
            )
        logger.debug("Play bonus +%.2f for %s", amount, item_id)

    # ── Tags ─────────────────────────────────────────────────────────────

    def get_tag(self, tag_key: str) -> TagInfo | None:
        tag = self._tags.get(tag_key)
        if tag is None:
            return None
        return tag.model_copy(update={"work_count": self.tag_work_count(tag_key)})

    def list_candidate_tags(
        self,
        item_ids: Collection[str] | None = None,
        exclude: Iterable[str] = (),
        tag_types: Collection[TagType] | None = None,
    ) -> list[TagInfo]:
        excluded = set(exclude)
        scope = None if item_ids is None else set(item_ids)
        result: list[TagInfo] = []
        for tag_key in sorted(self._tags):
            tag = self._tags[tag_key]
            if tag_key in excluded:
                continue
            if tag_types is not None and tag.tag_type not in tag_types:
                continue
            count = self._count(tag_key, scope)
            if count == 0:
                continue
            result.append(tag.model_copy(update={"work_count": count}))
        return result

    def has_tag(self, item_id: str, tag_key: str) -> bool:
        summary_id = summary_id_from_key(tag_key)
        if summary_id is not None:
            summary = self._summaries.get(summary_id)
            if summary is None:
                return False
            return any((item_id, k) in self._links for k in summary.tag_keys)
        return (item_id, tag_key) in self._links

    def derived_confidence(self, item_id: str, tag_key: str) -> float | None:
        link = self._links.get((item_id, tag_key))
        if link is None:
            return None
        return link.derived_confidence

    def tag_work_count(self, tag_key: str, item_ids: Collection[str] | None = None) -> int:
        return self._count(tag_key, None if item_ids is None else set(item_ids))

    # ── Summary questions ────────────────────────────────────────────────

    def list_summary_questions(self) -> list[SummaryQuestion]:
        return [self._summaries[k] for k in sorted(self._summaries)]

    def get_summary_question(self, summary_id: str) -> SummaryQuestion | None:
        return self._summaries.get(summary_id)

    # ── Internals ────────────────────────────────────────────────────────

    def _index(self) -> dict[str, frozenset[str]]:
        if self._items_by_tag is None:
            grouped: dict[str, set[str]] = {}
            for item_id, tag_key in self._links:
                grouped.setdefault(tag_key, set()).add(item_id)
            for summary in self._summaries.values():
                members: set[str] = set()
                for k in summary.tag_keys:
                    members |= grouped.get(k, set())
                grouped[summary.pseudo_tag_key] = members
            self._items_by_tag = {k: frozenset(v) for k, v in grouped.items()}
        return self._items_by_tag

    def _count(self, tag_key: str, scope: set[str] | None) -> int:
        carriers = self._index().get(tag_key, frozenset())
        if scope is None:
            return len(carriers)
        return len(carriers & scope)

"""Play history — one PlayRecord per session, latest outcome wins."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter

from guesswork.domain.enums import PlayOutcome
from guesswork.domain.play import PlayRecord

logger = logging.getLogger(__name__)


class PlayHistory:
    """Async-safe, in-memory play log."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._records: dict[str, PlayRecord] = {}

    async def record(self, play: PlayRecord) -> None:
        async with self._lock:
            previous = self._records.get(play.session_id)
            self._records[play.session_id] = play
        if previous is not None and previous.outcome != play.outcome:
            logger.info(
                "Play %s outcome %s → %s",
                play.session_id, previous.outcome.value, play.outcome.value,
            )
        else:
            logger.info("Play %s recorded as %s", play.session_id, play.outcome.value)

    async def get(self, session_id: str) -> PlayRecord | None:
        async with self._lock:
            return self._records.get(session_id)

    async def outcome_counts(self) -> dict[str, int]:
        """Number of plays per outcome, every outcome present."""
        async with self._lock:
            counts = Counter(r.outcome for r in self._records.values())
        return {outcome.value: counts.get(outcome, 0) for outcome in PlayOutcome}

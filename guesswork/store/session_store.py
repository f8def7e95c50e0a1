"""In-memory session store with per-session locking and TTL-based expiry.

Design notes:
    - States are kept serialised (``model_dump_json``), so a caller never
      holds a live reference into the store.  ``load`` always returns a
      fresh copy; ``save`` replaces the stored copy (last writer wins).
    - ``session()`` is the read-modify-write entry point used by the game
      flow.  It holds the session's own asyncio.Lock for the whole round,
      so no two rounds of one session interleave, while different
      sessions proceed concurrently.
    - An exception inside ``session()`` discards the round: nothing is
      saved, so an abandoned request never half-applies.
    - A separate store-wide lock guards the dictionaries themselves.
    - ``expire_stale`` leaves a session alone while its lock is held, so
      a round never races a replacement lock created by a later ``save``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from guesswork.domain.errors import SessionNotFoundError
from guesswork.domain.session import SessionState
from guesswork.foundation.clock import utc_now

logger = logging.getLogger(__name__)


class SessionStore:
    """Async-safe, in-memory store for SessionStates.

    Args:
        ttl: How long a session may sit untouched before it expires.
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=30)) -> None:
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")

        self._ttl = ttl
        self._lock = asyncio.Lock()
        self._records: dict[str, tuple[str, datetime]] = {}
        self._session_locks: dict[str, asyncio.Lock] = {}

    # ── Public API ───────────────────────────────────────────────────────

    async def load(self, session_id: str) -> SessionState | None:
        """Return a copy of the stored state, or None if unknown / expired."""
        async with self._lock:
            return self._load(session_id)

    async def save(self, state: SessionState) -> None:
        """Store *state*, replacing any previous copy."""
        state.touch()
        async with self._lock:
            self._records[state.session_id] = (state.model_dump_json(), state.last_updated)
            self._session_locks.setdefault(state.session_id, asyncio.Lock())

    async def create(self, state: SessionState) -> None:
        """Store a brand-new session.

        Raises:
            ValueError: If a live session already uses the same id.
        """
        async with self._lock:
            if self._load(state.session_id) is not None:
                raise ValueError(f"Session {state.session_id} already exists")
        await self.save(state)
        logger.info("Created session %s", state.session_id)

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            self._remove(session_id)

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[SessionState]:
        """Serialised read-modify-write access to one session.

        Yields a mutable copy and saves it when the block exits cleanly.

        Raises:
            SessionNotFoundError: If the session is unknown or expired.
        """
        async with self._lock:
            lock = self._session_locks.get(session_id)
        if lock is None:
            raise SessionNotFoundError(session_id)

        async with lock:
            state = await self.load(session_id)
            if state is None:
                raise SessionNotFoundError(session_id)
            yield state
            await self.save(state)

    async def expire_stale(self) -> list[str]:
        """Remove every session untouched for longer than the TTL.

        Sessions with a round in progress are skipped; their lock must
        outlive the round.

        Returns the expired ids for logging / diagnostics.
        """
        async with self._lock:
            now = utc_now()
            expired_ids = [
                sid
                for sid, (_, last_updated) in self._records.items()
                if now - last_updated > self._ttl and not self._session_locks[sid].locked()
            ]
            for sid in expired_ids:
                self._remove(sid)
            if expired_ids:
                logger.info("Expired %d stale session(s)", len(expired_ids))
            return expired_ids

    async def active_count(self) -> int:
        async with self._lock:
            return len(self._records)

    # ── Internals ────────────────────────────────────────────────────────

    def _load(self, session_id: str) -> SessionState | None:
        """Must be called while holding self._lock."""
        record = self._records.get(session_id)
        if record is None:
            return None
        payload, last_updated = record
        if utc_now() - last_updated > self._ttl:
            logger.info("Session %s expired", session_id)
            self._remove(session_id)
            return None
        return SessionState.model_validate_json(payload)

    def _remove(self, session_id: str) -> None:
        """Must be called while holding self._lock."""
        self._records.pop(session_id, None)
        self._session_locks.pop(session_id, None)

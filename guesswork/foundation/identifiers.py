"""Session identifier generation."""

from __future__ import annotations

from uuid import uuid4


def new_session_id() -> str:
    """Generate a new random session id (UUID v4, string form)."""
    return str(uuid4())

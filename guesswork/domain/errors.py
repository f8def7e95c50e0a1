"""Exception taxonomy for the guesswork engine.

Numeric degeneracies (all-zero weights, empty candidate sets) are NOT
errors: they are absorbed by guard clauses in the scoring layer.
"""

from __future__ import annotations

from guesswork.domain.enums import GamePhase


class GuessworkError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(GuessworkError):
    """Malformed or out-of-range engine thresholds.  Fatal at startup."""


class NoCandidateError(GuessworkError):
    """No tag survived the coverage / p-value filters.

    Recovered locally by the engine (falls back to a confirmation
    question); never surfaced to the player.
    """


class SessionNotFoundError(GuessworkError):
    """An operation referenced an unknown or expired session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found or expired")


class InvalidTransitionError(GuessworkError):
    """The requested operation is not allowed in the session's current phase."""

    def __init__(self, operation: str, phase: GamePhase) -> None:
        self.operation = operation
        self.phase = phase
        super().__init__(f"Cannot {operation} while session is in phase {phase.value}")


class InvalidSelectionError(GuessworkError):
    """The player picked a work that is not on the offered fail list."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Work {item_id} is not on the fail list")

"""Controlled enumerations for the guesswork domain.

Every categorical field in the domain MUST reference an enum defined here.
Free-form strings are not acceptable for classification fields.
"""

from __future__ import annotations

from enum import Enum


class TagType(str, Enum):
    """Provenance of a catalog tag."""

    OFFICIAL = "OFFICIAL"
    DERIVED = "DERIVED"
    STRUCTURAL = "STRUCTURAL"


class QuestionKind(str, Enum):
    """What a single round asks the player."""

    EXPLORE_TAG = "EXPLORE_TAG"
    SOFT_CONFIRM = "SOFT_CONFIRM"
    HARD_CONFIRM = "HARD_CONFIRM"


class HardConfirmType(str, Enum):
    """Escalating confirmation variants, asked in declaration order."""

    TITLE_INITIAL = "TITLE_INITIAL"
    AUTHOR = "AUTHOR"


class AnswerChoice(str, Enum):
    """Answers the player can give to a quiz question."""

    YES = "YES"
    PROBABLY_YES = "PROBABLY_YES"
    UNKNOWN = "UNKNOWN"
    PROBABLY_NO = "PROBABLY_NO"
    NO = "NO"
    DONT_CARE = "DONT_CARE"


class RevealAnswer(str, Enum):
    """Answers to "is it this one?" at the reveal step."""

    YES = "YES"
    NO = "NO"


class AiGateChoice(str, Enum):
    """Opening filter: AI-generated works only, hand-made only, or both."""

    YES = "YES"
    NO = "NO"
    DONT_CARE = "DONT_CARE"


class CoverageMode(str, Enum):
    """How the coverage gate measures catalog support for a tag."""

    RATIO = "RATIO"
    WORKS = "WORKS"
    AUTO = "AUTO"


class GamePhase(str, Enum):
    """Session lifecycle states."""

    AI_GATE = "AI_GATE"
    QUIZ = "QUIZ"
    REVEAL = "REVEAL"
    SUCCESS = "SUCCESS"
    FAIL_LIST = "FAIL_LIST"
    ALMOST_SUCCESS = "ALMOST_SUCCESS"
    NOT_IN_LIST = "NOT_IN_LIST"

    @property
    def is_terminal(self) -> bool:
        return self in (
            GamePhase.SUCCESS,
            GamePhase.ALMOST_SUCCESS,
            GamePhase.NOT_IN_LIST,
        )


class PlayOutcome(str, Enum):
    """Recorded result of one finished play."""

    SUCCESS = "SUCCESS"
    FAIL_LIST = "FAIL_LIST"
    ALMOST_SUCCESS = "ALMOST_SUCCESS"
    NOT_IN_LIST = "NOT_IN_LIST"

from guesswork.models.requests import (
    AnswerRequest,
    NotInListRequest,
    RevealRequest,
    SelectRequest,
    SessionRequest,
    StartRequest,
)
from guesswork.models.responses import QuestionView, TurnResponse, WorkView

__all__ = [
    "AnswerRequest",
    "NotInListRequest",
    "RevealRequest",
    "SelectRequest",
    "SessionRequest",
    "StartRequest",
    "QuestionView",
    "TurnResponse",
    "WorkView",
]

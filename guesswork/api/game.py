"""REST endpoints for one play of the guessing game.

Paths:
    POST /api/start                    pass the AI gate, get question 1
    POST /api/answer                   answer the pending question
    POST /api/back                     undo the last answer
    POST /api/reveal                   accept or reject the guess
    GET  /api/fail-list/{session_id}   candidates offered after a failure
    POST /api/fail-list/select         pick a work from the fail list
    POST /api/fail-list/not-in-list    type the title that was missing

Engine errors are translated here and nowhere else:
    SessionNotFoundError   → 404 (client should restart)
    InvalidTransitionError → 409
    InvalidSelectionError  → 400
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable

from fastapi import APIRouter, HTTPException

from guesswork.core.flow import GameFlow
from guesswork.domain.errors import (
    InvalidSelectionError,
    InvalidTransitionError,
    SessionNotFoundError,
)
from guesswork.domain.turn import GameTurn
from guesswork.models import (
    AnswerRequest,
    NotInListRequest,
    RevealRequest,
    SelectRequest,
    SessionRequest,
    StartRequest,
    TurnResponse,
)

logger = logging.getLogger(__name__)


async def _respond(pending: Awaitable[GameTurn]) -> TurnResponse:
    try:
        turn = await pending
    except SessionNotFoundError as exc:
        raise HTTPException(
            status_code=404,
            detail=f"{exc}. Please start a new game.",
        ) from exc
    except InvalidTransitionError as exc:
        logger.warning("Rejected request: %s", exc)
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InvalidSelectionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TurnResponse.from_turn(turn)


def create_game_router(flow: GameFlow) -> APIRouter:
    """Factory that wires the game endpoints to a GameFlow."""

    router = APIRouter(prefix="/api", tags=["game"])

    @router.post("/start")
    async def start(body: StartRequest) -> TurnResponse:
        return await _respond(flow.start(body.ai_gate_choice, session_id=body.session_id))

    @router.post("/answer")
    async def answer(body: AnswerRequest) -> TurnResponse:
        return await _respond(flow.answer(body.session_id, body.choice))

    @router.post("/back")
    async def back(body: SessionRequest) -> TurnResponse:
        return await _respond(flow.back(body.session_id))

    @router.post("/reveal")
    async def reveal(body: RevealRequest) -> TurnResponse:
        return await _respond(flow.reveal(body.session_id, body.answer))

    @router.get("/fail-list/{session_id}")
    async def fail_list(session_id: str) -> TurnResponse:
        return await _respond(flow.fail_list(session_id))

    @router.post("/fail-list/select")
    async def select_from_fail_list(body: SelectRequest) -> TurnResponse:
        return await _respond(flow.select_from_fail_list(body.session_id, body.item_id))

    @router.post("/fail-list/not-in-list")
    async def not_in_list(body: NotInListRequest) -> TurnResponse:
        return await _respond(flow.submit_not_in_list(body.session_id, body.title_text))

    return router

"""guesswork — probabilistic guess-the-work engine.

This is the application entry point.  It wires the Catalog,
QuestionEngine, SessionStore, PlayHistory and HTTP routes together.
"""

from __future__ import annotations

import logging
import random
from datetime import timedelta

from fastapi import FastAPI

from guesswork.api.game import create_game_router
from guesswork.catalog.memory import InMemoryCatalog
from guesswork.config import settings
from guesswork.core.engine import QuestionEngine
from guesswork.core.flow import GameFlow
from guesswork.domain.engine_config import load_engine_config
from guesswork.store.play_history import PlayHistory
from guesswork.store.session_store import SessionStore

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)

# ── Engine ───────────────────────────────────────────────────────────────────

engine_config = load_engine_config(settings.engine_config_path)

if settings.catalog_path:
    catalog = InMemoryCatalog.from_json(settings.catalog_path)
else:
    logger.warning("GUESSWORK_CATALOG_PATH not set, starting with an empty catalog")
    catalog = InMemoryCatalog(works=[], tags=[], links=[])

engine = QuestionEngine(
    catalog,
    engine_config,
    rng=random.Random(settings.random_seed),
)

# ── State ────────────────────────────────────────────────────────────────────

store = SessionStore(ttl=timedelta(minutes=settings.session_ttl_minutes))
history = PlayHistory()

flow = GameFlow(engine, catalog, store, history)

# ── App ──────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="Probabilistic inference and question selection for a guess-the-work game",
    version="0.1.0",
    debug=settings.debug,
)

# ── Routes ───────────────────────────────────────────────────────────────────

app.include_router(create_game_router(flow))


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/health")
async def health() -> dict:
    expired = await store.expire_stale()
    return {
        "status": "ok",
        "works": catalog.total_candidate_count(),
        "active_sessions": await store.active_count(),
        "expired_sessions": len(expired),
        "plays": await history.outcome_counts(),
    }

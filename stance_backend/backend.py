"""
FastAPI application for the stance game backend.

Run with:
    uvicorn stance_backend.backend:stance_app --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stance_backend.config import CORS_ORIGINS, LOG_LEVEL
from stance_backend.db_session import AsyncSessionLocal, async_engine
from stance_backend.middleware import configure_request_guards
from stance_backend.services.corpus_cache import CorpusCache
from stance_backend.services.corpus_store import CorpusStore, SqlCorpusStore
from stance_backend.stance_card_api import router as stance_card_router
from stance_backend.takes_api import router as takes_router
from stance_backend.votes_api import router as votes_router

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(store: Optional[CorpusStore] = None, guards: bool = True) -> FastAPI:
    """Build the app. ``store`` defaults to the hot_takes table."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        corpus_store = store or SqlCorpusStore(AsyncSessionLocal)
        app.state.corpus_cache = CorpusCache(corpus_store)
        logger.info("Corpus cache ready (ttl=%ss)", app.state.corpus_cache.ttl_seconds)
        yield
        if store is None:
            logger.info("Disposing database engine")
            await async_engine.dispose()

    app = FastAPI(lifespan=lifespan)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if guards:
        configure_request_guards(app)

    # Include routers
    app.include_router(takes_router)
    app.include_router(stance_card_router)
    app.include_router(votes_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


stance_app = create_app()

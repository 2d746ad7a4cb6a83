"""FastAPI dependencies shared by the routers."""

from fastapi import Depends, Request

from stance_backend.db_session import AsyncSessionLocal
from stance_backend.services.corpus_cache import CorpusCache
from stance_backend.services.take_selector import TakeSelector


def get_corpus_cache(request: Request) -> CorpusCache:
    """The process-wide cache created in the app lifespan."""
    return request.app.state.corpus_cache


def get_take_selector(cache: CorpusCache = Depends(get_corpus_cache)) -> TakeSelector:
    return TakeSelector(cache)


def get_session_factory():
    """Session factory for work that outlives the request session (detached writes)."""
    return AsyncSessionLocal

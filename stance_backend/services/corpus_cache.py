"""
Time-boxed in-memory snapshot of all eligible hot takes.

The snapshot, its load time and the in-flight reload task are the only
shared mutable state in the serving path. A snapshot is immutable and is
swapped in with a single attribute assignment, so readers see either the old
or the new one in full. Concurrent misses share one reload task
(single-flight), so N simultaneous callers cost exactly one store query.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from stance_backend.config import CORPUS_CACHE_STALE_ON_ERROR, CORPUS_CACHE_TTL_SECONDS
from stance_backend.services.corpus_store import CorpusStore
from stance_backend.services.take_model import Take

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheSnapshot:
    takes: Tuple[Take, ...]
    by_id: Dict[str, Take]
    loaded_at: float

    @classmethod
    def build(cls, takes: List[Take], loaded_at: float) -> "CacheSnapshot":
        return cls(takes=tuple(takes), by_id={t.id: t for t in takes}, loaded_at=loaded_at)


class CorpusCache:
    def __init__(
        self,
        store: CorpusStore,
        ttl_seconds: float = CORPUS_CACHE_TTL_SECONDS,
        stale_on_error: bool = CORPUS_CACHE_STALE_ON_ERROR,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.stale_on_error = stale_on_error
        self._clock = clock
        self._snapshot: Optional[CacheSnapshot] = None
        self._inflight: Optional[asyncio.Task] = None

    def _is_fresh(self, snapshot: Optional[CacheSnapshot]) -> bool:
        return snapshot is not None and self._clock() - snapshot.loaded_at < self.ttl_seconds

    async def get_snapshot(self) -> CacheSnapshot:
        snapshot = self._snapshot
        if self._is_fresh(snapshot):
            return snapshot

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._reload())
            # Consume the exception if every waiter was cancelled before it landed
            self._inflight.add_done_callback(_consume_exception)
        # Shield: one cancelled waiter must not cancel the reload for the rest
        return await asyncio.shield(self._inflight)

    async def get_takes(self) -> List[Take]:
        snapshot = await self.get_snapshot()
        return list(snapshot.takes)

    async def get_take(self, take_id: str) -> Optional[Take]:
        """Resolve an id against the eligible snapshot."""
        snapshot = await self.get_snapshot()
        return snapshot.by_id.get(take_id)

    def invalidate(self) -> None:
        """Drop the snapshot; the next call reloads."""
        self._snapshot = None

    async def _reload(self) -> CacheSnapshot:
        previous = self._snapshot
        try:
            takes = await self.store.list_eligible_takes()
        except Exception as exc:
            if self.stale_on_error and previous is not None:
                logger.warning(
                    "Corpus reload failed, serving stale snapshot of %s takes: %s",
                    len(previous.takes), exc,
                )
                return previous
            logger.error("Corpus reload failed: %s", exc)
            raise
        finally:
            self._inflight = None

        snapshot = CacheSnapshot.build(takes, loaded_at=self._clock())
        self._snapshot = snapshot
        logger.info("Corpus cache refreshed with %s takes", len(snapshot.takes))
        return snapshot


def _consume_exception(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()

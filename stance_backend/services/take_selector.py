"""
Constrained random take selection.

Random picks work off the corpus cache snapshot; only id and slug lookups
fall back to the store. Randomness is unseeded, so repeated spins may
return the same take for an unlocked slot.
"""

import asyncio
import logging
import random
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from stance_backend.services.categories import CATEGORIES
from stance_backend.services.corpus_cache import CorpusCache
from stance_backend.services.corpus_store import CorpusStore
from stance_backend.services.errors import BackingStoreUnavailable
from stance_backend.services.take_model import MAX_INTENSITY, MIN_INTENSITY, Take

logger = logging.getLogger(__name__)


class TakeSelector:
    def __init__(self, cache: CorpusCache, store: Optional[CorpusStore] = None,
                 rng: Optional[random.Random] = None):
        self.cache = cache
        self.store = store if store is not None else cache.store
        self._rng = rng or random.SystemRandom()

    async def pick_random(
        self,
        category: str,
        exclude_ids: Iterable[str] = (),
        intensity_min: int = MIN_INTENSITY,
        intensity_max: int = MAX_INTENSITY,
    ) -> Optional[Take]:
        """Uniform pick among eligible takes matching every constraint, else None."""
        excluded = set(exclude_ids)
        pool = [
            t for t in await self.cache.get_takes()
            if t.category == category
            and t.id not in excluded
            and intensity_min <= t.intensity <= intensity_max
        ]
        if not pool:
            logger.info(
                "No takes for category=%s intensity=%s-%s (excluded %s)",
                category, intensity_min, intensity_max, len(excluded),
            )
            return None
        return self._rng.choice(pool)

    async def resolve_take(self, take_id: str) -> Optional[Take]:
        """Snapshot first, then the store for takes outside the eligible set."""
        take = await self.cache.get_take(take_id)
        if take is None:
            take = await self.store.get_take_by_id(take_id)
        return take

    async def get_take_by_slug(self, slug: str) -> Optional[Take]:
        for take in await self.cache.get_takes():
            if take.slug == slug:
                return take
        return await self.store.get_take_by_slug(slug)

    async def spin(self, locked: Optional[Mapping[str, str]] = None) -> Dict[str, Take]:
        """One take per category in registry order, honouring category-matching locks."""
        locked = locked or {}
        result: Dict[str, Take] = {}

        for category in CATEGORIES:
            locked_id = locked.get(category.name)
            if locked_id:
                try:
                    take = await self.resolve_take(locked_id)
                except (BackingStoreUnavailable, SQLAlchemyError, asyncio.TimeoutError, OSError) as exc:
                    logger.warning("Lock %s for %s failed to resolve: %s", locked_id, category.name, exc)
                    take = None
                if take is not None and take.category == category.name:
                    result[category.name] = take
                    continue
                logger.debug("Lock %s for %s did not resolve, re-rolling", locked_id, category.name)

            take = await self.pick_random(category.name)
            if take is not None:
                result[category.name] = take

        return result

    async def intensity_distribution(self, category: Optional[str] = None) -> Dict[int, int]:
        distribution = {level: 0 for level in range(MIN_INTENSITY, MAX_INTENSITY + 1)}
        for take in await self.cache.get_takes():
            if category and take.category != category:
                continue
            if take.intensity in distribution:
                distribution[take.intensity] += 1
        return distribution

    async def filter_takes(self, category: Optional[str] = None, tone: Optional[str] = None,
                           limit: Optional[int] = None) -> List[Take]:
        pool = await self.cache.get_takes()
        if category:
            pool = [t for t in pool if t.category == category]
        if tone:
            pool = [t for t in pool if tone in t.tone]
        if limit:
            pool = pool[:limit]
        return pool

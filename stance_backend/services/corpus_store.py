"""
Backing-store access for hot takes.

``CorpusStore`` is the contract the cache and codec depend on;
``SqlCorpusStore`` implements it over the ``hot_takes`` table. Each call opens
its own short-lived session so the store can be shared by the cache reload
and by request handlers alike.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stance_backend.models import HotTake
from stance_backend.services.take_model import DEFAULT_INTENSITY, Take

logger = logging.getLogger(__name__)


class CorpusStore(ABC):
    """Read-only view of the take corpus."""

    @abstractmethod
    async def list_eligible_takes(self) -> List[Take]:
        """Every enrichment-complete take."""

    @abstractmethod
    async def get_take_by_id(self, take_id: str) -> Optional[Take]:
        """Any take with this id, eligible or not."""

    @abstractmethod
    async def get_takes_by_category(self, category: str) -> List[Take]:
        ...

    @abstractmethod
    async def get_takes_by_intensity(self, category: str, intensity_min: int,
                                     intensity_max: int) -> List[Take]:
        ...

    @abstractmethod
    async def get_take_by_slug(self, slug: str) -> Optional[Take]:
        ...


def _eligible_clause():
    # JSON columns: NULL and '[]' both mean "not enriched yet"
    return and_(
        HotTake.agree_reasons.isnot(None),
        HotTake.disagree_reasons.isnot(None),
    )


class SqlCorpusStore(CorpusStore):
    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def _fetch(self, stmt) -> List[Take]:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [Take.from_row(row) for row in result.scalars().all()]

    async def list_eligible_takes(self) -> List[Take]:
        stmt = select(HotTake).where(_eligible_clause()).order_by(HotTake.id)
        takes = [t for t in await self._fetch(stmt) if t.is_eligible]
        logger.info("Loaded %s eligible takes from backing store", len(takes))
        return takes

    async def get_take_by_id(self, take_id: str) -> Optional[Take]:
        takes = await self._fetch(select(HotTake).where(HotTake.id == take_id))
        return takes[0] if takes else None

    async def get_takes_by_category(self, category: str) -> List[Take]:
        stmt = select(HotTake).where(HotTake.category == category).order_by(HotTake.id)
        return await self._fetch(stmt)

    async def get_takes_by_intensity(self, category: str, intensity_min: int,
                                     intensity_max: int) -> List[Take]:
        effective_intensity = func.coalesce(HotTake.intensity, DEFAULT_INTENSITY)
        stmt = (
            select(HotTake)
            .where(HotTake.category == category)
            .where(effective_intensity >= intensity_min)
            .where(effective_intensity <= intensity_max)
            .order_by(HotTake.id)
        )
        return await self._fetch(stmt)

    async def get_take_by_slug(self, slug: str) -> Optional[Take]:
        takes = await self._fetch(select(HotTake).where(HotTake.slug == slug).limit(1))
        return takes[0] if takes else None

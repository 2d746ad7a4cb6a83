"""
Pytest configuration and shared fixtures for stance backend tests.

This module provides:
- Database fixtures (file-backed SQLite through aiosqlite, one per test)
- An in-memory corpus store with call counting and failure injection
- Take factories and a small sample corpus covering every category
"""

import asyncio
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from stance_backend.models import Base
from stance_backend.services.categories import CATEGORY_NAMES
from stance_backend.services.corpus_store import CorpusStore
from stance_backend.services.take_model import Take


# ============================================================================
# Take Factories
# ============================================================================

def make_take(
    take_id: str,
    category: str = "philosophy",
    intensity: int = 3,
    eligible: bool = True,
    slug: Optional[str] = None,
    tone: tuple = ("provocative",),
) -> Take:
    """Factory function to create takes for tests."""
    return Take(
        id=take_id,
        statement=f"Statement for {take_id}",
        category=category,
        slug=slug or f"slug-{take_id}",
        tone=tone,
        original_question=f"Question behind {take_id}?",
        agree_reasons=("Makes sense", "Personal experience") if eligible else None,
        disagree_reasons=("Too extreme", "Counter-examples") if eligible else None,
        intensity=intensity,
    )


def build_sample_corpus() -> List[Take]:
    """Five eligible takes (intensity 1-5) and one unenriched take per category."""
    takes = []
    for category in CATEGORY_NAMES:
        prefix = category[:3]
        for intensity in range(1, 6):
            takes.append(make_take(f"{prefix}{intensity:03d}", category, intensity=intensity))
        takes.append(make_take(f"{prefix}raw", category, eligible=False))
    return takes


# ============================================================================
# Mock Corpus Store (for tests without real DB)
# ============================================================================

class FakeCorpusStore(CorpusStore):
    """
    In-memory corpus store.

    Counts bulk loads, can delay them (to widen race windows) and can be told
    to fail the next loads with ``fail_with``.
    """

    def __init__(self, takes: List[Take], delay: float = 0.0):
        self.takes = list(takes)
        self.delay = delay
        self.fail_with: Optional[BaseException] = None
        self.list_calls = 0
        self.id_lookups = 0

    async def list_eligible_takes(self) -> List[Take]:
        self.list_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return [t for t in self.takes if t.is_eligible]

    async def get_take_by_id(self, take_id: str) -> Optional[Take]:
        self.id_lookups += 1
        return next((t for t in self.takes if t.id == take_id), None)

    async def get_takes_by_category(self, category: str) -> List[Take]:
        return [t for t in self.takes if t.category == category]

    async def get_takes_by_intensity(self, category, intensity_min, intensity_max) -> List[Take]:
        return [
            t for t in self.takes
            if t.category == category and intensity_min <= t.intensity <= intensity_max
        ]

    async def get_take_by_slug(self, slug: str) -> Optional[Take]:
        return next((t for t in self.takes if t.slug == slug), None)


@pytest.fixture
def sample_takes() -> List[Take]:
    return build_sample_corpus()


@pytest.fixture
def fake_store(sample_takes) -> FakeCorpusStore:
    return FakeCorpusStore(sample_takes)


# ============================================================================
# Test Database Configuration
# ============================================================================

@pytest.fixture
def test_database_path(tmp_path):
    """A fresh SQLite file with every table created."""
    path = tmp_path / "stance_test.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture
def session_factory(test_database_path):
    """
    Async session factory bound to the test database.

    NullPool: every session opens its own connection on whichever event loop
    is running, so the same factory works under pytest-asyncio and TestClient.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{test_database_path}",
        poolclass=NullPool,
    )
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# Pytest Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

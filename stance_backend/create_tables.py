"""
Create the stance game tables in the database
"""
import asyncio

from sqlalchemy.ext.asyncio import create_async_engine

from stance_backend.db_session import DATABASE_URL
from stance_backend.models import Base


async def create_tables(database_url: str = DATABASE_URL):
    engine = create_async_engine(database_url, echo=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    print("✅ Tables created: " + ", ".join(sorted(Base.metadata.tables)))

    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(create_tables())

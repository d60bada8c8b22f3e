from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from core.environment import get_database_url


DATABASE_URL = get_database_url()

engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)
Base = declarative_base()


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Runs the enclosed block in its own transaction.

    Any transaction the session autobegan for earlier reads is committed
    first, so ``session.begin()`` never collides with it. The block commits
    on normal exit and rolls back on any exception.
    """
    if session.in_transaction():
        await session.commit()
    async with session.begin():
        yield session


async def create_schema(bind=engine) -> None:
    """Creates all tables (development and test databases only)."""
    import models  # noqa: F401  registers mappers on Base.metadata

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

from typing import Optional

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .settings import Settings

Base = declarative_base()


def make_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


def build_engine(url: URL | str) -> AsyncEngine:
    return create_async_engine(url, echo=False, future=True)


def engine_from_settings(settings: Settings) -> Optional[AsyncEngine]:
    """Engine for the configured store, or None when persistence is disabled."""
    url = settings.database_url()
    if url is None:
        return None
    return build_engine(url)


async def init_db(engine: AsyncEngine, create_all: bool = False):
    # Only run create_all in dev, never in prod with Alembic
    if create_all:
        from . import models  # noqa: F401  registers tables on Base.metadata
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

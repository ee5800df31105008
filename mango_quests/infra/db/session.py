"""
Database engine and session management.

The module-level engine serves the app; tests and tools build their own
through the same factories so both run with identical session options.
"""
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from mango_quests.config import Settings, get_settings


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, echo=settings.debug, future=True)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows stay readable after commit; progress writes commit mid-request
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False, autoflush=False)


engine = create_engine_from_settings(get_settings())
async_session_factory = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI routes."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create all tables on ``bind`` (the app engine by default)."""
    from mango_quests.infra.db.models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(bind: Optional[AsyncEngine] = None) -> None:
    await (bind or engine).dispose()

# learner_analytics/utils/db.py
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from learner_analytics.utils.config import settings


def make_engine(database_url: str | None = None) -> AsyncEngine:
    """Creates an async engine for the given URL (defaults to settings.database_url)."""
    return create_async_engine(
        database_url or settings.database_url,
        echo=settings.database_echo,
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the engine; objects stay usable after commit."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

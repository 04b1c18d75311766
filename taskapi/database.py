from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from taskapi.core.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    kwargs = {}
    if not settings.database_url.startswith("sqlite"):
        kwargs["pool_size"] = settings.database_pool_size

    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        **kwargs,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def create_db_and_tables(engine: AsyncEngine):
    """Create missing tables and indexes; existing ones are left untouched."""
    # registers the table models on SQLModel.metadata
    import taskapi.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

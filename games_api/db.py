from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from games_api.create_postgres_engine import create_postgres_engine
from games_api.create_sqlite_engine import create_sqlite_engine
from games_api.load_secrets import database_url, db_name
from games_api.models.schemas import Base


def create_engine() -> AsyncEngine:
    """PostgreSQL when a server database is configured, a local SQLite file otherwise."""
    if database_url or db_name:
        return create_postgres_engine()
    return create_sqlite_engine()


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        autocommit=False,
        class_=AsyncSession,
        autoflush=True,
        expire_on_commit=False,
        bind=engine,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create table if not exists"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


engine = create_engine()

# Centralized session factory to avoid creating it in router modules.
Session = create_session_factory(engine)

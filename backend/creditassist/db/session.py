from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy.pool import NullPool, StaticPool


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for the durable backend.
    SQLite needs a shared connection, PostgreSQL (asyncpg) runs without pooling.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    if "supabase" in database_url and "ssl=" not in database_url:
        # asyncpg takes SSL from the URL, not connect_args
        database_url = database_url + ("&" if "?" in database_url else "?") + "ssl=require"

    return create_async_engine(
        database_url,
        echo=echo,
        poolclass=NullPool,  # Fixes asyncpg concurrency/connection issues
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

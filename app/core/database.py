from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

# Create declarative base
Base = declarative_base()


def build_engine(db_path: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for a SQLite path.

    An in-memory database lives on a single shared connection, otherwise
    every checkout would see its own empty database.
    """
    if db_path == ":memory:":
        return create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=echo)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database - create all tables."""
    # Import models so their metadata is registered on Base
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

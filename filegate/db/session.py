"""SQLite session and engine for the metadata store."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncContextManager, Callable

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from filegate.config import get_settings

Base = declarative_base()

SessionScope = Callable[[], AsyncContextManager[AsyncSession]]


def create_engine_for_path(db_path) -> AsyncEngine:
    """Async engine for a SQLite file (SQLAlchemy async needs sqlite+aiosqlite)."""
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)


def session_scope(engine: AsyncEngine) -> SessionScope:
    """Return a context-manager factory yielding sessions that commit on success."""
    factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    @asynccontextmanager
    async def scope() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    return scope


async def create_tables(engine: AsyncEngine) -> None:
    """Create all metadata tables on engine if they do not exist."""
    from filegate.records import models  # noqa: F401 - register tables with Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


_settings = get_settings()
_engine = create_engine_for_path(_settings.db_path)

# Application-wide session scope: async with get_session() as session
get_session = session_scope(_engine)


async def init_db() -> None:
    """Create tables if they do not exist."""
    _settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    await create_tables(_engine)


async def close_db() -> None:
    """Dispose pooled connections (called on shutdown)."""
    await _engine.dispose()

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from catalog.config import settings

logger = logging.getLogger(__name__)


def build_async_url(url: str) -> str:
    """Rewrite a plain database URL to its async driver form."""
    if url.startswith("postgresql+asyncpg://"):
        # Switch to psycopg for async PostgreSQL
        return url.replace("postgresql+asyncpg://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def create_engine_for(url: str) -> AsyncEngine:
    """Create an async engine with settings appropriate for the backend."""
    database_url = build_async_url(url)

    # SQLite doesn't support pool settings
    if database_url.startswith("sqlite"):
        sqlite_engine = create_async_engine(
            database_url,
            echo=settings.DB_ECHO,
            connect_args={"check_same_thread": False},
        )

        # ON DELETE CASCADE needs foreign keys switched on per connection
        @event.listens_for(sqlite_engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    return create_async_engine(
        database_url,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,  # Check connection health before use
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine_for(settings.DATABASE_URL)

async_session_factory = create_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def import_models() -> None:
    """Import all model modules so they register with Base.metadata."""
    from catalog.models import warehouse, product, inventory, configuration  # noqa: F401


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success and rolls back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_db_session():
    """Context manager for getting a database session outside a request."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables on the given engine (defaults to the configured one)."""
    import_models()
    target = bind or engine

    logger.info(f"Registered {len(Base.metadata.tables)} tables")

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created")

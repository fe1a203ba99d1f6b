"""Database connection and session management using SQLAlchemy async ORM"""
from typing import AsyncGenerator
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from musicroom.config import DATABASE_URL

# Convert sync postgresql:// to async postgresql+asyncpg://
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)


def build_engine(url: str = DATABASE_URL, echo: bool = False):
    """
    Create the async engine for a database URL.

    SQLite (used by the test suite and local demos) gets a busy timeout
    instead of the PostgreSQL pool settings.
    """
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": 30.0},
        )

    # pool_size=20: Keep 20 connections alive in the pool
    # max_overflow=30: Allow 30 additional connections under load (total 50 max)
    # pool_recycle=3600: Recycle connections every hour to prevent stale connections
    return create_async_engine(
        url,
        echo=echo,
        pool_size=20,
        max_overflow=30,
        pool_recycle=3600,
        pool_pre_ping=True,  # Verify connection health before using
    )


def build_session_factory(bind) -> async_sessionmaker:
    """Session factory with the settings every service expects"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine()

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)

# Base class for declarative models
Base = declarative_base()


async def refresh_columns(session: AsyncSession, obj) -> None:
    """
    Reload every column attribute of an ORM object.

    Server-side defaults (created_at/updated_at) and counters changed by
    SQL-side arithmetic are stale after a flush; relationships are left alone
    so callers can return the object once the session is closed.
    """
    attribute_names = [attr.key for attr in inspect(obj).mapper.column_attrs]
    await session.refresh(obj, attribute_names=attribute_names)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI endpoints to get database session.

    Usage in FastAPI:
        @app.get("/items")
        async def read_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
